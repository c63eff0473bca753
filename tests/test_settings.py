"""Configuration settings behaviour tests."""

from __future__ import annotations

import pytest

from app.config import DEFAULT_CORS_ORIGINS, Settings


def test_cors_origins_parsed_from_comma_separated_value() -> None:
    """Origins are trimmed, de-duplicated and stripped of trailing slashes."""

    settings = Settings(
        _env_file=None,
        CORS_ORIGINS="https://a.example/, https://b.example,https://a.example",
    )

    assert settings.cors_origins == ("https://a.example", "https://b.example")


def test_cors_origins_blank_defaults() -> None:
    settings = Settings(_env_file=None, CORS_ORIGINS="")

    assert settings.cors_origins == DEFAULT_CORS_ORIGINS


def test_log_level_is_case_insensitive() -> None:
    assert Settings(_env_file=None, LOG_LEVEL="debug").log_level == "DEBUG"


def test_unknown_log_level_raises() -> None:
    with pytest.raises(ValueError, match="Unknown log level"):
        Settings(_env_file=None, LOG_LEVEL="chatty")


def test_storage_base_url_defaults_to_bucket_url() -> None:
    settings = Settings(_env_file=None, S3_BUCKET="covers")

    assert settings.storage_base_url == "https://s3.amazonaws.com/covers"


def test_storage_base_url_override_drops_trailing_slash() -> None:
    settings = Settings(_env_file=None, STORAGE_PUBLIC_URL="https://cdn.example.com/img/")

    assert settings.storage_base_url == "https://cdn.example.com/img"
