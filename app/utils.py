"""Utility helpers for the AniHistory service."""

from __future__ import annotations

from urllib.parse import urlparse


DEFAULT_IMAGE_EXTENSION = "jpg"


def file_extension(url: str, default: str = DEFAULT_IMAGE_EXTENSION) -> str:
    """Return the suffix after the last ``.`` of the URL's final path segment.

    The suffix keeps its original case. URLs without a usable suffix fall back
    to ``default``.
    """

    path = urlparse(url or "").path
    segment = path.rsplit("/", 1)[-1]
    if "." not in segment:
        return default
    extension = segment.rsplit(".", 1)[-1].strip()
    return extension or default


def naive_content_type(extension: str) -> str:
    """Map a file extension to an image content type without sniffing bytes."""

    if "jp" in extension:
        return "image/jpeg"
    return f"image/{extension}"


def image_storage_key(subject: str, subject_id: int, extension: str) -> str:
    """Return the object key under which a materialized image is stored."""

    return f"assets/images/{subject}_{subject_id}.{extension}"
