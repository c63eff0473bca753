"""Tests for the relational storage gateway."""

from __future__ import annotations

from datetime import date

import pytest

from app.db_models import AnimeRecord, ListEntryRecord, UserRecord
from app.services.storage import StorageGateway

from tests.factories import open_database


def _anime(anime_id: int, *, description: str = "desc") -> AnimeRecord:
    return AnimeRecord(
        anime_id=anime_id,
        description=description,
        cover_s3=f"https://cdn/anime_{anime_id}.jpg",
        cover_anilist=f"https://anilist/{anime_id}.jpg",
        average=70,
        native=None,
        romaji=f"Romaji {anime_id}",
        english=None,
    )


def _entry(user_id: int, anime_id: int, *, score: int | None = 50) -> ListEntryRecord:
    return ListEntryRecord(
        user_id=user_id,
        anime_id=anime_id,
        user_title=f"Title {anime_id}",
        start_day=date(2020, 1, 1),
        end_day=None,
        score=score,
    )


async def _seed(storage: StorageGateway) -> None:
    await storage.upsert_user(
        UserRecord(user_id=1, name="alice", avatar_s3="https://cdn/u1.png", avatar_anilist="a")
    )
    await storage.upsert_user(
        UserRecord(user_id=2, name="bob", avatar_s3="https://cdn/u2.png", avatar_anilist="b")
    )
    for anime_id in (5, 9, 12):
        await storage.upsert_anime(_anime(anime_id))
        await storage.upsert_list_entry(_entry(1, anime_id))
    await storage.upsert_list_entry(_entry(2, 9))


@pytest.mark.anyio("asyncio")
async def test_upserts_update_existing_rows(tmp_path) -> None:
    database = await open_database(tmp_path)
    try:
        storage = StorageGateway(database.session_factory)
        await _seed(storage)

        await storage.upsert_anime(_anime(5, description="updated"))
        await storage.upsert_list_entry(_entry(1, 5, score=95))
        await storage.upsert_user(
            UserRecord(user_id=1, name="alice2", avatar_s3="s3", avatar_anilist="x")
        )

        anime = await storage.get_anime(5)
        user = await storage.get_user(1)
        rows = [row async for row in storage.stream_list_entries(1)]
    finally:
        await database.dispose()

    assert anime is not None and anime.description == "updated"
    assert user is not None and user.name == "alice2"
    assert [(row.anime_id, row.score) for row in rows] == [(5, 95), (9, 50), (12, 50)]


@pytest.mark.anyio("asyncio")
async def test_stream_and_delete_are_scoped_to_user(tmp_path) -> None:
    database = await open_database(tmp_path)
    try:
        storage = StorageGateway(database.session_factory)
        await _seed(storage)

        assert await storage.delete_list_entry(1, 9) is True
        assert await storage.delete_list_entry(1, 9) is False

        alice = [row.anime_id async for row in storage.stream_list_entries(1)]
        bob = [row.anime_id async for row in storage.stream_list_entries(2)]
    finally:
        await database.dispose()

    assert alice == [5, 12]
    assert bob == [9]


@pytest.mark.anyio("asyncio")
async def test_get_list_for_username_joins_rows(tmp_path) -> None:
    database = await open_database(tmp_path)
    try:
        storage = StorageGateway(database.session_factory)
        await _seed(storage)

        rows = await storage.get_list_for_username("alice")
        missing = await storage.get_list_for_username("carol")
    finally:
        await database.dispose()

    assert missing == []
    assert [anime.anime_id for _, anime, _ in rows] == [5, 9, 12]
    user, anime, entry = rows[0]
    assert user.name == "alice"
    assert anime.romaji == "Romaji 5"
    assert entry.start_day == date(2020, 1, 1)
