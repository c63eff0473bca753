"""Persistence of users, anime metadata and list rows."""

from __future__ import annotations

import logging
from typing import AsyncIterator, Sequence

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import AnimeRecord, ListEntryRecord, UserRecord

logger = logging.getLogger(__name__)


class StorageGateway:
    """Row-level access to the relational store.

    Every write runs in its own session and is committed on its own, so a
    failure only affects the row being written.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def upsert_user(self, user: UserRecord) -> None:
        async with self._session_factory() as session:
            await session.merge(user)
            await session.commit()

    async def upsert_anime(self, anime: AnimeRecord) -> None:
        async with self._session_factory() as session:
            await session.merge(anime)
            await session.commit()

    async def upsert_list_entry(self, entry: ListEntryRecord) -> None:
        async with self._session_factory() as session:
            await session.merge(entry)
            await session.commit()

    async def stream_list_entries(self, user_id: int) -> AsyncIterator[ListEntryRecord]:
        """Yield every stored list row for ``user_id``."""

        async with self._session_factory() as session:
            stmt = (
                select(ListEntryRecord)
                .where(ListEntryRecord.user_id == user_id)
                .order_by(ListEntryRecord.anime_id)
            )
            result = await session.stream_scalars(stmt)
            async for record in result:
                yield record

    async def delete_list_entry(self, user_id: int, anime_id: int) -> bool:
        """Delete one list row, returning whether a row was removed."""

        async with self._session_factory() as session:
            result = await session.execute(
                delete(ListEntryRecord).where(
                    ListEntryRecord.user_id == user_id,
                    ListEntryRecord.anime_id == anime_id,
                )
            )
            await session.commit()
        return bool(result.rowcount)

    async def get_user(self, user_id: int) -> UserRecord | None:
        async with self._session_factory() as session:
            return await session.get(UserRecord, user_id)

    async def get_anime(self, anime_id: int) -> AnimeRecord | None:
        async with self._session_factory() as session:
            return await session.get(AnimeRecord, anime_id)

    async def get_list_for_username(
        self, name: str
    ) -> Sequence[tuple[UserRecord, AnimeRecord, ListEntryRecord]]:
        """Return joined user/anime/list rows for the user with display name ``name``."""

        async with self._session_factory() as session:
            stmt = (
                select(UserRecord, AnimeRecord, ListEntryRecord)
                .join(ListEntryRecord, ListEntryRecord.user_id == UserRecord.user_id)
                .join(AnimeRecord, AnimeRecord.anime_id == ListEntryRecord.anime_id)
                .where(UserRecord.name == name)
                .order_by(ListEntryRecord.anime_id)
            )
            result = await session.execute(stmt)
            return [tuple(row) for row in result.all()]
