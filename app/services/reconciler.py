"""Convergence of a user's locally stored list with their AniList list."""

from __future__ import annotations

import asyncio
import logging
from bisect import bisect_left
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from sqlalchemy.exc import SQLAlchemyError

from ..db_models import AnimeRecord, ListEntryRecord
from ..models import RemoteEntry, RemoteList
from .anilist import AniListClient
from .background import TaskTracker
from .images import ImageMaterializationError, ImageMaterializer, ImageSubject
from .storage import StorageGateway

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RowFailure:
    """A list row that could not be written or removed."""

    user_id: int
    anime_id: int
    operation: str
    error: str


@dataclass(slots=True)
class ReconcileReport:
    """Outcome of one reconciliation pass."""

    user_id: int
    upserted: list[int] = field(default_factory=list)
    deleted: list[int] = field(default_factory=list)
    failures: list[RowFailure] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return len(self.upserted) + len(self.deleted)

    def record_failure(self, anime_id: int, operation: str, exc: BaseException) -> None:
        self.failures.append(
            RowFailure(
                user_id=self.user_id,
                anime_id=anime_id,
                operation=operation,
                error=str(exc),
            )
        )


def retained_lists(lists: Iterable[RemoteList]) -> list[RemoteList]:
    """Return the completed/watching lists with entries sorted by media id."""

    retained: list[RemoteList] = []
    for remote_list in lists:
        if not remote_list.is_retained:
            continue
        entries = sorted(remote_list.entries, key=lambda entry: entry.media_id)
        retained.append(remote_list.model_copy(update={"entries": entries}))
    return retained


def _contains(entries: Sequence[RemoteEntry], anime_id: int) -> bool:
    index = bisect_left(entries, anime_id, key=lambda entry: entry.media_id)
    return index < len(entries) and entries[index].media_id == anime_id


def is_retained_media(lists: Sequence[RemoteList], anime_id: int) -> bool:
    """Binary search each sorted retained list for ``anime_id``."""

    return any(_contains(remote_list.entries, anime_id) for remote_list in lists)


class Reconciler:
    """Pulls a user's lists, deletes vanished rows and upserts current ones.

    Passes for the same user id are serialised; passes for different users
    run concurrently. Cover uploads are spawned on ``tasks`` and may still be
    running when ``reconcile`` returns.
    """

    def __init__(
        self,
        anilist: AniListClient,
        storage: StorageGateway,
        images: ImageMaterializer,
        tasks: TaskTracker,
    ):
        self._anilist = anilist
        self._storage = storage
        self._images = images
        self._tasks = tasks
        self._locks: dict[int, asyncio.Lock] = {}
        self._lock_users: dict[int, int] = {}

    async def reconcile(self, user_id: int) -> ReconcileReport:
        """Converge stored rows for ``user_id``; raises ``AniListError`` if the fetch fails."""

        lock = self._locks.setdefault(user_id, asyncio.Lock())
        self._lock_users[user_id] = self._lock_users.get(user_id, 0) + 1
        try:
            async with lock:
                lists = retained_lists(await self._anilist.fetch_lists(user_id))
                report = ReconcileReport(user_id=user_id)
                await self._delete_stale(user_id, lists, report)
                await self._upsert_current(user_id, lists, report)
        finally:
            self._lock_users[user_id] -= 1
            if not self._lock_users[user_id]:
                del self._lock_users[user_id]
                del self._locks[user_id]

        logger.info(
            "Database updated for user_id=%s (%s upserted, %s deleted, %s failed)",
            user_id,
            len(report.upserted),
            len(report.deleted),
            len(report.failures),
        )
        return report

    async def _delete_stale(
        self, user_id: int, lists: Sequence[RemoteList], report: ReconcileReport
    ) -> None:
        # The scan finishes before deleting so no read cursor stays open during writes.
        stale: list[int] = []
        async for record in self._storage.stream_list_entries(user_id):
            if not is_retained_media(lists, record.anime_id):
                stale.append(record.anime_id)

        for anime_id in stale:
            logger.info("Deleting anime_id=%s from user_id=%s", anime_id, user_id)
            try:
                await self._storage.delete_list_entry(user_id, anime_id)
            except SQLAlchemyError as exc:
                logger.error(
                    "error deleting list entry user_id=%s anime_id=%s: %s",
                    user_id,
                    anime_id,
                    exc,
                )
                report.record_failure(anime_id, "delete", exc)
            else:
                report.deleted.append(anime_id)

    async def _upsert_current(
        self, user_id: int, lists: Sequence[RemoteList], report: ReconcileReport
    ) -> None:
        seen: set[int] = set()
        for remote_list in lists:
            for entry in remote_list.entries:
                if entry.media_id in seen:
                    continue
                seen.add(entry.media_id)
                await self._upsert_entry(user_id, entry, report)

    async def _upsert_entry(
        self, user_id: int, entry: RemoteEntry, report: ReconcileReport
    ) -> None:
        anime = self.build_anime(entry)
        try:
            await self._storage.upsert_anime(anime)
        except SQLAlchemyError as exc:
            logger.error("error saving anime_id=%s: %s", anime.anime_id, exc)
            report.record_failure(anime.anime_id, "upsert_anime", exc)
            return
        self._tasks.spawn(
            self._materialize_cover(anime.anime_id, anime.cover_anilist),
            name=f"cover-{anime.anime_id}",
        )

        row = self.build_list_entry(user_id, entry)
        try:
            await self._storage.upsert_list_entry(row)
        except SQLAlchemyError as exc:
            logger.error(
                "error saving list entry user_id=%s anime_id=%s: %s",
                user_id,
                row.anime_id,
                exc,
            )
            report.record_failure(row.anime_id, "upsert_list_entry", exc)
        else:
            report.upserted.append(row.anime_id)

    async def _materialize_cover(self, anime_id: int, cover_url: str) -> None:
        try:
            await self._images.materialize(ImageSubject.ANIME, anime_id, cover_url)
        except ImageMaterializationError as exc:
            logger.error("error uploading cover for anime_id=%s: %s", anime_id, exc)
        except Exception:  # pragma: no cover - background safety net
            logger.exception("Unexpected failure uploading cover for anime_id=%s", anime_id)

    def build_anime(self, entry: RemoteEntry) -> AnimeRecord:
        media = entry.media
        return AnimeRecord(
            anime_id=media.id,
            description=media.description,
            cover_s3=self._images.storage_url(ImageSubject.ANIME, media.id, media.cover_url),
            cover_anilist=media.cover_url,
            average=media.average_score,
            native=media.title.native,
            romaji=media.title.romaji,
            english=media.title.english,
        )

    @staticmethod
    def build_list_entry(user_id: int, entry: RemoteEntry) -> ListEntryRecord:
        return ListEntryRecord(
            user_id=user_id,
            anime_id=entry.media_id,
            user_title=entry.media.title.user_preferred,
            start_day=entry.start_day,
            end_day=entry.end_day,
            score=entry.score_raw,
        )
