"""Coordinates profile updates, list reconciliation and list lookups."""

from __future__ import annotations

import logging

from ..db_models import UserRecord
from ..models import CatalogUser, ListItemResponse, UserList, UserListResponse
from .anilist import AniListClient, AniListError
from .background import TaskTracker
from .images import ImageMaterializationError, ImageMaterializer, ImageSubject
from .reconciler import ReconcileReport, Reconciler
from .storage import StorageGateway

logger = logging.getLogger(__name__)


class HistoryService:
    """Entry point used by the HTTP layer."""

    def __init__(
        self,
        anilist: AniListClient,
        storage: StorageGateway,
        images: ImageMaterializer,
        tasks: TaskTracker | None = None,
    ):
        self._anilist = anilist
        self._storage = storage
        self._images = images
        self._tasks = tasks if tasks is not None else TaskTracker()
        self._reconciler = Reconciler(anilist, storage, images, self._tasks)

    async def get_list(self, username: str) -> UserListResponse | None:
        """Return the mirrored list for ``username`` or ``None`` if nothing is stored."""

        rows = await self._storage.get_list_for_username(username)
        if not rows:
            return None
        user = rows[0][0]
        items = [
            ListItemResponse(
                id=anime.anime_id,
                user_title=entry.user_title,
                start_day=entry.start_day,
                end_day=entry.end_day,
                score=entry.score,
                average=anime.average,
                native=anime.native,
                romaji=anime.romaji,
                english=anime.english,
                description=anime.description,
                cover=anime.cover_s3,
            )
            for _, anime, entry in rows
        ]
        return UserListResponse(
            users=UserList(id=user.name, avatar=user.avatar_s3, items=items)
        )

    async def request_update(self, username: str) -> CatalogUser | None:
        """Refresh the profile now and queue a list reconciliation.

        Returns ``None`` when AniList has no such user; nothing is written in
        that case.
        """

        identity = await self._anilist.resolve_identity(username)
        if identity is None:
            return None
        await self.sync_profile(identity)
        self.schedule_reconcile(identity.id)
        return identity

    async def sync_profile(self, identity: CatalogUser) -> UserRecord:
        """Re-host the avatar and upsert the user row."""

        try:
            await self._images.materialize(ImageSubject.USER, identity.id, identity.avatar_url)
        except ImageMaterializationError as exc:
            logger.error("error uploading avatar for user_id=%s: %s", identity.id, exc)

        record = UserRecord(
            user_id=identity.id,
            name=identity.name,
            avatar_s3=self._images.storage_url(
                ImageSubject.USER, identity.id, identity.avatar_url
            ),
            avatar_anilist=identity.avatar_url,
        )
        await self._storage.upsert_user(record)
        logger.info("Profile saved for user_id=%s user_name=%s", identity.id, identity.name)
        return record

    def schedule_reconcile(self, user_id: int) -> None:
        """Run a reconciliation for ``user_id`` detached from the caller."""

        self._tasks.spawn(self._run_reconcile(user_id), name=f"reconcile-{user_id}")

    async def _run_reconcile(self, user_id: int) -> ReconcileReport | None:
        try:
            return await self._reconciler.reconcile(user_id)
        except AniListError as exc:
            logger.error("Reconciliation aborted for user_id=%s: %s", user_id, exc)
        except Exception:  # pragma: no cover - background safety net
            logger.exception("Reconciliation failed for user_id=%s", user_id)
        return None

    async def wait_idle(self) -> None:
        """Wait for queued reconciliations and image uploads to finish."""

        await self._tasks.wait_idle()
