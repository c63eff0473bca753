"""Utilities for communicating with the AniList GraphQL API."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from ..config import Settings
from ..models import CatalogUser, RemoteList

logger = logging.getLogger(__name__)


USER_QUERY = """
query ($name: String) {
  User(name: $name) {
    id
    name
    avatar {
      large
    }
  }
}
"""

LIST_QUERY = """
query ($userId: Int) {
  MediaListCollection(userId: $userId, type: ANIME) {
    lists {
      name
      entries {
        ...mediaListEntry
      }
    }
  }
}

fragment mediaListEntry on MediaList {
  scoreRaw: score(format: POINT_100)
  startedAt {
    year
    month
    day
  }
  completedAt {
    year
    month
    day
  }
  media {
    id
    title {
      userPreferred
      english
      romaji
      native
    }
    description(asHtml: true)
    coverImage {
      large
    }
    averageScore
    siteUrl
  }
}
"""


class AniListError(RuntimeError):
    """Raised when AniList cannot be reached or returns an unusable payload."""


class AniListClient:
    """Thin wrapper around the AniList GraphQL endpoint."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self._settings = settings
        self._client = http_client
        self._endpoint = str(settings.anilist_api_url)

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": f"{self._settings.app_name} (anihistory)",
        }

    async def resolve_identity(self, username: str) -> CatalogUser | None:
        """Return the catalog identity for ``username`` or ``None`` if it does not exist."""

        try:
            response = await self._client.post(
                self._endpoint,
                headers=self._headers(),
                json={"query": USER_QUERY, "variables": {"name": username}},
            )
        except httpx.HTTPError as exc:
            raise AniListError(f"Failed to look up user {username!r}: {exc}") from exc

        # AniList answers unknown users with a 404 and a GraphQL error body.
        if response.status_code == 404:
            logger.info("user_name=%s was not found in AniList", username)
            return None

        data = self._decode(response, context=f"user lookup for {username!r}")
        user = data.get("User")
        if not user:
            logger.info("user_name=%s was not found in AniList", username)
            return None
        try:
            return CatalogUser.model_validate(user)
        except ValidationError as exc:
            raise AniListError(f"Unexpected AniList user payload: {exc}") from exc

    async def fetch_lists(self, user_id: int) -> list[RemoteList]:
        """Fetch every anime list (Completed, Watching, ...) for the numeric identity."""

        try:
            response = await self._client.post(
                self._endpoint,
                headers=self._headers(),
                json={"query": LIST_QUERY, "variables": {"userId": user_id}},
            )
        except httpx.HTTPError as exc:
            raise AniListError(
                f"Failed to fetch lists for user_id={user_id}: {exc}"
            ) from exc

        data = self._decode(response, context=f"list fetch for user_id={user_id}")
        collection = data.get("MediaListCollection")
        if not isinstance(collection, dict):
            raise AniListError(f"No list collection returned for user_id={user_id}")
        raw_lists = collection.get("lists") or []
        try:
            lists = [RemoteList.model_validate(entry) for entry in raw_lists]
        except ValidationError as exc:
            raise AniListError(
                f"Unexpected AniList list payload for user_id={user_id}: {exc}"
            ) from exc
        logger.info(
            "Fetched %s lists with %s entries for user_id=%s",
            len(lists),
            sum(len(item.entries) for item in lists),
            user_id,
        )
        return lists

    @staticmethod
    def _decode(response: httpx.Response, *, context: str) -> dict[str, Any]:
        if response.status_code >= 400:
            raise AniListError(
                f"AniList {context} failed with status {response.status_code}: {response.text}"
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise AniListError(f"Non-JSON AniList response during {context}") from exc
        if not isinstance(payload, dict):
            raise AniListError(f"Unexpected AniList response structure during {context}")
        if payload.get("errors"):
            raise AniListError(f"AniList {context} returned errors: {payload['errors']}")
        data = payload.get("data")
        if not isinstance(data, dict):
            raise AniListError(f"AniList {context} returned no data")
        return data
