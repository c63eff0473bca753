"""Pydantic models describing catalog payloads and API responses."""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, ConfigDict, Field, field_validator

RETAINED_LIST_MARKERS: tuple[str, ...] = ("completed", "watching")


class PartialDate(BaseModel):
    """A fuzzy date as reported by the catalog; any component may be missing."""

    year: int | None = None
    month: int | None = None
    day: int | None = None

    def to_date(self) -> date | None:
        """Return the calendar date only when every component forms a valid date."""

        if self.year is None or self.month is None or self.day is None:
            return None
        try:
            return date(self.year, self.month, self.day)
        except (ValueError, OverflowError):
            return None


class MediaTitle(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_preferred: str | None = Field(default=None, alias="userPreferred")
    english: str | None = None
    romaji: str | None = None
    native: str | None = None


class CoverImage(BaseModel):
    large: str


class MediaInfo(BaseModel):
    """Media metadata embedded in a list entry."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    title: MediaTitle = Field(default_factory=MediaTitle)
    description: str = ""
    cover_image: CoverImage = Field(alias="coverImage")
    average_score: int | None = Field(default=None, alias="averageScore")
    site_url: str | None = Field(default=None, alias="siteUrl")

    @field_validator("description", mode="before")
    @classmethod
    def _null_description(cls, value: object) -> object:
        return "" if value is None else value

    @property
    def cover_url(self) -> str:
        return self.cover_image.large


class RemoteEntry(BaseModel):
    """A single entry inside one of the user's catalog lists."""

    model_config = ConfigDict(populate_by_name=True)

    score_raw: int | None = Field(default=None, alias="scoreRaw")
    started_at: PartialDate | None = Field(default=None, alias="startedAt")
    completed_at: PartialDate | None = Field(default=None, alias="completedAt")
    media: MediaInfo

    @property
    def media_id(self) -> int:
        return self.media.id

    @property
    def start_day(self) -> date | None:
        return self.started_at.to_date() if self.started_at else None

    @property
    def end_day(self) -> date | None:
        return self.completed_at.to_date() if self.completed_at else None


class RemoteList(BaseModel):
    """A named sub-list (Completed, Watching, Planning, ...) with its entries."""

    name: str
    entries: list[RemoteEntry] = Field(default_factory=list)

    @property
    def is_retained(self) -> bool:
        """Return whether the list contributes rows to the local mirror."""

        lowered = self.name.lower()
        return any(marker in lowered for marker in RETAINED_LIST_MARKERS)


class Avatar(BaseModel):
    large: str


class CatalogUser(BaseModel):
    """Identity returned by the catalog for a username lookup."""

    id: int
    name: str
    avatar: Avatar

    @property
    def avatar_url(self) -> str:
        return self.avatar.large


class ListItemResponse(BaseModel):
    """One title on a user's mirrored list."""

    id: int
    user_title: str | None = None
    start_day: date | None = None
    end_day: date | None = None
    score: int | None = None
    average: int | None = None
    native: str | None = None
    romaji: str | None = None
    english: str | None = None
    description: str
    cover: str


class UserList(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    avatar: str
    items: list[ListItemResponse] = Field(default_factory=list, alias="list")


class UserListResponse(BaseModel):
    """Body returned by ``GET /users/{username}``."""

    users: UserList
