"""SQLAlchemy ORM models backing the persisted watch history."""

from __future__ import annotations

from datetime import date

from sqlalchemy import Date, Integer, SmallInteger, Text
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base


class UserRecord(Base):
    """A catalog user whose list is mirrored locally."""

    __tablename__ = "users"

    user_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(Text, index=True)
    avatar_s3: Mapped[str] = mapped_column(Text)
    avatar_anilist: Mapped[str] = mapped_column(Text)


class AnimeRecord(Base):
    """Media metadata shared by every list that references it."""

    __tablename__ = "anime"

    anime_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    description: Mapped[str] = mapped_column(Text)
    cover_s3: Mapped[str] = mapped_column(Text)
    cover_anilist: Mapped[str] = mapped_column(Text)
    average: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)
    native: Mapped[str | None] = mapped_column(Text, nullable=True)
    romaji: Mapped[str | None] = mapped_column(Text, nullable=True)
    english: Mapped[str | None] = mapped_column(Text, nullable=True)


class ListEntryRecord(Base):
    """One completed or in-progress title on a user's list."""

    __tablename__ = "lists"

    user_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    anime_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    user_title: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_day: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_day: Mapped[date | None] = mapped_column(Date, nullable=True)
    score: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)

    def __repr__(self) -> str:
        return f"ListEntryRecord(user_id={self.user_id}, anime_id={self.anime_id})"
