from __future__ import annotations

import asyncio

from sqlalchemy import create_engine, inspect

from app.database import Database


def test_create_all_builds_history_tables(tmp_path) -> None:
    """Startup schema creation provides the users, anime and lists tables."""

    database_path = tmp_path / "fresh.db"
    database = Database(f"sqlite+aiosqlite:///{database_path}")

    async def _create_twice() -> None:
        await database.create_all()
        # Creating again against an existing schema is a no-op.
        await database.create_all()
        await database.dispose()

    asyncio.run(_create_twice())

    inspector_engine = create_engine(f"sqlite:///{database_path}")
    try:
        inspector = inspect(inspector_engine)
        tables = set(inspector.get_table_names())
        list_pk = inspector.get_pk_constraint("lists")["constrained_columns"]
    finally:
        inspector_engine.dispose()

    assert {"users", "anime", "lists"} <= tables
    assert sorted(list_pk) == ["anime_id", "user_id"]
