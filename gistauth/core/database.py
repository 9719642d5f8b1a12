"""Database configuration and session helpers."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator

from fastapi import Request
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine


def create_db_engine(database_url: str) -> Engine:
    """Create the SQLAlchemy engine for ``database_url``.

    SQLite files get their parent directory created; in-memory SQLite shares
    a single connection so every session sees the same tables.
    """

    if not database_url.startswith("sqlite"):
        return create_engine(database_url)

    connect_args = {"check_same_thread": False}
    if database_url in {"sqlite://", "sqlite:///:memory:"}:
        return create_engine(
            database_url, connect_args=connect_args, poolclass=StaticPool
        )

    db_path = database_url.split("sqlite:///", 1)[-1]
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(database_url, connect_args=connect_args)


def get_session(request: Request) -> Iterator[Session]:
    """FastAPI dependency that yields a database session."""

    with Session(request.app.state.engine) as session:
        yield session


__all__ = ["create_db_engine", "get_session"]
