"""Persistence operations on accounts and their SSH keys."""

from __future__ import annotations

import hashlib
from typing import Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, func, select

from ..models import SSHKey, User
from .providers import Provider, linked_id

_Row = TypeVar("_Row", bound=SQLModel)


def _save(session: Session, row: _Row) -> _Row:
    session.add(row)
    try:
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        raise
    session.refresh(row)
    return row


def email_md5(email: str) -> str:
    """Hex MD5 of the normalised email, used as avatar fallback key."""

    return hashlib.md5((email or "").strip().lower().encode("utf-8")).hexdigest()


def user_exists(session: Session, username: str) -> bool:
    """Case-insensitive username lookup."""

    statement = select(User.id).where(
        func.lower(User.username) == (username or "").lower()
    )
    return session.exec(statement).first() is not None


def get_user_by_id(session: Session, user_id: int) -> Optional[User]:
    return session.get(User, user_id)


def get_user_by_username(session: Session, username: str) -> Optional[User]:
    return session.exec(select(User).where(User.username == username)).first()


def get_user_by_provider(
    session: Session, remote_id: str, provider: Provider
) -> Optional[User]:
    if not remote_id:
        return None
    column = getattr(User, provider.user_field)
    return session.exec(select(User).where(column == remote_id)).first()


def create_user(session: Session, user: User) -> User:
    """Insert ``user``; a taken username surfaces as ``IntegrityError``."""

    return _save(session, user)


def save_user(session: Session, user: User) -> User:
    return _save(session, user)


def promote_if_first(session: Session, user: User) -> bool:
    """Make account #1 an administrator. Returns whether it was promoted."""

    if user.id != 1:
        return False
    user.is_admin = True
    _save(session, user)
    return True


def sign_in_methods(user: User) -> int:
    """Number of ways ``user`` can currently authenticate."""

    count = 1 if user.password else 0
    return count + sum(1 for provider in Provider if linked_id(user, provider))


def delete_provider_id(session: Session, user: User, provider: Provider) -> User:
    setattr(user, provider.user_field, "")
    return _save(session, user)


def create_ssh_key(session: Session, user: User, title: str, content: str) -> SSHKey:
    return _save(session, SSHKey(title=title, content=content, user_id=user.id))


__all__ = [
    "create_ssh_key",
    "create_user",
    "delete_provider_id",
    "email_md5",
    "get_user_by_id",
    "get_user_by_provider",
    "get_user_by_username",
    "promote_if_first",
    "save_user",
    "sign_in_methods",
    "user_exists",
]
