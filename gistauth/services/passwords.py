"""Password hashing with argon2id."""

from __future__ import annotations

from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError

_PH = PasswordHasher()


def hash_password(plain: str) -> str:
    """Hash ``plain``; raises ``argon2.exceptions.HashingError`` on failure."""

    return _PH.hash(plain)


def verify_password(hash_value: str, plain: str) -> bool:
    """Return whether ``plain`` matches ``hash_value``.

    Accounts created through a provider have no hash and never match.
    Malformed hashes raise ``InvalidHashError`` so callers can tell a broken
    record apart from a wrong password.
    """

    if not hash_value:
        return False
    try:
        return _PH.verify(hash_value, plain)
    except VerifyMismatchError:
        return False


__all__ = ["hash_password", "verify_password"]
