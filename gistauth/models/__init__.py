"""Database model exports."""

from .ssh_key import SSHKey
from .user import User

__all__ = [
    "SSHKey",
    "User",
]
