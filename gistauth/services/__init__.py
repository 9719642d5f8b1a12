"""Service layer helpers."""

from .flash import add_flash, pop_flashes
from .forms import UserForm, validation_messages
from .passwords import hash_password, verify_password
from .providers import OAuthProfile, Provider, linked_id
from .sessions import clear_session, delete_csrf_cookie, session_user_id, start_session

__all__ = [
    "OAuthProfile",
    "Provider",
    "UserForm",
    "add_flash",
    "clear_session",
    "delete_csrf_cookie",
    "hash_password",
    "linked_id",
    "pop_flashes",
    "session_user_id",
    "start_session",
    "validation_messages",
    "verify_password",
]
