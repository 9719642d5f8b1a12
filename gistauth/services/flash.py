"""One-time messages carried in the session until the next rendered page."""

from __future__ import annotations

from typing import Dict, List

from starlette.requests import Request

FLASH_KEY = "flashes"


def add_flash(request: Request, message: str, category: str = "error") -> None:
    flashes = list(request.session.get(FLASH_KEY) or [])
    flashes.append({"message": message, "category": category})
    request.session[FLASH_KEY] = flashes


def pop_flashes(request: Request) -> List[Dict[str, str]]:
    return request.session.pop(FLASH_KEY, None) or []


__all__ = ["FLASH_KEY", "add_flash", "pop_flashes"]
