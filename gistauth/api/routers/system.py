"""System-level API endpoints."""

from __future__ import annotations

from typing import Dict, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ...models import User
from ...services import Provider, linked_id
from ..deps import current_user

router = APIRouter(tags=["system"])


@router.get("/health")
def health() -> Dict[str, bool]:
    """Simple readiness probe."""

    return {"ok": True}


@router.get("/me")
def me(user: Optional[User] = Depends(current_user)) -> JSONResponse:
    """Describe the logged-in account, or ``{"user": null}``."""

    if user is None:
        return JSONResponse({"user": None})
    return JSONResponse(
        {
            "user": {
                "id": user.id,
                "username": user.username,
                "email": user.email,
                "avatar_url": user.avatar_url,
                "is_admin": user.is_admin,
                "providers": [p.value for p in Provider if linked_id(user, p)],
            }
        }
    )


__all__ = ["router"]
