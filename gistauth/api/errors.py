"""HTTP error helper shared by the routers."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import HTTPException

logger = logging.getLogger(__name__)


def http_error(
    status_code: int, message: str, exc: Optional[BaseException] = None
) -> HTTPException:
    """Log ``message`` (with ``exc`` when given) and build the HTTP error to raise."""

    if exc is not None:
        logger.error("%s: %s", message, exc, exc_info=exc)
    elif status_code >= 500:
        logger.error(message)
    return HTTPException(status_code=status_code, detail=message)


__all__ = ["http_error"]
