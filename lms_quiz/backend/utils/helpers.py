"""
LMS Quiz Engine
Shared helpers: logging setup, slugs, response envelopes
"""

import logging
import sys
from typing import Any, Dict, Optional

from ...config import get_settings


def setup_logging(level: Optional[str] = None) -> None:
    """Configure root logging from settings"""
    settings = get_settings()

    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format=settings.LOG_FORMAT,
        stream=sys.stdout,
        force=True,
    )

    # SQL echo is controlled by DB_ECHO, keep the engine logger quiet otherwise
    if not settings.DB_ECHO:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def slugify(value: str) -> str:
    out = []
    for ch in value.lower():
        if ch.isalnum():
            out.append(ch)
        elif ch in (" ", "-", "_"):
            out.append("-")
    slug = "".join(out).strip("-")
    while "--" in slug:
        slug = slug.replace("--", "-")
    return slug or "quiz"


def success_response(message: str, data: Any = None) -> Dict[str, Any]:
    """Standard success envelope shared by all routes"""
    return {
        "status": True,
        "message": message,
        "data": data,
    }


__all__ = ["setup_logging", "slugify", "success_response"]
