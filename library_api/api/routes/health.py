from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter
from library_api.core.config import settings

router = APIRouter(tags=["health"])


@router.get("/health")
def health() -> dict:
    return {
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.env,
        "version": settings.app_version,
    }
