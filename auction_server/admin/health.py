"""Liveness and storage reachability for the auction server."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Request

router = APIRouter(prefix="/admin", tags=["admin"])

logger = logging.getLogger(__name__)

_PROBE_AUCTION_ID = "__health_probe__"


@router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    state = request.app.state
    start_time = getattr(state, "start_time", None)
    uptime = int((datetime.now(timezone.utc) - start_time).total_seconds()) if start_time else 0
    settings = state.server_config
    try:
        await state.storage.get_auction(_PROBE_AUCTION_ID)
        storage_ok = True
    except Exception:
        logger.exception("storage probe failed backend=%s", settings.storage.backend)
        storage_ok = False
    return {
        "status": "healthy" if storage_ok else "degraded",
        "uptime_seconds": uptime,
        "version": request.app.version,
        "storage_backend": settings.storage.backend,
        "storage_reachable": storage_ok,
        "serialization_backend": settings.bidding.serialization.backend,
    }
