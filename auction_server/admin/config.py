"""Expose currently loaded server config for debugging."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from ..config import ServerConfig

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_config(request: Request) -> ServerConfig:
    return request.app.state.server_config


@router.get("/config")
async def config(
    request: Request,
    config: ServerConfig = Depends(_get_config),
) -> dict:
    bidding = config.bidding
    return {
        "version": request.app.version,
        "storage_backend": config.storage.backend,
        "minimum_increment": str(bidding.minimum_increment),
        "bid_timeout_ms": bidding.bid_timeout_ms,
        "serialization_backend": bidding.serialization.backend,
        "max_attempts": bidding.serialization.max_attempts,
        "soft_close": {
            "extension_minutes": bidding.soft_close.extension_minutes,
            "max_extensions": bidding.soft_close.max_extensions,
        },
        "log_level": config.logging.level,
    }
