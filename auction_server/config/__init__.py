"""Configuration helpers for the auction server."""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

import yaml

_DEFAULT_SERVER_CONFIG = Path(__file__).resolve().parent / "server.yaml"


@dataclass(frozen=True)
class StorageConfig:
    backend: str
    options: Mapping[str, Any]


@dataclass(frozen=True)
class SerializationConfig:
    backend: str
    max_attempts: int
    options: Mapping[str, Any]


@dataclass(frozen=True)
class SoftCloseConfig:
    extension_minutes: int
    max_extensions: int


@dataclass(frozen=True)
class BiddingConfig:
    minimum_increment: Decimal
    bid_timeout_ms: int
    serialization: SerializationConfig
    soft_close: SoftCloseConfig


@dataclass(frozen=True)
class LoggingConfig:
    level: str


@dataclass(frozen=True)
class ServerConfig:
    listen: Mapping[str, Any]
    storage: StorageConfig
    bidding: BiddingConfig
    logging: LoggingConfig


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(path)
    return yaml.safe_load(path.read_text()) or {}


def parse_server_config(data: Mapping[str, Any]) -> ServerConfig:
    storage = data.get("storage", {})
    bidding = data.get("bidding", {})
    serialization = bidding.get("serialization", {})
    soft_close = bidding.get("soft_close", {})
    minimum_increment = Decimal(str(bidding.get("minimum_increment", "10")))
    if minimum_increment <= 0:
        raise ValueError("bidding.minimum_increment must be positive")
    max_attempts = int(serialization.get("max_attempts", 3))
    if max_attempts < 1:
        raise ValueError("bidding.serialization.max_attempts must be at least 1")
    return ServerConfig(
        listen=data.get("listen", {}),
        storage=StorageConfig(
            backend=str(storage.get("backend", "in_memory")),
            options=dict(storage.get("options") or {}),
        ),
        bidding=BiddingConfig(
            minimum_increment=minimum_increment,
            bid_timeout_ms=int(bidding.get("bid_timeout_ms", 5000)),
            serialization=SerializationConfig(
                backend=str(serialization.get("backend", "local")),
                max_attempts=max_attempts,
                options=dict(serialization.get("options") or {}),
            ),
            soft_close=SoftCloseConfig(
                extension_minutes=int(soft_close.get("extension_minutes", 0)),
                max_extensions=int(soft_close.get("max_extensions", 0)),
            ),
        ),
        logging=LoggingConfig(
            level=str((data.get("logging") or {}).get("level", "INFO")).upper(),
        ),
    )


@lru_cache(maxsize=1)
def get_server_config() -> ServerConfig:
    path = Path(os.getenv("AUCTION_CONFIG_PATH", _DEFAULT_SERVER_CONFIG))
    return parse_server_config(_load_yaml(path))
