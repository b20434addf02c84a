"""Storage-layer exceptions shared by every backend."""

from __future__ import annotations


class StorageError(RuntimeError):
    """Raised when a backend cannot complete a read or write."""


class VersionConflict(StorageError):
    """Raised when a compare-and-swap write finds a newer auction version."""

    def __init__(self, auction_id: str, expected_version: int) -> None:
        super().__init__(f"auction {auction_id} changed since version {expected_version}")
        self.auction_id = auction_id
        self.expected_version = expected_version


class AuctionExists(StorageError):
    """Raised when creating an auction whose id is already taken."""
