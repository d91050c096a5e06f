"""Persistence-layer exceptions raised by the store implementations."""

from __future__ import annotations


class StoreError(Exception):
    """Infrastructure failure while talking to a backing store."""


class DuplicateRecordError(StoreError):
    """Insert rejected because a unique key is already taken."""

    def __init__(self, key: str, message: str = "") -> None:
        super().__init__(message or f"Duplicate value for unique key: {key}")
        self.key = key
