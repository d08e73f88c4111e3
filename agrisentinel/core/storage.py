"""Storage adapter abstractions."""

from __future__ import annotations

import os
from abc import ABC, abstractmethod


class StorageAdapter(ABC):
    """Abstract interface for persisting binary data."""

    @abstractmethod
    def join(self, *parts: str) -> str:
        """Join path components into a destination URI."""

    @abstractmethod
    def write_bytes(self, uri: str, data: bytes) -> str:
        """Write bytes to the destination and return the URI."""

    @abstractmethod
    def read_bytes(self, uri: str) -> bytes:
        """Return bytes stored at *uri*."""


class LocalFS(StorageAdapter):
    """Store files on the local filesystem, optionally below *root*."""

    def __init__(self, root: str | None = None) -> None:
        self.root = root

    def join(self, *parts: str) -> str:
        if self.root:
            return os.path.join(self.root, *parts)
        return os.path.join(*parts)

    def write_bytes(self, uri: str, data: bytes) -> str:
        dirpath = os.path.dirname(uri) or "."
        os.makedirs(dirpath, exist_ok=True)
        with open(uri, "wb") as fh:
            fh.write(data)
        return uri

    def read_bytes(self, uri: str) -> bytes:
        with open(uri, "rb") as fh:
            return fh.read()
