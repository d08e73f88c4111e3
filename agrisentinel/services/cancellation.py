"""Cancellation primitives for asynchronous raster loads.

A :class:`CancellationToken` does not abort in-flight work. It is checked at
each commit point so that a superseded load drops its result instead of
applying it.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any


class LoadCancelled(Exception):
    """Raised at a commit point when the owning token was cancelled."""


class CancellationToken:
    """One-shot cancellation flag."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise LoadCancelled()


@dataclass
class LoadTask:
    """A scheduled raster load: the asyncio task plus its token."""

    asset_name: str
    token: CancellationToken
    task: asyncio.Task

    def cancel(self) -> None:
        """Cancel the commit of this load; the underlying fetch still completes."""
        self.token.cancel()

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled

    def done(self) -> bool:
        return self.task.done()

    def result(self) -> Any:
        return self.task.result()
