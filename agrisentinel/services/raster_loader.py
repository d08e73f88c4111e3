from __future__ import annotations

"""Fetch a GeoTIFF by name, colourise its NDVI and install it on a map session."""

import asyncio
import logging
from typing import Protocol

import requests

from agrisentinel.core.config import ConfigManager
from agrisentinel.core.exceptions import RasterFetchError
from agrisentinel.ndvi.raster import OverlayLayer, build_overlay, decode_geotiff
from agrisentinel.services.base import BaseService
from agrisentinel.services.cancellation import (
    CancellationToken,
    LoadCancelled,
    LoadTask,
)
from agrisentinel.services.map_session import MapSession


class RasterFetcher(Protocol):
    """Anything that returns raw bytes for a URL."""

    def fetch(self, url: str) -> bytes: ...


class HttpRasterFetcher:
    """Plain HTTP GET using ``requests``; only 2xx responses are accepted."""

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout

    def fetch(self, url: str) -> bytes:
        try:
            resp = requests.get(url, timeout=self.timeout)
        except requests.RequestException as err:
            raise RasterFetchError(url, reason=str(err)) from err
        if not 200 <= resp.status_code < 300:
            raise RasterFetchError(url, status=resp.status_code)
        return resp.content


class RasterLoader(BaseService):
    """Load NDVI overlays into a :class:`MapSession`.

    Only one load is live at a time. :meth:`request` cancels the token of the
    previous load, so its result is never committed even though its network
    request runs to completion. Fetch, decode and render happen in worker
    threads; every state change happens on the event loop thread after the
    token has been checked.
    """

    def __init__(
        self,
        session: MapSession,
        *,
        base_url: str,
        resolution: int = 64,
        opacity: float = 0.6,
        max_zoom: int = 17,
        fetcher: RasterFetcher | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(logger)
        self.session = session
        self.base_url = base_url.rstrip("/")
        self.resolution = resolution
        self.opacity = opacity
        self.max_zoom = max_zoom
        self.fetcher = fetcher or HttpRasterFetcher()
        self._current: LoadTask | None = None

    @classmethod
    def from_config(
        cls,
        session: MapSession,
        config: ConfigManager,
        *,
        fetcher: RasterFetcher | None = None,
    ) -> "RasterLoader":
        raster_cfg = config.get_section("raster")
        return cls(
            session,
            base_url=raster_cfg.get("base_url", ""),
            resolution=int(raster_cfg.get("resolution", 64)),
            opacity=float(raster_cfg.get("opacity", 0.6)),
            max_zoom=int(raster_cfg.get("max_zoom", 17)),
            fetcher=fetcher or HttpRasterFetcher(raster_cfg.get("fetch_timeout")),
        )

    @property
    def current(self) -> LoadTask | None:
        return self._current

    def asset_url(self, asset_name: str) -> str:
        return f"{self.base_url}/{asset_name}"

    async def load(
        self, asset_name: str, token: CancellationToken
    ) -> OverlayLayer | None:
        """Run one fetch/decode/install sequence for *asset_name*.

        Returns the installed overlay, or ``None`` when the load failed or was
        superseded.
        """
        url = self.asset_url(asset_name)
        if not token.cancelled:
            self.session.loading = True
        try:
            data = await asyncio.to_thread(self.fetcher.fetch, url)
            token.raise_if_cancelled()
            raster = await asyncio.to_thread(decode_geotiff, data)
            token.raise_if_cancelled()
            layer = await asyncio.to_thread(
                build_overlay,
                raster,
                asset_name,
                resolution=self.resolution,
                opacity=self.opacity,
            )
            token.raise_if_cancelled()
            self._commit(layer)
            self.logger.info(
                "Installed NDVI overlay for %s (red=%d, nir=%d)",
                asset_name,
                layer.red_index,
                layer.nir_index,
            )
            return layer
        except LoadCancelled:
            self.logger.debug("Discarding stale raster load for %s", asset_name)
            return None
        # pylint: disable=broad-exception-caught
        except Exception as err:
            self.logger.error("GeoTIFF/NDVI load error for %s: %s", asset_name, err)
            if not token.cancelled:
                self.session.clear_overlay(owner=self)
            return None
        finally:
            if not token.cancelled:
                self.session.loading = False

    def _commit(self, layer: OverlayLayer) -> None:
        self.session.replace_overlay(layer, owner=self)
        if layer.bounds:
            self.session.fit_to(layer.bounds, self.max_zoom)

    def request(self, asset_name: str) -> LoadTask:
        """Schedule a load on the running event loop, superseding any other."""
        if self._current is not None and not self._current.done():
            self.logger.debug(
                "Superseding load of %s with %s", self._current.asset_name, asset_name
            )
        if self._current is not None:
            self._current.cancel()
        token = CancellationToken()
        self.session.loading = True
        task = asyncio.get_running_loop().create_task(self.load(asset_name, token))
        self._current = LoadTask(asset_name=asset_name, token=token, task=task)
        return self._current

    def load_blocking(self, asset_name: str) -> LoadTask:
        """Request *asset_name* and wait for it on a fresh event loop."""

        async def _run() -> LoadTask:
            load_task = self.request(asset_name)
            await load_task.task
            return load_task

        return asyncio.run(_run())

    def teardown(self) -> None:
        """Cancel any live load and remove the overlay this loader installed."""
        if self._current is not None:
            self._current.cancel()
            self._current = None
        self.session.clear_overlay(owner=self)
        self.session.loading = False
