"""Exception hierarchy shared across AgriSentinel modules."""


class AgriSentinelError(Exception):
    """Base class for all AgriSentinel errors."""


class RasterLoadError(AgriSentinelError):
    """A raster asset could not be turned into an NDVI overlay."""


class RasterFetchError(RasterLoadError):
    """The raster bytes could not be retrieved (transport or non-2xx status)."""

    def __init__(self, url: str, status: int | None = None, reason: str = ""):
        self.url = url
        self.status = status
        detail = f"HTTP {status}" if status is not None else reason
        super().__init__(f"Failed to fetch {url}: {detail}")


class RasterDecodeError(RasterLoadError):
    """The fetched bytes are not a readable georeferenced raster."""


class MissingBandError(RasterLoadError):
    """The decoded raster has no band usable for NDVI."""


class ParcelValidationError(AgriSentinelError):
    """A parcel record is incomplete or inconsistent."""
