"""AgriSentinel: NDVI parcel sizing for agricultural monitoring."""

__version__ = "0.1.0"
