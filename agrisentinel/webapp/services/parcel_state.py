"""Helpers for persisting parcel records.

Records are written as GeoJSON features through a
:class:`~agrisentinel.core.storage.StorageAdapter`. The hosted application
writes the same document to its external database instead.
"""

from __future__ import annotations

import json
import re
from typing import Any

from agrisentinel.core.storage import StorageAdapter
from agrisentinel.schemas.parcel import ParcelRecord


def parcel_feature(record: ParcelRecord) -> dict[str, Any]:
    """Return *record* as a GeoJSON Feature with its fields as properties."""
    doc = record.to_document()
    feature = doc.pop("geometry") or {}
    return {
        "type": "Feature",
        "properties": doc,
        "geometry": feature.get("geometry", feature),
    }


def persist_parcel(record: ParcelRecord, storage: StorageAdapter) -> str:
    """Validate and persist *record* using *storage*; return its URI."""
    record.validate()
    safe_name = re.sub(r"[^A-Za-z0-9_\-]", "", record.name) or "parcel"
    uri = storage.join("parcels", f"{safe_name}.geojson")
    storage.write_bytes(uri, json.dumps(parcel_feature(record)).encode("utf-8"))
    return uri
