from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict

from agrisentinel.core.exceptions import ParcelValidationError

# Parcel record produced by the parcel form. Field names follow the document
# schema of the parcels collection; persistence is left to the caller.


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class ParcelRecord:
    """One cultivated parcel with its drawn boundary and measured area."""

    name: str
    culture_type: str
    planting_year: int
    planting_density: float  # plants per hectare
    latitude: float
    longitude: float
    geometry: Dict[str, Any] | None = None
    area_ha: float | None = None
    forbidden_zone: bool = False
    created_at_utc: str = field(default_factory=_utc_now)

    def validate(self) -> None:
        """Raise :class:`ParcelValidationError` listing every problem found."""
        problems: list[str] = []
        if not self.name.strip():
            problems.append("name is required")
        current_year = datetime.now(timezone.utc).year
        if not 1900 <= self.planting_year <= current_year:
            problems.append(f"planting_year must be between 1900 and {current_year}")
        if self.planting_density < 0:
            problems.append("planting_density must not be negative")
        if not (-90 <= self.latitude <= 90 and -180 <= self.longitude <= 180):
            problems.append("coordinates are out of range")
        if self.geometry is None:
            problems.append("a parcel polygon must be drawn")
        if self.area_ha is None or self.area_ha <= 0:
            problems.append("area_ha must be positive")
        if problems:
            raise ParcelValidationError("; ".join(problems))

    def to_document(self) -> Dict[str, Any]:
        """JSON-ready mapping of the record."""
        doc = asdict(self)
        doc["coordinates"] = {"lat": doc.pop("latitude"), "lon": doc.pop("longitude")}
        return doc
