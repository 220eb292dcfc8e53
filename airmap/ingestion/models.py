"""
Reading models for the map layer pipeline.

A data-source collaborator hands over latest-value records grouped by
parameter. Records are parsed into immutable Reading objects; anything
without a location or a numeric value is not geolocated data and is
skipped with a warning.
"""

import logging
import math
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

logger = logging.getLogger(__name__)

# Keys that map onto typed Reading fields; everything else passes through
_CORE_KEYS = {"parameter", "value", "coordinates", "lastUpdatedMilliseconds"}


@dataclass(frozen=True)
class Coordinates:
    longitude: float
    latitude: float


@dataclass(frozen=True)
class Reading:
    """A single latest-value observation at one location."""
    parameter: str
    value: float
    coordinates: Coordinates
    last_updated_ms: float          # age of the reading, same unit as millisecondsToOld
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    def to_properties(self) -> Dict[str, Any]:
        """Feature properties in the renderer's camelCase vocabulary."""
        props = dict(self.extra)
        props.update({
            "parameter": self.parameter,
            "value": self.value,
            "coordinates": {
                "longitude": self.coordinates.longitude,
                "latitude": self.coordinates.latitude,
            },
            "lastUpdatedMilliseconds": self.last_updated_ms,
        })
        return props


def _safe_float(val) -> Optional[float]:
    """Safely convert a value to a finite float, returning None on failure."""
    if val is None or val == "":
        return None
    if isinstance(val, bool):
        return None
    try:
        result = float(val)
    except (TypeError, ValueError):
        return None
    # NaN and inf fail every filter comparison and are not valid JSON
    if not math.isfinite(result):
        return None
    return result


def _parse_coordinates(block) -> Optional[Coordinates]:
    if not isinstance(block, Mapping):
        return None
    lon = _safe_float(block.get("longitude"))
    lat = _safe_float(block.get("latitude"))
    if lon is None or lat is None:
        return None
    return Coordinates(longitude=lon, latitude=lat)


def parse_reading(record: Mapping[str, Any], parameter: Optional[str] = None) -> Optional[Reading]:
    """
    Parse a single data-source record into a Reading.

    Args:
        record: Dict with parameter, value, coordinates and
                lastUpdatedMilliseconds keys. Other keys (location, city,
                unit, ...) are carried through as feature properties.
        parameter: Parameter to assume when the record does not name one.

    Returns:
        Reading, or None if the record has no usable location or value.
    """
    param = record.get("parameter") or parameter
    if not param:
        logger.warning("Skipping record without parameter: %s", record)
        return None

    coords = _parse_coordinates(record.get("coordinates"))
    if coords is None:
        logger.warning("Skipping %s record without coordinates", param)
        return None

    value = _safe_float(record.get("value"))
    if value is None:
        logger.warning("Skipping %s record with non-numeric value: %r", param, record.get("value"))
        return None

    age = _safe_float(record.get("lastUpdatedMilliseconds"))
    if age is None:
        logger.warning("Skipping %s record without lastUpdatedMilliseconds", param)
        return None

    extra = {k: v for k, v in record.items() if k not in _CORE_KEYS and k != "convertedValue"}
    return Reading(
        parameter=str(param).lower(),
        value=value,
        coordinates=coords,
        last_updated_ms=age,
        extra=extra,
    )


def parse_readings(records: Optional[Iterable[Mapping[str, Any]]],
                   parameter: Optional[str] = None) -> List[Reading]:
    readings = []
    for record in records or []:
        reading = parse_reading(record, parameter=parameter)
        if reading is not None:
            readings.append(reading)
    return readings


def group_by_parameter(readings: Iterable[Reading]) -> Dict[str, List[Reading]]:
    """Build the parameter -> readings mapping, preserving input order."""
    grouped: Dict[str, List[Reading]] = OrderedDict()
    for reading in readings:
        grouped.setdefault(reading.parameter, []).append(reading)
    return grouped
