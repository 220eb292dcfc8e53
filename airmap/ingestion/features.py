"""
GeoJSON feature building.

Wraps each reading, with its converted display value, into a point feature.
The renderer consumes the resulting FeatureCollection directly, so the
output is plain GeoJSON.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from airmap.ingestion.models import Reading
from airmap.ingestion.units import convert

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Feature:
    """A reading placed on the map."""
    reading: Reading
    converted_value: float

    @property
    def properties(self) -> Dict[str, Any]:
        props = self.reading.to_properties()
        props["convertedValue"] = self.converted_value
        return props

    def to_geojson(self) -> Dict[str, Any]:
        coords = self.reading.coordinates
        return {
            "type": "Feature",
            "properties": self.properties,
            "geometry": {
                "type": "Point",
                "coordinates": [coords.longitude, coords.latitude],
            },
        }


@dataclass(frozen=True)
class FeatureCollection:
    features: List[Feature] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.features)

    def __iter__(self):
        return iter(self.features)

    def to_geojson(self) -> Dict[str, Any]:
        return {
            "type": "FeatureCollection",
            "features": [f.to_geojson() for f in self.features],
        }


def build_feature_collection(
    readings: Optional[Iterable[Reading]],
    conversion: Optional[Mapping[str, float]] = None,
) -> FeatureCollection:
    """
    Build a FeatureCollection from readings, in input order.

    Args:
        readings: Readings for one parameter. None or empty means no
                  geolocated data yet and yields an empty collection.
        conversion: Optional parameter -> factor override.

    Returns:
        FeatureCollection (possibly empty). Never raises for empty input.
    """
    features = [
        Feature(reading=r, converted_value=convert(r, conversion))
        for r in (readings or [])
    ]
    logger.debug("Built feature collection with %d features", len(features))
    return FeatureCollection(features=features)
