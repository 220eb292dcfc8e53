"""
Layer classifier.

Turns the latest readings for one parameter into everything the renderer
needs for the markers source:
  - GeoJSON FeatureCollection with converted display values
  - One bucket (colour + value range) per configured colour
  - N bucket filters plus one filter for stale / negative readings
  - The interactive layer ids used for hit-testing

The result is returned as a value. Nothing here touches the renderer.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from airmap.classification.filters import (
    build_invalid_filter,
    build_valid_filters,
    evaluate_filter,
)
from airmap.classification.scale import Bucket, build_buckets
from airmap.ingestion.features import FeatureCollection, build_feature_collection
from airmap.ingestion.models import Reading
from airmap.rules.map_config import MapConfig, get_map_config

logger = logging.getLogger(__name__)

SOURCE_ID = "markers"
UNUSED_LAYER_ID = "unused-data"

# Zoom-dependent circle paint shared by every markers layer
CIRCLE_OPACITY = {"stops": [[0, 0.8], [7, 0.6], [11, 0.4]]}
CIRCLE_BLUR = {"stops": [[0, 0.8], [5, 0.5], [7, 0]]}
BUCKET_RADIUS = {"stops": [[0, 4], [5, 5], [7, 8]]}
UNUSED_RADIUS = {"stops": [[0, 2], [5, 5], [7, 8]]}


def bucket_layer_id(index: int) -> str:
    return f"{SOURCE_ID}-{index}"


def _format_bound(value: float) -> str:
    return f"{value:g}"


@dataclass(frozen=True)
class LayerClassification:
    """Classified markers layer for one parameter."""
    parameter: str
    feature_collection: FeatureCollection
    buckets: List[Bucket]
    valid_filters: List[list]
    invalid_filter: list
    unused_color: str = "#B3B3B3"
    interactive_layers: List[str] = field(default_factory=list)

    def filters_by_layer(self) -> Dict[str, list]:
        """Every layer id -> filter, bucket layers first then unused-data."""
        filters = {
            bucket_layer_id(b.index): f
            for b, f in zip(self.buckets, self.valid_filters)
        }
        filters[UNUSED_LAYER_ID] = self.invalid_filter
        return filters

    def layer_specs(self) -> List[Dict[str, Any]]:
        """Renderer layer definitions for the markers source."""
        specs = []
        for bucket, expr in zip(self.buckets, self.valid_filters):
            specs.append({
                "id": bucket_layer_id(bucket.index),
                "interactive": True,
                "type": "circle",
                "source": SOURCE_ID,
                "paint": {
                    "circle-color": bucket.color,
                    "circle-opacity": CIRCLE_OPACITY,
                    "circle-radius": BUCKET_RADIUS,
                    "circle-blur": CIRCLE_BLUR,
                },
                "filter": expr,
            })
        specs.append({
            "id": UNUSED_LAYER_ID,
            "interactive": False,
            "type": "circle",
            "source": SOURCE_ID,
            "paint": {
                "circle-color": self.unused_color,
                "circle-opacity": CIRCLE_OPACITY,
                "circle-radius": UNUSED_RADIUS,
                "circle-blur": CIRCLE_BLUR,
            },
            "filter": self.invalid_filter,
        })
        return specs

    def legend(self) -> Dict[str, Any]:
        """Bucket colours, ranges and how many features each layer shows."""
        props = [f.properties for f in self.feature_collection]
        entries = []
        for bucket, expr in zip(self.buckets, self.valid_filters):
            if bucket.is_open_ended:
                label = f"{_format_bound(bucket.lower_bound)}+"
            else:
                label = f"{_format_bound(bucket.lower_bound)} - {_format_bound(bucket.upper_bound)}"
            entry = bucket.to_dict()
            entry["label"] = label
            entry["count"] = sum(1 for p in props if evaluate_filter(expr, p))
            entries.append(entry)
        return {
            "parameter": self.parameter,
            "buckets": entries,
            "unused": {
                "color": self.unused_color,
                "count": sum(1 for p in props if evaluate_filter(self.invalid_filter, p)),
            },
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "parameter": self.parameter,
            "geojson": self.feature_collection.to_geojson(),
            "buckets": [b.to_dict() for b in self.buckets],
            "filters": self.filters_by_layer(),
            "unusedFilter": self.invalid_filter,
            "interactiveLayers": list(self.interactive_layers),
            "layers": self.layer_specs(),
            "legend": self.legend(),
        }


def classify_parameter(
    parameter: str,
    readings_by_parameter: Optional[Mapping[str, Sequence[Reading]]],
    config: Optional[MapConfig] = None,
) -> LayerClassification:
    """
    Classify the latest readings for one parameter.

    Args:
        parameter: Active parameter (e.g. 'pm25').
        readings_by_parameter: parameter -> readings from the data source.
            A missing or empty entry is not an error.
        config: Map constants; defaults to the process-wide config.

    Returns:
        LayerClassification ready to hand to the renderer.

    Raises:
        UnknownParameterError: No domain max configured for the parameter.
        ScaleConfigurationError: Domain max cannot produce valid buckets.
    """
    config = config or get_map_config()
    parameter = parameter.lower()

    # Scale first: config errors surface before any work is done
    domain_max = config.get_max(parameter)
    buckets = build_buckets(domain_max, config.colors)

    readings = (readings_by_parameter or {}).get(parameter)
    if not readings:
        logger.info("No geolocated readings for parameter=%s, layer will be empty", parameter)

    collection = build_feature_collection(readings, config.parameter_conversion)
    threshold = config.milliseconds_to_old

    result = LayerClassification(
        parameter=parameter,
        feature_collection=collection,
        buckets=buckets,
        valid_filters=build_valid_filters(buckets, threshold),
        invalid_filter=build_invalid_filter(threshold),
        unused_color=config.unused_color,
        interactive_layers=[bucket_layer_id(b.index) for b in buckets],
    )

    logger.info(
        "Classified parameter=%s: %d features, %d buckets (max=%s, threshold=%sms)",
        parameter, len(collection), len(buckets), domain_max, threshold,
    )
    return result
