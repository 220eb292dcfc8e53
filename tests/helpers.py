"""Test doubles and builders shared across the AirMap test suite."""

from airmap.classification.filters import evaluate_filter
from airmap.ingestion.models import Coordinates, Reading

COLORS = ("#c1", "#c2", "#c3", "#c4", "#c5")
STALE_MS = 1000.0


class FakeRenderer:
    """
    Stand-in for the map renderer.

    Reports "not loaded" for the first `not_ready_checks` loaded() calls and
    answers queries by matching stored features against the stored filters.
    Point hit-testing is not modelled: every matching feature is returned.
    """

    def __init__(self, not_ready_checks: int = 0, clock=None):
        self.not_ready_checks = not_ready_checks
        self.clock = clock
        self.calls = []
        self.data = {}
        self.filters = {}
        self.loaded_checks = 0
        self.queries = []

    def set_data(self, source_id, geojson):
        self.calls.append(("set_data", source_id))
        self.data[source_id] = geojson

    def set_filter(self, layer_id, expr):
        self.calls.append(("set_filter", layer_id))
        self.filters[layer_id] = expr

    def loaded(self):
        self.loaded_checks += 1
        if self.not_ready_checks > 0:
            self.not_ready_checks -= 1
            return False
        return True

    def query_rendered_features(self, point, layers):
        self.calls.append(("query", tuple(layers)))
        self.queries.append({
            "point": point,
            "layers": list(layers),
            "at": self.clock.now if self.clock is not None else None,
        })
        features = self.data.get("markers", {}).get("features", [])
        return [
            f for f in features
            if any(evaluate_filter(self.filters[l], f["properties"])
                   for l in layers if l in self.filters)
        ]


def make_reading(value: float, parameter: str = "pm25", age_ms: float = 0.0,
                 lon: float = 77.2, lat: float = 28.6, **extra) -> Reading:
    return Reading(
        parameter=parameter,
        value=value,
        coordinates=Coordinates(longitude=lon, latitude=lat),
        last_updated_ms=age_ms,
        extra=extra,
    )


