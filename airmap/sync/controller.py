"""
Map layer controller.

Owns the active parameter and the latest batch of readings, pushes each
classification to the renderer as one unit (source data, then all N+1
filters) and keeps the selected features in step with parameter switches.
"""

import logging
import threading
from typing import Any, Callable, List, Mapping, Optional, Sequence

from airmap.classification.classifier import (
    SOURCE_ID,
    LayerClassification,
    classify_parameter,
)
from airmap.ingestion.models import Reading
from airmap.rules.map_config import MapConfig, get_map_config
from airmap.sync.render_sync import Renderer, RenderReadySync
from airmap.sync.scheduler import Scheduler

logger = logging.getLogger(__name__)

DEFAULT_PARAMETER = "pm25"


class MapLayerController:
    """
    Usage
    -----
    1.  controller = MapLayerController(renderer, scheduler)
    2.  controller.load(readings_by_parameter)   <- data source finished loading
    3.  controller.select_point(point)           <- user picked a location
    4.  controller.switch_parameter("no2")       <- re-classify, re-query when settled
    """

    def __init__(
        self,
        renderer: Renderer,
        scheduler: Scheduler,
        config: Optional[MapConfig] = None,
        parameter: str = DEFAULT_PARAMETER,
        on_selection: Optional[Callable[[List[dict]], None]] = None,
        poll_interval_ms: Optional[float] = None,
        settle_delay_ms: Optional[float] = None,
    ):
        self._renderer = renderer
        self._config = config or get_map_config()
        self._on_selection = on_selection
        self._apply_lock = threading.RLock()

        sync_kwargs = {}
        if poll_interval_ms is not None:
            sync_kwargs["poll_interval_ms"] = poll_interval_ms
        if settle_delay_ms is not None:
            sync_kwargs["settle_delay_ms"] = settle_delay_ms
        self.sync = RenderReadySync(renderer, scheduler, self._publish_selection, **sync_kwargs)

        self.parameter = parameter.lower()
        self.readings: Mapping[str, Sequence[Reading]] = {}
        self.classification: Optional[LayerClassification] = None
        self.selected_point: Any = None
        self.selected_features: List[dict] = []

    def _publish_selection(self, features: List[dict]) -> None:
        self.selected_features = list(features)
        if self._on_selection is not None:
            self._on_selection(self.selected_features)

    def _apply(self, classification: LayerClassification) -> None:
        """Hand source data and every layer filter to the renderer as one step."""
        with self._apply_lock:
            self._renderer.set_data(SOURCE_ID, classification.feature_collection.to_geojson())
            for layer_id, expr in classification.filters_by_layer().items():
                self._renderer.set_filter(layer_id, expr)
            self.classification = classification
        logger.info("Applied %d filters for parameter=%s",
                    len(classification.valid_filters) + 1, classification.parameter)

    def load(self, readings_by_parameter: Optional[Mapping[str, Sequence[Reading]]]) -> LayerClassification:
        """Data-source completion callback: classify and apply the active parameter."""
        with self._apply_lock:
            self.readings = readings_by_parameter or {}
            classification = classify_parameter(self.parameter, self.readings, self._config)
            self._apply(classification)
        return classification

    def switch_parameter(self, parameter: str) -> LayerClassification:
        """
        Make parameter active, re-apply filters and re-query the selection.

        Raises:
            MapConfigError: If the parameter cannot be classified. The
                previously active parameter and filters stay in place.
        """
        # Parameter, renderer state and the sync cycle change together: a
        # concurrent switch sees either all of this one or none of it.
        with self._apply_lock:
            classification = classify_parameter(parameter, self.readings, self._config)
            logger.info("Switching map parameter %s -> %s", self.parameter, classification.parameter)
            self.parameter = classification.parameter
            self._apply(classification)
            self.sync.start(self.selected_point, classification.interactive_layers)
        return classification

    def select_point(self, point: Any) -> List[dict]:
        """Remember point and query the currently applied layers at it."""
        self.selected_point = point
        if point is None or self.classification is None:
            return self.selected_features
        features = self._renderer.query_rendered_features(
            point, list(self.classification.interactive_layers)
        )
        self._publish_selection(features)
        return self.selected_features
