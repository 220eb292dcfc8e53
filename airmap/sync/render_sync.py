"""
Render-ready synchronisation.

After new filters are applied the renderer needs time to re-tile before
spatial queries against it are trustworthy. RenderReadySync defers the
selected-feature query until the renderer reports it has loaded, then waits
a settle delay:

    IDLE -> WAITING -(loaded)-> SETTLING -(settle delay)-> READY -> IDLE
              ^   |
              +---+ not loaded: re-check after poll interval

Every cycle carries a generation number. Starting a new cycle supersedes the
previous one; a superseded cycle is abandoned at its next step and never
queries or publishes.
"""

import enum
import logging
import threading
from typing import Any, Callable, List, Optional, Protocol, Sequence, runtime_checkable

from airmap.sync.scheduler import ScheduledCall, Scheduler

logger = logging.getLogger(__name__)

POLL_INTERVAL_MS = 50
SETTLE_DELAY_MS = 150


@runtime_checkable
class Renderer(Protocol):
    """The external map renderer, as seen by the classification pipeline."""

    def set_data(self, source_id: str, geojson: dict) -> None:
        ...

    def set_filter(self, layer_id: str, expr: list) -> None:
        ...

    def loaded(self) -> bool:
        ...

    def query_rendered_features(self, point: Any, layers: Sequence[str]) -> List[dict]:
        ...


class SyncState(str, enum.Enum):
    IDLE = "IDLE"
    WAITING = "WAITING"
    SETTLING = "SETTLING"
    READY = "READY"


class RenderReadySync:
    """Bounded-poll state machine for re-querying features after a filter change."""

    def __init__(
        self,
        renderer: Renderer,
        scheduler: Scheduler,
        on_ready: Callable[[List[dict]], None],
        poll_interval_ms: float = POLL_INTERVAL_MS,
        settle_delay_ms: float = SETTLE_DELAY_MS,
    ):
        self._renderer = renderer
        self._scheduler = scheduler
        self._on_ready = on_ready
        self.poll_interval_ms = poll_interval_ms
        self.settle_delay_ms = settle_delay_ms

        self._lock = threading.RLock()
        self._generation = 0
        self._pending: Optional[ScheduledCall] = None
        self.state = SyncState.IDLE
        self.polls = 0

    @property
    def generation(self) -> int:
        return self._generation

    def start(self, selection_point: Any, layer_ids: Sequence[str]) -> int:
        """
        Begin a cycle for freshly applied filters.

        Args:
            selection_point: Point captured at switch time; queried once ready.
            layer_ids: Interactive layers of the classification just applied.

        Returns:
            Generation number of the new cycle.
        """
        with self._lock:
            if self._pending is not None:
                self._pending.cancel()
                self._pending = None
            if self.state is not SyncState.IDLE:
                logger.info("Superseding render sync generation %d", self._generation)
            self._generation += 1
            generation = self._generation
            self.state = SyncState.WAITING
            self.polls = 0

        self._check(generation, selection_point, tuple(layer_ids))
        return generation

    def cancel(self) -> None:
        """Abandon any in-flight cycle."""
        with self._lock:
            if self._pending is not None:
                self._pending.cancel()
                self._pending = None
            self._generation += 1
            self.state = SyncState.IDLE

    def _is_current(self, generation: int) -> bool:
        if generation != self._generation:
            logger.warning("Discarding stale render sync generation %d (current %d)",
                           generation, self._generation)
            return False
        return True

    def _check(self, generation: int, point: Any, layers: tuple) -> None:
        with self._lock:
            if not self._is_current(generation):
                return
            if not self._renderer.loaded():
                self.polls += 1
                logger.debug("Renderer not loaded (generation %d, poll %d)", generation, self.polls)
                self._pending = self._scheduler.call_later(
                    self.poll_interval_ms,
                    lambda: self._check(generation, point, layers),
                )
                return
            self.state = SyncState.SETTLING
            self._pending = self._scheduler.call_later(
                self.settle_delay_ms,
                lambda: self._settle(generation, point, layers),
            )

    def _settle(self, generation: int, point: Any, layers: tuple) -> None:
        with self._lock:
            if not self._is_current(generation):
                return
            self._pending = None
            self.state = SyncState.READY
            if point is None:
                logger.debug("No selection point, nothing to query (generation %d)", generation)
                self.state = SyncState.IDLE
                return
            features = self._renderer.query_rendered_features(point, list(layers))
            logger.info("Render sync generation %d ready: %d selected features",
                        generation, len(features))
            self.state = SyncState.IDLE

        # Published outside the lock so the callback may start a new cycle
        # from any thread.
        self._on_ready(features)
