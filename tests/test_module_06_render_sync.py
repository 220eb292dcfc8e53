"""
Tests for Module 06: Render-Ready Synchronisation.
Driven entirely by the virtual-clock scheduler; no real delays.
"""
import threading

import pytest

from airmap.sync.render_sync import (
    POLL_INTERVAL_MS,
    SETTLE_DELAY_MS,
    RenderReadySync,
    SyncState,
)
from airmap.sync.scheduler import ManualScheduler
from helpers import FakeRenderer

LAYERS = ["markers-0", "markers-1"]


class _IgnoringCancelScheduler(ManualScheduler):
    """Scheduler whose cancel() does nothing, to exercise the generation guard."""

    def call_later(self, delay_ms, callback):
        call = super().call_later(delay_ms, callback)
        call.cancel = lambda: None
        return call


def _make_sync(not_ready_checks=0, scheduler=None):
    scheduler = scheduler or ManualScheduler()
    renderer = FakeRenderer(not_ready_checks=not_ready_checks, clock=scheduler)
    published = []
    sync = RenderReadySync(renderer, scheduler, published.append)
    return sync, renderer, scheduler, published


class TestLiveness:
    @pytest.mark.parametrize("k", [0, 1, 3, 10])
    def test_query_once_after_polls_and_settle(self, k):
        sync, renderer, scheduler, published = _make_sync(not_ready_checks=k)
        sync.start((10, 20), LAYERS)

        due = k * POLL_INTERVAL_MS + SETTLE_DELAY_MS
        scheduler.advance(due - 1)
        assert renderer.queries == []
        assert sync.state in (SyncState.WAITING, SyncState.SETTLING)

        scheduler.advance(1)
        assert len(renderer.queries) == 1
        assert renderer.queries[0]["at"] == due
        assert len(published) == 1

        scheduler.advance(10_000)
        assert len(renderer.queries) == 1
        assert sync.state is SyncState.IDLE

    def test_uses_point_captured_at_start(self):
        sync, renderer, scheduler, _ = _make_sync(not_ready_checks=2)
        point = (3, 4)
        sync.start(point, LAYERS)
        scheduler.run_until_idle()
        assert renderer.queries[0]["point"] == point
        assert renderer.queries[0]["layers"] == LAYERS

    def test_poll_count(self):
        sync, renderer, scheduler, _ = _make_sync(not_ready_checks=4)
        sync.start((0, 0), LAYERS)
        scheduler.run_until_idle()
        assert sync.polls == 4
        assert renderer.loaded_checks == 5

    def test_states(self):
        sync, _, scheduler, _ = _make_sync(not_ready_checks=1)
        assert sync.state is SyncState.IDLE
        sync.start((0, 0), LAYERS)
        assert sync.state is SyncState.WAITING
        scheduler.advance(POLL_INTERVAL_MS)
        assert sync.state is SyncState.SETTLING
        scheduler.advance(SETTLE_DELAY_MS)
        assert sync.state is SyncState.IDLE

    def test_no_point_no_query(self):
        sync, renderer, scheduler, published = _make_sync()
        sync.start(None, LAYERS)
        scheduler.run_until_idle()
        assert renderer.queries == []
        assert published == []
        assert sync.state is SyncState.IDLE

    def test_custom_delays(self):
        scheduler = ManualScheduler()
        renderer = FakeRenderer(not_ready_checks=2, clock=scheduler)
        sync = RenderReadySync(renderer, scheduler, lambda f: None,
                               poll_interval_ms=10, settle_delay_ms=5)
        sync.start((0, 0), LAYERS)
        scheduler.run_until_idle()
        assert renderer.queries[0]["at"] == 25


class TestLatestSwitchWins:
    def test_new_start_supersedes_pending_cycle(self):
        sync, renderer, scheduler, published = _make_sync(not_ready_checks=3)
        first = sync.start("first", LAYERS)
        scheduler.advance(60)
        second = sync.start("second", LAYERS)
        assert second == first + 1
        scheduler.run_until_idle()
        assert [q["point"] for q in renderer.queries] == ["second"]
        assert len(published) == 1

    def test_stale_generation_discarded_even_if_timer_fires(self):
        scheduler = _IgnoringCancelScheduler()
        sync, renderer, scheduler, published = _make_sync(not_ready_checks=0, scheduler=scheduler)
        sync.start("first", LAYERS)        # settles at t=150
        scheduler.advance(100)
        sync.start("second", LAYERS)       # settles at t=250
        scheduler.run_until_idle()
        assert [q["point"] for q in renderer.queries] == ["second"]
        assert len(published) == 1

    def test_callback_may_start_cycle_from_another_thread(self):
        scheduler = ManualScheduler()
        renderer = FakeRenderer(clock=scheduler)
        workers = []

        def on_ready(features):
            worker = threading.Thread(target=sync.start, args=("next", LAYERS))
            worker.start()
            worker.join(timeout=2)
            workers.append(worker)

        sync = RenderReadySync(renderer, scheduler, on_ready)
        first = sync.start("first", LAYERS)
        scheduler.advance(SETTLE_DELAY_MS)
        assert len(workers) == 1
        assert not workers[0].is_alive()
        assert sync.generation == first + 1

    def test_cancel_abandons_cycle(self):
        sync, renderer, scheduler, published = _make_sync(not_ready_checks=1)
        sync.start("p", LAYERS)
        sync.cancel()
        scheduler.run_until_idle()
        assert renderer.queries == []
        assert published == []
        assert sync.state is SyncState.IDLE
