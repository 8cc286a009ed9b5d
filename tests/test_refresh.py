"""Tests for the refresh coordinator."""

import threading
import time
from mempoolscope.refresh import RefreshCoordinator, RefreshTarget


def test_trigger_now_single_family():
    coordinator = RefreshCoordinator()
    seen = []
    coordinator.subscribe(RefreshTarget.BLOCKS, seen.append)
    coordinator.subscribe(RefreshTarget.MEMPOOL, lambda family: seen.append("mempool-only"))

    coordinator.trigger_now(RefreshTarget.BLOCKS)
    assert seen == [RefreshTarget.BLOCKS]


def test_trigger_all_delivers_each_family_once():
    coordinator = RefreshCoordinator()
    all_seen = []
    search_seen = []
    coordinator.subscribe("all", all_seen.append)
    coordinator.subscribe("search", search_seen.append)

    coordinator.trigger_now()
    assert all_seen == [RefreshTarget.MEMPOOL, RefreshTarget.BLOCKS, RefreshTarget.SEARCH]
    assert search_seen == [RefreshTarget.SEARCH]


def test_unsubscribe():
    coordinator = RefreshCoordinator()
    seen = []
    unsubscribe = coordinator.subscribe(RefreshTarget.MEMPOOL, seen.append)
    unsubscribe()
    unsubscribe()  # second call is harmless

    coordinator.trigger_now(RefreshTarget.MEMPOOL)
    assert seen == []


def test_failing_subscriber_does_not_block_others():
    coordinator = RefreshCoordinator()
    seen = []

    def broken(family):
        raise RuntimeError("boom")

    coordinator.subscribe(RefreshTarget.MEMPOOL, broken)
    coordinator.subscribe(RefreshTarget.MEMPOOL, seen.append)

    coordinator.trigger_now(RefreshTarget.MEMPOOL)
    assert seen == [RefreshTarget.MEMPOOL]


def test_zero_interval_stays_stopped():
    coordinator = RefreshCoordinator()
    coordinator.start(0)
    assert not coordinator.running
    assert coordinator.interval == 0


def test_timer_fires_until_stopped():
    coordinator = RefreshCoordinator()
    fired = threading.Event()
    seen = []

    def on_refresh(family):
        seen.append(family)
        if len(seen) >= 6:
            fired.set()

    coordinator.subscribe(RefreshTarget.ALL, on_refresh)
    coordinator.start(0.01)
    assert coordinator.running
    try:
        assert fired.wait(5)
    finally:
        coordinator.stop()

    assert not coordinator.running
    count = len(seen)
    # Every fire broadcasts all three families
    assert set(seen) == {RefreshTarget.MEMPOOL, RefreshTarget.BLOCKS, RefreshTarget.SEARCH}
    time.sleep(0.05)
    assert len(seen) == count


def test_restart_replaces_timer():
    coordinator = RefreshCoordinator()
    coordinator.start(10)
    first = coordinator._thread
    coordinator.start(20)
    try:
        assert coordinator.interval == 20
        assert coordinator._thread is not first
        assert not first.is_alive()
    finally:
        coordinator.stop()
    assert not coordinator.running


def test_stop_when_not_running():
    RefreshCoordinator().stop()


def _timer_threads():
    return [t for t in threading.enumerate() if t.name == "mempoolscope-refresh" and t.is_alive()]


def test_concurrent_starts_leave_one_timer():
    coordinator = RefreshCoordinator()
    seen = []
    coordinator.subscribe(RefreshTarget.MEMPOOL, seen.append)
    barrier = threading.Barrier(8)

    def racer():
        barrier.wait()
        for _ in range(20):
            coordinator.start(0.01)

    racers = [threading.Thread(target=racer) for _ in range(8)]
    for t in racers:
        t.start()
    for t in racers:
        t.join()

    try:
        assert coordinator.running
        assert len(_timer_threads()) == 1
    finally:
        coordinator.stop()

    assert _timer_threads() == []
    count = len(seen)
    time.sleep(0.05)
    assert len(seen) == count
