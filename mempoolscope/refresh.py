"""Periodic refresh signals for the mempool, blocks and search views."""

import threading
from enum import Enum
from typing import Callable, Dict, List, Optional
from .logging import get_logger

logger = get_logger(__name__)


class RefreshTarget(str, Enum):
    MEMPOOL = "mempool"
    BLOCKS = "blocks"
    SEARCH = "search"
    ALL = "all"


# Families broadcast by each timer fire; ALL aggregates them
REFRESH_FAMILIES = (RefreshTarget.MEMPOOL, RefreshTarget.BLOCKS, RefreshTarget.SEARCH)

RefreshCallback = Callable[[RefreshTarget], None]


class RefreshCoordinator:
    """Fires refresh signals on a timer and on demand.

    Subscribers register for one family or for ALL. Each fire delivers every
    family once; ALL subscribers receive one call per family with the family
    as argument. A failing subscriber is logged and never stops the timer.

    States: Stopped -> start(interval) -> Running -> stop() -> Stopped.
    An interval of 0 disables the timer.
    """

    def __init__(self):
        self._subscribers: Dict[RefreshTarget, List[RefreshCallback]] = {
            target: [] for target in RefreshTarget
        }
        self._lock = threading.RLock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None
        self._interval = 0.0

    @property
    def running(self) -> bool:
        with self._lock:
            return self._thread is not None and self._thread.is_alive()

    @property
    def interval(self) -> float:
        return self._interval

    def subscribe(self, target, callback: RefreshCallback) -> Callable[[], None]:
        """
        Register a callback for a refresh family.

        Args:
            target: RefreshTarget (or its string value)
            callback: Called with the family being refreshed

        Returns:
            Function that removes the subscription (safe to call twice)
        """
        target = RefreshTarget(target)
        with self._lock:
            self._subscribers[target].append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers[target]:
                    self._subscribers[target].remove(callback)

        return unsubscribe

    def start(self, interval_secs: float) -> None:
        """
        Start (or restart) the periodic timer.

        The previous timer, if any, is cancelled in the same step that installs
        the new one, so concurrent calls leave exactly one timer running.

        Args:
            interval_secs: Seconds between fires; 0 or less leaves the timer stopped
        """
        interval = max(0.0, float(interval_secs))
        with self._lock:
            old_thread, old_event = self._thread, self._stop_event
            if old_event is not None:
                old_event.set()
            self._interval = interval
            if interval > 0:
                stop_event = threading.Event()
                thread = threading.Thread(
                    target=self._run,
                    args=(stop_event, interval),
                    name="mempoolscope-refresh",
                    daemon=True,
                )
                self._stop_event = stop_event
                self._thread = thread
                thread.start()
            else:
                self._stop_event = None
                self._thread = None

        # Join outside the lock: a firing timer takes it in _broadcast
        self._join(old_thread)
        if interval <= 0:
            logger.info("Auto refresh disabled")
        else:
            logger.info(f"Auto refresh started every {interval:g}s")

    def stop(self) -> None:
        """Stop the timer. No fire happens after this returns."""
        with self._lock:
            thread, stop_event = self._thread, self._stop_event
            self._thread = None
            self._stop_event = None
            if stop_event is not None:
                stop_event.set()
        if stop_event is None:
            return
        self._join(thread)
        logger.info("Auto refresh stopped")

    @staticmethod
    def _join(thread: Optional[threading.Thread]) -> None:
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def trigger_now(self, target=RefreshTarget.ALL) -> None:
        """Deliver a refresh signal immediately, outside the timer."""
        target = RefreshTarget(target)
        families = REFRESH_FAMILIES if target == RefreshTarget.ALL else (target,)
        for family in families:
            self._broadcast(family)

    def _run(self, stop_event: threading.Event, interval: float) -> None:
        while not stop_event.wait(interval):
            for family in REFRESH_FAMILIES:
                if stop_event.is_set():
                    return
                self._broadcast(family)

    def _broadcast(self, family: RefreshTarget) -> None:
        with self._lock:
            callbacks = list(self._subscribers[family]) + list(self._subscribers[RefreshTarget.ALL])
        logger.debug(f"Refreshing {family.value} ({len(callbacks)} subscriber(s))")
        for callback in callbacks:
            try:
                callback(family)
            except Exception as e:
                logger.error(f"Refresh subscriber failed for {family.value}: {e}", exc_info=True)
