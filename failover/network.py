"""Connectivity tracking.

:class:`NetworkStateMonitor` owns the one piece of shared mutable state the
orchestrator reads: whether the data network is up. It is injected into the
orchestrator rather than read from anything global, so tests can flip it at
will. :class:`ConnectivityProbe` feeds it from a periodic HTTP check.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from enum import Enum

import httpx

logger = logging.getLogger(__name__)

DEFAULT_PROBE_INTERVAL_SECONDS = 30.0
DEFAULT_PROBE_TIMEOUT_SECONDS = 5.0


class NetworkState(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


StateListener = Callable[[NetworkState, NetworkState], None]


class NetworkStateMonitor:
    """Thread-safe holder of the current connectivity state.

    Listeners are called as ``listener(previous, current)`` only when the
    state actually changes, outside the lock.
    """

    def __init__(self, initial: NetworkState = NetworkState.ONLINE) -> None:
        self._state = initial
        self._lock = threading.Lock()
        self._listeners: list[StateListener] = []

    @property
    def state(self) -> NetworkState:
        """A single consistent snapshot of the current state."""
        with self._lock:
            return self._state

    @property
    def is_online(self) -> bool:
        return self.state == NetworkState.ONLINE

    def set_state(self, state: NetworkState) -> bool:
        """Record a transition. Returns True if the state changed."""
        with self._lock:
            previous = self._state
            if previous == state:
                return False
            self._state = state
            listeners = list(self._listeners)

        logger.info("Network state changed: %s -> %s", previous.value, state.value)
        for listener in listeners:
            try:
                listener(previous, state)
            except Exception:
                logger.exception("Network state listener failed")
        return True

    def mark_online(self) -> bool:
        return self.set_state(NetworkState.ONLINE)

    def mark_offline(self) -> bool:
        return self.set_state(NetworkState.OFFLINE)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register *listener*; returns a callable that removes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe


class ConnectivityProbe:
    """Polls an HTTP endpoint and reports reachability to a monitor.

    Any response at all, even an error status, counts as online: the
    question is whether the network carries traffic, not whether the
    endpoint is healthy.
    """

    def __init__(
        self,
        monitor: NetworkStateMonitor,
        url: str,
        *,
        interval: float = DEFAULT_PROBE_INTERVAL_SECONDS,
        timeout: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
        client: httpx.Client | None = None,
    ) -> None:
        self._monitor = monitor
        self._url = url
        self._interval = interval
        self._client = client or httpx.Client(timeout=timeout)
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def check(self) -> NetworkState:
        """Probe once and push the result into the monitor."""
        try:
            self._client.head(self._url)
        except httpx.HTTPError as exc:
            logger.debug("Connectivity probe to %s failed: %s", self._url, exc)
            state = NetworkState.OFFLINE
        else:
            state = NetworkState.ONLINE
        self._monitor.set_state(state)
        return state

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="connectivity-probe", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def close(self) -> None:
        self.stop()
        self._client.close()

    def _run(self) -> None:
        while not self._stop.is_set():
            self.check()
            self._stop.wait(self._interval)
