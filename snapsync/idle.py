"""
Idle detection for background cache refresh.

Two facilities live here: an idle-callback scheduler, reporting short windows
where the host is not busy, and a user idle monitor, reporting when the user
stopped interacting or locked the session.
"""

import asyncio
import itertools
import time
from typing import Callable, Dict, List, Optional

ACTIVE = 'active'
IDLE = 'idle'
LOCKED = 'locked'

IdleCallback = Callable[["IdleDeadline"], None]


class IdleDeadline:
    """What an idle callback is told about its window."""

    def __init__(self, time_remaining_ms: float, did_timeout: bool = False):
        self._time_remaining_ms = time_remaining_ms
        self.did_timeout = did_timeout

    def time_remaining(self) -> float:
        return self._time_remaining_ms


class AsyncioIdleScheduler:
    """
    Idle-callback facility on top of an asyncio event loop.

    asyncio has no notion of idle time, so a pending callback fires when its
    timeout expires (with did_timeout set), unless the host reports an idle
    window first through notify_idle().
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self.loop = loop
        self._ids = itertools.count(1)
        self._pending: Dict[int, tuple] = {}

    def request_idle_callback(self, callback: IdleCallback, timeout_ms: float) -> int:
        loop = self.loop or asyncio.get_running_loop()
        handle = next(self._ids)
        timer = loop.call_later(timeout_ms / 1000.0, self._fire, handle, IdleDeadline(0, did_timeout=True))
        self._pending[handle] = (callback, timer)
        return handle

    def cancel_idle_callback(self, handle: int):
        entry = self._pending.pop(handle, None)
        if entry is not None:
            entry[1].cancel()

    def notify_idle(self, budget_ms: float):
        """Run every pending callback now, with the given idle budget."""
        for handle in list(self._pending):
            self._fire(handle, IdleDeadline(budget_ms))

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def _fire(self, handle: int, deadline: IdleDeadline):
        entry = self._pending.pop(handle, None)
        if entry is None:
            return
        callback, timer = entry
        timer.cancel()
        callback(deadline)


class IdleMonitor:
    """
    Tracks whether the user is active, idle or has locked the session.

    The state is recomputed by poll() from the time since the last recorded
    activity. Listeners are called on every state change.
    """

    DEFAULT_IDLE_THRESHOLD = 60  # seconds without activity before the user counts as idle

    def __init__(self, detection_interval: float = DEFAULT_IDLE_THRESHOLD, clock: Optional[Callable[[], float]] = None):
        self.detection_interval = detection_interval
        self.clock = clock or time.monotonic
        self.current_state = ACTIVE
        self.last_activity = self.clock()
        self._listeners: List[Callable[[str], None]] = []

    def set_detection_interval(self, seconds: float):
        self.detection_interval = seconds

    def get_current_state(self) -> str:
        return self.current_state

    def is_idle(self) -> bool:
        return self.current_state in (IDLE, LOCKED)

    def add_listener(self, callback: Callable[[str], None]):
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[str], None]):
        self._listeners = [listener for listener in self._listeners if listener != callback]

    def record_activity(self):
        self.last_activity = self.clock()
        self._set_state(ACTIVE)

    def lock(self):
        self._set_state(LOCKED)

    def poll(self) -> str:
        """Recompute the state from the time since the last activity."""
        if self.current_state != LOCKED:
            idle_for = self.clock() - self.last_activity
            self._set_state(IDLE if idle_for >= self.detection_interval else ACTIVE)
        return self.current_state

    def _set_state(self, state: str):
        if state == self.current_state:
            return
        self.current_state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                print(f"Error in idle state listener: {e}")
