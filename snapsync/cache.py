"""
Cache module for project snapshot sync.

Keeps the most recent snapshot of every project so the archive is not
downloaded again on each sync, and tells interested parties when a cached
snapshot should be refreshed in the background.
"""

import time
from typing import Callable, Dict, List, Optional

from snapsync.idle import IDLE, LOCKED, IdleDeadline
from snapsync.models import CacheEntry, ProjectSnapshot

RefreshCallback = Callable[[str], None]

DEFAULT_MAX_CACHE_AGE_MS = 5 * 60 * 1000
DEFAULT_IDLE_TIMEOUT_MS = 10000
DEFAULT_IDLE_THRESHOLD_MS = 1000


def _wall_clock_ms() -> float:
    return time.time() * 1000


class SnapshotCache:
    """
    In-memory snapshot store with a time-to-live.

    Two optional triggers drive background refresh:

    * the idle scheduler: whenever the host has a long enough idle window (or
      the idle callback times out), every stale project is reported;
    * the idle monitor: when the user goes idle or locks the session, every
      cached project is reported, stale or not.

    Either can be None, which only disables that trigger.
    """

    def __init__(self, idle_scheduler=None, idle_monitor=None, clock: Optional[Callable[[], float]] = None,
                 max_cache_age_ms: float = DEFAULT_MAX_CACHE_AGE_MS, idle_timeout_ms: float = DEFAULT_IDLE_TIMEOUT_MS,
                 idle_threshold_ms: float = DEFAULT_IDLE_THRESHOLD_MS):
        """
        Initialize the cache.

        Args:
            idle_scheduler: Object with request_idle_callback(callback, timeout_ms) and
                cancel_idle_callback(handle), or None
            idle_monitor: Object with add_listener(fn) and remove_listener(fn) reporting
                'active', 'idle' or 'locked', or None
            clock: Function returning the current time in milliseconds
            max_cache_age_ms: Time-to-live of cached snapshots
            idle_timeout_ms: Longest wait for an idle window before the pass runs anyway
            idle_threshold_ms: Idle budget needed for a pass
        """
        self.idle_scheduler = idle_scheduler
        self.idle_monitor = idle_monitor
        self.clock = clock or _wall_clock_ms
        self.max_cache_age_ms = max_cache_age_ms
        self.idle_timeout_ms = idle_timeout_ms
        self.idle_threshold_ms = idle_threshold_ms

        self._entries: Dict[str, CacheEntry] = {}
        self._refresh_callbacks: List[RefreshCallback] = []
        self._idle_refresh_enabled = True
        self._idle_callback_id = None

        self._setup_host_idle_detection()
        self._setup_user_idle_detection()

    def __len__(self):
        return len(self._entries)

    def __contains__(self, project_id):
        return project_id in self._entries

    def project_ids(self) -> List[str]:
        return list(self._entries)

    @property
    def idle_refresh_enabled(self) -> bool:
        return self._idle_refresh_enabled

    def set_max_cache_age(self, max_age_ms: float):
        self.max_cache_age_ms = max_age_ms

    def cache_project_files(self, project_id: str, files: ProjectSnapshot):
        self._entries[project_id] = CacheEntry(project_id=project_id, files=files, timestamp=self.clock())
        print(f"Cached {len(files)} files for project {project_id}")

    def get_cached_project_files(self, project_id: str) -> Optional[ProjectSnapshot]:
        """
        Return the cached snapshot if it is not stale.

        Stale entries stay in the cache so background refresh can still see them.

        Args:
            project_id: The project identifier

        Returns:
            The cached snapshot, or None if missing or older than the time-to-live
        """
        entry = self._entries.get(project_id)
        if entry is None:
            print(f"No cache found for project {project_id}")
            return None

        age = entry.age_ms(self.clock())
        if age > self.max_cache_age_ms:
            print(f"Cache for project {project_id} is stale ({round(age / 1000)}s old)")
            return None

        print(f"Using cached files for project {project_id} ({round(age / 1000)}s old)")
        return entry.files

    def invalidate_cache(self, project_id: str):
        if self._entries.pop(project_id, None) is not None:
            print(f"Cache invalidated for project {project_id}")

    def clear_all_caches(self):
        self._entries.clear()
        print("All caches cleared")

    def on_cache_refresh_needed(self, callback: RefreshCallback):
        self._refresh_callbacks.append(callback)

    def remove_refresh_callback(self, callback: RefreshCallback):
        self._refresh_callbacks = [cb for cb in self._refresh_callbacks if cb != callback]

    def set_idle_refresh_enabled(self, enabled: bool):
        self._idle_refresh_enabled = enabled

        if not enabled:
            self._cancel_idle_callback()
        elif self._idle_callback_id is None:
            self._schedule_idle_refresh()

    def close(self):
        """Stop both refresh triggers and drop every entry and callback."""
        self._cancel_idle_callback()
        if self.idle_monitor is not None:
            self.idle_monitor.remove_listener(self._on_user_idle_state)
        self._refresh_callbacks = []
        self._entries.clear()

    # Host idle trigger

    def _setup_host_idle_detection(self):
        if self.idle_scheduler is None:
            print("Warning: no idle scheduler available, host idle cache refresh disabled")
            return
        try:
            self._schedule_idle_refresh()
        except RuntimeError as e:
            # asyncio schedulers without an explicit loop need a running one
            print(f"Warning: idle scheduler unavailable ({e}), host idle cache refresh disabled")
            self.idle_scheduler = None

    def _schedule_idle_refresh(self):
        if self.idle_scheduler is None:
            return
        self._idle_callback_id = self.idle_scheduler.request_idle_callback(self._on_host_idle, self.idle_timeout_ms)

    def _cancel_idle_callback(self):
        if self._idle_callback_id is not None:
            self.idle_scheduler.cancel_idle_callback(self._idle_callback_id)
            self._idle_callback_id = None

    def _on_host_idle(self, deadline: IdleDeadline):
        # This registration is being consumed
        self._idle_callback_id = None

        if not self._idle_refresh_enabled:
            return

        if deadline.time_remaining() > self.idle_threshold_ms or deadline.did_timeout:
            self._refresh_stale_caches()

        # A refresh callback may have disabled refresh or registered again
        if self._idle_refresh_enabled and self._idle_callback_id is None:
            self._schedule_idle_refresh()

    # User idle trigger

    def _setup_user_idle_detection(self):
        if self.idle_monitor is None:
            return
        self.idle_monitor.add_listener(self._on_user_idle_state)

    def _on_user_idle_state(self, state: str):
        if state in (IDLE, LOCKED):
            print("User is idle, refreshing all caches proactively")
            self._refresh_all_caches()

    # Refresh passes

    def _refresh_stale_caches(self):
        now = self.clock()
        stale = [project_id for project_id, entry in self._entries.items()
                 if entry.age_ms(now) > self.max_cache_age_ms]

        if stale:
            print(f"Refreshing {len(stale)} stale caches during idle time")
            self._notify_refresh(stale)

    def _refresh_all_caches(self):
        if not self._idle_refresh_enabled or not self._entries:
            return

        print(f"Refreshing all {len(self._entries)} caches during user idle time")
        self._notify_refresh(list(self._entries))

    def _notify_refresh(self, project_ids: List[str]):
        callbacks = list(self._refresh_callbacks)
        for project_id in project_ids:
            for callback in callbacks:
                try:
                    callback(project_id)
                except Exception as e:
                    print(f"Error in cache refresh callback for project {project_id}: {e}")
