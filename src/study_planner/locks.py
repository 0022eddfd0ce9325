"""Process-local per-user locks guarding schedule regeneration."""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, Optional

from study_planner.errors import LockBusyError

logger = logging.getLogger(__name__)

LOCK_TIMEOUT_SECONDS = 5 * 60
SWEEP_INTERVAL_SECONDS = 60


@dataclass
class _LockRecord:
    locked: bool
    timestamp: float


class LockManager:
    """Non-blocking mutual exclusion keyed by user id.

    A lock older than ``timeout`` seconds is considered abandoned: ``acquire``
    overrides it and the background sweep removes it.
    """

    def __init__(
        self,
        timeout: float = LOCK_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.timeout = timeout
        self._clock = clock
        self._records: Dict[str, _LockRecord] = {}
        self._guard = threading.Lock()
        self._sweeper: Optional[threading.Thread] = None
        self._stop = threading.Event()

    def acquire(self, user_id: str) -> bool:
        now = self._clock()
        with self._guard:
            existing = self._records.get(user_id)
            if existing is not None:
                age = now - existing.timestamp
                if age <= self.timeout:
                    return False
                logger.warning("Overriding stale lock for user %s (created %.1fs ago)", user_id, age)
            self._records[user_id] = _LockRecord(locked=True, timestamp=now)
        return True

    def release(self, user_id: str) -> None:
        with self._guard:
            self._records.pop(user_id, None)

    def age(self, user_id: str) -> float:
        """Seconds since the current lock was taken, 0 when unlocked."""
        with self._guard:
            record = self._records.get(user_id)
            if record is None:
                return 0.0
            return self._clock() - record.timestamp

    def is_locked(self, user_id: str) -> bool:
        with self._guard:
            return user_id in self._records

    def sweep(self) -> int:
        """Drop every lock older than the timeout and return how many were removed."""
        now = self._clock()
        with self._guard:
            stale = [
                user_id
                for user_id, record in self._records.items()
                if now - record.timestamp > self.timeout
            ]
            for user_id in stale:
                del self._records[user_id]
        if stale:
            logger.info("Cleaned up %d stale schedule locks", len(stale))
        return len(stale)

    @contextmanager
    def hold(self, user_id: str) -> Iterator[None]:
        """Hold the user's lock for the duration of the block or raise LockBusyError."""
        if not self.acquire(user_id):
            raise LockBusyError(user_id, self.age(user_id))
        logger.debug("Acquired schedule lock for user %s", user_id)
        try:
            yield
        finally:
            self.release(user_id)

    def start_sweeper(self, interval: float = SWEEP_INTERVAL_SECONDS) -> None:
        if self._sweeper is not None and self._sweeper.is_alive():
            return
        self._stop.clear()
        self._sweeper = threading.Thread(
            target=self._sweep_loop,
            args=(interval,),
            name="schedule-lock-sweeper",
            daemon=True,
        )
        self._sweeper.start()

    def stop_sweeper(self) -> None:
        self._stop.set()
        if self._sweeper is not None:
            self._sweeper.join()
            self._sweeper = None

    def _sweep_loop(self, interval: float) -> None:
        while not self._stop.wait(interval):
            self.sweep()

    def clear(self) -> None:
        with self._guard:
            self._records.clear()


schedule_locks = LockManager()

__all__ = ["LockManager", "schedule_locks", "LOCK_TIMEOUT_SECONDS", "SWEEP_INTERVAL_SECONDS"]
