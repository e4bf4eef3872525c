"""Per-account serialization of balance-changing operations."""

import logging
import threading
import time
from contextlib import contextmanager
from typing import Callable, Iterator, TypeVar

from cashledger.domain.errors import ConcurrencyConflict, lock_timeout

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AccountLocks:
    """Registry of one lock per account number.

    Locks are always taken in sorted account-number order, so two operations
    touching the same pair of accounts cannot deadlock. Locks are re-entrant:
    a thread already holding an account may enter it again.
    """

    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout
        self._locks: dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, account_number: str) -> threading.RLock:
        with self._registry_lock:
            lock = self._locks.get(account_number)
            if lock is None:
                lock = threading.RLock()
                self._locks[account_number] = lock
            return lock

    @contextmanager
    def hold(self, *account_numbers: str) -> Iterator[None]:
        """Hold the locks of every given account for the duration of the block.

        Raises:
            ConcurrencyConflict: If a lock is not acquired within the timeout
        """
        ordered = tuple(sorted({n for n in account_numbers if n}))
        acquired: list[threading.RLock] = []
        try:
            for number in ordered:
                lock = self._lock_for(number)
                if not lock.acquire(timeout=self.timeout):
                    logger.warning("lock timeout accounts=%s waited=%ss", ",".join(ordered), self.timeout)
                    raise ConcurrencyConflict(lock_timeout(ordered))
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


def retry_on_conflict(func: Callable[[], T], attempts: int = 3, backoff: float = 0.05) -> T:
    """Call ``func``, retrying on ConcurrencyConflict with exponential backoff.

    Args:
        func: Zero-argument callable to run
        attempts: Total number of tries
        backoff: Delay before the first retry, doubled on each further retry

    Returns:
        Whatever ``func`` returns

    Raises:
        ConcurrencyConflict: If every attempt conflicts
    """
    delay = backoff
    for attempt in range(1, attempts):
        try:
            return func()
        except ConcurrencyConflict:
            logger.info("concurrency conflict, retrying attempt=%d delay=%.3f", attempt + 1, delay)
            time.sleep(delay)
            delay *= 2
    return func()
