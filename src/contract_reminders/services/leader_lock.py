"""
Distributed Leader Lock
Guarantees at most one scheduler pass runs at a time across every process
sharing the coordination store.

Two strategies implement DistributedLock:
- RedlockLeaderLock: quorum lock over one or more Redis masters (pottery)
- SimpleRedisLeaderLock: SET NX PX on a single node with an owner token

create_leader_lock() picks one from configuration; LockedSchedulerRunner
acquires it, keeps it renewed while the work runs and always releases it.
"""
import logging
import os
import socket
import threading
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterable, Optional, Sequence

from pottery import Redlock

from ..config import config
from ..db.base import utcnow

logger = logging.getLogger(__name__)

LAST_RUN_KEY = "scheduler:last_run"
LAST_CREATED_KEY = "scheduler:last_created"
LAST_RUN_ERROR_KEY = "scheduler:last_run_error"

# Renewals allowed per acquisition (~34 days at a 30s interval)
MAX_RENEWALS = 100_000


class DistributedLock(ABC):
    """Named lock with a TTL shared across processes"""

    strategy = "abstract"

    def __init__(self, key: str, ttl_seconds: int):
        self.key = key
        self.ttl_seconds = ttl_seconds
    
    @property
    def storage_key(self) -> str:
        """Key actually written to the coordination store"""
        return self.key

    @abstractmethod
    def acquire(self) -> bool:
        """
        Try to take the lock once, without waiting

        Returns:
            True if acquired, False if another holder owns it

        Raises:
            Exception: On coordination-store failures
        """

    @abstractmethod
    def extend(self) -> bool:
        """
        Reset the TTL of a held lock

        Returns:
            False if the lock is no longer owned by this holder
        """

    @abstractmethod
    def release(self) -> None:
        """Release the lock if still owned"""


class RedlockLeaderLock(DistributedLock):
    """Quorum-based lock (Redlock) acquired with zero retries"""

    strategy = "redlock"

    def __init__(self, masters: Iterable[Any], key: str, ttl_seconds: int):
        super().__init__(key, ttl_seconds)
        self._redlock = Redlock(
            key=key,
            masters=set(masters),
            raise_on_redis_errors=True,
            auto_release_time=float(ttl_seconds),
            num_extensions=MAX_RENEWALS,
        )
    
    @property
    def storage_key(self) -> str:
        # pottery stores the lock under its own prefix, e.g. redlock:scheduler:leader_lock
        return self._redlock.key

    def acquire(self) -> bool:
        return self._redlock.acquire(blocking=False)

    def extend(self) -> bool:
        self._redlock.extend()
        return True

    def release(self) -> None:
        self._redlock.release()


class SimpleRedisLeaderLock(DistributedLock):
    """
    Single-node lock: SET key token NX PX ttl

    The stored owner token is compared before every renewal and release so
    a holder never extends or deletes a lock another process took over.
    """

    strategy = "simple"

    def __init__(self, client, key: str, ttl_seconds: int, token: Optional[str] = None):
        super().__init__(key, ttl_seconds)
        self.client = client
        self.token = token or f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"

    @property
    def ttl_ms(self) -> int:
        return int(self.ttl_seconds * 1000)

    def acquire(self) -> bool:
        return bool(self.client.set(self.key, self.token, nx=True, px=self.ttl_ms))

    def owned(self) -> bool:
        current = self.client.get(self.key)
        if isinstance(current, bytes):
            current = current.decode()
        return current == self.token

    def extend(self) -> bool:
        if not self.owned():
            return False
        self.client.pexpire(self.key, self.ttl_ms)
        return True

    def release(self) -> None:
        if self.owned():
            self.client.delete(self.key)
        else:
            logger.warning(f"Lock {self.key} is no longer owned by {self.token}; not deleting")


def create_leader_lock(
    coordination,
    backend: Optional[str] = None,
    key: Optional[str] = None,
    ttl_seconds: Optional[int] = None,
) -> DistributedLock:
    """
    Create the scheduler leader lock

    Args:
        coordination: CoordinationContext providing Redis clients
        backend: "redlock" or "simple" (default: SCHEDULER_LOCK_BACKEND)
        key: Lock key (default: SCHEDULER_LOCK_KEY)
        ttl_seconds: Lock TTL (default: SCHEDULER_LOCK_TTL_SECONDS)

    Returns:
        A DistributedLock; falls back to the simple lock when the quorum lock
        cannot be constructed
    """
    backend = (backend or config.SCHEDULER_LOCK_BACKEND).lower()
    key = key or config.SCHEDULER_LOCK_KEY
    ttl_seconds = ttl_seconds or config.SCHEDULER_LOCK_TTL_SECONDS

    if backend == "redlock":
        try:
            return RedlockLeaderLock(coordination.lock_masters, key, ttl_seconds)
        except Exception as e:
            logger.warning(f"Redlock unavailable ({e}); falling back to simple SET NX lock")

    return SimpleRedisLeaderLock(coordination.redis, key, ttl_seconds)


class LockRenewer:
    """
    Background thread that extends a held lock at a fixed interval

    Stops on the first failed or refused renewal; the in-flight work keeps
    running either way.
    """

    def __init__(self, lock: DistributedLock, interval_seconds: float):
        self.lock = lock
        self.interval_seconds = interval_seconds
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run,
            name=f"lock-renewer:{lock.key}",
            daemon=True,
        )
        self.renewals = 0
        self.failed = False

    def start(self):
        self._thread.start()

    def stop(self, timeout: float = 5.0):
        self._stop_event.set()
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    @property
    def running(self) -> bool:
        return self._thread.is_alive()

    def _run(self):
        while not self._stop_event.wait(self.interval_seconds):
            try:
                if not self.lock.extend():
                    logger.warning(f"Lock {self.lock.key} ownership changed; stopping renewal")
                    self.failed = True
                    return
                self.renewals += 1
                logger.debug(f"Lock {self.lock.key} extended ({self.lock.strategy})")
            except Exception as e:
                logger.warning(f"Failed to extend lock {self.lock.key}: {e}")
                self.failed = True
                return


@contextmanager
def held_lock(lock: DistributedLock, renew_interval_seconds: float):
    """
    Keep an acquired lock renewed for the duration of the block

    The renewer is stopped and the lock released on every exit path.
    """
    renewer = LockRenewer(lock, renew_interval_seconds)
    renewer.start()
    try:
        yield renewer
    finally:
        renewer.stop()
        try:
            lock.release()
            logger.info(f"Scheduler lock released ({lock.strategy})")
        except Exception as e:
            logger.warning(f"Failed to release scheduler lock: {e}")


class SchedulerMetrics:
    """Last-run observability keys in the coordination store"""

    def __init__(self, client):
        self.client = client

    def record_success(self, created_count: int, at=None):
        try:
            self.client.set(LAST_RUN_KEY, (at or utcnow()).isoformat())
            self.client.set(LAST_CREATED_KEY, str(created_count))
        except Exception as e:
            logger.warning(f"Failed to persist scheduler metrics: {e}")

    def record_error(self, error: BaseException):
        try:
            self.client.set(LAST_RUN_ERROR_KEY, str(error) or type(error).__name__)
        except Exception as e:
            logger.warning(f"Failed to persist scheduler error: {e}")

    def read(self) -> Dict[str, Any]:
        """
        Read the persisted scheduler metrics

        Returns:
            Dictionary with lastRun, lastCreated and lastError
        """
        last_run = self.client.get(LAST_RUN_KEY)
        last_created = self.client.get(LAST_CREATED_KEY)
        last_error = self.client.get(LAST_RUN_ERROR_KEY)
        return {
            "lastRun": _as_text(last_run),
            "lastCreated": int(_as_text(last_created) or 0),
            "lastError": _as_text(last_error),
        }


def _as_text(value):
    if isinstance(value, bytes):
        return value.decode()
    return value


class LockedSchedulerRunner:
    """
    Runs scheduler work only while holding the leader lock

    Lock contention is the expected steady state when another instance is
    active and is reported, not raised. Failures of the work itself are
    recorded and re-raised after the lock is released.
    """

    def __init__(
        self,
        coordination,
        lock_factory: Optional[Callable[[], DistributedLock]] = None,
        renew_interval_seconds: Optional[float] = None,
    ):
        """
        Args:
            coordination: CoordinationContext (lock clients and metrics store)
            lock_factory: Builds a fresh lock per run (default: create_leader_lock)
            renew_interval_seconds: Renewal interval (default: SCHEDULER_LOCK_RENEW_SECONDS)
        """
        self.coordination = coordination
        self.lock_factory = lock_factory or (lambda: create_leader_lock(coordination))
        self.renew_interval_seconds = renew_interval_seconds or config.SCHEDULER_LOCK_RENEW_SECONDS
        self.metrics = SchedulerMetrics(coordination.redis)

    def acquire_and_run(self, work: Callable[[], Sequence[Any]]) -> Dict[str, Any]:
        """
        Acquire the leader lock and run one scheduler pass

        Args:
            work: Callable returning the reminders created by the pass

        Returns:
            {"acquired": False, "skipped": True} when the scheduler is disabled,
            {"acquired": False} when another instance holds the lock,
            {"acquired": False, "error": ...} when the coordination store failed,
            {"acquired": True, "created": n} after a successful pass

        Raises:
            Exception: Whatever the work raised, after the lock is released
        """
        if config.scheduler_disabled():
            logger.info("Scheduler disabled via DISABLE_SCHEDULER/ENABLE_SCHEDULER; skipping locked run")
            return {"acquired": False, "skipped": True}

        lock = self.lock_factory()
        try:
            acquired = lock.acquire()
        except Exception as e:
            logger.error(f"Could not reach coordination store for scheduler lock: {e}")
            return {"acquired": False, "error": str(e)}

        if not acquired:
            logger.info("Another scheduler instance holds the lock; skipping this run")
            return {"acquired": False}

        logger.info(f"Scheduler lock {lock.storage_key} acquired ({lock.strategy}); running reminders scheduler")
        with held_lock(lock, self.renew_interval_seconds):
            try:
                created = work()
            except Exception as e:
                logger.error(f"Scheduler run failed: {e}", exc_info=True)
                self.metrics.record_error(e)
                raise

            created_count = len(created) if created is not None else 0
            self.metrics.record_success(created_count)

        logger.info(f"Scheduler created {created_count} reminders")
        return {"acquired": True, "created": created_count}
