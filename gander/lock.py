"""Session-level locking of the database while migrations run."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

__all__ = [
    "DEFAULT_LOCK_ID",
    "LockError",
    "LockNotImplementedError",
    "PostgresSessionLocker",
    "Probe",
    "SessionLocker",
    "SessionLockerOption",
    "UnlockNotImplementedError",
    "new_postgres_session_locker",
    "with_lock_id",
    "with_lock_timeout",
    "with_unlock_timeout",
]

# crc64 (ECMA table) checksum of the string "goose"; keeps the lock unique to migrations.
DEFAULT_LOCK_ID = 5887940537704921958


class LockError(Exception):
    """Raised when a lock cannot be acquired or released."""


class LockNotImplementedError(NotImplementedError):
    """Raised when the database does not support locking."""

    def __init__(self, message: str = "lock not implemented") -> None:
        super().__init__(message)


class UnlockNotImplementedError(NotImplementedError):
    """Raised when the database does not support unlocking."""

    def __init__(self, message: str = "unlock not implemented") -> None:
        super().__init__(message)


@dataclass(frozen=True)
class Probe:
    """How often (seconds) and how many times to retry a lock or unlock attempt."""

    interval: float
    failure_threshold: int


class SessionLocker(ABC):
    """Locks the database for the lifetime of one connection.

    Both methods must be called with the same connection.
    """

    @abstractmethod
    def session_lock(self, conn: Any) -> None:
        """Acquire the lock on *conn*."""

    @abstractmethod
    def session_unlock(self, conn: Any) -> None:
        """Release the lock held on *conn*."""


@dataclass
class _Config:
    lock_id: int = DEFAULT_LOCK_ID
    lock_probe: Probe = field(default_factory=lambda: Probe(5, 60))
    unlock_probe: Probe = field(default_factory=lambda: Probe(2, 30))


SessionLockerOption = Callable[[_Config], None]


def _validated_probe(period: int, failure_threshold: int) -> Probe:
    if period < 1:
        raise ValueError("period must be greater than 0, minimum is 1")
    if failure_threshold < 1:
        raise ValueError("failure threshold must be greater than 0, minimum is 1")
    return Probe(period, failure_threshold)


def with_lock_id(lock_id: int) -> SessionLockerOption:
    """Use *lock_id* instead of DEFAULT_LOCK_ID."""

    def apply(cfg: _Config) -> None:
        cfg.lock_id = lock_id

    return apply


def with_lock_timeout(period: int, failure_threshold: int) -> SessionLockerOption:
    """Retry acquiring every *period* seconds, up to *failure_threshold* times."""

    def apply(cfg: _Config) -> None:
        cfg.lock_probe = _validated_probe(period, failure_threshold)

    return apply


def with_unlock_timeout(period: int, failure_threshold: int) -> SessionLockerOption:
    """Retry releasing every *period* seconds, up to *failure_threshold* times."""

    def apply(cfg: _Config) -> None:
        cfg.unlock_probe = _validated_probe(period, failure_threshold)

    return apply


class PostgresSessionLocker(SessionLocker):
    """Exclusive session-level PostgreSQL advisory lock.

    Works with a DB-API connection whose driver uses the ``%s`` parameter style.
    """

    LOCK_QUERY = "SELECT pg_try_advisory_lock(%s)"
    UNLOCK_QUERY = "SELECT pg_advisory_unlock(%s)"

    def __init__(
        self,
        lock_id: int = DEFAULT_LOCK_ID,
        lock_probe: Optional[Probe] = None,
        unlock_probe: Optional[Probe] = None,
        sleep: Optional[Callable[[float], Any]] = None,
    ) -> None:
        defaults = _Config()
        self.lock_id = lock_id
        self.lock_probe = lock_probe if lock_probe is not None else defaults.lock_probe
        self.unlock_probe = unlock_probe if unlock_probe is not None else defaults.unlock_probe
        self._sleep = sleep

    def _query_bool(self, conn: Any, query: str, name: str) -> bool:
        try:
            cur = conn.cursor()
            try:
                cur.execute(query, (self.lock_id,))
                row = cur.fetchone()
            finally:
                cur.close()
        except Exception as exc:
            raise LockError(f"failed to execute {name}: {exc}") from exc
        if row is None:
            raise LockError(f"failed to execute {name}: no rows in result set")
        return bool(row[0])

    def _retry(self, probe: Probe, attempt: Callable[[], bool], failure: str) -> None:
        sleep = self._sleep if self._sleep is not None else time.sleep
        retries = 0
        while not attempt():
            if retries >= probe.failure_threshold:
                raise LockError(failure)
            retries += 1
            sleep(probe.interval)

    def session_lock(self, conn: Any) -> None:
        """Acquire the advisory lock, retrying while another session holds it."""
        self._retry(
            self.lock_probe,
            lambda: self._query_bool(conn, self.LOCK_QUERY, "pg_try_advisory_lock"),
            "failed to acquire lock",
        )

    def session_unlock(self, conn: Any) -> None:
        """Release the advisory lock, retrying while it is not released."""
        self._retry(
            self.unlock_probe,
            lambda: self._query_bool(conn, self.UNLOCK_QUERY, "pg_advisory_unlock"),
            "failed to unlock session",
        )


def new_postgres_session_locker(*args: SessionLockerOption) -> PostgresSessionLocker:
    """Return a PostgreSQL advisory-lock locker configured by the given options.

    By default acquiring is tried every 5 seconds up to 60 retries, and releasing
    every 2 seconds up to 30 retries. Invalid options raise ValueError.
    """
    cfg = _Config()
    for option in args:
        option(cfg)
    return PostgresSessionLocker(
        lock_id=cfg.lock_id, lock_probe=cfg.lock_probe, unlock_probe=cfg.unlock_probe
    )