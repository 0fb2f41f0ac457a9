import pytest

from gander.lock import (
    DEFAULT_LOCK_ID,
    LockError,
    LockNotImplementedError,
    PostgresSessionLocker,
    Probe,
    SessionLocker,
    UnlockNotImplementedError,
    new_postgres_session_locker,
    with_lock_id,
    with_lock_timeout,
    with_unlock_timeout,
)


class FakeCursor:
    def __init__(self, conn):
        self.conn = conn

    def execute(self, query, params):
        self.conn.executed.append((query, params))
        result = self.conn.results.pop(0)
        if isinstance(result, Exception):
            raise result
        self.row = result

    def fetchone(self):
        return self.row

    def close(self):
        self.conn.closed_cursors += 1


class FakeConn:
    def __init__(self, results):
        self.results = list(results)
        self.executed = []
        self.closed_cursors = 0

    def cursor(self):
        return FakeCursor(self)


def make_locker(lock_probe=Probe(1, 3), unlock_probe=Probe(1, 3), lock_id=42):
    sleeps = []
    locker = PostgresSessionLocker(
        lock_id=lock_id, lock_probe=lock_probe, unlock_probe=unlock_probe, sleep=sleeps.append
    )
    return locker, sleeps


def test_defaults():
    locker = new_postgres_session_locker()
    assert locker.lock_id == 5887940537704921958
    assert locker.lock_id == DEFAULT_LOCK_ID
    assert locker.lock_probe == Probe(5, 60)
    assert locker.unlock_probe == Probe(2, 30)
    assert isinstance(locker, SessionLocker)


def test_options_applied():
    locker = new_postgres_session_locker(
        with_lock_id(123456789), with_lock_timeout(1, 4), with_unlock_timeout(3, 7)
    )
    assert locker.lock_id == 123456789
    assert locker.lock_probe == Probe(1, 4)
    assert locker.unlock_probe == Probe(3, 7)


def test_later_option_wins():
    locker = new_postgres_session_locker(with_lock_id(1), with_lock_id(2))
    assert locker.lock_id == 2


@pytest.mark.parametrize("factory", [with_lock_timeout, with_unlock_timeout])
def test_invalid_period(factory):
    with pytest.raises(ValueError, match="period must be greater than 0, minimum is 1"):
        new_postgres_session_locker(factory(0, 5))


@pytest.mark.parametrize("factory", [with_lock_timeout, with_unlock_timeout])
def test_invalid_failure_threshold(factory):
    with pytest.raises(ValueError, match="failure threshold must be greater than 0"):
        new_postgres_session_locker(factory(1, 0))


def test_lock_first_try():
    locker, sleeps = make_locker()
    conn = FakeConn([(True,)])
    locker.session_lock(conn)
    assert sleeps == []
    assert len(conn.executed) == 1
    query, params = conn.executed[0]
    assert "pg_try_advisory_lock" in query
    assert params == (42,)
    assert conn.closed_cursors == 1


def test_lock_after_retries():
    locker, sleeps = make_locker(lock_probe=Probe(1, 3))
    conn = FakeConn([(False,), (False,), (True,)])
    locker.session_lock(conn)
    assert sleeps == [1, 1]
    assert len(conn.executed) == 3


def test_lock_gives_up():
    locker, sleeps = make_locker(lock_probe=Probe(1, 3))
    conn = FakeConn([(False,)] * 10)
    with pytest.raises(LockError) as info:
        locker.session_lock(conn)
    assert str(info.value) == "failed to acquire lock"
    assert len(conn.executed) == 4
    assert sleeps == [1, 1, 1]


def test_unlock_success_and_query():
    locker, sleeps = make_locker()
    conn = FakeConn([(True,)])
    locker.session_unlock(conn)
    query, params = conn.executed[0]
    assert "pg_advisory_unlock" in query
    assert params == (42,)
    assert sleeps == []


def test_unlock_gives_up():
    locker, sleeps = make_locker(unlock_probe=Probe(2, 2))
    conn = FakeConn([(False,)] * 5)
    with pytest.raises(LockError) as info:
        locker.session_unlock(conn)
    assert str(info.value) == "failed to unlock session"
    assert len(conn.executed) == 3
    assert sleeps == [2, 2]


def test_query_failure_not_retried():
    locker, sleeps = make_locker()
    conn = FakeConn([RuntimeError("connection closed"), (True,)])
    with pytest.raises(LockError, match="failed to execute pg_advisory_unlock") as info:
        locker.session_unlock(conn)
    assert isinstance(info.value.__cause__, RuntimeError)
    assert len(conn.executed) == 1
    assert sleeps == []


def test_no_rows_is_error():
    locker, _ = make_locker()
    conn = FakeConn([None])
    with pytest.raises(LockError, match="failed to execute pg_try_advisory_lock"):
        locker.session_lock(conn)


def test_not_implemented_messages():
    assert str(LockNotImplementedError()) == "lock not implemented"
    assert str(UnlockNotImplementedError()) == "unlock not implemented"
    with pytest.raises(NotImplementedError):
        raise LockNotImplementedError()