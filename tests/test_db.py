import logging
import threading

import psycopg2
import psycopg2.errors
import pytest

from farminvest import db as db_module
from farminvest.db import Database
from farminvest.exceptions import DuplicateKeyError, PersistenceError


class FakeCursor:
    def __init__(self, conn):
        self.conn = conn
        self.rowcount = -1

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, query, params):
        self.conn.executed.append((query, params))
        if self.conn.error is not None:
            raise self.conn.error
        self.rowcount = len(self.conn.rows)

    def fetchone(self):
        return self.conn.rows[0] if self.conn.rows else None

    def fetchall(self):
        return list(self.conn.rows)


class FakeConnection:
    def __init__(self):
        self.closed = 0
        self.rows = []
        self.error = None
        self.executed = []
        self.commits = 0
        self.rollbacks = 0

    def cursor(self, cursor_factory=None):
        return FakeCursor(self)

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1


class FakePool:
    instances = []

    def __init__(self, minconn, maxconn, dsn):
        self.minconn = minconn
        self.maxconn = maxconn
        self.dsn = dsn
        self.conn = FakeConnection()
        self.returned = 0
        self.closed_all = False
        FakePool.instances.append(self)

    def getconn(self):
        return self.conn

    def putconn(self, conn, close=False):
        self.returned += 1

    def closeall(self):
        self.closed_all = True


class BrokenPool:
    def __init__(self, minconn, maxconn, dsn):
        raise psycopg2.OperationalError("could not connect to server: Connection refused")


@pytest.fixture
def fake_pool(monkeypatch):
    FakePool.instances = []
    monkeypatch.setattr(db_module, "ThreadedConnectionPool", FakePool)
    return FakePool


def _database(**kwargs) -> Database:
    return Database("dbname=test", **kwargs)


def test_pool_is_created_lazily(fake_pool):
    database = _database(max_size=3)
    assert fake_pool.instances == []

    database.ping()

    [pool] = fake_pool.instances
    assert (pool.minconn, pool.maxconn, pool.dsn) == (0, 3, "dbname=test")


def test_fetch_one_binds_params_and_commits(fake_pool):
    database = _database()
    database.ping()
    conn = fake_pool.instances[0].conn
    conn.rows = [{"id": 4, "email": "a@b.co"}]

    row = database.fetch_one("SELECT id, email FROM users WHERE email=%s", ["a@b.co"])

    assert row == {"id": 4, "email": "a@b.co"}
    assert conn.executed[-1] == ("SELECT id, email FROM users WHERE email=%s", ["a@b.co"])
    assert conn.commits == 2
    assert fake_pool.instances[0].returned == 2


def test_fetch_all_and_execute(fake_pool):
    database = _database()
    database.ping()
    conn = fake_pool.instances[0].conn
    conn.rows = [{"id": 1}, {"id": 2}]

    assert database.fetch_all("SELECT id FROM investments") == [{"id": 1}, {"id": 2}]
    assert database.execute("DELETE FROM investments") == 2


def test_execute_returning_one_requires_a_row(fake_pool):
    database = _database()
    database.ping()
    fake_pool.instances[0].conn.rows = []

    with pytest.raises(PersistenceError):
        database.execute_returning_one("INSERT INTO users (name) VALUES (%s) RETURNING id", ["x"])


def test_unique_violation_becomes_duplicate_key_error(fake_pool):
    database = _database()
    database.ping()
    conn = fake_pool.instances[0].conn
    conn.error = psycopg2.errors.UniqueViolation("duplicate key value violates unique constraint")

    with pytest.raises(DuplicateKeyError):
        database.execute_returning_one("INSERT INTO users (email) VALUES (%s) RETURNING id", ["a@b.co"])
    assert conn.rollbacks == 1
    assert fake_pool.instances[0].returned == 2


def test_driver_errors_become_persistence_errors(fake_pool):
    database = _database()
    database.ping()
    fake_pool.instances[0].conn.error = psycopg2.OperationalError("server closed the connection")

    with pytest.raises(PersistenceError) as excinfo:
        database.fetch_all("SELECT 1")
    assert not isinstance(excinfo.value, DuplicateKeyError)


def test_unreachable_database_raises_persistence_error(monkeypatch):
    monkeypatch.setattr(db_module, "ThreadedConnectionPool", BrokenPool)
    database = _database()

    with pytest.raises(PersistenceError):
        database.ping()


def test_check_connection_logs_and_never_raises(monkeypatch, caplog):
    monkeypatch.setattr(db_module, "ThreadedConnectionPool", BrokenPool)
    database = _database()

    with caplog.at_level(logging.ERROR, logger="farminvest.db"):
        assert database.check_connection() is False
    assert "Database connection check failed" in caplog.text


def test_check_connection_success(fake_pool, caplog):
    with caplog.at_level(logging.INFO, logger="farminvest.db"):
        assert _database().check_connection() is True
    assert "Connected to database" in caplog.text


def test_waiting_for_a_connection_times_out(fake_pool):
    database = _database(max_size=1, acquire_timeout=0.05)

    with database._get_conn():
        with pytest.raises(PersistenceError) as excinfo:
            database.fetch_one("SELECT 1")
    assert "Timed out" in excinfo.value.message

    # The slot is free again once the first caller is done.
    database.ping()


def test_waiting_caller_proceeds_when_a_slot_frees(fake_pool):
    database = _database(max_size=1, acquire_timeout=None)
    results = []
    waiter = threading.Thread(target=lambda: results.append(database.fetch_one("SELECT 1")))

    with database._get_conn():
        waiter.start()
        waiter.join(0.05)
        assert waiter.is_alive()
        assert results == []

    waiter.join(timeout=2)
    assert not waiter.is_alive()
    assert len(results) == 1


def test_close_closes_the_pool(fake_pool):
    database = _database()
    database.ping()
    pool = fake_pool.instances[0]

    database.close()

    assert pool.closed_all
    database.close()


def test_from_env_reads_pool_settings(monkeypatch, fake_pool):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setenv("DB_HOST", "db.internal")
    monkeypatch.setenv("DB_NAME", "farms")
    monkeypatch.setenv("DB_POOL_MAX", "4")
    monkeypatch.setenv("DB_POOL_TIMEOUT", "0")

    database = Database.from_env()

    assert database.max_size == 4
    assert database.acquire_timeout is None
    assert "host=db.internal" in database.dsn
    assert "dbname=farms" in database.dsn


def test_database_url_wins(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@h:5432/d")
    assert Database.from_env().dsn == "postgresql://u:p@h:5432/d"
