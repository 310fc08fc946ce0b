from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from sqlagent.core.pool import ConnectionPool
from sqlagent.main import app
from tests.utils.rows import create_people_db


@pytest.fixture
def people_db(tmp_path) -> str:
    return create_people_db(tmp_path / "people.db")


@pytest.fixture
def pool() -> Generator[ConnectionPool, None, None]:
    p = ConnectionPool(
        max_idle_conns=2, max_overflow=2, conn_max_lifetime=0, connect_timeout=5
    )
    yield p
    p.shutdown_all()


@pytest.fixture
def people_engine(pool: ConnectionPool, people_db: str) -> Engine:
    return pool.get_or_create("sqlite", {"database": people_db})


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c
