from __future__ import annotations

from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

import database
from main import create_app


@pytest.fixture
def engine(tmp_path: Path):
    eng = database.make_engine(f"sqlite:///{tmp_path / 'db.sqlite'}")
    database.init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def app(engine):
    return create_app(engine)


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def row_count(engine):
    def count() -> int:
        with engine.connect() as conn:
            return conn.exec_driver_sql("SELECT COUNT(*) FROM reqs").scalar_one()

    return count


@pytest.fixture
def anyio_backend():
    return "asyncio"
