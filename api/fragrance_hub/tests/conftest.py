# fragrance_hub/tests/conftest.py
"""
Test fixtures.

Settings are read at import time, so the environment points at a throwaway
SQLite file before anything from fragrance_hub is imported. Both identities
use the same file; the fallback tests build their own gateways on two files.
"""
from __future__ import annotations
import os
import tempfile
from pathlib import Path

_TMP = Path(tempfile.mkdtemp(prefix="fragrance_hub_tests_"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP / 'app.db'}"
os.environ["ELEVATED_DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP / 'app.db'}"
os.environ["DATA_ROOT"] = str(_TMP / "data")

import pytest
from httpx import ASGITransport, AsyncClient

from fragrance_hub import database
from fragrance_hub.database import Base, build_engine, build_session_factory, create_all
from fragrance_hub.main import app
from fragrance_hub.services.access import DataGateway


async def _reset_schema() -> None:
    from fragrance_hub import db_models  # noqa: F401

    engine = database._elevated_engine or database._engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture
async def lifespan():
    """Application started with a fresh schema."""
    async with app.router.lifespan_context(app):
        await _reset_schema()
        yield app


@pytest.fixture
async def client(lifespan):
    transport = ASGITransport(app=lifespan)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
async def gateway(lifespan) -> DataGateway:
    restricted, elevated = database.get_session_factories()
    return DataGateway(restricted, elevated)


@pytest.fixture
async def split_db(tmp_path):
    """
    Two separate stores: "restricted" has the tables but sees no rows,
    "elevated" holds the data. Yields (restricted_factory, elevated_factory).
    """
    engines = [
        build_engine(f"sqlite+aiosqlite:///{tmp_path / 'restricted.db'}"),
        build_engine(f"sqlite+aiosqlite:///{tmp_path / 'elevated.db'}"),
    ]
    for engine in engines:
        await create_all(engine)
    yield tuple(build_session_factory(e) for e in engines)
    for engine in engines:
        await engine.dispose()
