from __future__ import annotations

from collections.abc import AsyncIterator, Iterator

import pytest
import pytest_asyncio
from fastapi import FastAPI
from fastapi.testclient import TestClient

from taskflow.config import MEMORY_DATABASE_URL, Settings
from taskflow.database import create_engine, init_db, make_session_factory
from taskflow.main import create_app
from taskflow.store import TaskStore


@pytest.fixture()
def settings() -> Settings:
    """Fresh in-memory database, no seeded categories."""
    return Settings(database_url=MEMORY_DATABASE_URL, seed_categories=False)


@pytest_asyncio.fixture()
async def store() -> AsyncIterator[TaskStore]:
    engine = create_engine(MEMORY_DATABASE_URL)
    await init_db(engine)
    try:
        yield TaskStore(make_session_factory(engine))
    finally:
        await engine.dispose()


@pytest.fixture()
def app(settings: Settings) -> FastAPI:
    return create_app(settings)


@pytest.fixture()
def api(app: FastAPI) -> Iterator[TestClient]:
    # Entering the client runs the lifespan, which builds the store.
    with TestClient(app) as client:
        yield client
