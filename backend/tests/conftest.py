import asyncio
from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from category_tree.db.session import get_session_factory, init_models
from category_tree.main import app
from category_tree.repositories.categories import InMemoryCategoryStore, sql_store_factory
from category_tree.services.categories import CategoryService


@pytest.fixture
def session_factory(tmp_path: Path) -> Generator[async_sessionmaker[AsyncSession], None, None]:
    # A file database with NullPool keeps connections from leaking between event loops.
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'categories.db'}", future=True, poolclass=NullPool)
    asyncio.run(init_models(engine))
    yield async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    asyncio.run(engine.dispose())


@pytest.fixture(params=["memory", "sql"])
def service(request: pytest.FixtureRequest) -> CategoryService:
    if request.param == "memory":
        store = InMemoryCategoryStore()
        return CategoryService(store.transaction)
    factory = request.getfixturevalue("session_factory")
    return CategoryService(sql_store_factory(factory))


@pytest.fixture
def client(session_factory: async_sessionmaker[AsyncSession]) -> Generator[TestClient, None, None]:
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    test_client = TestClient(app)
    yield test_client
    test_client.close()
    app.dependency_overrides.clear()
