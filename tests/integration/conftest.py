"""Fixtures backed by a real SQLite database file."""
from __future__ import annotations

from pathlib import Path
from typing import AsyncIterator, Callable

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine

from eco_compliance.infrastructure.persistence import (
    SqlAlchemyUnitOfWork,
    create_engine,
    create_session_factory,
    init_db,
)


@pytest_asyncio.fixture
async def db_engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'compliance.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def sql_uow_factory(db_engine: AsyncEngine) -> Callable[[], SqlAlchemyUnitOfWork]:
    session_factory = create_session_factory(db_engine)
    return lambda: SqlAlchemyUnitOfWork(session_factory)
