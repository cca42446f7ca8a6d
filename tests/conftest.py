import os
import tempfile
from pathlib import Path

# Must be set before any application module is imported
_DB_PATH = Path(tempfile.mkdtemp()) / "consultations-test.db"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_PATH}"

import httpx
import pytest
from sqlmodel import SQLModel

from database import async_session, engine
from models import Consultation


@pytest.fixture
async def session():
    """Fresh tables for every test."""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
        await conn.run_sync(SQLModel.metadata.create_all)

    async with async_session() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def add_consultations(session):
    """Insert rows directly, bypassing the conflict check."""

    async def _add(*slots):
        for index, (select_date, preferred_time) in enumerate(slots):
            session.add(
                Consultation(
                    select_date=select_date,
                    preferred_time=preferred_time,
                    full_name=f"Client {index}",
                    email=f"client{index}@example.com",
                )
            )
        await session.commit()

    return _add


@pytest.fixture
async def client(session):
    from main import app

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
