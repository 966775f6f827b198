"""
Centralized Test Configuration.
"""

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool

from inspectswap.app.main import app
from inspectswap.app.db.session import get_db, Base
from inspectswap.app.db.transaction import ledger_transaction
from inspectswap.app.core.jwt import create_access_token
from inspectswap.app.domain.credits.ledger_store import LedgerStore
from inspectswap.app.models.enums import LedgerEntryKind
from inspectswap.app.services.analysis import AnalysisProvider, get_analysis_provider


STUB_ANALYSIS = {
    "majorDefects": ["Foundation crack", "Roof leak"],
    "summaryFindings": "Two structural issues need attention.",
    "negotiationPoints": ["Ask for foundation credit", "Ask for roof repair"],
    "estimatedCredit": 4200,
    "defectBreakdown": [],
    "openingStatement": "We found issues.",
    "closingStatement": "Please consider a credit.",
}


class StubAnalysisProvider(AnalysisProvider):
    """Records calls and returns a fixed battlecard."""

    def __init__(self):
        self.calls = []

    async def analyze(self, file_name, content):
        self.calls.append(file_name)
        return dict(STUB_ANALYSIS)


# One SQLite file per test; NullPool gives every session its own connection
@pytest.fixture
async def engine(tmp_path):
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'inspectswap_test.db'}",
        poolclass=NullPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


# Shared session for fixture data creation
@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def analysis_provider():
    return StubAnalysisProvider()


@pytest.fixture
async def client(session_factory, analysis_provider):
    """Async client for testing."""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_analysis_provider] = lambda: analysis_provider

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides = {}


@pytest.fixture
def auth_headers():
    def _headers(user_id: str) -> dict:
        token = create_access_token(data={"sub": f"{user_id}@example.com", "user_id": user_id})
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def fund(session_factory):
    """Seed a user's balance with a committed ledger entry."""
    async def _fund(user_id: str, amount: int) -> None:
        async with session_factory() as session:
            async with ledger_transaction(session):
                await LedgerStore.record_entry(
                    session,
                    user_id=user_id,
                    amount=amount,
                    kind=LedgerEntryKind.SIGNUP_BONUS,
                    description="Test funding",
                )
    return _fund


@pytest.fixture
def balance_of(session_factory):
    async def _balance(user_id: str) -> int:
        async with session_factory() as session:
            return await LedgerStore.get_balance(session, user_id)
    return _balance


@pytest.fixture
def make_pdf():
    """Distinct minimal PDF payloads (distinct content hashes)."""
    def _make(marker: str) -> bytes:
        return b"%PDF-1.4\n% " + marker.encode() + b"\n%%EOF\n"
    return _make
