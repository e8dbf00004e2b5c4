"""
Ledgerline - Test Configuration

Pytest fixtures and configuration. Tests run against an in-memory
SQLite database; every request gets its own session, like production.
"""

import os

os.environ.setdefault("DATABASE_URL_ASYNC", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-ledgerline")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "false")

from datetime import date
from typing import AsyncGenerator, Dict, List

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.dialects import postgresql
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.database import Base, get_async_session
from app.models.fiscal_year import FiscalYear
from app.models.taxonomy import Code, CodeKind, CodeNature
from app.utils.security import create_access_token
from main import app


TEST_DATABASE_URL = "sqlite+aiosqlite://"

# Create test engine
test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    poolclass=StaticPool,
    connect_args={"check_same_thread": False},
)


# pysqlite defers BEGIN until the first write, which breaks SAVEPOINT.
# Take over transaction start so nested transactions behave as on PostgreSQL.
@event.listens_for(test_engine.sync_engine, "connect")
def _disable_implicit_begin(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None


@event.listens_for(test_engine.sync_engine, "begin")
def _emit_begin(conn):
    conn.exec_driver_sql("BEGIN")


# Create test session factory
TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


@pytest_asyncio.fixture(scope="function", autouse=True)
async def database() -> AsyncGenerator[None, None]:
    """Fresh schema for each test."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Session for seeding data and inspecting results directly."""
    async with TestSessionLocal() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Test client whose requests each open their own session."""

    async def override_get_session():
        async with TestSessionLocal() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_async_session] = override_get_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def postgres_sql(db_session: AsyncSession) -> List[str]:
    """
    Statements run through ``db_session``, rendered for PostgreSQL on
    one line.

    SQLite drops FOR UPDATE, so row locks are asserted on the rendering.
    """
    statements: List[str] = []

    def record(state):
        sql = str(state.statement.compile(dialect=postgresql.dialect()))
        statements.append(" ".join(sql.split()))

    event.listen(db_session.sync_session, "do_orm_execute", record)
    yield statements
    event.remove(db_session.sync_session, "do_orm_execute", record)


@pytest.fixture
def auth_headers() -> Dict[str, str]:
    """Bearer token as minted by the identity service."""
    token = create_access_token({"sub": "accountant@example.com"})
    return {"Authorization": f"Bearer {token}"}


# ===========================================
# DATA FIXTURES
# ===========================================

@pytest_asyncio.fixture
async def codes(db_session: AsyncSession) -> Dict[str, Code]:
    """
    Small chart of accounts:

        11 Current assets
          1101 Cash and banks
            110101 Cash on hand
            110102 Bank deposits
            110103 Checks receivable
          1102 Receivables
            110201 Customers
        21 Current liabilities
          2101 Payables
            210101 Suppliers
            210102 Checks payable
    """
    group_assets = Code(code="11", title="Current assets", kind=CodeKind.GROUP, nature=CodeNature.DEBIT)
    group_liabilities = Code(code="21", title="Current liabilities", kind=CodeKind.GROUP, nature=CodeNature.CREDIT)
    db_session.add_all([group_assets, group_liabilities])
    await db_session.flush()

    cash_banks = Code(code="1101", title="Cash and banks", kind=CodeKind.GENERAL, parent_id=group_assets.id)
    receivables = Code(code="1102", title="Receivables", kind=CodeKind.GENERAL, parent_id=group_assets.id)
    payables = Code(code="2101", title="Payables", kind=CodeKind.GENERAL, parent_id=group_liabilities.id)
    db_session.add_all([cash_banks, receivables, payables])
    await db_session.flush()

    specifics = {
        "cash": Code(code="110101", title="Cash on hand", kind=CodeKind.SPECIFIC, parent_id=cash_banks.id),
        "bank": Code(code="110102", title="Bank deposits", kind=CodeKind.SPECIFIC, parent_id=cash_banks.id),
        "checks_receivable": Code(
            code="110103", title="Checks receivable", kind=CodeKind.SPECIFIC, parent_id=cash_banks.id,
        ),
        "customers": Code(code="110201", title="Customers", kind=CodeKind.SPECIFIC, parent_id=receivables.id),
        "suppliers": Code(code="210101", title="Suppliers", kind=CodeKind.SPECIFIC, parent_id=payables.id),
        "checks_payable": Code(code="210102", title="Checks payable", kind=CodeKind.SPECIFIC, parent_id=payables.id),
    }
    db_session.add_all(list(specifics.values()))
    await db_session.commit()

    return {
        "assets": group_assets,
        "liabilities": group_liabilities,
        "cash_banks": cash_banks,
        "receivables": receivables,
        "payables": payables,
        **specifics,
    }


@pytest_asyncio.fixture
async def fiscal_year(db_session: AsyncSession) -> FiscalYear:
    """Open fiscal year 2026."""
    year = FiscalYear(
        name="FY 2026",
        start_date=date(2026, 1, 1),
        end_date=date(2026, 12, 31),
        is_closed=False,
    )
    db_session.add(year)
    await db_session.commit()
    await db_session.refresh(year)
    # refresh reopens a transaction on the shared connection
    await db_session.commit()
    return year


@pytest_asyncio.fixture
async def treasury_mappings(client: AsyncClient, auth_headers, codes) -> Dict[str, str]:
    """Settings rows mapping every treasury code name onto the test chart."""
    targets = {
        "CODE_TREASURY_CASH_RECEIPT": codes["cash"],
        "CODE_TREASURY_CARD_RECEIPT": codes["bank"],
        "CODE_TREASURY_TRANSFER_RECEIPT": codes["bank"],
        "CODE_TREASURY_CHECK_RECEIPT": codes["checks_receivable"],
        "CODE_TREASURY_COUNTERPARTY_RECEIPT": codes["customers"],
        "CODE_TREASURY_CASH_PAYMENT": codes["cash"],
        "CODE_TREASURY_TRANSFER_PAYMENT": codes["bank"],
        "CODE_TREASURY_CHECK_PAYMENT": codes["checks_payable"],
        "CODE_TREASURY_COUNTERPARTY_PAYMENT": codes["suppliers"],
    }
    for name, code in targets.items():
        response = await client.post(
            "/api/v1/settings",
            json={"code": name, "name": name.replace("_", " ").title(), "type": "special", "special_id": str(code.id)},
            headers=auth_headers,
        )
        assert response.status_code == 201, response.text
    return {name: str(code.id) for name, code in targets.items()}


@pytest_asyncio.fixture
async def cashbox(client: AsyncClient, auth_headers) -> Dict:
    response = await client.post(
        "/api/v1/treasury/cashboxes",
        json={"name": "Main cashbox"},
        headers=auth_headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["item"]


@pytest_asyncio.fixture
async def bank_account(client: AsyncClient, auth_headers) -> Dict:
    response = await client.post(
        "/api/v1/treasury/bank-accounts",
        json={"name": "Operating account", "account_number": "0101-555-01", "bank_name": "Melli"},
        headers=auth_headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["item"]


@pytest_asyncio.fixture
async def card_reader(client: AsyncClient, auth_headers, bank_account) -> Dict:
    response = await client.post(
        f"/api/v1/treasury/bank-accounts/{bank_account['id']}/card-readers",
        json={"psp_provider": "Saman", "terminal_id": "T-9001"},
        headers=auth_headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["item"]


@pytest_asyncio.fixture
async def checkbook(client: AsyncClient, auth_headers, bank_account) -> Dict:
    """Checkbook with serials 1000..1009."""
    response = await client.post(
        f"/api/v1/treasury/bank-accounts/{bank_account['id']}/checkbooks",
        json={"series": "A", "start_number": 1000, "page_count": 10},
        headers=auth_headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["item"]

