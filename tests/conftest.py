import os
import secrets
import sys
from pathlib import Path
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Ensure project root on sys.path so 'loyalty' resolves without an install
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

# Tests drive the worker explicitly; never start it from the app lifespan.
os.environ.setdefault("ENABLE_ACCRUAL_WORKER", "false")

from loyalty.main import app  # type: ignore
from loyalty.database import Base  # type: ignore
from loyalty.api import deps  # type: ignore
"""Pytest fixtures and factories.

SQLAlchemy relationship configuration requires all model modules to be imported
before Base.metadata.create_all(), otherwise back_populates targets might not exist yet.
"""
from loyalty.models.db import User, Order, Withdrawal  # noqa: F401
from loyalty.models.db.enums import OrderStatus
from loyalty.security import hash_password
from loyalty.services.ledger_store import LedgerStore

# File-based SQLite so the API thread pool, asyncio.to_thread calls and the
# test thread all see the same data through separate connections.
SQLALCHEMY_TEST_URL = "sqlite+pysqlite:///./test_loyalty.db"
engine = create_engine(
    SQLALCHEMY_TEST_URL,
    connect_args={"check_same_thread": False, "timeout": 30},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

import loyalty.database as _loyalty_database  # noqa: E402
_loyalty_database.SessionLocal = TestingSessionLocal  # type: ignore

@pytest.fixture(scope="session", autouse=True)
def create_test_db():
    # start clean even if a previous run was aborted before teardown
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    try:
        os.remove("test_loyalty.db")
    except OSError:
        pass

@pytest.fixture()
def db_session():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()

@pytest.fixture()
def store():
    return LedgerStore(TestingSessionLocal)

# Override dependencies
_api_store = LedgerStore(TestingSessionLocal)

app.dependency_overrides[deps.get_ledger_store] = lambda: _api_store

@pytest.fixture()
def client():
    return TestClient(app)

# ---------- Data factory helpers ----------

@pytest.fixture()
def user_factory(store):
    def _create(login: str | None = None, password: str = "secret"):
        if login is None:
            login = f"user_{secrets.token_hex(4)}"
        return store.create_user(login, hash_password(password))
    return _create

@pytest.fixture()
def order_factory(store):
    """Register an order and optionally settle it straight away."""
    def _create(owner_id: int, number: str, status: OrderStatus = OrderStatus.NEW, accrual: int | None = None):
        store.register_order(owner_id, number)
        if status != OrderStatus.NEW:
            store.apply_settlement(number, status, accrual)
        return store.get_order(number)
    return _create

@pytest.fixture()
def luhn_number():
    """Fresh Luhn-valid order numbers so tests never collide on the unique column."""
    from loyalty.services.luhn import is_valid_luhn

    def _make() -> str:
        body = "".join(str(secrets.randbelow(10)) for _ in range(11))
        for check in "0123456789":
            candidate = body + check
            if is_valid_luhn(candidate):
                return candidate
        raise AssertionError("no check digit found")  # pragma: no cover
    return _make

@pytest.fixture()
def auth_header(user_factory):
    user = user_factory()
    return {"Authorization": f"Bearer {user.api_key}"}, user
