import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.core.database import get_db
from app.core.limiter import limiter
from app.models import Base
from app.middleware.auth import AdminKeyData, CurrentUser, get_current_user, require_admin
from app.services.debt_service import DebtService
from app.services.identity_service import IdentityResolver
from app.services.subscription_service import SubscriptionService
from app.services.transaction_service import TransactionService
from app.services.usage_accounting_service import UsageAccountingService

# Setup in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

limiter.enabled = False


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database session for each test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def user_id() -> str:
    return str(uuid.uuid4())


@pytest.fixture
def accounting(db_session):
    return UsageAccountingService(db_session)


@pytest.fixture
def subscriptions(db_session, accounting):
    return SubscriptionService(db_session, accounting)


@pytest.fixture
def transactions(db_session, accounting):
    return TransactionService(db_session, accounting)


@pytest.fixture
def debts(db_session, accounting, transactions):
    return DebtService(
        db_session,
        transactions=transactions,
        accounting=accounting,
        identity=IdentityResolver(db_session),
    )


@pytest.fixture
def current_user(user_id):
    """Mutable holder so a test can switch the authenticated user."""
    return {"user": CurrentUser(id=user_id, identifier=user_id)}


@pytest.fixture(scope="function")
def client(db_session, current_user):
    """Create a test client with overridden dependencies."""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    def override_get_current_user():
        return current_user["user"]

    def override_require_admin():
        return AdminKeyData(id=1, name="test-admin", prefix="testpref", last_used_at=None)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    app.dependency_overrides[require_admin] = override_require_admin

    with TestClient(app) as c:
        yield c

    app.dependency_overrides = {}
