"""Pytest configuration and fixtures."""

import itertools
import os

# Settings are read at import time; point them at throwaway values first
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_canteen")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "test_gateway_secret")

from decimal import Decimal
from typing import Generator
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from canteen.core.rate_limit import limiter, login_attempts
from canteen.core.rbac import UserRole
from canteen.core.security import create_access_token, get_password_hash
from canteen.db.base import Base
from canteen.db.session import build_engine, get_db
from canteen.main import app
from canteen.models import MenuItem, Transaction, TransactionDirection, User, Vendor, VendorUser
from canteen.services.payment_gateway_service import RazorpayGateway, get_gateway

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite://"
GATEWAY_KEY_ID = "rzp_test_canteen"
GATEWAY_SECRET = "test_gateway_secret"


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine."""
    engine = build_engine(TEST_DATABASE_URL, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Create a test database session."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def razorpay_client() -> MagicMock:
    """Stand-in for ``razorpay.Client`` with a created order and a captured payment.

    Gateway order ids are numbered per test: order_test_1, order_test_2, ...
    """
    order_ids = itertools.count(1)
    client = MagicMock()
    client.order.create.side_effect = lambda data: {
        "id": f"order_test_{next(order_ids)}",
        "amount": data["amount"],
        "currency": data["currency"],
        "receipt": data["receipt"],
        "status": "created",
    }
    client.payment.fetch.return_value = {
        "id": "pay_test_1",
        "status": "captured",
        "amount": 0,
        "order_id": "order_test_1",
    }
    return client


@pytest.fixture
def gateway(razorpay_client) -> RazorpayGateway:
    return RazorpayGateway(
        key_id=GATEWAY_KEY_ID,
        key_secret=GATEWAY_SECRET,
        currency="INR",
        client=razorpay_client,
    )


@pytest.fixture(scope="function")
def client(db_session: Session, gateway: RazorpayGateway) -> Generator[TestClient, None, None]:
    """Create a test client with database and gateway overrides."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway] = lambda: gateway
    # Disable rate limiters during tests to avoid flaky failures
    limiter.enabled = False
    login_attempts.reset()
    # Don't raise server exceptions so we can test error status codes
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    limiter.enabled = True
    login_attempts.reset()
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

def make_user(
    db: Session,
    email: str,
    role: UserRole = UserRole.CUSTOMER,
    balance: Decimal = Decimal("0.00"),
    name: str = "",
    password: str = "secret123",
) -> User:
    """Create a user; a starting balance is recorded as an opening credit."""
    user = User(
        name=name or email.split("@")[0].title(),
        email=email,
        password_hash=get_password_hash(password),
        role=role,
        wallet_balance=balance,
        is_active=True,
    )
    db.add(user)
    db.flush()
    if balance > 0:
        db.add(Transaction(
            user_id=user.id,
            amount=balance,
            direction=TransactionDirection.CREDIT,
            description="Opening balance",
        ))
    db.commit()
    db.refresh(user)
    return user


def make_vendor(db: Session, outlet_name: str, is_active: bool = True, upi_id: str = None) -> Vendor:
    vendor = Vendor(outlet_name=outlet_name, is_active=is_active, is_online=True, upi_id=upi_id)
    db.add(vendor)
    db.commit()
    db.refresh(vendor)
    return vendor


def make_item(
    db: Session,
    vendor: Vendor,
    name: str,
    price: str,
    is_available: bool = True,
    category: str = "Snacks",
) -> MenuItem:
    item = MenuItem(
        vendor_id=vendor.id,
        name=name,
        price=Decimal(price),
        category=category,
        is_available=is_available,
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


def link_manager(db: Session, vendor: Vendor, user: User) -> VendorUser:
    link = VendorUser(vendor_id=vendor.id, user_id=user.id, role="manager")
    db.add(link)
    db.commit()
    return link


def headers_for(user: User) -> dict:
    token = create_access_token(
        data={"sub": str(user.id), "email": user.email, "role": user.role.value}
    )
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Common fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def customer(db_session: Session) -> User:
    return make_user(db_session, "asha@campus.edu", balance=Decimal("500.00"), name="Asha")


@pytest.fixture
def customer_headers(customer: User) -> dict:
    return headers_for(customer)


@pytest.fixture
def cafe(db_session: Session) -> Vendor:
    return make_vendor(db_session, "Cafe 2004", upi_id="cafe2004@okaxis")


@pytest.fixture
def nescafe(db_session: Session) -> Vendor:
    return make_vendor(db_session, "Nescafe")


@pytest.fixture
def menu(db_session: Session, cafe: Vendor, nescafe: Vendor) -> dict:
    """Two outlets with a few items each."""
    return {
        "dosa": make_item(db_session, cafe, "Masala Dosa", "70.00", category="South Indian"),
        "biryani": make_item(db_session, cafe, "Veg Biryani", "90.00", category="Rice"),
        "roti": make_item(db_session, cafe, "Tava Roti", "7.00", category="Bread"),
        "coffee": make_item(db_session, nescafe, "Coffee", "25.00", category="Beverages"),
        "tea": make_item(db_session, nescafe, "Tea", "15.00", category="Beverages"),
    }


@pytest.fixture
def cafe_manager(db_session: Session, cafe: Vendor) -> User:
    user = make_user(db_session, "ravi@cafe2004.in", role=UserRole.VENDOR, name="Ravi")
    link_manager(db_session, cafe, user)
    return user


@pytest.fixture
def cafe_headers(cafe_manager: User) -> dict:
    return headers_for(cafe_manager)


@pytest.fixture
def nescafe_manager(db_session: Session, nescafe: Vendor) -> User:
    user = make_user(db_session, "meera@nescafe.in", role=UserRole.VENDOR, name="Meera")
    link_manager(db_session, nescafe, user)
    return user


@pytest.fixture
def nescafe_headers(nescafe_manager: User) -> dict:
    return headers_for(nescafe_manager)


@pytest.fixture
def admin(db_session: Session) -> User:
    return make_user(db_session, "admin@campus.edu", role=UserRole.ADMIN, name="Admin")


@pytest.fixture
def admin_headers(admin: User) -> dict:
    return headers_for(admin)
