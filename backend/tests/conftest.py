"""
Pytest configuration and fixtures for backend tests.
"""

import os

# Must be set before the settings module is imported anywhere
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("BROADCAST_TRANSPORT", "memory")
os.environ.setdefault("WEBHOOK_ENABLED", "false")

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from hotel_shared.config.constants import Module
from hotel_shared.infrastructure.db import get_db
from hotel_shared.infrastructure.events import reset_all_breakers
from hotel_shared.security.auth import sign_jwt

from hotel_api.core import wire_services
from hotel_api.main import app
from hotel_api.models import Base, Dish
from hotel_api.repositories import ChangeFeed, SqlDishCatalog, SqlOrderStore
from hotel_api.services.domain import OrderService
from hotel_api.services.events import ChangeBus
from hotel_api.services.permissions import PermissionOverride, Principal


CASH_METHODS = frozenset({"cash", "cash_php"})


def build_test_engine(path):
    """
    File-backed SQLite, one connection per worker thread.

    Transactions start with BEGIN IMMEDIATE so concurrent writers queue on
    the database lock instead of failing a lock upgrade.
    """
    engine = create_engine(
        f"sqlite:///{path}",
        connect_args={"check_same_thread": False, "timeout": 15},
    )

    @event.listens_for(engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


@pytest.fixture(autouse=True)
def _reset_breakers():
    reset_all_breakers()
    yield
    reset_all_breakers()


@pytest.fixture(scope="function")
def session_factory(tmp_path):
    """Fresh database file per test."""
    engine = build_test_engine(tmp_path / "orders.db")
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    finally:
        engine.dispose()


@pytest.fixture(scope="function")
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# =============================================================================
# Menu data
# =============================================================================


@pytest.fixture
def seed_dishes(db_session):
    """
    House dishes, two partners' dishes and one unavailable dish.

    Returns a dict keyed by short name.
    """
    dishes = {
        "adobo": Dish(name="Adobo", price=Decimal("120.00"), category="mains"),
        "rice": Dish(name="Rice", price=Decimal("25.00"), category="sides"),
        "sisig": Dish(name="Sisig", price=Decimal("150.50"), category="mains", tenant_id="p1"),
        "halo": Dish(name="Halo-halo", price=Decimal("95.00"), category="desserts", tenant_id="p1"),
        "lechon": Dish(name="Lechon", price=Decimal("300.00"), category="mains", tenant_id="p2"),
        "sold_out": Dish(name="Sinigang", price=Decimal("180.00"), is_available=False),
    }
    db_session.add_all(dishes.values())
    db_session.commit()
    for dish in dishes.values():
        db_session.refresh(dish)
    # End the read transaction so other connections can write
    db_session.commit()
    return dishes


# =============================================================================
# Domain wiring
# =============================================================================


@pytest.fixture
def bus():
    return ChangeBus()


@pytest.fixture
def store(session_factory):
    return SqlOrderStore(session_factory, ChangeFeed())


@pytest.fixture
def catalog(session_factory):
    return SqlDishCatalog(session_factory)


@pytest.fixture
def order_service(store, bus, catalog):
    return OrderService(store, bus, catalog, cash_methods=CASH_METHODS)


@pytest.fixture
def recorded_events(bus):
    """Every event the bus delivers to an unfiltered admin subscriber."""
    from hotel_api.services.events import SubscriberContext

    events = []
    bus.subscribe(None, events.append, context=SubscriberContext(role="admin"))
    return events


# =============================================================================
# Principals
# =============================================================================


@pytest.fixture
def admin():
    return Principal(role="admin", display_name="Admin", user_id="u-admin")


@pytest.fixture
def staff():
    return Principal(role="staff", display_name="Front desk", user_id="u-staff")


@pytest.fixture
def maintainer():
    return Principal(role="maintainer", user_id="u-maint")


@pytest.fixture
def partner_p1():
    """Partner of tenant p1, allowed to move its own orders along."""
    return Principal(
        role="partner",
        tenant_id="p1",
        user_id="u-p1",
        permission_overrides={Module.ORDERS: PermissionOverride(update=True)},
    )


@pytest.fixture
def partner_p2():
    return Principal(
        role="partner",
        tenant_id="p2",
        user_id="u-p2",
        permission_overrides={Module.ORDERS: PermissionOverride(update=True)},
    )


@pytest.fixture
def partner_readonly():
    return Principal(role="partner", tenant_id="p1", user_id="u-p1-ro")


@pytest.fixture
def partner_without_tenant():
    return Principal(role="partner", tenant_id=None, user_id="u-broken")


# =============================================================================
# HTTP
# =============================================================================


@pytest.fixture(scope="function")
def client(session_factory):
    """
    Test client with services rewired onto the in-memory database.
    """
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        wire_services(app, session_factory=session_factory)
        yield test_client

    app.dependency_overrides.clear()


def make_token(role: str, tenant_id: str | None = None, perms: dict | None = None, sub: str = "u-1") -> str:
    claims = {"sub": sub, "role": role, "name": f"{role} user"}
    if tenant_id is not None:
        claims["tenant_id"] = tenant_id
    if perms is not None:
        claims["perms"] = perms
    return sign_jwt(claims)


@pytest.fixture
def auth_headers():
    """Factory: auth_headers("partner", tenant_id="p1") -> Authorization header dict."""
    def _headers(role: str, tenant_id: str | None = None, perms: dict | None = None) -> dict:
        return {"Authorization": f"Bearer {make_token(role, tenant_id, perms)}"}
    return _headers


@pytest.fixture
def token_for():
    """Factory returning a raw signed token, for the WebSocket query string."""
    return make_token
