"""
Pytest fixtures for bakeryops backend tests.

Provides the in-memory application, a per-test clean database, a small
catalog (two zones, one warehouse), users with API tokens and helpers for
creating orders through the service layer.
"""

from datetime import date
from decimal import Decimal

import pytest

from bakeryops import create_app
from bakeryops.extensions import db
from bakeryops.models import Client, Product, ProductPrice, User, Warehouse
from bakeryops.models.auth import ROLE_ADMIN, ROLE_AGENT, ROLE_OPERATOR
from bakeryops.services import order_service, session_service, settings_service


D1 = date(2026, 2, 9)
D2 = date(2026, 2, 10)


def seed_catalog() -> dict:
    """
    Insert the reference catalog and company identity; returns ids by key.

    Usable inside any app context (in-memory or file database).
    """
    bakery = Warehouse(code="G1", name="Gestiune Brutarie")
    db.session.add(bakery)
    db.session.flush()

    def product(code, description, vat, weight, prices):
        p = Product(
            code=code,
            description=description,
            unit="BUC",
            vat_rate=Decimal(vat),
            weight_kg=Decimal(weight),
            warehouse_id=bakery.id,
            is_active=True,
        )
        p.prices = [ProductPrice(zone=zone, price=Decimal(price)) for zone, price in prices.items()]
        db.session.add(p)
        return p

    white = product("PA01", "Paine alba", "11", "0.500", {"A": "2.50", "B": "2.70"})
    dark = product("PN01", "Paine neagra", "11", "0.400", {"A": "2.50", "B": "2.70"})
    cake = product("CZ01", "Cozonac", "21", "1.000", {"A": "2.50"})
    pretzel = product("CV01", "Covrig", "11", "0.100", {"A": "1.20"})
    bun = product("CH01", "Chifla", "11", "0.080", {"A": "0.3333"})

    shop = Client(name="Magazin Unu", cif="RO111", registration_number="J01/1/2020",
                  accounting_code="4111.1", county="Cluj", locality="Cluj-Napoca",
                  street="Str. Lunga 1", price_zone="A", displays_weight=False)
    weigher = Client(name="Magazin Doi", cif="RO222", accounting_code="4111.2",
                     price_zone="A", displays_weight=True)
    far = Client(name="Magazin Trei", cif="RO333", accounting_code="4111.3",
                 price_zone="B", displays_weight=False)
    db.session.add_all([shop, weigher, far])
    db.session.flush()

    config = settings_service.get_company_config()
    config.name = "Brutaria Test SRL"
    config.cif = "RO12345678"
    config.registration_number = "J12/345/2010"
    config.street = "Str. Morii 5"
    settings_service.get_billing_settings()
    db.session.commit()

    return {
        "warehouse": bakery.id,
        "white": white.id,
        "dark": dark.id,
        "cake": cake.id,
        "pretzel": pretzel.id,
        "bun": bun.id,
        "shop": shop.id,
        "weigher": weigher.id,
        "far": far.id,
    }


def make_user(username: str, role: str, display_name: str | None = None) -> tuple[User, str]:
    user = User(username=username, display_name=display_name or username.title(), role=role, is_active=True)
    db.session.add(user)
    db.session.commit()
    return user, session_service.issue_token(user)


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'INVOICE_PDF_ASYNC': False,
        'INVOICE_PDF_DIR': str(tmp_path_factory.mktemp("invoices")),
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def catalog(db_session):
    return seed_catalog()


@pytest.fixture(scope='function')
def users(db_session):
    """admin / operator / agent with fresh tokens: {role: (user, token)}."""
    return {
        ROLE_ADMIN: make_user("admin", ROLE_ADMIN, "Administrator"),
        ROLE_OPERATOR: make_user("ana", ROLE_OPERATOR, "Ana Pop"),
        ROLE_AGENT: make_user("dan", ROLE_AGENT, "Dan Agent"),
    }


def _headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(users):
    return _headers(users[ROLE_ADMIN][1])


@pytest.fixture
def operator_headers(users):
    return _headers(users[ROLE_OPERATOR][1])


@pytest.fixture
def agent_headers(users):
    return _headers(users[ROLE_AGENT][1])


@pytest.fixture
def place_order(catalog):
    """
    Save an order through the service layer.

    place_order("shop", D1, {"white": "3"}) -> Order
    """
    def _place(client_key, order_date, items, *, override=False, **extra):
        payload = {
            "date": order_date.isoformat(),
            "client_id": catalog[client_key],
            "items": [{"product_id": catalog[k], "quantity": q} for k, q in items.items()],
        }
        payload.update(extra)
        order, _ = order_service.submit_order(payload, can_override_closed_day=override)
        return order

    return _place
