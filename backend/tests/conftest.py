"""
Pytest fixtures for marketplace backend tests.

Provides test database setup, user/product/report fixtures, and test client.
"""

from decimal import Decimal

import pytest

from exchange import create_app
from exchange.extensions import db
from exchange.models import Product, PurchaseRequest, User
from exchange.services.auth_service import hash_password
from exchange.services import session_service


TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'SETTLEMENT_REQUIRE_PURCHASE_ORDER': False,
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
        db.session.expunge_all()


def make_user(db_session, email: str, role: str = "user", **fields) -> User:
    user = User(
        email=email,
        password_hash=hash_password(TEST_PASSWORD),
        role=role,
        is_active=True,
        **fields,
    )
    db_session.add(user)
    db_session.commit()
    return user


def make_product(db_session, seller: User, quantity: int = 10, price: str = "100.00", **fields) -> Product:
    product = Product(
        seller_id=seller.id,
        product_name=fields.pop("product_name", "Amoxicillin 500mg"),
        manufacturer=fields.pop("manufacturer", "Hanmi"),
        quantity=quantity,
        selling_price=Decimal(price),
        status=fields.pop("status", "active"),
        **fields,
    )
    db_session.add(product)
    db_session.commit()
    return product


def make_purchase_request(db_session, buyer: User, product: Product, quantity: int) -> PurchaseRequest:
    purchase_request = PurchaseRequest(
        buyer_id=buyer.id,
        product_id=product.id,
        quantity=quantity,
        total_price=product.selling_price * quantity,
        status="pending",
        shipping_address="12 Harbor Road, Busan",
    )
    db_session.add(purchase_request)
    db_session.commit()
    return purchase_request


@pytest.fixture(scope='function')
def admin(db_session):
    """Marketplace operator."""
    return make_user(db_session, "admin@exchange.test", role="admin", company_name="Exchange Ops")


@pytest.fixture(scope='function')
def seller(db_session):
    """Pharmacy listing surplus stock."""
    return make_user(
        db_session,
        "seller@pharmacy.test",
        company_name="Seoul Central Pharmacy",
        phone_number="02-555-0101",
        address="1 Jongno, Seoul",
    )


@pytest.fixture(scope='function')
def buyer(db_session):
    """Pharmacy buying surplus stock."""
    return make_user(
        db_session,
        "buyer@pharmacy.test",
        company_name="Busan Harbor Pharmacy",
        phone_number="051-555-0199",
        address="12 Harbor Road, Busan",
        business_number="123-45-67890",
    )


@pytest.fixture(scope='function')
def product(db_session, seller):
    """Ten units at 100.00."""
    return make_product(db_session, seller, quantity=10, price="100.00")


def get_auth_token(user: User) -> str:
    """Helper to get a bearer token for a user without going through the login route."""
    _, token = session_service.create_session(user.id)
    return token


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(admin):
    return auth_headers(get_auth_token(admin))


@pytest.fixture(scope='function')
def seller_headers(seller):
    return auth_headers(get_auth_token(seller))


@pytest.fixture(scope='function')
def buyer_headers(buyer):
    return auth_headers(get_auth_token(buyer))
