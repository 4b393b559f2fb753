from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from fishstore import models, security
from fishstore.config import Settings
from fishstore.database import build_engine, build_session_factory, create_tables
from fishstore.images import FakeImageHost
from fishstore.mail import FakeMailer
from fishstore.main import create_app


def pytest_collection_modifyitems(config, items):
    """Mark tests that go through the HTTP layer."""
    for item in items:
        if "client" in getattr(item, "fixturenames", ()):
            item.add_marker(pytest.mark.api)


@pytest.fixture()
def settings():
    return Settings(
        environment="test",
        database_url="sqlite://",
        jwt_secret="test-secret",
        bcrypt_rounds=4,
        client_url="http://localhost:3000",
        scheduler_enabled=False,
        notification_email="orders@fishstore.test",
    )


# --- Plain database (service-level tests) ---


@pytest.fixture()
def engine():
    engine = build_engine("sqlite://")
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def db(engine):
    session = build_session_factory(engine)()
    yield session
    session.close()


# --- Full application (API tests) ---


@pytest.fixture()
def mailer():
    return FakeMailer()


@pytest.fixture()
def image_host():
    return FakeImageHost()


@pytest.fixture()
def app(settings, mailer, image_host):
    return create_app(settings, mailer=mailer, image_host=image_host)


@pytest.fixture()
def client(app):
    # Entering the context runs the lifespan, which creates the tables
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def app_db(client, app):
    session = app.state.session_factory()
    yield session
    session.close()


@pytest.fixture()
def reload(app):
    """Fetch a row through a brand new session, bypassing any cached state."""

    def _reload(model, ident):
        with app.state.session_factory() as session:
            return session.get(model, ident)

    return _reload


# --- Factories ---


def create_category(session, name="Salmon", description="Premium Atlantic and Pacific salmon"):
    category = models.Category(name=name, description=description)
    session.add(category)
    session.commit()
    return category


def create_product(session, category, name="Atlantic Salmon Fillet", price="10.00", stock=5, **flags):
    product = models.Product(
        name=name,
        description=f"{name}, fresh from the morning catch.",
        price=Decimal(price),
        stock=stock,
        category_id=category.id if category is not None else None,
        images=[f"https://images.example.test/{name.lower().replace(' ', '-')}.jpg"],
        **flags,
    )
    session.add(product)
    session.commit()
    return product


def create_user(session, email="jane@example.com", password="secret123", role=models.UserRole.CUSTOMER, **fields):
    user = models.User(
        email=email,
        password_hash=security.hash_password(password, rounds=4),
        first_name=fields.pop("first_name", "Jane"),
        last_name=fields.pop("last_name", "Doe"),
        role=role,
        **fields,
    )
    session.add(user)
    session.commit()
    return user


def auth_header(user, settings):
    return {"Authorization": f"Bearer {security.issue_token(user.id, settings.jwt_secret)}"}


@pytest.fixture()
def customer(app_db):
    return create_user(app_db)


@pytest.fixture()
def admin(app_db):
    return create_user(app_db, email="admin@fishstore.com", password="admin123", role=models.UserRole.ADMIN,
                       first_name="Admin", last_name="User")


@pytest.fixture()
def customer_headers(customer, settings):
    return auth_header(customer, settings)


@pytest.fixture()
def admin_headers(admin, settings):
    return auth_header(admin, settings)


def order_payload(*items, **overrides):
    payload = {
        "items": [{"productId": product_id, "quantity": quantity} for product_id, quantity in items],
        "customerName": "Jane Doe",
        "customerEmail": "jane@example.com",
        "customerPhone": "+15550123456",
        "shippingAddress": "12 Harbour Road, Portsmouth PO1 2AB",
    }
    payload.update(overrides)
    return payload
