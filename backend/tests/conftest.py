import os
from decimal import Decimal

# Settings are read at import time, so the test database must be chosen first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["ALLOW_ADMIN_SIGNUP"] = "false"
os.environ["ESEWA_REQUIRE_SIGNATURE"] = "false"

import pytest
from fastapi.testclient import TestClient

from database import Base, SessionLocal, engine
from main import app
from models.book import Book
from models.category import Category
from models.users import User, ROLE_ADMIN, ROLE_CUSTOMER
from schemas.order import OrderItemCreate
from services import orders as order_service
from utils.hashing import get_password_hash
from utils.tokenJWT import create_access_token

PASSWORD = "secret123"


@pytest.fixture(autouse=True)
def fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def _make_user(db, name, email, role):
    user = User(name=name, email=email, password_hash=get_password_hash(PASSWORD), role=role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin(db):
    return _make_user(db, "Admin", "admin@example.com", ROLE_ADMIN)


@pytest.fixture
def customer(db):
    return _make_user(db, "Alice", "alice@example.com", ROLE_CUSTOMER)


@pytest.fixture
def other_customer(db):
    return _make_user(db, "Bob", "bob@example.com", ROLE_CUSTOMER)


def auth_header(user):
    token = create_access_token(data={"sub": str(user.id), "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def books(db):
    """Two books priced 10.00 and 5.00."""
    category = Category(name="Fiction")
    db.add(category)
    db.flush()
    first = Book(title="Dune", author="Frank Herbert", price=Decimal("10.00"), stock=5, category_id=category.id)
    second = Book(title="Emma", author="Jane Austen", price=Decimal("5.00"), stock=3, category_id=category.id)
    db.add_all([first, second])
    db.commit()
    db.refresh(first)
    db.refresh(second)
    return first, second


@pytest.fixture
def order(db, customer, books):
    """A PENDING order for the customer totalling 25.00."""
    first, second = books
    return order_service.create_order(db, customer, [
        OrderItemCreate(book_id=first.id, quantity=2),
        OrderItemCreate(book_id=second.id, quantity=1),
    ])


@pytest.fixture
def auth():
    return auth_header
