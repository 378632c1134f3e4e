import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["PASSWORD_HASH_ROUNDS"] = "4"
os.environ["RECAPTCHA_SECRET_KEY"] = ""
os.environ["DB_LOG_SLOW_QUERIES"] = "false"
os.environ.pop("REDIS_URL", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from ototamirci import rate_limiter  # noqa: E402
from ototamirci.auth import Identity  # noqa: E402
from ototamirci.database import Base, enable_sqlite_foreign_keys, get_db  # noqa: E402
from ototamirci.main import app  # noqa: E402
from ototamirci.models import User  # noqa: E402
from ototamirci.services.shops import build_shop  # noqa: E402
from ototamirci.utils import generate_token, hash_password  # noqa: E402


@pytest.fixture(autouse=True)
def reset_rate_limits():
    rate_limiter.reset()
    yield
    rate_limiter.reset()


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(test_engine)
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make_user(role="customer", name=None, email=None, password="password123"):
        counter["n"] += 1
        user = User(
            name=name or f"{role.title()} {counter['n']}",
            email=email or f"{role}{counter['n']}@example.com",
            password_hash=hash_password(password),
            role=role,
            phone="0555 000 00 00",
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_shop(db, make_user):
    def _make_shop(owner=None, latitude=41.0, longitude=29.0, categories=("Motor",), is_open=True, name="Test Shop"):
        owner = owner or make_user("mechanic")
        shop = build_shop(
            owner.id,
            list(categories),
            name=name,
            latitude=latitude,
            longitude=longitude,
            address="Sanayi Sitesi",
            phone="0212 000 00 00",
            is_open=is_open,
        )
        db.add(shop)
        db.commit()
        db.refresh(shop)
        return shop

    return _make_shop


def identity_of(user) -> Identity:
    return Identity(id=user.id, email=user.email, role=user.role)


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {generate_token(user)}"}
