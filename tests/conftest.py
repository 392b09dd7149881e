import os
import sys
from pathlib import Path

# il package vive in backend/: rendilo importabile qualunque sia la cwd di pytest
BACKEND_DIR = Path(__file__).resolve().parents[1] / "backend"
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DB_URL", "sqlite://")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from spiral.core.security import create_access_token  # noqa: E402
from spiral.database import get_db, make_engine, make_sessionmaker  # noqa: E402
from spiral.main import app  # noqa: E402
from spiral.migrations.runner import MigrationRunner  # noqa: E402
from spiral.services import catalog, identity, rbac  # noqa: E402


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'spiral.db'}")
    yield eng
    eng.dispose()


@pytest.fixture
def migrated(engine):
    MigrationRunner(engine).up()
    return engine


@pytest.fixture
def session_factory(migrated):
    return make_sessionmaker(migrated)


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
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def _register(db, username, email, first="Test", last="User"):
    return identity.register_customer(
        db,
        identity.Registration(
            first_name=first,
            last_name=last,
            email=email,
            username=username,
            password="correct horse",
        ),
    )


@pytest.fixture
def register(db):
    def make(username="alice", email=None, **kw):
        return _register(db, username, email or f"{username}@example.com", **kw)

    return make


@pytest.fixture
def customer(register):
    return register("alice", first="Alice", last="Liddell")


@pytest.fixture
def admin(db, register):
    person = register("boss", first="Ada", last="Admin")
    rbac.assign_role(db, person.id, "admin")
    return person


@pytest.fixture
def make_product(db):
    def make(title="Hotter Than July", artist="Stevie Wonder", price="19.99", **extra):
        data = {
            "title": title,
            "artist": artist,
            "price": Decimal(price),
            "image": "/images/cover.jpg",
            "year": 1980,
            "genre": "Soul",
            "type": "Album",
        }
        data.update(extra)
        return catalog.create_product(db, data)

    return make


@pytest.fixture
def make_song(db):
    def make(title="Master Blaster", price="0.99", **extra):
        data = {"title": title, "individual_price": Decimal(price)}
        data.update(extra)
        return catalog.create_song(db, data)

    return make


@pytest.fixture
def auth_header():
    def make(person) -> dict:
        return {"Authorization": f"Bearer {create_access_token(person.id)}"}

    return make
