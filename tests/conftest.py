from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from portal import database, models
from portal.auth import hash_password
from portal.sessions import Identity


@pytest.fixture(autouse=True)
def env(tmp_path, monkeypatch):
    """Every test gets its own SQLite file and cheap bcrypt hashes."""
    url = f"sqlite:///{tmp_path / 'portal.db'}"
    monkeypatch.setenv("DATABASE_URL", url)
    monkeypatch.setenv("BCRYPT_ROUNDS", "4")
    monkeypatch.setenv("STUDENT_KEY", "phone")
    monkeypatch.delenv("ADMIN_EMAIL", raising=False)
    monkeypatch.delenv("ADMIN_PASSWORD", raising=False)
    yield url
    database.dispose_db()


@pytest.fixture
def db(env):
    database.init_db(env)
    session = database.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seed(db):
    ids = SimpleNamespace(
        admin=models.new_id(), alice=models.new_id(), bob=models.new_id(),
        workshop=models.new_id(), seminar=models.new_id(), hackathon=models.new_id(),
    )
    db.add_all([
        models.Member(id=ids.admin, name="Admin", email="admin@portal.test", role="admin",
                      password_hash=hash_password("adminpass")),
        models.Member(id=ids.alice, name="Alice", email="alice@portal.test", role="member",
                      password_hash=hash_password("alicepass")),
        models.Member(id=ids.bob, name="Bob", email="bob@portal.test", role="member",
                      password_hash=hash_password("bobpass")),
        models.Event(id=ids.workshop, title="Workshop", cost=250.0),
        models.Event(id=ids.seminar, title="Seminar", cost=400.0),
        models.Event(id=ids.hackathon, title="Hackathon", cost=0.0),
    ])
    db.commit()
    return ids


@pytest.fixture
def alice(seed):
    return Identity(id=seed.alice, name="Alice", email="alice@portal.test", role="member")


@pytest.fixture
def bob(seed):
    return Identity(id=seed.bob, name="Bob", email="bob@portal.test", role="member")


@pytest.fixture
def admin_user(seed):
    return Identity(id=seed.admin, name="Admin", email="admin@portal.test", role="admin")


@pytest.fixture
def client(seed):
    from portal.main import app
    with TestClient(app) as c:
        yield c


@pytest.fixture
def login(client):
    def _login(email, password):
        resp = client.post("/api/login", json={"email": email, "password": password})
        assert resp.status_code == 200, resp.text
        return {"x-session": resp.json()["token"]}
    return _login


@pytest.fixture
def rows(db):
    """Fresh row counts, bypassing the session's identity map."""
    def _rows(model, **filters):
        db.expire_all()
        return db.query(model).filter_by(**filters).all()
    return _rows
