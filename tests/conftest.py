import uuid

import mongomock
import pytest
from fastapi.testclient import TestClient

from database import ensure_indexes, get_db
from main import app


@pytest.fixture
def db():
    """Fresh in-memory Mongo database per test."""
    database = mongomock.MongoClient()["test_%s" % uuid.uuid4().hex]
    ensure_indexes(database)
    return database


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_category(client):
    def _make(name):
        r = client.post("/categories", json={"name": name})
        assert r.status_code == 201, r.text
        return r.json()
    return _make


@pytest.fixture
def make_product(client):
    def _make(name, category_id, price=10, stock=1, **extra):
        body = {"name": name, "price": price, "stock": stock, "category": category_id, **extra}
        r = client.post("/products", json=body)
        assert r.status_code == 201, r.text
        return r.json()
    return _make
