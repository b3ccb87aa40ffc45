"""
Shared fixtures: an in-memory MongoDB and a TestClient wired to it.
"""

import mongomock
import pytest
from fastapi.testclient import TestClient

import config
from main import app, get_db


@pytest.fixture
def db():
    return mongomock.MongoClient()["swiftcart_test"]


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def add_product(db):
    """Insert a product document under a given id."""
    def _add(product_id, **fields):
        db[config.PRODUCTS].insert_one({"_id": product_id, **fields})
        return product_id
    return _add


@pytest.fixture
def auth_header(client):
    response = client.post(
        "/auth/signup",
        json={"email": "shopper@gmail.com", "password": "secret123", "name": "Shopper"},
    )
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def review_payload():
    return {
        "rating": 4.5,
        "comment": "Works great",
        "reviewerEmail": "shopper@gmail.com",
        "reviewerName": "Shopper",
    }
