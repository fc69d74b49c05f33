from unittest.mock import AsyncMock

import mongomock
import pytest
from fastapi.testclient import TestClient

import config
import database
import factories
import main
import sockets
from auth import create_token


@pytest.fixture
def db(monkeypatch):
    mongo = mongomock.MongoClient()["storefront_test"]
    database.ensure_indexes(mongo)
    monkeypatch.setattr(database, "db", mongo)
    return mongo


@pytest.fixture(autouse=True)
def socket_emit(monkeypatch):
    emit = AsyncMock()
    monkeypatch.setattr(sockets.sio, "emit", emit)
    return emit


@pytest.fixture(autouse=True)
def invoice_dir(tmp_path, monkeypatch):
    directory = tmp_path / "invoices"
    monkeypatch.setattr(config, "INVOICE_DIR", str(directory))
    return directory


@pytest.fixture
def client(db):
    with TestClient(main.app) as c:
        yield c


@pytest.fixture
def catalog(db):
    categories = factories.create_category_service(db=db)
    subs = factories.create_sub_service(db=db)
    products = factories.create_product_service(db=db)

    laptops = categories.create_category({"name": "Laptops"})
    phones = categories.create_category({"name": "Phones"})
    ultrabooks = subs.create_sub({"name": "Ultrabooks", "parent": laptops["id"]})
    smartphones = subs.create_sub({"name": "Smartphones", "parent": phones["id"]})
    air = products.create_product({
        "title": "MacBook Air",
        "description": "Thin and light",
        "price": 1199,
        "category": laptops["id"],
        "sub": ultrabooks["id"],
        "brand": "Apple",
        "images": ["air.jpg", "https://cdn.example.com/air-2.jpg"],
    })
    galaxy = products.create_product({
        "title": "Galaxy S24",
        "description": "Flagship phone",
        "price": 899,
        "category": phones["id"],
        "sub": smartphones["id"],
        "brand": "Samsung",
    })
    return {
        "laptops": laptops,
        "phones": phones,
        "ultrabooks": ultrabooks,
        "smartphones": smartphones,
        "air": air,
        "galaxy": galaxy,
    }


@pytest.fixture
def users(db):
    service = factories.create_user_service(db=db)
    alice = service.create_user({"email": "Alice@Example.com", "password": "secret123",
                                 "firstname": "Alice", "lastname": "martin"})
    bob = service.create_user({"email": "bob@example.com", "google_id": "google-bob", "firstname": "Bob"})
    admin = service.create_user({"email": "admin@example.com", "password": "adminpass", "role": "admin"})
    return {"alice": alice, "bob": bob, "admin": admin}


def bearer(user, **extra):
    token = create_token({"id": user["id"], "email": user["email"], "role": user["role"], **extra})
    return {"Authorization": f"Bearer {token}"}
