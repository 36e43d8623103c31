from typing import Callable, List

import mongomock
import pytest
from fastapi.testclient import TestClient

from database import get_db
from main import app
from uploads import get_image_host


class FakeImageHost:
    """Stands in for Cloudinary; records what would have been uploaded."""

    def __init__(self) -> None:
        self.uploads: List[str] = []

    def upload(self, file, public_id: str) -> str:
        file.file.read()
        self.uploads.append(public_id)
        return f"https://res.cloudinary.com/demo/image/upload/products/{public_id}.png"


@pytest.fixture
def db():
    return mongomock.MongoClient()["catalog_test"]


@pytest.fixture
def image_host() -> FakeImageHost:
    return FakeImageHost()


@pytest.fixture
def client(db, image_host):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_image_host] = lambda: image_host
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_product(client) -> Callable[..., str]:
    def _make(**fields) -> str:
        payload = {"name": "Mug", "price": 5, "category": "home", **fields}
        response = client.post("/products", json=payload)
        assert response.status_code == 201, response.text
        return response.json()["_id"]

    return _make
