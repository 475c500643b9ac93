"""Shared fixtures: an in-memory SQLite catalog and a TestClient wired to it."""

from datetime import datetime, timedelta
from typing import Callable

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from catalog_api.deps import get_engine
from catalog_api.main import app
from catalog_api.models import Listing
from catalog_api.repository import listings as repo
from catalog_api.sql import metadata

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)


@pytest.fixture()
def engine() -> Engine:
    """One shared in-memory database per test, usable from worker threads."""
    eng = create_engine(
        "sqlite+pysqlite://",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def make_listing() -> Callable[..., Listing]:
    counter = {"n": 0}

    def _make(**overrides) -> Listing:
        counter["n"] += 1
        n = counter["n"]
        data = {
            "id": f"lst-{n:03d}",
            "address": f"{n} Sheikh Zayed Road",
            "city": "Dubai",
            "lat": 25.2048,
            "lng": 55.2708,
            "price": 1_000_000 + n * 10_000,
            "beds": 2,
            "baths": 1,
            "status": "for_sale",
            "updated_at": BASE_TIME + timedelta(minutes=n),
        }
        data.update(overrides)
        return Listing(**data)

    return _make


@pytest.fixture()
def seed(engine) -> Callable[..., None]:
    def _seed(*items: Listing) -> None:
        with engine.connect() as conn:
            for item in items:
                repo.insert(conn, item)

    return _seed


@pytest.fixture()
def client(engine) -> TestClient:
    app.dependency_overrides[get_engine] = lambda: engine
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
