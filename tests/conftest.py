import asyncio
import os
import tempfile
from datetime import datetime, timedelta

import pytest

_tmp_dir = tempfile.mkdtemp(prefix="freshmart-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_tmp_dir, 'freshmart.db')}"
os.environ["UPLOAD_DIR"] = os.path.join(_tmp_dir, "uploads")
os.environ["RABBITMQ_URL"] = ""

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import update  # noqa: E402

from freshmart.db.database import Base, SessionLocal, engine  # noqa: E402
from freshmart.db.models import Order  # noqa: E402
from freshmart.main import app  # noqa: E402

PASSWORD = "secret123"


def backdate_order(order_id, days):
    """Moves an order's date ``days`` days into the past."""
    async def _backdate():
        async with SessionLocal() as session:
            await session.execute(
                update(Order).where(Order.id == order_id).values(order_date=datetime.utcnow() - timedelta(days=days))
            )
            await session.commit()
    asyncio.run(_backdate())


async def _reset_database():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture
def client():
    asyncio.run(_reset_database())
    with TestClient(app) as test_client:
        yield test_client


def register_and_login(client, username, role="customer", **extra):
    response = client.post("/users/register", json={
        "username": username,
        "email": f"{username}@example.com",
        "password": PASSWORD,
        "role": role,
        **extra,
    })
    assert response.status_code == 201, response.text
    response = client.post("/users/login", json={"email": f"{username}@example.com", "password": PASSWORD})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def owner_headers(client):
    return register_and_login(client, "owner", role="store_owner", store_name="Reliance Fresh")


@pytest.fixture
def other_owner_headers(client):
    return register_and_login(client, "rival", role="store_owner", store_name="Corner Grocer")


@pytest.fixture
def customer_headers(client):
    return register_and_login(client, "alice")


@pytest.fixture
def create_product(client, owner_headers):
    def _create(headers=None, **fields):
        payload = {"name": "Tomato", "category": "Vegetables", "price": 40.0, "stock": 50, "discount": 0}
        payload.update(fields)
        response = client.post("/products", json=payload, headers=headers or owner_headers)
        assert response.status_code == 201, response.text
        return response.json()
    return _create
