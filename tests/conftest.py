import os

# Settings are read at import time, so the test environment goes in first
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["DB_AUTO_CREATE"] = "true"
os.environ["DEV_IDENTITY_ENABLED"] = "true"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["LOG_FILE"] = ""

import json
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from app.main import app

@pytest.fixture
def client():
    # Entering the client runs the lifespan: fresh in-memory database per test
    with TestClient(app) as c:
        yield c

def register(client, email, password="secret", role=None, name=None):
    payload = {"email": email, "password": password}
    if role:
        payload["role"] = role
    if name:
        payload["name"] = name
    response = client.post("/auth/register", json=payload)
    assert response.status_code == 201, response.text
    return response.json()

def bearer(token):
    return {"Authorization": f"Bearer {token}"}

def dev_user(user_id, role="user"):
    return {"x-session-user": json.dumps({"id": user_id, "role": role})}

def future_day(days=30):
    # Bookings are judged against the UTC calendar date
    return datetime.now(timezone.utc).date() + timedelta(days=days)

def day_range(day, start="10:00:00", end="12:00:00"):
    return {"start_time": f"{day.isoformat()}T{start}Z", "end_time": f"{day.isoformat()}T{end}Z"}

@pytest.fixture
def admin_headers(client):
    data = register(client, "admin@x.com", role="admin", name="Admin")
    return bearer(data["token"])

@pytest.fixture
def room(client, admin_headers):
    response = client.post("/products", json={"name": "Blue Room", "capacity": 6}, headers=admin_headers)
    assert response.status_code == 201, response.text
    return response.json()
