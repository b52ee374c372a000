"""Tests for bearer-token actor resolution."""
from datetime import timedelta

from fastapi.testclient import TestClient
from jose import jwt

from chantier_billing.api.deps import get_services
from chantier_billing.core.auth import create_access_token
from chantier_billing.core.config import settings
from chantier_billing.main import app


def test_create_access_token_carries_actor():
    token = create_access_token("admin-42")

    payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    assert payload["sub"] == "admin-42"
    assert payload["exp"] > payload["iat"]


def _client(services):
    app.dependency_overrides[get_services] = lambda: services
    return TestClient(app)


def test_actor_from_token_is_recorded(services):
    client = _client(services)
    token = create_access_token("admin-42")
    try:
        response = client.post(
            f"{settings.API_V1_STR}/clients/client-1/accounting",
            json={"total_amount": 1000, "months": 9, "deposit_amount": 100},
            headers={"Authorization": f"Bearer {token}"},
        )
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 201
    assert response.json()["created_by"] == "admin-42"


def test_missing_token_is_rejected(services):
    client = _client(services)
    try:
        response = client.get(f"{settings.API_V1_STR}/clients/client-1/schedule")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code in (401, 403)


def test_invalid_token_is_rejected(services):
    client = _client(services)
    try:
        response = client.get(
            f"{settings.API_V1_STR}/clients/client-1/schedule",
            headers={"Authorization": "Bearer not-a-token"},
        )
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 401


def test_expired_token_is_rejected(services):
    client = _client(services)
    token = create_access_token("admin-42", expires_delta=timedelta(minutes=-5))
    try:
        response = client.get(
            f"{settings.API_V1_STR}/clients/client-1/schedule",
            headers={"Authorization": f"Bearer {token}"},
        )
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 401


def test_token_without_subject_is_rejected(services):
    client = _client(services)
    token = jwt.encode({"scope": "billing"}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    try:
        response = client.get(
            f"{settings.API_V1_STR}/clients/client-1/schedule",
            headers={"Authorization": f"Bearer {token}"},
        )
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 401
