"""Pytest configuration and shared fixtures."""

import os

# vor dem ersten Import von zusplus.main (Modul-App braucht Settings)
os.environ.setdefault("SECRET_KEY", "test-secret-key-0123456789abcdef")
os.environ.setdefault("DB_URL", "sqlite://")

import json
from collections.abc import Callable, Generator
from typing import Any

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from zusplus.core.config import Settings
from zusplus.core.security import hash_password
from zusplus.identity.local import LocalIdentityProvider
from zusplus.main import create_app
from zusplus.repositories import user_repo
from zusplus.services.pension_service import PensionClient
from zusplus.services.recommendation_service import RecommendationClient
from tests.helpers import (
    ADMIN_EMAIL,
    ADMIN_PASSWORD,
    AI_URL,
    CHART,
    PENSION_URL,
    PROGNOSIS,
    totp_now,
)


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        _env_file=None,
        SECRET_KEY="test-secret-key-0123456789abcdef",
        DB_URL="sqlite://",
        PENSION_API_URL=PENSION_URL,
        AI_GATEWAY_URL=AI_URL,
        AI_GATEWAY_API_KEY="test-key",
        LOG_LEVEL="WARNING",
    )


@pytest.fixture()
def pension_calls() -> list[dict[str, Any]]:
    return []


@pytest.fixture()
def pension_handler(pension_calls) -> Callable[[httpx.Request], httpx.Response]:
    def handler(request: httpx.Request) -> httpx.Response:
        pension_calls.append({"path": request.url.path, "body": json.loads(request.content)})
        if request.url.path == "/prognoza":
            return httpx.Response(200, json=PROGNOSIS)
        if request.url.path == "/prognoza-wykres":
            return httpx.Response(200, json=CHART)
        return httpx.Response(404, json={"detail": "not found"})

    return handler


@pytest.fixture()
def ai_calls() -> list[dict[str, Any]]:
    return []


@pytest.fixture()
def ai_handler(ai_calls) -> Callable[[httpx.Request], httpx.Response]:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        ai_calls.append(body)
        user_message = body["messages"][-1]["content"]
        if user_message.startswith("Wygeneruj"):
            content = "🎯 Dołącz do PPK – +300 PLN\n\n💰 Otwórz IKZE – +150 PLN\n"
        else:
            content = "Twoja emerytura to **3100 PLN**."
        return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": content}}]})

    return handler


@pytest.fixture()
def app(settings, pension_handler, ai_handler) -> FastAPI:
    return create_app(
        settings,
        pension_client=PensionClient(PENSION_URL, transport=httpx.MockTransport(pension_handler)),
        recommendation_client=RecommendationClient(
            AI_URL,
            "test-key",
            transport=httpx.MockTransport(ai_handler),
        ),
    )


@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def provider(app) -> LocalIdentityProvider:
    return app.state.identity_provider


@pytest.fixture()
def admin(app):
    with app.state.session_factory() as db:
        return user_repo.create_user(db, email=ADMIN_EMAIL, password_hash=hash_password(ADMIN_PASSWORD))


@pytest.fixture()
def enrolled_admin(admin, provider) -> str:
    """Admin mit bereits verifiziertem TOTP-Faktor; liefert das Secret."""
    session = provider.sign_in_with_password(ADMIN_EMAIL, ADMIN_PASSWORD)
    enrollment = provider.enroll_factor(session.access_token, "Admin Authenticator")
    challenge = provider.create_challenge(session.access_token, enrollment.factor_id)
    provider.verify_challenge(session.access_token, enrollment.factor_id, challenge.id, totp_now(enrollment.secret))
    provider.sign_out(session.access_token)
    return enrollment.secret
