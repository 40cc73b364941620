# zusplus/api/deps.py
from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from zusplus.core.config import Settings
from zusplus.core.errors import unauthorized
from zusplus.identity.base import IdentityProvider, Session
from zusplus.services.flow_store import GateStore
from zusplus.services.mfa_gate import MfaSessionGate, require_full_assurance
from zusplus.services.pension_service import PensionClient
from zusplus.services.recommendation_service import RecommendationClient

ACCESS_COOKIE = "access_token"
FLOW_COOKIE = "zp_flow"

security = HTTPBearer(scheme_name="BearerAuth", bearerFormat="JWT", auto_error=False)


# ----------------------------------------------------------
# App-Objekte (einmal in create_app() gebaut, liegen auf app.state)
# ----------------------------------------------------------
def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_identity_provider(request: Request) -> IdentityProvider:
    return request.app.state.identity_provider


def get_gate_store(request: Request) -> GateStore:
    return request.app.state.gate_store


def get_pension_client(request: Request) -> PensionClient:
    return request.app.state.pension_client


def get_recommendation_client(request: Request) -> RecommendationClient:
    return request.app.state.recommendation_client


def get_flow_gate(request: Request, store: GateStore = Depends(get_gate_store)) -> Optional[MfaSessionGate]:
    return store.get(request.cookies.get(FLOW_COOKIE))


# ----------------------------------------------------------
# Guard: AAL2 + TOTP-Faktor, geprüft beim Provider
# ----------------------------------------------------------
def _token_from(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if credentials and credentials.scheme.lower() == "bearer":
        return credentials.credentials
    return request.cookies.get(ACCESS_COOKIE)


def require_admin_session(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    provider: IdentityProvider = Depends(get_identity_provider),
) -> Session:
    session = require_full_assurance(provider, _token_from(request, credentials))
    if session is None:
        unauthorized("Not authenticated")
    return session
