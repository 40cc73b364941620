# zusplus/identity/supabase.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
import jwt

from zusplus.core.errors import (
    IdentityProviderError,
    InvalidCodeError,
    InvalidCredentialsError,
    NotAuthenticatedError,
    ProviderUnavailableError,
)
from zusplus.identity.base import (
    AssuranceLevel,
    Challenge,
    Enrollment,
    Factor,
    FactorStatus,
    Identity,
    Session,
)

logger = logging.getLogger(__name__)


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        for key in ("msg", "error_description", "message", "error"):
            if body.get(key):
                return str(body[key])
    return f"HTTP {resp.status_code}"


def _parse_ts(raw: Any) -> Optional[datetime]:
    if raw is None:
        return None
    if isinstance(raw, (int, float)):
        return datetime.fromtimestamp(raw, tz=timezone.utc)
    try:
        return datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    except ValueError:
        return None


def _claims(access_token: str) -> Dict[str, Any]:
    # Signatur prüft GoTrue bei /user; hier nur den AAL-Claim lesen
    try:
        return jwt.decode(access_token, options={"verify_signature": False})
    except jwt.InvalidTokenError:
        return {}


class SupabaseIdentityProvider:
    """
    Adapter für Supabase Auth (GoTrue REST-API).
    """

    def __init__(self, base_url: str, anon_key: str, *, client: Optional[httpx.Client] = None, timeout: float = 20.0):
        self._base = base_url.rstrip("/") + "/auth/v1"
        self._anon_key = anon_key
        self._client = client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        self._client.close()

    # ------------------------------------------------------------
    # HTTP-Helper
    # ------------------------------------------------------------
    def _headers(self, access_token: Optional[str] = None) -> Dict[str, str]:
        headers = {"apikey": self._anon_key, "Content-Type": "application/json"}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    def _request(
        self,
        method: str,
        path: str,
        *,
        access_token: Optional[str] = None,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> httpx.Response:
        try:
            resp = self._client.request(
                method,
                self._base + path,
                headers=self._headers(access_token),
                json=json,
                params=params,
            )
        except httpx.HTTPError as ex:
            logger.warning("Supabase nicht erreichbar: %s %s (%r)", method, path, ex)
            raise ProviderUnavailableError("Usługa logowania jest niedostępna") from ex

        if resp.status_code >= 500:
            logger.warning("Supabase %s %s -> %s", method, path, resp.status_code)
            raise ProviderUnavailableError("Usługa logowania jest niedostępna")
        return resp

    def _session_from(self, access_token: str, user: Dict[str, Any], expires_at: Any = None) -> Session:
        claims = _claims(access_token)
        return Session(
            access_token=access_token,
            user=Identity(id=str(user.get("id", "")), email=str(user.get("email", ""))),
            aal=AssuranceLevel.parse(claims.get("aal")),
            expires_at=_parse_ts(expires_at if expires_at is not None else claims.get("exp")),
        )

    def _user(self, access_token: str) -> Dict[str, Any]:
        resp = self._request("GET", "/user", access_token=access_token)
        if resp.status_code in (401, 403):
            raise NotAuthenticatedError("Sesja wygasła. Zaloguj się ponownie.")
        if resp.is_error:
            raise IdentityProviderError(_error_message(resp))
        return resp.json()

    # ------------------------------------------------------------
    # Passwort-Login / Session
    # ------------------------------------------------------------
    def sign_in_with_password(self, email: str, password: str) -> Session:
        resp = self._request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        if resp.is_error:
            raise InvalidCredentialsError(_error_message(resp))
        body = resp.json()
        return self._session_from(body["access_token"], body.get("user") or {}, body.get("expires_at"))

    def get_session(self, access_token: str) -> Optional[Session]:
        if not access_token:
            return None
        try:
            user = self._user(access_token)
        except NotAuthenticatedError:
            return None
        return self._session_from(access_token, user)

    def sign_out(self, access_token: str) -> None:
        resp = self._request("POST", "/logout", access_token=access_token)
        if resp.is_error and resp.status_code not in (401, 403, 404):
            raise IdentityProviderError(_error_message(resp))

    # ------------------------------------------------------------
    # MFA
    # ------------------------------------------------------------
    def list_factors(self, access_token: str) -> List[Factor]:
        user = self._user(access_token)
        out: List[Factor] = []
        for f in user.get("factors") or []:
            if f.get("factor_type") != "totp":
                continue
            status = FactorStatus.VERIFIED if f.get("status") == "verified" else FactorStatus.UNVERIFIED
            out.append(
                Factor(
                    id=str(f["id"]),
                    friendly_name=str(f.get("friendly_name") or ""),
                    status=status,
                    factor_type="totp",
                )
            )
        return out

    def enroll_factor(self, access_token: str, friendly_name: str) -> Enrollment:
        resp = self._request(
            "POST",
            "/factors",
            access_token=access_token,
            json={"factor_type": "totp", "friendly_name": friendly_name},
        )
        if resp.status_code in (401, 403):
            raise NotAuthenticatedError("Sesja wygasła. Zaloguj się ponownie.")
        if resp.is_error:
            raise IdentityProviderError(_error_message(resp))
        body = resp.json()
        totp = body.get("totp") or {}
        return Enrollment(
            factor_id=str(body["id"]),
            secret=str(totp.get("secret", "")),
            uri=str(totp.get("uri", "")),
            qr_code=str(totp.get("qr_code", "")),
        )

    def create_challenge(self, access_token: str, factor_id: str) -> Challenge:
        resp = self._request("POST", f"/factors/{factor_id}/challenge", access_token=access_token)
        if resp.status_code in (401, 403):
            raise NotAuthenticatedError("Sesja wygasła. Zaloguj się ponownie.")
        if resp.is_error:
            raise IdentityProviderError(_error_message(resp))
        body = resp.json()
        return Challenge(id=str(body["id"]), factor_id=factor_id, expires_at=_parse_ts(body.get("expires_at")))

    def verify_challenge(self, access_token: str, factor_id: str, challenge_id: str, code: str) -> Session:
        resp = self._request(
            "POST",
            f"/factors/{factor_id}/verify",
            access_token=access_token,
            json={"challenge_id": challenge_id, "code": code},
        )
        if resp.status_code == 401:
            raise NotAuthenticatedError("Sesja wygasła. Zaloguj się ponownie.")
        if resp.is_error:
            # falscher Code, abgelaufene oder bereits verbrauchte Challenge
            raise InvalidCodeError(_error_message(resp))
        body = resp.json()
        return self._session_from(body["access_token"], body.get("user") or {}, body.get("expires_at"))
