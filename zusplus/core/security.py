# zusplus/core/security.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt
from passlib.hash import argon2

# =============================
# 🔐 Passwort-Hashing
# =============================

# Argon2id, OWASP-Mindestparameter (19 MiB, 2 Durchläufe)
_argon2 = argon2.using(
    type="ID",
    time_cost=2,
    memory_cost=19_456,
    parallelism=1,
)


def hash_password(password: str) -> str:
    return _argon2.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash or not password_hash.lower().startswith("$argon2"):
        return False
    try:
        return argon2.verify(password, password_hash)
    except ValueError:
        # Kaputter Hash: keine Details leaken
        return False


# =============================
# 🪙 Session-Tokens
# =============================

TOKEN_ALGORITHM = "HS256"
TOKEN_AUDIENCE = "zusplus-admin"


class SessionTokenService:
    """
    Signiert das Access-Token einer Login-Session.
    Das Token trägt nur Verweise (sub, sid); AAL und Widerruf stehen in der DB.
    """

    def __init__(self, secret: str, algorithm: str = TOKEN_ALGORITHM):
        self._secret = secret
        self._algorithm = algorithm

    def issue(self, *, user_id: int, session_id: str, ttl: timedelta, **claims: Any) -> str:
        now = datetime.now(timezone.utc)
        payload: dict[str, Any] = {
            **claims,
            "sub": str(user_id),
            "sid": session_id,
            "aud": TOKEN_AUDIENCE,
            "iat": now,
            "exp": now + ttl,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def read(self, token: Optional[str]) -> Optional[dict[str, Any]]:
        """Payload eines gültigen Tokens, sonst None (abgelaufen, manipuliert, fremd)."""
        if not token:
            return None
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                audience=TOKEN_AUDIENCE,
                options={"require": ["exp", "sub", "sid"]},
            )
        except jwt.InvalidTokenError:
            return None
        return payload
