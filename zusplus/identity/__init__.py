from __future__ import annotations

from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session as DBSession, sessionmaker

from zusplus.core.config import Settings
from zusplus.core.errors import ConfigurationError
from zusplus.core.security import SessionTokenService
from zusplus.identity.base import IdentityProvider
from zusplus.identity.local import LocalIdentityProvider
from zusplus.identity.supabase import SupabaseIdentityProvider
from zusplus.identity.totp import TotpService
from zusplus.utils.crypto_utils import SecretCipher


def build_identity_provider(
    settings: Settings,
    session_factory: Optional[sessionmaker[DBSession]] = None,
) -> IdentityProvider:
    if settings.IDENTITY_BACKEND == "supabase":
        if not settings.SUPABASE_URL or not settings.SUPABASE_ANON_KEY:
            raise ConfigurationError("SUPABASE_URL/SUPABASE_ANON_KEY is not configured")
        return SupabaseIdentityProvider(settings.SUPABASE_URL, settings.SUPABASE_ANON_KEY)

    if session_factory is None:
        raise ConfigurationError("Local identity backend requires a database session factory")

    return LocalIdentityProvider(
        session_factory,
        tokens=SessionTokenService(settings.SECRET_KEY),
        totp=TotpService(issuer_name=settings.MFA_ISSUER),
        cipher=SecretCipher(settings.TOTP_SECRET_FERNET_KEY),
        session_ttl=timedelta(minutes=settings.SESSION_TOKEN_EXPIRE_MINUTES),
        challenge_ttl_seconds=settings.MFA_CHALLENGE_TTL_SECONDS,
    )
