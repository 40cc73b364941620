# zusplus/identity/local.py
from __future__ import annotations

import functools
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Optional, Tuple, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DBSession, sessionmaker

from zusplus.core.errors import (
    IdentityProviderError,
    InvalidCodeError,
    InvalidCredentialsError,
    NotAuthenticatedError,
    ProviderUnavailableError,
)
from zusplus.core.security import SessionTokenService, verify_password
from zusplus.identity.base import (
    AssuranceLevel,
    Challenge,
    Enrollment,
    Factor,
    FactorStatus,
    Identity,
    Session,
)
from zusplus.identity.totp import TotpService
from zusplus.models.auth_session import AuthSession
from zusplus.models.user import User
from zusplus.repositories import mfa_repo, session_repo, user_repo
from zusplus.utils.crypto_utils import SecretCipher

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

INVALID_LOGIN = "Nieprawidłowy email lub hasło"
INVALID_CODE = "Nieprawidłowy kod"
SESSION_MISSING = "Sesja wygasła. Zaloguj się ponownie."


def _provider_call(fn: F) -> F:
    """DB-Fehler als ProviderUnavailableError weiterreichen."""

    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except SQLAlchemyError as ex:
            logger.exception("DB-Fehler in %s", fn.__name__)
            raise ProviderUnavailableError("Usługa logowania jest niedostępna") from ex

    return wrapper  # type: ignore[return-value]


class LocalIdentityProvider:
    """
    Identity-Provider auf Basis der eigenen DB.

    - Session-Zustand (AAL) liegt in `auth_sessions`, das JWT trägt nur die Session-ID.
    - TOTP-Secrets werden (optional) mit Fernet verschlüsselt abgelegt.
    - Jede Challenge wird beim ersten Verify-Versuch verbraucht.
    """

    def __init__(
        self,
        session_factory: sessionmaker[DBSession],
        *,
        tokens: SessionTokenService,
        totp: TotpService,
        cipher: SecretCipher,
        session_ttl: timedelta = timedelta(minutes=60),
        challenge_ttl_seconds: int = 300,
    ):
        self._session_factory = session_factory
        self._tokens = tokens
        self.totp = totp
        self._cipher = cipher
        self._session_ttl = session_ttl
        self._challenge_ttl = challenge_ttl_seconds

    def close(self) -> None:
        # Engine gehört der App und wird dort freigegeben
        pass

    # ------------------------------------------------------------
    # Helper
    # ------------------------------------------------------------
    def _db(self) -> DBSession:
        return self._session_factory()

    def _issue(self, row: AuthSession, user: User) -> Session:
        token = self._tokens.issue(
            user_id=user.id,
            session_id=row.id,
            ttl=self._session_ttl,
            email=user.email,
        )
        return Session(
            access_token=token,
            user=Identity(id=str(user.id), email=user.email),
            aal=AssuranceLevel.parse(row.aal),
            expires_at=mfa_repo.as_utc(row.expires_at),
        )

    def _resolve(self, db: DBSession, access_token: str) -> Optional[Tuple[AuthSession, User]]:
        payload = self._tokens.read(access_token)
        if payload is None:
            return None

        row = session_repo.get_active_session(db, str(payload.get("sid") or ""))
        if row is None or str(row.user_id) != str(payload.get("sub")):
            return None
        user = user_repo.get_by_id(db, row.user_id)
        if user is None:
            return None
        return row, user

    def _require(self, db: DBSession, access_token: str) -> Tuple[AuthSession, User]:
        resolved = self._resolve(db, access_token)
        if resolved is None:
            raise NotAuthenticatedError(SESSION_MISSING)
        return resolved

    @staticmethod
    def _factor_out(row) -> Factor:
        return Factor(
            id=row.id,
            friendly_name=row.friendly_name,
            status=FactorStatus(row.status),
            factor_type=row.factor_type,
        )

    # ------------------------------------------------------------
    # Passwort-Login
    # ------------------------------------------------------------
    @_provider_call
    def sign_in_with_password(self, email: str, password: str) -> Session:
        with self._db() as db:
            user = user_repo.get_by_email(db, email)
            if user is None or not verify_password(password, user.password_hash):
                logger.info("Login fehlgeschlagen fuer %s", user_repo.normalize_email(email))
                raise InvalidCredentialsError(INVALID_LOGIN)

            row = session_repo.create_session(db, user_id=user.id, ttl=self._session_ttl)
            logger.info("Session %s (aal1) fuer user_id=%s angelegt", row.id, user.id)
            return self._issue(row, user)

    @_provider_call
    def get_session(self, access_token: str) -> Optional[Session]:
        if not access_token:
            return None
        with self._db() as db:
            resolved = self._resolve(db, access_token)
            if resolved is None:
                return None
            row, user = resolved
            # AAL aus der DB, nicht aus dem Token-Claim
            return Session(
                access_token=access_token,
                user=Identity(id=str(user.id), email=user.email),
                aal=AssuranceLevel.parse(row.aal),
                expires_at=mfa_repo.as_utc(row.expires_at),
            )

    @_provider_call
    def sign_out(self, access_token: str) -> None:
        with self._db() as db:
            resolved = self._resolve(db, access_token)
            if resolved is None:
                return
            row, _ = resolved
            session_repo.revoke_session(db, row.id)
            logger.info("Session %s beendet", row.id)

    # ------------------------------------------------------------
    # MFA
    # ------------------------------------------------------------
    @_provider_call
    def list_factors(self, access_token: str) -> List[Factor]:
        with self._db() as db:
            _, user = self._require(db, access_token)
            return [self._factor_out(f) for f in mfa_repo.list_factors_for_user(db, user.id)]

    @_provider_call
    def enroll_factor(self, access_token: str, friendly_name: str) -> Enrollment:
        with self._db() as db:
            _, user = self._require(db, access_token)
            if mfa_repo.has_verified_factor(db, user.id):
                raise IdentityProviderError("Konto ma już aktywne uwierzytelnianie dwuskładnikowe")

            # Abgebrochene Einrichtungen ersetzen
            mfa_repo.delete_unverified_factors(db, user.id)

            secret = self.totp.generate_secret()
            row = mfa_repo.create_factor(
                db,
                user_id=user.id,
                friendly_name=friendly_name,
                secret_encrypted=self._cipher.encrypt_text(secret),
            )
            uri = self.totp.provisioning_uri(secret, user.email)
            logger.info("TOTP-Faktor %s fuer user_id=%s angelegt (unverified)", row.id, user.id)
            return Enrollment(
                factor_id=row.id,
                secret=secret,
                uri=uri,
                qr_code=self.totp.qr_code_data_uri(uri),
            )

    @_provider_call
    def create_challenge(self, access_token: str, factor_id: str) -> Challenge:
        with self._db() as db:
            _, user = self._require(db, access_token)
            factor = mfa_repo.get_factor_for_user(db, user.id, factor_id)
            if factor is None:
                raise IdentityProviderError("Nie znaleziono 2FA")
            row = mfa_repo.create_challenge(db, factor_id=factor.id, ttl_seconds=self._challenge_ttl)
            return Challenge(id=row.id, factor_id=factor.id, expires_at=mfa_repo.as_utc(row.expires_at))

    @_provider_call
    def verify_challenge(self, access_token: str, factor_id: str, challenge_id: str, code: str) -> Session:
        with self._db() as db:
            session_row, user = self._require(db, access_token)
            factor = mfa_repo.get_factor_for_user(db, user.id, factor_id)
            challenge = mfa_repo.get_challenge(db, challenge_id)
            if factor is None or challenge is None or challenge.factor_id != factor.id:
                raise InvalidCodeError(INVALID_CODE)

            if mfa_repo.as_utc(challenge.expires_at) <= datetime.now(timezone.utc):
                raise InvalidCodeError(INVALID_CODE)

            # Genau ein Verify pro Challenge, auch bei parallelen Requests
            if not mfa_repo.consume_challenge(db, challenge.id):
                logger.info("Challenge %s bereits verbraucht", challenge.id)
                raise InvalidCodeError(INVALID_CODE)

            secret = self._cipher.decrypt_text(factor.secret_encrypted)
            if not self.totp.verify(secret, code):
                logger.info("Falscher TOTP-Code fuer factor=%s", factor.id)
                raise InvalidCodeError(INVALID_CODE)

            mfa_repo.mark_factor_verified(db, factor)
            session_repo.set_aal(db, session_row, AssuranceLevel.AAL2.value)
            db.commit()
            logger.info("Session %s auf aal2 angehoben", session_row.id)
            return self._issue(session_row, user)
