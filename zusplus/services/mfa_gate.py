"""
MFA-Session-Gate: Passwort-Login -> TOTP-Einrichtung bzw. -Prüfung -> AAL2.

Ablauf:
    LOGGED_OUT -> PASSWORD_SUBMITTED -> ENROLLMENT_REQUIRED | VERIFICATION_REQUIRED -> AUTHENTICATED

Während ein Provider-Aufruf läuft, steht das Gate auf CHECKING. Ein zweiter
Aufruf in dieser Zeit (Auto-Submit + Klick) ist ein No-Op (`busy=True`).
Fehler des Providers werden hier abgefangen und als Nachricht zurückgegeben;
das Gate bleibt dabei im aktuellen Zustand bzw. fällt auf LOGGED_OUT zurück.
"""
from __future__ import annotations

import logging
import re
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional

from zusplus.core.errors import (
    IdentityProviderError,
    NotAuthenticatedError,
    ProviderUnavailableError,
)
from zusplus.identity.base import Enrollment, IdentityProvider, Session, verified_totp_factors

logger = logging.getLogger(__name__)

CODE_RE = re.compile(r"[0-9]{6}")

MSG_MISSING_CREDENTIALS = "Podaj email i hasło"
MSG_LOGIN_ERROR = "Błąd logowania"
MSG_MFA_CHECK_ERROR = "Błąd sprawdzania MFA"
MSG_ENROLL_ERROR = "Błąd konfiguracji 2FA"
MSG_CODE_FORMAT = "Wpisz 6-cyfrowy kod"
MSG_INVALID_CODE = "Nieprawidłowy kod"
MSG_NO_FACTOR = "Nie znaleziono 2FA"
MSG_UNAVAILABLE = "Usługa logowania jest niedostępna. Spróbuj ponownie."
MSG_ENROLLED = "2FA skonfigurowane pomyślnie!"
MSG_VERIFIED = "Zalogowano pomyślnie!"
MSG_WRONG_STEP = "Zaloguj się ponownie"


class GateState(str, Enum):
    LOGGED_OUT = "logged_out"
    CHECKING = "checking"
    PASSWORD_SUBMITTED = "password_submitted"
    ENROLLMENT_REQUIRED = "enrollment_required"
    VERIFICATION_REQUIRED = "verification_required"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class GateResult:
    state: GateState
    ok: bool
    message: Optional[str] = None
    # True = Eingabefeld leeren (falscher Code)
    clear_code: bool = False
    # True = paralleler Aufruf ignoriert
    busy: bool = False


def is_valid_code(code: str) -> bool:
    """Genau 6 ASCII-Ziffern, ohne Leerzeichen."""
    return isinstance(code, str) and CODE_RE.fullmatch(code) is not None


def require_full_assurance(provider: IdentityProvider, access_token: Optional[str]) -> Optional[Session]:
    """
    Prüft eine Session direkt beim Provider: AAL2 und mindestens ein
    verifizierter TOTP-Faktor. Liefert die Session oder None.
    """
    if not access_token:
        return None
    try:
        session = provider.get_session(access_token)
        if session is None or not session.is_aal2:
            return None
        if not verified_totp_factors(provider.list_factors(access_token)):
            return None
    except IdentityProviderError as ex:
        logger.warning("Guard: Provider-Fehler (%s)", ex.message)
        return None
    return session


class MfaSessionGate:
    """Zustandsmaschine für genau einen Login-Vorgang."""

    def __init__(self, provider: IdentityProvider, *, friendly_name: str = "Admin Authenticator"):
        self._provider = provider
        self._friendly_name = friendly_name
        self._in_flight = threading.Lock()

        self.state: GateState = GateState.LOGGED_OUT
        self.session: Optional[Session] = None
        self.factor_id: Optional[str] = None
        # nur während der Einrichtung im Speicher, nie persistiert
        self.enrollment: Optional[Enrollment] = None

    # ------------------------------------------------------------
    # Helper
    # ------------------------------------------------------------
    @contextmanager
    def _exclusive(self) -> Iterator[bool]:
        if not self._in_flight.acquire(blocking=False):
            yield False
            return
        try:
            yield True
        finally:
            self._in_flight.release()

    def _busy(self) -> GateResult:
        return GateResult(state=self.state, ok=False, busy=True)

    def _already_done(self) -> GateResult:
        # später eintreffender Doppel-Submit
        return GateResult(state=self.state, ok=True, busy=True)

    def _fail(self, state: GateState, message: str, *, clear_code: bool = False) -> GateResult:
        self.state = state
        return GateResult(state=state, ok=False, message=message, clear_code=clear_code)

    def _reset(self) -> None:
        self.state = GateState.LOGGED_OUT
        self.session = None
        self.factor_id = None
        self.enrollment = None

    def _inspect_factors(self) -> GateResult:
        if self.session is None:
            self._reset()
            return GateResult(state=self.state, ok=False, message=MSG_WRONG_STEP)
        self.state = GateState.CHECKING
        try:
            factors = verified_totp_factors(self._provider.list_factors(self.session.access_token))
        except IdentityProviderError as ex:
            logger.warning("MFA-Status nicht abrufbar: %s", ex.message)
            self._reset()
            return GateResult(state=self.state, ok=False, message=MSG_MFA_CHECK_ERROR)

        if not factors:
            self.factor_id = None
            self.state = GateState.ENROLLMENT_REQUIRED
        elif self.session.is_aal2:
            # MFA in dieser Session bereits erfüllt
            self.factor_id = factors[0].id
            self.state = GateState.AUTHENTICATED
        else:
            # Es gibt nur einen unterstützten Faktor; der erste zählt
            self.factor_id = factors[0].id
            self.state = GateState.VERIFICATION_REQUIRED

        logger.info("MFA-Status fuer %s: %s", self.session.user.email, self.state.value)
        return GateResult(state=self.state, ok=True)

    # ------------------------------------------------------------
    # 1) Passwort-Login
    # ------------------------------------------------------------
    def login(self, email: str, password: str) -> GateResult:
        if not (email or "").strip() or not password:
            return self._fail(GateState.LOGGED_OUT, MSG_MISSING_CREDENTIALS)

        with self._exclusive() as entered:
            if not entered:
                return self._busy()

            self._reset()
            self.state = GateState.CHECKING
            try:
                self.session = self._provider.sign_in_with_password(email.strip(), password)
            except ProviderUnavailableError:
                return self._fail(GateState.LOGGED_OUT, MSG_UNAVAILABLE)
            except IdentityProviderError as ex:
                return self._fail(GateState.LOGGED_OUT, ex.message or MSG_LOGIN_ERROR)

            self.state = GateState.PASSWORD_SUBMITTED
            return self._inspect_factors()

    # ------------------------------------------------------------
    # 2) Faktor-Status
    # ------------------------------------------------------------
    def check_mfa_status(self) -> GateResult:
        if self.session is None:
            return self._fail(GateState.LOGGED_OUT, MSG_WRONG_STEP)

        with self._exclusive() as entered:
            if not entered:
                return self._busy()
            return self._inspect_factors()

    # ------------------------------------------------------------
    # 3) Einrichtung
    # ------------------------------------------------------------
    def start_enrollment(self) -> GateResult:
        if self.state is not GateState.ENROLLMENT_REQUIRED or self.session is None:
            return GateResult(state=self.state, ok=False, message=MSG_WRONG_STEP)

        # Gleiches Secret für weitere Versuche
        if self.enrollment is not None:
            return GateResult(state=self.state, ok=True)

        with self._exclusive() as entered:
            if not entered:
                return self._busy()

            self.state = GateState.CHECKING
            try:
                self.enrollment = self._provider.enroll_factor(self.session.access_token, self._friendly_name)
            except NotAuthenticatedError as ex:
                self._reset()
                return GateResult(state=self.state, ok=False, message=ex.message)
            except ProviderUnavailableError:
                return self._fail(GateState.ENROLLMENT_REQUIRED, MSG_UNAVAILABLE)
            except IdentityProviderError as ex:
                logger.warning("TOTP-Einrichtung fehlgeschlagen: %s", ex.message)
                return self._fail(GateState.ENROLLMENT_REQUIRED, MSG_ENROLL_ERROR)

            self.factor_id = self.enrollment.factor_id
            self.state = GateState.ENROLLMENT_REQUIRED
            return GateResult(state=self.state, ok=True)

    def verify_enrollment(self, code: str) -> GateResult:
        if self.state is GateState.CHECKING:
            return self._busy()
        if self.state is GateState.AUTHENTICATED:
            return self._already_done()
        if self.state is not GateState.ENROLLMENT_REQUIRED or self.enrollment is None:
            return GateResult(state=self.state, ok=False, message=MSG_WRONG_STEP)
        return self._challenge_and_verify(self.enrollment.factor_id, code, success_message=MSG_ENROLLED)

    # ------------------------------------------------------------
    # 4) Prüfung bei vorhandenem Faktor
    # ------------------------------------------------------------
    def verify_login(self, code: str) -> GateResult:
        if self.state is GateState.CHECKING:
            return self._busy()
        if self.state is GateState.AUTHENTICATED:
            return self._already_done()
        if self.state is not GateState.VERIFICATION_REQUIRED:
            return GateResult(state=self.state, ok=False, message=MSG_WRONG_STEP)
        if not self.factor_id:
            return GateResult(state=self.state, ok=False, message=MSG_NO_FACTOR)
        return self._challenge_and_verify(self.factor_id, code, success_message=MSG_VERIFIED)

    def _challenge_and_verify(self, factor_id: str, code: str, *, success_message: str) -> GateResult:
        resume = self.state
        if not is_valid_code(code):
            return GateResult(state=resume, ok=False, message=MSG_CODE_FORMAT)

        with self._exclusive() as entered:
            if not entered:
                return self._busy()

            if self.session is None:
                # Session zwischenzeitlich abgemeldet
                self._reset()
                return GateResult(state=self.state, ok=False, message=MSG_WRONG_STEP)
            token = self.session.access_token
            self.state = GateState.CHECKING

            try:
                challenge = self._provider.create_challenge(token, factor_id)
            except NotAuthenticatedError as ex:
                self._reset()
                return GateResult(state=self.state, ok=False, message=ex.message)
            except ProviderUnavailableError:
                return self._fail(resume, MSG_UNAVAILABLE)
            except IdentityProviderError as ex:
                logger.warning("Challenge fehlgeschlagen: %s", ex.message)
                return self._fail(resume, MSG_INVALID_CODE, clear_code=True)

            try:
                promoted = self._provider.verify_challenge(token, factor_id, challenge.id, code)
            except NotAuthenticatedError as ex:
                self._reset()
                return GateResult(state=self.state, ok=False, message=ex.message)
            except ProviderUnavailableError:
                return self._fail(resume, MSG_UNAVAILABLE, clear_code=True)
            except IdentityProviderError:
                # auch: Challenge schon verbraucht (Doppel-Submit)
                return self._fail(resume, MSG_INVALID_CODE, clear_code=True)

            if not promoted.is_aal2:
                logger.warning("Verify ohne AAL2 fuer %s", promoted.user.email)
                return self._fail(resume, MSG_INVALID_CODE, clear_code=True)

            self.session = promoted
            self.factor_id = factor_id
            self.enrollment = None
            self.state = GateState.AUTHENTICATED
            logger.info("MFA erfolgreich fuer %s", promoted.user.email)
            return GateResult(state=self.state, ok=True, message=success_message)

    # ------------------------------------------------------------
    # 5) Guard & Logout
    # ------------------------------------------------------------
    def guard(self) -> bool:
        """Fragt den Provider neu; bei fehlender/teilweiser Session -> LOGGED_OUT."""
        session = require_full_assurance(self._provider, self.session.access_token if self.session else None)
        if session is None:
            self._reset()
            return False
        self.session = session
        self.state = GateState.AUTHENTICATED
        return True

    def sign_out(self) -> None:
        if self.session is not None:
            try:
                self._provider.sign_out(self.session.access_token)
            except IdentityProviderError as ex:
                logger.warning("Logout beim Provider fehlgeschlagen: %s", ex.message)
        self._reset()
