"""Gemeinsame Testdaten und ein In-Memory-Provider für Gate-Tests."""

from __future__ import annotations

import uuid
from typing import Dict, List, Optional

import pyotp

from zusplus.core.errors import (
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

ADMIN_EMAIL = "admin@zusplus.pl"
ADMIN_PASSWORD = "Haslo123!"

PENSION_URL = "http://pension.test"
AI_URL = "http://ai.test"

PROGNOSIS = {
    "aktualna_wyplata": 6500.0,
    "lata_do_emerytury": 25,
    "przyszla_emerytura_nominalna": 5200.0,
    "przyszla_emerytura_realna": 3100.0,
    "srednia_krajowa_emerytura": 3500.0,
    "roznica_procent": -11.4,
    "szczegoly": {
        "podstawa_obliczenia_emerytury": 640000.0,
        "srednie_dalsze_trwanie_zycia_miesiace": 220.0,
        "szacowana_suma_skladek": 510000.0,
        "kapital_poczatkowy": 0.0,
        "wspolczynnik_waloryzacji": 1.05,
        "wspolczynnik_inflacji": 1.025,
        "lata_skladkowe": 40,
        "srednia_skladka_miesieczna": 1268.8,
    },
    "ile_lat": "Pracuj 2 lata dłużej",
}

CHART = [
    {"rok": 2050, "kwota": 3100.0},
    {"rok": 2051, "kwota": 3180.0},
    {"rok": 2052, "kwota": 3260.0},
]


def totp_now(secret: str) -> str:
    return pyotp.TOTP(secret).now()


def wrong_code(code: str) -> str:
    """Ein anderer, korrekt formatierter Code."""
    return f"{(int(code) + 500_000) % 1_000_000:06d}"


class FakeProvider:
    """
    Minimaler Provider im Speicher. Akzeptiert genau `valid_code`;
    zählt Aufrufe, damit Tests No-Ops und Reihenfolgen prüfen können.
    """

    def __init__(self, *, factors: int = 0, valid_code: str = "123456"):
        self.valid_code = valid_code
        self.user = Identity(id="1", email=ADMIN_EMAIL)
        self.aal: Dict[str, AssuranceLevel] = {}
        self.factors: List[Factor] = [
            Factor(id=f"factor-{i}", friendly_name="Admin Authenticator", status=FactorStatus.VERIFIED)
            for i in range(factors)
        ]
        self.challenges: Dict[str, bool] = {}
        self.calls: List[str] = []

        self.fail_sign_in: Optional[Exception] = None
        self.fail_list: Optional[Exception] = None
        self.fail_enroll: Optional[Exception] = None
        self.fail_challenge: Optional[Exception] = None
        self.on_verify = None

    def _session(self, token: str) -> Session:
        return Session(access_token=token, user=self.user, aal=self.aal[token])

    def sign_in_with_password(self, email: str, password: str) -> Session:
        self.calls.append("sign_in")
        if self.fail_sign_in:
            raise self.fail_sign_in
        if email != ADMIN_EMAIL or password != ADMIN_PASSWORD:
            raise InvalidCredentialsError("Nieprawidłowy email lub hasło")
        token = uuid.uuid4().hex
        self.aal[token] = AssuranceLevel.AAL1
        return self._session(token)

    def get_session(self, access_token: str) -> Optional[Session]:
        self.calls.append("get_session")
        if access_token not in self.aal:
            return None
        return self._session(access_token)

    def list_factors(self, access_token: str) -> List[Factor]:
        self.calls.append("list_factors")
        if self.fail_list:
            raise self.fail_list
        if access_token not in self.aal:
            raise NotAuthenticatedError("Sesja wygasła")
        return list(self.factors)

    def enroll_factor(self, access_token: str, friendly_name: str) -> Enrollment:
        self.calls.append("enroll")
        if self.fail_enroll:
            raise self.fail_enroll
        factor = Factor(id=f"factor-{len(self.factors)}", friendly_name=friendly_name, status=FactorStatus.UNVERIFIED)
        self.factors.append(factor)
        return Enrollment(factor_id=factor.id, secret="JBSWY3DPEHPK3PXP", uri="otpauth://totp/x", qr_code="data:,")

    def create_challenge(self, access_token: str, factor_id: str) -> Challenge:
        self.calls.append("challenge")
        if self.fail_challenge:
            raise self.fail_challenge
        cid = uuid.uuid4().hex
        self.challenges[cid] = False
        return Challenge(id=cid, factor_id=factor_id)

    def verify_challenge(self, access_token: str, factor_id: str, challenge_id: str, code: str) -> Session:
        self.calls.append("verify")
        if self.on_verify:
            self.on_verify()
        if self.challenges.get(challenge_id, True):
            raise InvalidCodeError("Nieprawidłowy kod")
        self.challenges[challenge_id] = True
        if code != self.valid_code:
            raise InvalidCodeError("Nieprawidłowy kod")

        self.factors = [
            Factor(id=f.id, friendly_name=f.friendly_name, status=FactorStatus.VERIFIED) if f.id == factor_id else f
            for f in self.factors
        ]
        self.aal[access_token] = AssuranceLevel.AAL2
        return self._session(access_token)

    def sign_out(self, access_token: str) -> None:
        self.calls.append("sign_out")
        self.aal.pop(access_token, None)

    def close(self) -> None:
        self.calls.append("close")


UNAVAILABLE = ProviderUnavailableError("down")
