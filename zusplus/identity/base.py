"""
Identity-Provider-Port.

Der Gate-Code spricht ausschließlich über dieses Protokoll mit dem
Provider; Sessions, Faktoren und Challenges leben im Provider.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional, Protocol


class AssuranceLevel(str, Enum):
    AAL1 = "aal1"
    AAL2 = "aal2"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "AssuranceLevel":
        # Unbekannt/fehlend zählt nie als AAL2
        return cls.AAL2 if (raw or "").lower() == cls.AAL2.value else cls.AAL1


class FactorStatus(str, Enum):
    UNVERIFIED = "unverified"
    VERIFIED = "verified"


@dataclass(frozen=True)
class Identity:
    id: str
    email: str


@dataclass(frozen=True)
class Session:
    access_token: str
    user: Identity
    aal: AssuranceLevel
    expires_at: Optional[datetime] = None

    @property
    def is_aal2(self) -> bool:
        return self.aal is AssuranceLevel.AAL2


@dataclass(frozen=True)
class Factor:
    id: str
    friendly_name: str
    status: FactorStatus
    factor_type: str = "totp"

    @property
    def is_verified(self) -> bool:
        return self.status is FactorStatus.VERIFIED


@dataclass(frozen=True)
class Enrollment:
    factor_id: str
    secret: str
    uri: str
    # data:image/svg+xml-URI, direkt als <img src> nutzbar
    qr_code: str


@dataclass(frozen=True)
class Challenge:
    id: str
    factor_id: str
    expires_at: Optional[datetime] = None


class IdentityProvider(Protocol):
    def sign_in_with_password(self, email: str, password: str) -> Session: ...

    def get_session(self, access_token: str) -> Optional[Session]: ...

    def list_factors(self, access_token: str) -> List[Factor]: ...

    def enroll_factor(self, access_token: str, friendly_name: str) -> Enrollment: ...

    def create_challenge(self, access_token: str, factor_id: str) -> Challenge: ...

    def verify_challenge(
        self, access_token: str, factor_id: str, challenge_id: str, code: str
    ) -> Session: ...

    def sign_out(self, access_token: str) -> None: ...

    def close(self) -> None: ...


def verified_totp_factors(factors: List[Factor]) -> List[Factor]:
    return [f for f in factors if f.factor_type == "totp" and f.is_verified]
