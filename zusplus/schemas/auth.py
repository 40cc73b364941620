# zusplus/schemas/auth.py
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from zusplus.services.mfa_gate import GateState


# ---------- Login ----------
class LoginIn(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)


# ---------- MFA ----------
class MfaCodeIn(BaseModel):
    # Format (6 Ziffern) prüft das Gate, damit die Meldung einheitlich bleibt
    code: str = Field(..., max_length=16)


class EnrollmentOut(BaseModel):
    factor_id: str
    secret: str
    uri: str
    qr_code: str


class GateOut(BaseModel):
    state: GateState
    ok: bool
    message: Optional[str] = None
    clear_code: bool = False
    busy: bool = False
    enrollment: Optional[EnrollmentOut] = None
    access_token: Optional[str] = None


class SessionOut(BaseModel):
    user_id: str
    email: str
    aal: str
