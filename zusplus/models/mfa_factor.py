# zusplus/models/mfa_factor.py
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from zusplus.db.database import Base

if TYPE_CHECKING:
    from zusplus.models.user import User
    from zusplus.models.mfa_challenge import MFAChallenge

FACTOR_UNVERIFIED = "unverified"
FACTOR_VERIFIED = "verified"


class MFAFactor(Base):
    __tablename__ = "mfa_factors"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    factor_type: Mapped[str] = mapped_column(String(16), nullable=False, default="totp")
    friendly_name: Mapped[str] = mapped_column(String(120), nullable=False)
    secret_encrypted: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=FACTOR_UNVERIFIED)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    user: Mapped["User"] = relationship("User", back_populates="mfa_factors")
    challenges: Mapped[List["MFAChallenge"]] = relationship(
        "MFAChallenge",
        back_populates="factor",
        cascade="all, delete-orphan",
    )
