# zusplus/models/mfa_challenge.py
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional, TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from zusplus.db.database import Base

if TYPE_CHECKING:
    from zusplus.models.mfa_factor import MFAFactor


class MFAChallenge(Base):
    __tablename__ = "mfa_challenges"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    factor_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("mfa_factors.id", ondelete="CASCADE"), nullable=False, index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    # gesetzt beim ersten Verify-Versuch (Erfolg oder Fehler)
    consumed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    factor: Mapped["MFAFactor"] = relationship("MFAFactor", back_populates="challenges")
