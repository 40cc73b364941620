# zusplus/repositories/mfa_repo.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from zusplus.models.mfa_challenge import MFAChallenge
from zusplus.models.mfa_factor import FACTOR_UNVERIFIED, FACTOR_VERIFIED, MFAFactor


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """SQLite liefert naive Datetimes zurück; wir speichern immer UTC."""
    if dt is None or dt.tzinfo is not None:
        return dt
    return dt.replace(tzinfo=timezone.utc)


# ------------------------------------------------------------
# Faktoren
# ------------------------------------------------------------
def list_factors_for_user(db: Session, user_id: int) -> List[MFAFactor]:
    stmt = (
        select(MFAFactor)
        .where(MFAFactor.user_id == user_id, MFAFactor.factor_type == "totp")
        .order_by(MFAFactor.created_at, MFAFactor.id)
    )
    return list(db.scalars(stmt))


def get_factor_for_user(db: Session, user_id: int, factor_id: str) -> Optional[MFAFactor]:
    return db.scalar(
        select(MFAFactor).where(MFAFactor.id == factor_id, MFAFactor.user_id == user_id)
    )


def has_verified_factor(db: Session, user_id: int) -> bool:
    row = db.scalar(
        select(MFAFactor.id).where(
            MFAFactor.user_id == user_id,
            MFAFactor.status == FACTOR_VERIFIED,
        ).limit(1)
    )
    return row is not None


def delete_unverified_factors(db: Session, user_id: int) -> int:
    res = db.execute(
        delete(MFAFactor).where(
            MFAFactor.user_id == user_id,
            MFAFactor.status == FACTOR_UNVERIFIED,
        )
    )
    return res.rowcount or 0


def delete_all_factors(db: Session, user_id: int) -> int:
    res = db.execute(delete(MFAFactor).where(MFAFactor.user_id == user_id))
    db.commit()
    return res.rowcount or 0


def create_factor(db: Session, *, user_id: int, friendly_name: str, secret_encrypted: str) -> MFAFactor:
    row = MFAFactor(
        user_id=user_id,
        factor_type="totp",
        friendly_name=friendly_name,
        secret_encrypted=secret_encrypted,
        status=FACTOR_UNVERIFIED,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def mark_factor_verified(db: Session, factor: MFAFactor) -> None:
    if factor.status != FACTOR_VERIFIED:
        factor.status = FACTOR_VERIFIED
        factor.verified_at = datetime.now(timezone.utc)


# ------------------------------------------------------------
# Challenges
# ------------------------------------------------------------
def create_challenge(db: Session, *, factor_id: str, ttl_seconds: int) -> MFAChallenge:
    row = MFAChallenge(
        factor_id=factor_id,
        expires_at=datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds),
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def get_challenge(db: Session, challenge_id: str) -> Optional[MFAChallenge]:
    return db.get(MFAChallenge, challenge_id)


def consume_challenge(db: Session, challenge_id: str) -> bool:
    """
    Markiert eine Challenge als verbraucht.
    Liefert nur für genau einen Aufrufer True (UPDATE ... WHERE consumed_at IS NULL).
    """
    res = db.execute(
        update(MFAChallenge)
        .where(MFAChallenge.id == challenge_id, MFAChallenge.consumed_at.is_(None))
        .values(consumed_at=datetime.now(timezone.utc))
    )
    db.commit()
    return (res.rowcount or 0) == 1
