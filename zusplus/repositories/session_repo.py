# zusplus/repositories/session_repo.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from zusplus.models.auth_session import AuthSession
from zusplus.repositories.mfa_repo import as_utc


def create_session(db: Session, *, user_id: int, ttl: timedelta) -> AuthSession:
    row = AuthSession(
        user_id=user_id,
        aal="aal1",
        expires_at=datetime.now(timezone.utc) + ttl,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def get_active_session(db: Session, session_id: str) -> Optional[AuthSession]:
    row = db.get(AuthSession, session_id)
    if row is None or row.revoked_at is not None:
        return None
    if as_utc(row.expires_at) <= datetime.now(timezone.utc):
        return None
    return row


def set_aal(db: Session, row: AuthSession, aal: str) -> None:
    row.aal = aal


def revoke_session(db: Session, session_id: str) -> None:
    row = db.get(AuthSession, session_id)
    if row is None or row.revoked_at is not None:
        return
    row.revoked_at = datetime.now(timezone.utc)
    db.commit()


def revoke_all_for_user(db: Session, user_id: int) -> int:
    res = db.execute(
        update(AuthSession)
        .where(AuthSession.user_id == user_id, AuthSession.revoked_at.is_(None))
        .values(revoked_at=datetime.now(timezone.utc))
    )
    db.commit()
    return res.rowcount or 0
