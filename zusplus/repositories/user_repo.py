# zusplus/repositories/user_repo.py
from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from zusplus.models.user import User


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


# ------------------------------------------------------------
# READ
# ------------------------------------------------------------
def get_by_id(db: Session, user_id: int) -> Optional[User]:
    return db.get(User, user_id)


def get_by_email(db: Session, email: str) -> Optional[User]:
    return db.scalar(select(User).where(User.email == normalize_email(email)))


# ------------------------------------------------------------
# CREATE
# ------------------------------------------------------------
def create_user(db: Session, *, email: str, password_hash: str, is_admin: bool = True) -> User:
    user = User(email=normalize_email(email), password_hash=password_hash, is_admin=is_admin)
    db.add(user)
    try:
        db.flush()
        db.commit()
    except IntegrityError:
        db.rollback()
        raise
    db.refresh(user)
    return user


# ------------------------------------------------------------
# UPDATE
# ------------------------------------------------------------
def update_password_hash(db: Session, user_id: int, new_hash: str) -> bool:
    user = db.get(User, user_id)
    if not user:
        return False
    user.password_hash = new_hash
    db.commit()
    return True
