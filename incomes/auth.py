from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence

from fastapi import HTTPException, status
from sqlmodel import Session, select

from .config import Settings
from .models import SessionToken, User, UserRole
from .security import (
    generate_session_token,
    hash_password,
    session_expiry_datetime,
    session_token_hash,
    verify_password,
)
from .timezone_utils import now_local

logger = logging.getLogger(__name__)

ALLOWED_STAFF_ROLES: Sequence[UserRole] = (UserRole.ADMIN, UserRole.STAFF)


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def ensure_default_admin(session: Session, settings: Settings) -> User:
    admin = session.exec(select(User).where(User.role == UserRole.ADMIN)).first()
    if admin:
        return admin
    email = normalize_email(settings.admin_email)
    if not email:
        raise RuntimeError("Default admin email is empty; set INCOMES_ADMIN_EMAIL")
    password = settings.admin_password.strip()
    if not password:
        raise RuntimeError("Default admin password is empty; set INCOMES_ADMIN_PASSWORD")
    admin = User(
        name="Administrator",
        email=email,
        password_hash=hash_password(password),
        role=UserRole.ADMIN,
        locale=settings.default_locale,
        is_active=True,
    )
    session.add(admin)
    session.commit()
    session.refresh(admin)
    logger.warning("Created default admin '%s'. Please change the password immediately.", email)
    return admin


def get_user_by_email(session: Session, email: Optional[str]) -> Optional[User]:
    normalized = normalize_email(email)
    if not normalized:
        return None
    return session.exec(select(User).where(User.email == normalized)).first()


def create_user(
    session: Session,
    *,
    name: str,
    email: str,
    password: str,
    role: UserRole,
    locale: Optional[str] = None,
    is_active: bool = True,
    commit: bool = True,
) -> User:
    normalized = normalize_email(email)
    if not normalized:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email is required")
    if not password:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Password is required")
    if get_user_by_email(session, normalized):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already exists")
    now = now_local()
    user = User(
        name=name,
        email=normalized,
        password_hash=hash_password(password),
        role=role,
        locale=locale,
        is_active=is_active,
        created_at=now,
        updated_at=now,
    )
    session.add(user)
    if commit:
        session.commit()
        session.refresh(user)
    else:
        session.flush([user])
    return user


def authenticate_user(
    session: Session,
    *,
    email: str,
    password: str,
    allowed_roles: Optional[Iterable[UserRole]] = None,
) -> Optional[User]:
    user = get_user_by_email(session, email)
    if not user or not user.is_active:
        return None
    if allowed_roles and user.role not in allowed_roles:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


def create_session_token(session: Session, user: User) -> str:
    raw_token = generate_session_token()
    record = SessionToken(
        token_hash=session_token_hash(raw_token),
        user_id=user.id,
        expires_at=session_expiry_datetime(),
    )
    session.add(record)
    session.commit()
    return raw_token


def revoke_session_token(session: Session, raw_token: str) -> None:
    hashed = session_token_hash(raw_token)
    record = session.exec(select(SessionToken).where(SessionToken.token_hash == hashed)).first()
    if not record:
        return
    record.revoked = True
    session.add(record)
    session.commit()


def get_user_by_session_token(session: Session, raw_token: Optional[str]) -> Optional[User]:
    if not raw_token:
        return None
    hashed = session_token_hash(raw_token)
    record = session.exec(select(SessionToken).where(SessionToken.token_hash == hashed)).first()
    if not record or record.revoked:
        return None
    expires_at = record.expires_at
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    if expires_at < datetime.now(timezone.utc):
        record.revoked = True
        session.add(record)
        session.commit()
        return None
    user = session.get(User, record.user_id)
    if not user or not user.is_active:
        return None
    return user
