# weekly_brief/auth.py
"""Bearer-token admin gate for the editorial endpoints."""
from __future__ import annotations

import hashlib
import secrets
from typing import Optional

from fastapi import Header
from sqlmodel import Session, select

from .errors import AuthError, ForbiddenError
from .logging_setup import get_logger
from .models import AdminUser
from .store import get_session

logger = get_logger("weekly_brief.auth")

ADMIN_ROLE = "admin"


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_api_token(s: Session, email: str, role: str = ADMIN_ROLE) -> str:
    """Create (or re-key) a user and return the raw token; only its hash is stored."""
    token = secrets.token_urlsafe(32)
    user = s.exec(select(AdminUser).where(AdminUser.email == email)).first()
    if user is None:
        user = AdminUser(email=email, role=role, token_hash=hash_token(token))
    else:
        user.role = role
        user.token_hash = hash_token(token)
    s.add(user)
    s.commit()
    return token


def parse_bearer(authorization: Optional[str]) -> str:
    if not authorization:
        raise AuthError("Missing authorization header")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthError("Invalid authorization header")
    return token.strip()


def resolve_admin(s: Session, authorization: Optional[str]) -> AdminUser:
    token = parse_bearer(authorization)
    user = s.exec(select(AdminUser).where(AdminUser.token_hash == hash_token(token))).first()
    if user is None:
        raise AuthError("Invalid or expired token")
    if user.role != ADMIN_ROLE:
        logger.warning("ADMIN_REQUIRED", extra={"user_id": user.id, "role": user.role})
        raise ForbiddenError("Admin access required")
    return user


def require_admin(authorization: Optional[str] = Header(default=None)) -> AdminUser:
    """FastAPI dependency: the admin user behind `Authorization: Bearer <token>`."""
    with get_session() as s:
        user = resolve_admin(s, authorization)
        s.expunge(user)
        return user
