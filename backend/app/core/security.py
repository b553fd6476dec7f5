"""Identity and role checks.

Authentication happens upstream: the gateway forwards the authenticated user
id in ``settings.IDENTITY_HEADER``. This module resolves it to an active
``User`` and enforces role requirements. It also hashes the one-time passwords
issued to newly approved agents.
"""
import secrets
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import get_db
from app.models.user import User, UserRole

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ADMIN_ROLES = (UserRole.SUPER_ADMIN.value, UserRole.ADMIN.value)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def generate_temporary_password() -> str:
    return secrets.token_hex(8)


def get_current_user(
    x_user_id: Optional[str] = Header(None, alias=settings.IDENTITY_HEADER),
    db: Session = Depends(get_db),
) -> User:
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing credentials")
    try:
        user_id = int(x_user_id)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User disabled")
    return user


def require_roles(*roles: str):
    """Dependency factory: the current user must hold one of ``roles``."""

    def _checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role.lower() not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized")
        return current_user

    return _checker


require_admin = require_roles(*ADMIN_ROLES)
require_agent = require_roles(UserRole.AGENT.value)
