"""
JWT Authentication utilities
"""

from datetime import datetime, timedelta, timezone
from jose import JWTError, jwt
from typing import Dict, Iterable, Optional
import uuid

from retail_api.core.config import Settings, get_settings


def create_access_token(
    user_id: uuid.UUID,
    email: str,
    role: str = "USER",
    tenant_ids: Iterable[uuid.UUID] = (),
    expires_delta: Optional[timedelta] = None,
    settings: Optional[Settings] = None,
) -> str:
    """Create JWT access token with user claims"""
    settings = settings or get_settings()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "tenant_ids": [str(t) for t in tenant_ids],
        "exp": expire,
        "iat": datetime.now(timezone.utc),
    }

    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str, settings: Optional[Settings] = None) -> Optional[Dict]:
    """Decode and validate JWT token"""
    settings = settings or get_settings()
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None


def verify_token(token: str, settings: Optional[Settings] = None) -> Optional[uuid.UUID]:
    """Verify token and return user_id if valid"""
    payload = decode_access_token(token, settings)
    if payload is None or not payload.get("sub"):
        return None
    try:
        return uuid.UUID(payload["sub"])
    except ValueError:
        return None
