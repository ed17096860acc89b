import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional
import jwt
from guestpass.core.config import settings


def generate_pass_id() -> str:
    """Generate a guest id; the id doubles as the scannable pass token"""
    return str(uuid.uuid4())


def generate_confirmation_token() -> str:
    """Generate a single-use token for confirming destructive actions"""
    return secrets.token_urlsafe(16)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    """Create JWT access token for the admin console"""
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(
        to_encode,
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM
    )
    return encoded_jwt


def verify_access_token(token: str):
    """Verify JWT access token"""
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM]
        )
        return payload
    except jwt.PyJWTError:
        return None
