from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from guestpass.core.security import verify_access_token

# This tells FastAPI that the client must send a "Bearer <token>" in the Authorization header
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def admin_from_token(token: Optional[str]) -> Optional[dict]:
    """Admin identity carried by a token, or None"""
    if not token:
        return None
    payload = verify_access_token(token)
    if not payload:
        return None

    username: str = payload.get("sub")
    if username is None or not payload.get("is_admin"):
        return None

    return {"username": username, "role": "admin"}


def get_current_admin(token: str = Depends(oauth2_scheme)):
    """
    Validates the JWT token. If valid, returns the admin identity.
    If invalid, raises 401 Unauthorized.
    """
    admin = admin_from_token(token)
    if admin is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return admin
