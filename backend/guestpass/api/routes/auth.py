import logging
from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, EmailStr
from guestpass.core.config import settings
from guestpass.core.deps import get_current_admin
from guestpass.core.security import create_access_token

router = APIRouter()
logger = logging.getLogger(__name__)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: dict


@router.post("/auth/login", response_model=LoginResponse)
def login(login_data: LoginRequest, response: Response):
    if login_data.email == settings.ADMIN_EMAIL and login_data.password == settings.ADMIN_PASSWORD:
        access_token = create_access_token(
            data={
                "sub": settings.ADMIN_EMAIL,
                "is_admin": True
            }
        )

        # HttpOnly cookie for the admin console
        response.set_cookie(
            key="access_token",
            value=access_token,
            httponly=True,
            secure=settings.ENVIRONMENT == "production",
            samesite="lax",
            max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            path="/"
        )
        logger.info(f"Admin login: {login_data.email}")

        return {
            "access_token": access_token,
            "token_type": "bearer",
            "user": {
                "email": settings.ADMIN_EMAIL,
                "name": "Admin",
                "is_admin": True
            }
        }

    logger.warning(f"Failed admin login for {login_data.email}")
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid email or password"
    )


@router.get("/auth/me")
def get_current_user_info(admin: dict = Depends(get_current_admin)):
    """Get current authenticated admin"""
    return {
        "email": admin["username"],
        "name": "Admin",
        "is_admin": True
    }


@router.post("/auth/logout")
def logout(response: Response):
    """Drop the admin cookie; bearer tokens simply expire"""
    response.delete_cookie(key="access_token", path="/")
    return {"status": "success", "message": "Logged out"}
