"""Admin auth API: login for the rule/packaging back office."""

import hmac
import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from app.config import get_settings
from app.services.auth import create_access_token, require_admin, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])
settings = get_settings()


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class AdminInfo(BaseModel):
    email: str
    role: str


@router.post("/login", response_model=TokenResponse)
async def login(data: LoginRequest):
    email_ok = hmac.compare_digest(data.email.lower(), settings.admin_email.lower())
    if settings.admin_password_hash:
        password_ok = verify_password(data.password, settings.admin_password_hash)
    else:
        password_ok = hmac.compare_digest(data.password, settings.admin_password)
    if not (email_ok and password_ok):
        logger.warning(f"Failed admin login for {data.email}")
        raise HTTPException(401, "Invalid credentials")

    token = create_access_token({"sub": settings.admin_email, "role": "admin"})
    return TokenResponse(access_token=token, expires_in=settings.jwt_expire_minutes * 60)


@router.get("/me", response_model=AdminInfo)
async def get_me(user: dict = Depends(require_admin)):
    return AdminInfo(email=user.get("sub", ""), role=user["role"])
