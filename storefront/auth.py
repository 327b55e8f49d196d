from fastapi import APIRouter, Request
from pydantic import BaseModel, EmailStr
import logging

from storefront.shared.security_config import LOGIN_LIMIT, limiter
from storefront.shared.utils import (
    SuccessResponse, UnauthorizedException, create_access_token, settings, verify_password
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


class AdminLogin(BaseModel):
    email: EmailStr
    password: str

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


@router.post("/login", response_model=SuccessResponse[Token])
@limiter.limit(LOGIN_LIMIT)
async def login(credentials: AdminLogin, request: Request):
    if not settings.ADMIN_PASSWORD_HASH:
        raise UnauthorizedException("Admin login is not configured")
    if credentials.email.lower() != settings.ADMIN_EMAIL.lower() or not verify_password(credentials.password, settings.ADMIN_PASSWORD_HASH):
        logger.warning("Failed admin login attempt")
        raise UnauthorizedException("Incorrect email or password")

    token = create_access_token({"sub": credentials.email, "role": "admin"})
    return SuccessResponse(data=Token(access_token=token), message="Login successful")
