"""Authentication and account API endpoints.

Public endpoints:
    POST /api/auth/register             — create account, sends verification mail
    POST /api/auth/login                — authenticate and receive access + refresh token
    POST /api/auth/refresh              — rotate a refresh token
    POST /api/auth/logout               — revoke one refresh token
    GET  /api/auth/verify-email?token=  — redeem the emailed link
    POST /api/auth/verify-otp           — redeem the emailed 6-digit code
    POST /api/auth/resend-verification  — issue a fresh link and code

Authenticated endpoints:
    POST   /api/auth/logout-all   — revoke every refresh token of the caller
    GET    /api/auth/me           — current user
    PUT    /api/auth/me           — update profile
    PUT    /api/auth/me/password  — change password (revokes all sessions)
    DELETE /api/auth/me           — delete account and everything it owns
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..core.auth import AuthContext, require_auth
from ..core.mailer import Mailer, get_mailer
from ..database import get_db
from ..services import auth_service
from ..services.auth_service import TokenPair

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])

USERNAME_PATTERN = r"^[A-Za-z0-9_.-]+$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


# --- Request/Response schemas ---


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=50, pattern=USERNAME_PATTERN)
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN, description="Email address")
    password: str = Field(..., min_length=8, max_length=100, description="Password (min 8 characters)")
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)

    model_config = {
        "json_schema_extra": {
            "examples": [{
                "username": "alice",
                "email": "alice@example.com",
                "password": "securepass",
                "first_name": "Alice",
            }]
        }
    }


class LoginRequest(BaseModel):
    username_or_email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class OtpVerifyRequest(BaseModel):
    email: str = Field(..., pattern=EMAIL_PATTERN)
    otp: str = Field(..., pattern=r"^\d{6}$", description="6-digit code from the verification email")


class ResendVerificationRequest(BaseModel):
    email: str = Field(..., pattern=EMAIL_PATTERN)


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=100)


class DeleteAccountRequest(BaseModel):
    password: str = Field(..., min_length=1)


class UserResponse(BaseModel):
    id: str
    username: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email_verified: bool
    enabled: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class AuthResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int
    user: UserResponse

    @classmethod
    def from_pair(cls, pair: TokenPair) -> "AuthResponse":
        return cls(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            expires_in=pair.expires_in,
            user=UserResponse.model_validate(pair.user),
        )


class MessageResponse(BaseModel):
    message: str


# --- Endpoints ---


@router.post(
    "/register",
    response_model=UserResponse,
    status_code=201,
    summary="Register a new user",
    description="Creates an unverified account and emails a verification link and code.",
)
def register_user(
    body: RegisterRequest,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    user = auth_service.register_user(
        db,
        body.username,
        body.email,
        body.password,
        first_name=body.first_name,
        last_name=body.last_name,
        mailer=mailer,
    )
    return user


@router.post("/login", response_model=AuthResponse, summary="Authenticate and receive tokens")
def login(body: LoginRequest, db: Session = Depends(get_db)):
    return AuthResponse.from_pair(auth_service.login(db, body.username_or_email, body.password))


@router.post("/refresh", response_model=AuthResponse, summary="Rotate a refresh token")
def refresh(body: RefreshRequest, db: Session = Depends(get_db)):
    """Consume the refresh token and return a new pair. Each token works once."""
    return AuthResponse.from_pair(auth_service.refresh(db, body.refresh_token))


@router.post("/logout", status_code=204, summary="Revoke a refresh token")
def logout(body: RefreshRequest, db: Session = Depends(get_db)):
    auth_service.logout(db, body.refresh_token)
    return Response(status_code=204)


@router.post("/logout-all", status_code=204, summary="Revoke every session of the caller")
def logout_all(
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    auth_service.logout_all(db, auth.user_id)
    return Response(status_code=204)


@router.get("/verify-email", response_model=UserResponse, summary="Verify email with the link token")
def verify_email(token: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    return auth_service.verify_email(db, token)


@router.post("/verify-otp", response_model=UserResponse, summary="Verify email with the 6-digit code")
def verify_otp(body: OtpVerifyRequest, db: Session = Depends(get_db)):
    return auth_service.verify_email_with_otp(db, body.email, body.otp)


@router.post(
    "/resend-verification",
    response_model=MessageResponse,
    status_code=202,
    summary="Send a new verification email",
)
def resend_verification(
    body: ResendVerificationRequest,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    """Always answers 202 so the response does not reveal whether the address exists."""
    auth_service.resend_verification_email(db, body.email, mailer=mailer)
    return MessageResponse(message="If the account exists and is unverified, a new email has been sent")


@router.get("/me", response_model=UserResponse, summary="Get current user")
def get_me(auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)):
    return auth_service.get_user(db, auth.user_id)


@router.put("/me", response_model=UserResponse, summary="Update profile")
def update_me(
    body: ProfileUpdate,
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    return auth_service.update_profile(
        db, auth.user_id, first_name=body.first_name, last_name=body.last_name
    )


@router.put("/me/password", status_code=204, summary="Change password")
def change_password(
    body: ChangePasswordRequest,
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    """Change the password. Every refresh token of the user stops working."""
    auth_service.change_password(db, auth.user_id, body.current_password, body.new_password)
    return Response(status_code=204)


@router.delete("/me", status_code=204, summary="Delete account")
def delete_me(
    body: DeleteAccountRequest,
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    auth_service.delete_account(db, auth.user_id, body.password)
    return Response(status_code=204)
