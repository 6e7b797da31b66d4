"""User account and session token models.

Users authenticate with username or email plus password. Refresh tokens and
verification tokens hang off the user and disappear with it.
"""

from sqlalchemy import Column, Index, String, DateTime, Boolean, Text, ForeignKey
from ..database import Base, generate_id, utcnow

EMAIL_VERIFICATION = "email_verification"


class User(Base):
    """User account.

    A freshly registered account is unverified and, when email verification
    is required, disabled until the verification token or OTP is redeemed.
    """

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_id)
    username = Column(String(50), unique=True, nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(Text, nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    email_verified = Column(Boolean, nullable=False, default=False)
    enabled = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class RefreshToken(Base):
    """Opaque refresh token. Only a SHA-256 hash of the token is stored.

    ``blacklisted`` flips to true on logout, on rotation (the token was used
    once) and when all of a user's sessions are revoked.
    """

    __tablename__ = "refresh_tokens"
    __table_args__ = (
        Index("ix_refresh_tokens_user_id", "user_id"),
        Index("ix_refresh_tokens_expiry_date", "expiry_date"),
    )

    id = Column(String(36), primary_key=True, default=generate_id)
    token_hash = Column(String(64), unique=True, nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    expiry_date = Column(DateTime(timezone=True), nullable=False)
    blacklisted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class VerificationToken(Base):
    """Single-use email verification token with a parallel 6-digit OTP."""

    __tablename__ = "verification_tokens"
    __table_args__ = (
        Index("ix_verification_tokens_user_purpose", "user_id", "purpose"),
        Index("ix_verification_tokens_expiry_date", "expiry_date"),
    )

    id = Column(String(36), primary_key=True, default=generate_id)
    token = Column(String(64), unique=True, nullable=False)
    otp = Column(String(6), nullable=False)
    purpose = Column(String(30), nullable=False, default=EMAIL_VERIFICATION)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    expiry_date = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
