"""Session store: refresh tokens and one-time verification tokens.

Rotation policy: a refresh token can be exchanged exactly once. The auth
service claims the presented token through ``claim_refresh_token`` (a
compare-and-swap on the blacklisted flag) and only issues a new pair when
the claim succeeds.

The store never commits; the calling service owns the transaction.
"""

import logging
import secrets
import uuid
from datetime import datetime, timedelta
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import settings
from ..database import as_utc, utcnow
from ..models.user import RefreshToken, VerificationToken, EMAIL_VERIFICATION
from ..repositories.session_repository import RefreshTokenRepository, VerificationTokenRepository

logger = logging.getLogger(__name__)

# 32 random bytes, about 43 URL-safe characters.
REFRESH_TOKEN_BYTES = 32
OTP_DIGITS = 6


def is_expired(expiry_date: datetime, now: Optional[datetime] = None) -> bool:
    return as_utc(expiry_date) <= (now or utcnow())


def generate_otp() -> str:
    return f"{secrets.randbelow(10 ** OTP_DIGITS):0{OTP_DIGITS}d}"


class SessionStore:
    """Persistence for refresh and verification tokens.

    Public methods:
        create_refresh_token      -- issue and store a new refresh token
        find_refresh_token        -- look up a presented token
        claim_refresh_token       -- single-use consumption (CAS)
        blacklist                 -- revoke one token
        blacklist_all_for_user    -- revoke every token of a user
        create_verification_token -- new token + OTP, superseding the old one
        delete_expired            -- sweep expired rows of both kinds
    """

    def __init__(self, db: Session):
        self.db = db
        self.refresh_repo = RefreshTokenRepository(db)
        self.verification_repo = VerificationTokenRepository(db)

    # --- Refresh tokens ---

    def create_refresh_token(self, user_id: str, ttl: Optional[timedelta] = None) -> str:
        """Store a new refresh token for *user_id* and return the opaque value."""
        ttl = ttl or timedelta(days=settings.refresh_token_ttl_days)
        token = secrets.token_urlsafe(REFRESH_TOKEN_BYTES)
        self.refresh_repo.create(user_id, token, utcnow() + ttl)
        return token

    def find_refresh_token(self, token: str) -> Optional[RefreshToken]:
        return self.refresh_repo.get_by_token(token)

    def claim_refresh_token(self, record: RefreshToken, now: Optional[datetime] = None) -> bool:
        """Consume *record*. Returns False when another request got there first."""
        return self.refresh_repo.claim(record.id, now or utcnow())

    def blacklist(self, record: RefreshToken) -> bool:
        return self.refresh_repo.blacklist(record.id)

    def blacklist_all_for_user(self, user_id: str) -> int:
        count = self.refresh_repo.blacklist_all_for_user(user_id)
        logger.info("Revoked refresh tokens", extra={"user_id": user_id, "count": count})
        return count

    # --- Verification tokens ---

    def create_verification_token(self, user_id: str, purpose: str = EMAIL_VERIFICATION) -> VerificationToken:
        """Issue a fresh token and OTP. Any earlier token for the same purpose is deleted."""
        superseded = self.verification_repo.delete_for_user(user_id, purpose)
        if superseded:
            logger.debug("Superseded verification token", extra={"user_id": user_id, "purpose": purpose})
        expiry = utcnow() + timedelta(hours=settings.verification_token_ttl_hours)
        return self.verification_repo.create(
            user_id, purpose, str(uuid.uuid4()), generate_otp(), expiry
        )

    def find_verification_token(self, token: str) -> Optional[VerificationToken]:
        return self.verification_repo.get_by_token(token)

    def find_verification_by_otp(
        self, user_id: str, otp: str, purpose: str = EMAIL_VERIFICATION
    ) -> Optional[VerificationToken]:
        return self.verification_repo.get_by_user_and_otp(user_id, otp, purpose)

    def delete_verification_token(self, record: VerificationToken) -> None:
        self.verification_repo.delete(record)

    # --- Maintenance ---

    def delete_expired(self, now: Optional[datetime] = None) -> Tuple[int, int]:
        """Delete every refresh and verification token past its expiry.

        A delete by predicate, so overlapping sweeps are harmless.
        Returns ``(refresh_deleted, verification_deleted)``.
        """
        now = now or utcnow()
        refresh_deleted = self.refresh_repo.delete_expired(now)
        verification_deleted = self.verification_repo.delete_expired(now)
        return refresh_deleted, verification_deleted
