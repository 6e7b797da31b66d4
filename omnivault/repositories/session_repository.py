"""Repositories for refresh tokens and verification tokens.

Refresh tokens are looked up by the SHA-256 hash of the presented value.
Revocation uses conditional UPDATE statements so concurrent requests across
processes agree on a single winner without in-memory locks.
"""

import hashlib
from datetime import datetime
from typing import List, Optional

from sqlalchemy import DateTime, bindparam, text
from sqlalchemy.orm import Session

from ..models.user import RefreshToken, VerificationToken


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


class RefreshTokenRepository:
    """CRUD for refresh_tokens."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, user_id: str, token: str, expiry_date: datetime) -> RefreshToken:
        record = RefreshToken(
            token_hash=hash_token(token),
            user_id=user_id,
            expiry_date=expiry_date,
            blacklisted=False,
        )
        self.db.add(record)
        self.db.flush()
        return record

    def get_by_token(self, token: str) -> Optional[RefreshToken]:
        return (
            self.db.query(RefreshToken)
            .filter(RefreshToken.token_hash == hash_token(token))
            .first()
        )

    def get_by_user(self, user_id: str) -> List[RefreshToken]:
        return (
            self.db.query(RefreshToken)
            .filter(RefreshToken.user_id == user_id)
            .order_by(RefreshToken.created_at)
            .all()
        )

    def claim(self, token_id: str, now: datetime) -> bool:
        """Atomically blacklist an unexpired, unrevoked token.

        The WHERE clause carries the preconditions, so the check and the
        write are one statement. Exactly one of several concurrent callers
        sees ``rowcount == 1``.
        """
        result = self.db.execute(
            text(
                "UPDATE refresh_tokens"
                " SET blacklisted = :revoked"
                " WHERE id = :token_id"
                "   AND blacklisted = :active"
                "   AND expiry_date > :now"
            ).bindparams(bindparam("now", type_=DateTime(timezone=True))),
            {"revoked": True, "active": False, "token_id": token_id, "now": now},
        )
        return result.rowcount == 1

    def blacklist(self, token_id: str) -> bool:
        result = self.db.execute(
            text(
                "UPDATE refresh_tokens SET blacklisted = :revoked"
                " WHERE id = :token_id AND blacklisted = :active"
            ),
            {"revoked": True, "active": False, "token_id": token_id},
        )
        return result.rowcount == 1

    def blacklist_all_for_user(self, user_id: str) -> int:
        result = self.db.execute(
            text(
                "UPDATE refresh_tokens SET blacklisted = :revoked"
                " WHERE user_id = :user_id AND blacklisted = :active"
            ),
            {"revoked": True, "active": False, "user_id": user_id},
        )
        return result.rowcount

    def delete_expired(self, now: datetime) -> int:
        return (
            self.db.query(RefreshToken)
            .filter(RefreshToken.expiry_date <= now)
            .delete(synchronize_session=False)
        )


class VerificationTokenRepository:
    """CRUD for verification_tokens."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, user_id: str, purpose: str, token: str, otp: str, expiry_date: datetime) -> VerificationToken:
        record = VerificationToken(
            token=token,
            otp=otp,
            purpose=purpose,
            user_id=user_id,
            expiry_date=expiry_date,
        )
        self.db.add(record)
        self.db.flush()
        return record

    def get_by_token(self, token: str) -> Optional[VerificationToken]:
        return self.db.query(VerificationToken).filter(VerificationToken.token == token).first()

    def get_by_user_and_otp(self, user_id: str, otp: str, purpose: str) -> Optional[VerificationToken]:
        return (
            self.db.query(VerificationToken)
            .filter(
                VerificationToken.user_id == user_id,
                VerificationToken.otp == otp,
                VerificationToken.purpose == purpose,
            )
            .first()
        )

    def get_by_user(self, user_id: str, purpose: str) -> Optional[VerificationToken]:
        return (
            self.db.query(VerificationToken)
            .filter(VerificationToken.user_id == user_id, VerificationToken.purpose == purpose)
            .first()
        )

    def delete_for_user(self, user_id: str, purpose: str) -> int:
        return (
            self.db.query(VerificationToken)
            .filter(VerificationToken.user_id == user_id, VerificationToken.purpose == purpose)
            .delete(synchronize_session=False)
        )

    def delete(self, record: VerificationToken) -> None:
        self.db.delete(record)

    def delete_expired(self, now: datetime) -> int:
        return (
            self.db.query(VerificationToken)
            .filter(VerificationToken.expiry_date <= now)
            .delete(synchronize_session=False)
        )
