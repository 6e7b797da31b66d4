"""Authentication service: registration, login, token refresh, logout, email verification.

All password operations use bcrypt via passlib. Passwords are never stored
or logged in plaintext. The service layer owns the account and session
lifecycle; endpoints are thin wrappers.

Session lifecycle per refresh token:
    login    -> access + refresh issued
    refresh  -> presented refresh token consumed (blacklisted), new pair issued
    logout   -> refresh token blacklisted
Password changes and logout-all blacklist every refresh token of the user.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from passlib.hash import bcrypt
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.mailer import Mailer
from ..core.token_factory import create_token
from ..database import utcnow
from ..exceptions import (
    AccountDisabledError,
    ConflictError,
    EmailNotVerifiedError,
    InvalidCredentialsError,
    NotFoundError,
    TokenBlacklistedError,
    TokenExpiredError,
    TokenNotFoundError,
    ValidationError,
)
from ..models.user import User, VerificationToken
from .session_store import SessionStore, is_expired

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int
    user: User


def hash_password(password: str) -> str:
    return bcrypt.using(rounds=settings.bcrypt_rounds).hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.verify(password, password_hash)


_dummy_hash: Optional[str] = None


def _burn_password_check(password: str) -> None:
    """Spend one bcrypt verification so unknown logins take as long as wrong passwords."""
    global _dummy_hash
    if _dummy_hash is None:
        _dummy_hash = hash_password("not-a-real-password")
    bcrypt.verify(password, _dummy_hash)


# ---------------------------------------------------------------------------
# Registration & verification
# ---------------------------------------------------------------------------

def register_user(
    db: Session,
    username: str,
    email: str,
    password: str,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    mailer: Optional[Mailer] = None,
) -> User:
    """Create a new account and send the verification email.

    The account starts unverified. When ``REQUIRE_EMAIL_VERIFICATION`` is
    on it also starts disabled and cannot log in until verified.

    Raises ConflictError if the username or email is already taken.
    """
    username = username.strip()
    email = email.strip().lower()

    if db.query(User).filter(User.username == username).first() is not None:
        raise ConflictError("Username is already taken", details={"field": "username"})
    if db.query(User).filter(User.email == email).first() is not None:
        raise ConflictError("Email is already registered", details={"field": "email"})

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        first_name=first_name,
        last_name=last_name,
        email_verified=False,
        enabled=not settings.require_email_verification,
    )
    db.add(user)
    try:
        db.flush()
    except IntegrityError as e:
        db.rollback()
        raise ConflictError("Username or email is already registered") from e

    verification = SessionStore(db).create_verification_token(user.id)
    db.commit()
    db.refresh(user)
    logger.info("User registered", extra={"user_id": user.id})

    _send_verification(mailer, user, verification)
    return user


def resend_verification_email(db: Session, email: str, mailer: Optional[Mailer] = None) -> bool:
    """Issue a new verification token for *email*, superseding the old one.

    Returns False without raising when the address is unknown or already
    verified, so the endpoint does not reveal which addresses have accounts.
    """
    user = _get_user_by_email(db, email)
    if user is None or user.email_verified:
        logger.info("Verification resend skipped", extra={"reason": "unknown or verified"})
        return False

    verification = SessionStore(db).create_verification_token(user.id)
    db.commit()
    _send_verification(mailer, user, verification)
    return True


def verify_email(db: Session, token: str) -> User:
    """Redeem a verification link token.

    Raises TokenNotFoundError or TokenExpiredError. The token is single use.
    """
    store = SessionStore(db)
    record = store.find_verification_token(token)
    if record is None:
        raise TokenNotFoundError("Verification token")
    return _redeem_verification(db, store, record)


def verify_email_with_otp(db: Session, email: str, otp: str) -> User:
    """Redeem the 6-digit code mailed alongside the verification link."""
    user = _get_user_by_email(db, email)
    if user is None:
        raise TokenNotFoundError("Verification code")

    store = SessionStore(db)
    record = store.find_verification_by_otp(user.id, otp.strip())
    if record is None:
        raise TokenNotFoundError("Verification code")
    return _redeem_verification(db, store, record)


def _redeem_verification(db: Session, store: SessionStore, record: VerificationToken) -> User:
    if is_expired(record.expiry_date):
        raise TokenExpiredError("Verification token")

    user = db.get(User, record.user_id)
    user.email_verified = True
    user.enabled = True
    store.delete_verification_token(record)
    db.commit()
    db.refresh(user)
    logger.info("Email verified", extra={"user_id": user.id})
    return user


def _send_verification(mailer: Optional[Mailer], user: User, verification: VerificationToken) -> None:
    """Best-effort delivery. The token is already committed and stays valid."""
    if mailer is None:
        return
    try:
        mailer.send_verification(user.email, user.username, verification.token, verification.otp)
    except Exception as e:
        logger.warning(
            "Verification email delivery failed (non-fatal): %s", e,
            extra={"user_id": user.id},
        )


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

def authenticate(db: Session, username_or_email: str, password: str) -> User:
    """Validate credentials and return the user.

    Raises InvalidCredentialsError for an unknown login or wrong password,
    EmailNotVerifiedError and AccountDisabledError for accounts that may not
    log in yet.
    """
    login_name = username_or_email.strip()
    user = (
        db.query(User)
        .filter(or_(User.username == login_name, User.email == login_name.lower()))
        .first()
    )

    if user is None:
        _burn_password_check(password)
    if user is None or not verify_password(password, user.password_hash):
        logger.info("Login failed", extra={"login": login_name})
        raise InvalidCredentialsError()

    if settings.require_email_verification and not user.email_verified:
        raise EmailNotVerifiedError()

    if not user.enabled:
        raise AccountDisabledError()

    return user


def login(db: Session, username_or_email: str, password: str) -> TokenPair:
    """Authenticate and issue an access token plus a new refresh token.

    Existing sessions of the user stay valid; several devices may hold
    refresh tokens at once.
    """
    user = authenticate(db, username_or_email, password)
    pair = _issue_token_pair(SessionStore(db), user)
    db.commit()
    logger.info("User logged in", extra={"user_id": user.id})
    return pair


def refresh(db: Session, refresh_token: str) -> TokenPair:
    """Exchange a refresh token for a new pair, consuming the old token.

    Raises TokenNotFoundError, TokenExpiredError or TokenBlacklistedError.
    If two requests present the same token concurrently, the conditional
    update in the session store lets exactly one of them through.
    """
    store = SessionStore(db)
    record = store.find_refresh_token(refresh_token)
    if record is None:
        raise TokenNotFoundError("Refresh token")
    if record.blacklisted:
        logger.warning("Revoked refresh token presented", extra={"user_id": record.user_id})
        raise TokenBlacklistedError()
    if is_expired(record.expiry_date):
        raise TokenExpiredError("Refresh token")

    user = db.get(User, record.user_id)
    if not user.enabled:
        raise AccountDisabledError()

    if not store.claim_refresh_token(record):
        db.rollback()
        logger.warning("Refresh token replay rejected", extra={"user_id": user.id})
        raise TokenBlacklistedError()

    pair = _issue_token_pair(store, user)
    db.commit()
    logger.info("Refresh token rotated", extra={"user_id": user.id})
    return pair


def logout(db: Session, refresh_token: str) -> None:
    """Blacklist a single refresh token. Unknown or already revoked tokens are ignored."""
    store = SessionStore(db)
    record = store.find_refresh_token(refresh_token)
    if record is None:
        return
    store.blacklist(record)
    db.commit()
    logger.info("User logged out", extra={"user_id": record.user_id})


def logout_all(db: Session, user_id: str) -> int:
    """Blacklist every refresh token of *user_id*. Returns the number revoked."""
    count = SessionStore(db).blacklist_all_for_user(user_id)
    db.commit()
    return count


def _issue_token_pair(store: SessionStore, user: User) -> TokenPair:
    ttl = timedelta(minutes=settings.access_token_ttl_minutes)
    access_token = create_token(user.id, settings.jwt_secret_key, ttl)
    refresh_token = store.create_refresh_token(user.id)
    return TokenPair(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=int(ttl.total_seconds()),
        user=user,
    )


# ---------------------------------------------------------------------------
# Account management
# ---------------------------------------------------------------------------

def get_user(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User")
    return user


def update_profile(
    db: Session,
    user_id: str,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
) -> User:
    user = get_user(db, user_id)
    if first_name is not None:
        user.first_name = first_name.strip() or None
    if last_name is not None:
        user.last_name = last_name.strip() or None
    db.commit()
    db.refresh(user)
    return user


def change_password(db: Session, user_id: str, current_password: str, new_password: str) -> None:
    """Replace the password and revoke every refresh token of the user."""
    user = get_user(db, user_id)
    if not verify_password(current_password, user.password_hash):
        raise ValidationError("Current password is incorrect", field="current_password")
    if current_password == new_password:
        raise ValidationError("New password must differ from the current password", field="new_password")

    user.password_hash = hash_password(new_password)
    user.updated_at = utcnow()
    SessionStore(db).blacklist_all_for_user(user.id)
    db.commit()
    logger.info("Password changed", extra={"user_id": user.id})


def delete_account(db: Session, user_id: str, password: str) -> None:
    """Delete the user. Folders, contents, tags and tokens go with it."""
    user = get_user(db, user_id)
    if not verify_password(password, user.password_hash):
        raise ValidationError("Password is incorrect", field="password")
    db.delete(user)
    db.commit()
    logger.info("Account deleted", extra={"user_id": user_id})


def _get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()
