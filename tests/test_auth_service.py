"""Tests for registration, verification and the refresh token lifecycle."""

from datetime import timedelta

import pytest

from omnivault.database import SessionLocal, utcnow
from omnivault.exceptions import (
    AccountDisabledError,
    ConflictError,
    EmailNotVerifiedError,
    InvalidCredentialsError,
    TokenBlacklistedError,
    TokenExpiredError,
    TokenNotFoundError,
    ValidationError,
)
from omnivault.models import Content, Folder, RefreshToken, User, VerificationToken
from omnivault.schemas.content import TextContentCreate
from omnivault.services import auth_service
from omnivault.services.content_service import ContentService
from omnivault.services.folder_service import FolderService
from omnivault.services.session_store import SessionStore
from tests.conftest import DEFAULT_PASSWORD, FailingMailer, RecordingMailer


class TestRegistration:

    def test_new_account_is_unverified_and_disabled(self, db):
        mailer = RecordingMailer()
        user = auth_service.register_user(db, "dave", "Dave@Example.com", DEFAULT_PASSWORD, mailer=mailer)

        assert user.email == "dave@example.com"
        assert user.email_verified is False
        assert user.enabled is False
        assert user.password_hash != DEFAULT_PASSWORD
        assert len(mailer.sent) == 1
        assert len(mailer.sent[0].otp) == 6

    def test_duplicate_username(self, db, user):
        with pytest.raises(ConflictError):
            auth_service.register_user(db, "alice", "another@example.com", DEFAULT_PASSWORD)

    def test_duplicate_email(self, db, user):
        with pytest.raises(ConflictError):
            auth_service.register_user(db, "alice2", "ALICE@example.com", DEFAULT_PASSWORD)

    def test_mail_failure_keeps_account_and_token(self, db):
        user = auth_service.register_user(
            db, "erin", "erin@example.com", DEFAULT_PASSWORD, mailer=FailingMailer()
        )
        assert db.get(User, user.id) is not None
        assert db.query(VerificationToken).filter(VerificationToken.user_id == user.id).count() == 1


class TestVerification:

    def test_verify_with_link_token(self, db):
        mailer = RecordingMailer()
        user = auth_service.register_user(db, "frank", "frank@example.com", DEFAULT_PASSWORD, mailer=mailer)
        verified = auth_service.verify_email(db, mailer.sent[0].token)
        assert verified.id == user.id
        assert verified.email_verified is True
        assert verified.enabled is True

    def test_token_is_single_use(self, db):
        mailer = RecordingMailer()
        auth_service.register_user(db, "frank", "frank@example.com", DEFAULT_PASSWORD, mailer=mailer)
        auth_service.verify_email(db, mailer.sent[0].token)
        with pytest.raises(TokenNotFoundError):
            auth_service.verify_email(db, mailer.sent[0].token)

    def test_verify_with_otp(self, db):
        mailer = RecordingMailer()
        auth_service.register_user(db, "gina", "gina@example.com", DEFAULT_PASSWORD, mailer=mailer)
        user = auth_service.verify_email_with_otp(db, "gina@example.com", mailer.sent[0].otp)
        assert user.email_verified is True

    def test_wrong_otp(self, db):
        mailer = RecordingMailer()
        auth_service.register_user(db, "gina", "gina@example.com", DEFAULT_PASSWORD, mailer=mailer)
        wrong = "000000" if mailer.sent[0].otp != "000000" else "111111"
        with pytest.raises(TokenNotFoundError):
            auth_service.verify_email_with_otp(db, "gina@example.com", wrong)

    def test_expired_token(self, db):
        mailer = RecordingMailer()
        user = auth_service.register_user(db, "hank", "hank@example.com", DEFAULT_PASSWORD, mailer=mailer)
        record = db.query(VerificationToken).filter(VerificationToken.user_id == user.id).one()
        record.expiry_date = utcnow() - timedelta(minutes=1)
        db.commit()
        with pytest.raises(TokenExpiredError):
            auth_service.verify_email(db, mailer.sent[0].token)

    def test_resend_supersedes_previous_token(self, db):
        mailer = RecordingMailer()
        auth_service.register_user(db, "ivy", "ivy@example.com", DEFAULT_PASSWORD, mailer=mailer)
        assert auth_service.resend_verification_email(db, "ivy@example.com", mailer=mailer) is True

        with pytest.raises(TokenNotFoundError):
            auth_service.verify_email(db, mailer.sent[0].token)
        assert auth_service.verify_email(db, mailer.sent[1].token).email_verified is True

    def test_resend_for_unknown_or_verified_address_is_silent(self, db, user):
        mailer = RecordingMailer()
        assert auth_service.resend_verification_email(db, "nobody@example.com", mailer=mailer) is False
        assert auth_service.resend_verification_email(db, "alice@example.com", mailer=mailer) is False
        assert mailer.sent == []


class TestLogin:

    def test_login_with_username_or_email(self, db, user):
        assert auth_service.login(db, "alice", DEFAULT_PASSWORD).user.id == user.id
        assert auth_service.login(db, "ALICE@example.com", DEFAULT_PASSWORD).user.id == user.id

    def test_wrong_password_and_unknown_user_look_the_same(self, db, user):
        with pytest.raises(InvalidCredentialsError) as wrong_pw:
            auth_service.login(db, "alice", "not-the-password")
        with pytest.raises(InvalidCredentialsError) as unknown:
            auth_service.login(db, "mallory", "whatever-password")
        assert wrong_pw.value.message == unknown.value.message

    def test_unverified_user_cannot_log_in(self, db):
        auth_service.register_user(db, "jack", "jack@example.com", DEFAULT_PASSWORD)
        with pytest.raises(EmailNotVerifiedError):
            auth_service.login(db, "jack", DEFAULT_PASSWORD)

    def test_disabled_user_cannot_log_in(self, db, user):
        user.enabled = False
        db.commit()
        with pytest.raises(AccountDisabledError):
            auth_service.login(db, "alice", DEFAULT_PASSWORD)

    def test_login_keeps_other_sessions(self, db, user):
        first = auth_service.login(db, "alice", DEFAULT_PASSWORD)
        auth_service.login(db, "alice", DEFAULT_PASSWORD)
        assert auth_service.refresh(db, first.refresh_token).user.id == user.id


class TestRefresh:

    def test_rotation_issues_a_new_pair(self, db, user):
        pair = auth_service.login(db, "alice", DEFAULT_PASSWORD)
        rotated = auth_service.refresh(db, pair.refresh_token)
        assert rotated.refresh_token != pair.refresh_token
        assert rotated.access_token
        assert rotated.expires_in == 15 * 60

    def test_replay_is_rejected(self, db, user):
        pair = auth_service.login(db, "alice", DEFAULT_PASSWORD)
        auth_service.refresh(db, pair.refresh_token)
        with pytest.raises(TokenBlacklistedError):
            auth_service.refresh(db, pair.refresh_token)

    def test_interleaved_refresh_only_one_wins(self, db, user):
        pair = auth_service.login(db, "alice", DEFAULT_PASSWORD)
        other = SessionLocal()
        try:
            # The second request has read the token before the first one rotates it.
            stale = SessionStore(other).find_refresh_token(pair.refresh_token)
            assert stale.blacklisted is False

            auth_service.refresh(db, pair.refresh_token)
            with pytest.raises(TokenBlacklistedError):
                auth_service.refresh(other, pair.refresh_token)
        finally:
            other.close()

        active = db.query(RefreshToken).filter(
            RefreshToken.user_id == user.id, RefreshToken.blacklisted.is_(False)
        ).count()
        assert active == 1

    def test_unknown_token(self, db, user):
        with pytest.raises(TokenNotFoundError):
            auth_service.refresh(db, "never-issued")

    def test_expired_token(self, db, user):
        token = SessionStore(db).create_refresh_token(user.id, ttl=timedelta(seconds=-1))
        db.commit()
        with pytest.raises(TokenExpiredError):
            auth_service.refresh(db, token)

    def test_logout_revokes_token(self, db, user):
        pair = auth_service.login(db, "alice", DEFAULT_PASSWORD)
        auth_service.logout(db, pair.refresh_token)
        with pytest.raises(TokenBlacklistedError):
            auth_service.refresh(db, pair.refresh_token)

    def test_logout_unknown_token_is_ignored(self, db, user):
        auth_service.logout(db, "never-issued")

    def test_logout_all_revokes_every_session(self, db, user):
        pairs = [auth_service.login(db, "alice", DEFAULT_PASSWORD) for _ in range(3)]
        assert auth_service.logout_all(db, user.id) == 3
        for pair in pairs:
            with pytest.raises(TokenBlacklistedError):
                auth_service.refresh(db, pair.refresh_token)


class TestAccount:

    def test_change_password_revokes_sessions(self, db, user):
        pair = auth_service.login(db, "alice", DEFAULT_PASSWORD)
        auth_service.change_password(db, user.id, DEFAULT_PASSWORD, "a-brand-new-password")

        with pytest.raises(TokenBlacklistedError):
            auth_service.refresh(db, pair.refresh_token)
        with pytest.raises(InvalidCredentialsError):
            auth_service.login(db, "alice", DEFAULT_PASSWORD)
        assert auth_service.login(db, "alice", "a-brand-new-password").user.id == user.id

    def test_change_password_requires_current_password(self, db, user):
        with pytest.raises(ValidationError) as exc:
            auth_service.change_password(db, user.id, "wrong-password", "a-brand-new-password")
        assert exc.value.field == "current_password"

    def test_new_password_must_differ(self, db, user):
        with pytest.raises(ValidationError):
            auth_service.change_password(db, user.id, DEFAULT_PASSWORD, DEFAULT_PASSWORD)

    def test_update_profile(self, db, user):
        updated = auth_service.update_profile(db, user.id, first_name=" Alice ", last_name="")
        assert updated.first_name == "Alice"
        assert updated.last_name is None

    def test_delete_account_removes_owned_data(self, db, user):
        folder = FolderService(db).create_folder(user.id, "Work")
        ContentService(db).create_text_content(
            user.id, TextContentCreate(title="Note", text_content="body", folder_id=folder.id)
        )
        auth_service.login(db, "alice", DEFAULT_PASSWORD)

        auth_service.delete_account(db, user.id, DEFAULT_PASSWORD)

        assert db.get(User, user.id) is None
        assert db.query(Folder).count() == 0
        assert db.query(Content).count() == 0
        assert db.query(RefreshToken).count() == 0

    def test_delete_account_requires_password(self, db, user):
        with pytest.raises(ValidationError):
            auth_service.delete_account(db, user.id, "wrong-password")
