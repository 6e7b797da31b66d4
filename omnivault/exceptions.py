"""Custom exception hierarchy for OmniVault."""

from enum import Enum
from typing import Optional, Dict, Any


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Resource errors
    NOT_FOUND = "NOT_FOUND"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Authentication
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    TOKEN_NOT_FOUND = "TOKEN_NOT_FOUND"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    TOKEN_BLACKLISTED = "TOKEN_BLACKLISTED"

    # Authorization & rate limiting
    FORBIDDEN = "FORBIDDEN"
    ACCOUNT_DISABLED = "ACCOUNT_DISABLED"
    EMAIL_NOT_VERIFIED = "EMAIL_NOT_VERIFIED"
    RATE_LIMITED = "RATE_LIMITED"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"

    # Uniqueness and concurrency
    CONFLICT = "CONFLICT"

    # Database errors
    DATABASE_ERROR = "DATABASE_ERROR"

    # Generic errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class VaultException(Exception):
    """
    Base exception for all OmniVault errors.

    Provides structured error responses with:
    - Human-readable message
    - Machine-readable error code
    - HTTP status code
    - Optional additional details
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize exception.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            status_code: HTTP status code to return
            details: Optional additional context/details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for JSON response.

        Returns:
            Dictionary with status, error and message fields. The request
            path and timestamp are added by the exception handler.
        """
        return {
            "status": self.status_code,
            "error": self.error_code.value,
            "message": self.message,
        }


class NotFoundError(VaultException):
    """Resource does not exist or belongs to another user.

    Both cases produce the same message so callers cannot probe for
    other users' records.
    """

    def __init__(self, resource: str = "Resource"):
        super().__init__(
            f"{resource} not found",
            ErrorCode.NOT_FOUND,
            status_code=404,
        )


class ValidationError(VaultException):
    """Validation failed for user input."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"errors": {field: message}} if field else {}
        super().__init__(
            message,
            ErrorCode.VALIDATION_ERROR,
            status_code=400,
            details=details
        )
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        if self.field:
            body["errors"] = {self.field: self.message}
        return body


class AuthenticationError(VaultException):
    """Request lacks valid authentication credentials."""

    def __init__(
        self,
        message: str = "Invalid or missing authentication token",
        error_code: ErrorCode = ErrorCode.UNAUTHORIZED,
    ):
        super().__init__(
            message,
            error_code,
            status_code=401,
        )


class InvalidCredentialsError(AuthenticationError):
    """Unknown user or wrong password. The two are not distinguished."""

    def __init__(self):
        super().__init__("Invalid username or password", ErrorCode.INVALID_CREDENTIALS)


class TokenNotFoundError(AuthenticationError):
    """Refresh or verification token is unknown."""

    def __init__(self, kind: str = "Token"):
        super().__init__(f"{kind} not found", ErrorCode.TOKEN_NOT_FOUND)


class TokenExpiredError(AuthenticationError):
    """Refresh or verification token is past its expiry date."""

    def __init__(self, kind: str = "Token"):
        super().__init__(f"{kind} has expired", ErrorCode.TOKEN_EXPIRED)


class TokenBlacklistedError(AuthenticationError):
    """Refresh token was revoked or already used."""

    def __init__(self):
        super().__init__("Refresh token has been revoked", ErrorCode.TOKEN_BLACKLISTED)


class ForbiddenError(VaultException):
    """Authenticated user lacks permission for the requested action."""

    def __init__(
        self,
        message: str = "You do not have permission to perform this action",
        error_code: ErrorCode = ErrorCode.FORBIDDEN,
    ):
        super().__init__(
            message,
            error_code,
            status_code=403,
        )


class AccountDisabledError(ForbiddenError):
    def __init__(self):
        super().__init__("Account is disabled", ErrorCode.ACCOUNT_DISABLED)


class EmailNotVerifiedError(ForbiddenError):
    def __init__(self):
        super().__init__(
            "Email address has not been verified. Check your inbox for the verification link.",
            ErrorCode.EMAIL_NOT_VERIFIED,
        )


class ConflictError(VaultException):
    """Duplicate name, unique constraint hit, or stale concurrent update."""

    def __init__(self, message: str = "Resource was modified by another request", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message,
            ErrorCode.CONFLICT,
            status_code=409,
            details=details
        )


class DatabaseError(VaultException):
    """Database operation failed."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        details = {}
        if original_error:
            details["original_error"] = str(original_error)

        super().__init__(
            message,
            ErrorCode.DATABASE_ERROR,
            status_code=500,
            details=details
        )
