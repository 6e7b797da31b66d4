"""Authentication module: the FastAPI dependency that resolves the caller.

Public interface:
    ``require_auth`` -- returns AuthContext or raises 401.

The resolved AuthContext is passed explicitly into every service call.
Nothing downstream reads identity from ambient request state.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .config import settings
from .token_factory import TokenError, TokenPayload, decode_token
from ..database import get_db
from ..exceptions import AuthenticationError

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthContext:
    """Identity of the authenticated caller.

    Services receive ``auth.user_id`` as the owner id for every query.
    """

    user_id: str
    username: str


def require_auth(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    db: Session = Depends(get_db),
) -> AuthContext:
    """Require a valid access token and return the caller's AuthContext.

    Malformed, forged and expired tokens are logged with their specific
    cause but all produce the same 401 response.
    """
    if credentials is None:
        raise AuthenticationError("Missing authentication token")

    try:
        payload = decode_token(credentials.credentials, settings.jwt_secret_key)
    except TokenError as e:
        logger.info(
            "Access token rejected",
            extra={"reason": type(e).__name__, "detail": str(e)},
        )
        raise AuthenticationError("Invalid or expired token") from e

    return _load_auth_context(payload, db)


def _load_auth_context(payload: TokenPayload, db: Session) -> AuthContext:
    """Load the user named by a decoded token payload."""
    from ..models.user import User

    user = db.get(User, payload.sub)
    if user is None:
        raise AuthenticationError("User not found")
    if not user.enabled:
        raise AuthenticationError("Account is disabled")

    return AuthContext(user_id=user.id, username=user.username)
