"""Pure functions for issuing and verifying signed access tokens.

No classes with state, no revocation: a token is valid when its signature
matches and it has not expired. Revocation of sessions lives in the refresh
token store, not here.

Failures raise a distinct exception per cause so the access boundary can log
what went wrong before collapsing everything into a single 401.
"""

import hashlib
import hmac
import base64
import json
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

ISSUER = "omnivault"
TOKEN_TYPE = "access"


class TokenError(Exception):
    """Base class for access token verification failures."""


class MalformedToken(TokenError):
    """Token is not three base64url segments with a valid header and claims."""


class BadSignature(TokenError):
    """Signature does not match the signing input."""


class SignatureExpired(TokenError):
    """Token was valid but its ``exp`` claim is in the past."""


@dataclass(frozen=True)
class TokenPayload:
    """Decoded token payload. Immutable."""
    sub: str
    iat: datetime
    exp: datetime


def create_token(
    subject: str,
    secret: str,
    ttl: timedelta,
    now: Optional[float] = None,
) -> str:
    """Create a signed HS256 token.

    Args:
        subject: User id carried in the ``sub`` claim.
        secret: Configured secret; the HMAC key is derived from it.
        ttl: Lifetime of the token.
        now: Issue time as a UNIX timestamp (injectable for testing).

    Returns:
        Encoded token string.
    """
    if not subject:
        raise ValueError("Token subject must not be empty")

    issued_at = time.time() if now is None else now
    payload = {
        "sub": subject,
        "iat": int(issued_at),
        "exp": int(issued_at + ttl.total_seconds()),
        "iss": ISSUER,
        "typ": TOKEN_TYPE,
    }

    header = {"alg": "HS256", "typ": "JWT"}
    segments = [
        _b64encode(json.dumps(header, separators=(",", ":")).encode()),
        _b64encode(json.dumps(payload, separators=(",", ":")).encode()),
    ]
    signing_input = b".".join(segments)
    segments.append(_b64encode(_sign(signing_input, secret)))
    return b".".join(segments).decode()


def decode_token(token: str, secret: str, now: Optional[float] = None) -> TokenPayload:
    """Verify a token and return its payload.

    Args:
        token: Encoded token string.
        secret: Configured secret used at issue time.
        now: Current UNIX timestamp (injectable for testing).

    Raises:
        MalformedToken: structure, encoding, header or claims are invalid.
        BadSignature: signature does not match.
        SignatureExpired: ``exp`` has passed.
    """
    if not token:
        raise MalformedToken("Empty token")

    parts = token.encode().split(b".")
    if len(parts) != 3 or not all(parts):
        raise MalformedToken("Token must have three segments")

    header = _decode_json_segment(parts[0], "header")
    if header.get("alg") != "HS256":
        raise MalformedToken(f"Unsupported algorithm: {header.get('alg')}")

    try:
        actual_sig = _b64decode(parts[2])
    except ValueError as e:
        raise MalformedToken("Signature segment is not valid base64url") from e

    expected_sig = _sign(parts[0] + b"." + parts[1], secret)
    if not hmac.compare_digest(expected_sig, actual_sig):
        raise BadSignature("Signature verification failed")

    payload = _decode_json_segment(parts[1], "payload")
    sub = payload.get("sub")
    exp = payload.get("exp")
    iat = payload.get("iat", 0)
    if not isinstance(sub, str) or not sub:
        raise MalformedToken("Missing subject claim")
    if not isinstance(exp, (int, float)) or not isinstance(iat, (int, float)):
        raise MalformedToken("Missing or invalid time claims")
    if payload.get("typ", TOKEN_TYPE) != TOKEN_TYPE:
        raise MalformedToken("Not an access token")

    current = time.time() if now is None else now
    if current >= exp:
        raise SignatureExpired("Token has expired")

    return TokenPayload(
        sub=sub,
        iat=datetime.fromtimestamp(iat, tz=timezone.utc),
        exp=datetime.fromtimestamp(exp, tz=timezone.utc),
    )


def _signing_key(secret: str) -> bytes:
    return hashlib.sha256(secret.encode()).digest()


def _sign(signing_input: bytes, secret: str) -> bytes:
    return hmac.new(_signing_key(secret), signing_input, hashlib.sha256).digest()


def _decode_json_segment(segment: bytes, name: str) -> dict:
    try:
        value = json.loads(_b64decode(segment))
    except (ValueError, UnicodeDecodeError) as e:
        raise MalformedToken(f"Token {name} is not valid base64url JSON") from e
    if not isinstance(value, dict):
        raise MalformedToken(f"Token {name} must be a JSON object")
    return value


# --- base64url helpers (no padding, URL-safe) ---

def _b64encode(data: bytes) -> bytes:
    return base64.urlsafe_b64encode(data).rstrip(b"=")


def _b64decode(data: bytes) -> bytes:
    padding = 4 - len(data) % 4
    if padding != 4:
        data += b"=" * padding
    return base64.urlsafe_b64decode(data)
