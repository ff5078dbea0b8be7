from __future__ import annotations

import base64
import hashlib
import hmac
import json
import os
import secrets
from datetime import UTC, datetime, timedelta
from typing import Any

PASSWORD_HASH_SCHEME = "pbkdf2_sha256"
PBKDF2_ITERATIONS = 390_000
PBKDF2_SALT_BYTES = 16
ACCESS_TOKEN_TYPE = "access"
ONE_TIME_TOKEN_BYTES = 32


def hash_password(password: str) -> str:
    salt = os.urandom(PBKDF2_SALT_BYTES)
    digest = _pbkdf2(password, salt, PBKDF2_ITERATIONS)
    return "$".join(
        (
            PASSWORD_HASH_SCHEME,
            str(PBKDF2_ITERATIONS),
            _b64url_encode(salt),
            _b64url_encode(digest),
        )
    )


def verify_password(password: str, stored_hash: str) -> bool:
    parts = stored_hash.split("$")
    if len(parts) != 4 or parts[0] != PASSWORD_HASH_SCHEME:
        return False

    try:
        iterations = int(parts[1])
        salt = _b64url_decode(parts[2])
        expected_digest = _b64url_decode(parts[3])
    except (ValueError, TypeError):
        return False
    return hmac.compare_digest(_pbkdf2(password, salt, iterations), expected_digest)


def create_access_token(
    *,
    claims: dict[str, Any],
    secret_key: str,
    ttl_minutes: int,
) -> tuple[str, int]:
    """Sign ``claims`` into a ``payload.signature`` bearer token.

    Returns the token and its lifetime in seconds.
    """
    issued_at = datetime.now(UTC)
    lifetime = timedelta(minutes=max(ttl_minutes, 0))
    payload = {
        **claims,
        "typ": ACCESS_TOKEN_TYPE,
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + lifetime).timestamp()),
    }
    payload_segment = _b64url_encode(json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8"))
    token = f"{payload_segment}.{_sign(payload_segment, secret_key)}"
    return token, int(lifetime.total_seconds())


def decode_access_token(token: str, secret_key: str) -> dict[str, Any] | None:
    """Return the token claims, or None when the token is forged, malformed or expired."""
    payload_segment, separator, signature_segment = token.strip().partition(".")
    if not separator or not payload_segment:
        return None
    if not hmac.compare_digest(_sign(payload_segment, secret_key), signature_segment):
        return None

    try:
        payload = json.loads(_b64url_decode(payload_segment).decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return None
    if not isinstance(payload, dict) or payload.get("typ") != ACCESS_TOKEN_TYPE:
        return None

    expires_at = payload.get("exp")
    if not isinstance(expires_at, int) or expires_at < int(datetime.now(UTC).timestamp()):
        return None
    return payload


def new_verification_token(ttl_hours: int) -> tuple[str, datetime]:
    return _one_time_token(timedelta(hours=ttl_hours))


def new_password_reset_token(ttl_minutes: int) -> tuple[str, datetime]:
    return _one_time_token(timedelta(minutes=ttl_minutes))


def _one_time_token(lifetime: timedelta) -> tuple[str, datetime]:
    return secrets.token_urlsafe(ONE_TIME_TOKEN_BYTES), datetime.now(UTC) + lifetime


def _pbkdf2(password: str, salt: bytes, iterations: int) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)


def _sign(segment: str, secret_key: str) -> str:
    digest = hmac.new(secret_key.encode("utf-8"), segment.encode("utf-8"), hashlib.sha256).digest()
    return _b64url_encode(digest)


def _b64url_encode(value: bytes) -> str:
    return base64.urlsafe_b64encode(value).decode("ascii").rstrip("=")


def _b64url_decode(value: str) -> bytes:
    padded = value + "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))
