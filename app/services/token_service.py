"""JWT creation and validation (ES256).

Two kinds of token share one key pair and are told apart by audience:

* admin tokens: bearer tokens issued when the admin PIN is entered,
  carried in the Authorization header of /v1/admin/* calls.
* session tokens: the learner's ``sh_session`` cookie.  The subject is
  the learner session id; the session state itself lives in the
  session store, not in the token.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt
from cryptography.hazmat.primitives.asymmetric import ec

from app.repos.session_repo import SESSION_TTL_SECONDS

# ---------------------------------------------------------------------------
# Key management
# ---------------------------------------------------------------------------
# An ephemeral EC key pair is generated on import: restarting the
# service signs everyone out and orphans learner cookies.
_private_key = ec.generate_private_key(ec.SECP256R1())
_public_key = _private_key.public_key()

ALGORITHM = "ES256"
ISSUER = "safetyhub"
ADMIN_AUDIENCE = "safetyhub-admin"
ADMIN_TOKEN_TTL_MIN = 60

SESSION_AUDIENCE = "safetyhub-session"


def create_admin_token(*, sub: str = "admin", roles: list[str] | None = None) -> str:
    now = datetime.now(UTC)
    payload = {
        "sub": sub,
        "iss": ISSUER,
        "aud": ADMIN_AUDIENCE,
        "exp": now + timedelta(minutes=ADMIN_TOKEN_TTL_MIN),
        "iat": now,
        "jti": str(uuid.uuid4()),
        "roles": roles if roles is not None else ["admin"],
    }
    return jwt.encode(payload, _private_key, algorithm=ALGORITHM)


def decode_admin_token(token: str) -> dict:
    """Verify signature and claims, return the payload.

    Pins the algorithm to ES256.  Raises jwt.ExpiredSignatureError or
    jwt.InvalidTokenError on failure.
    """
    return jwt.decode(
        token,
        _public_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=ADMIN_AUDIENCE,
        options={"require": ["sub", "exp", "iat", "jti"]},
    )


# ---------------------------------------------------------------------------
# Session tokens (learner cookie)
# ---------------------------------------------------------------------------


def create_session_token(*, sub: str) -> str:
    now = datetime.now(UTC)
    payload = {
        "sub": sub,
        "iss": ISSUER,
        "aud": SESSION_AUDIENCE,
        "exp": now + timedelta(seconds=SESSION_TTL_SECONDS),
        "iat": now,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, _private_key, algorithm=ALGORITHM)


def decode_session_token(token: str) -> dict:
    """Verify a session JWT. Pins audience to SESSION_AUDIENCE.

    Raises jwt.ExpiredSignatureError, jwt.InvalidTokenError on failure.
    """
    return jwt.decode(
        token,
        _public_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=SESSION_AUDIENCE,
        options={"require": ["sub", "exp", "iat", "jti"]},
    )
