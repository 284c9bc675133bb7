"""Stateless token helpers used across the login flow.

* opaque identifiers for sessions and credential refresh ids
* unpredictable ``state`` values for the authorization redirect
* the HTTP Basic header used against the provider token endpoint
* expiry arithmetic against an injected :class:`~vipps_login.broker.clock.Clock`
* HS256-signed bearer credentials (PyJWT)

This module performs **no logging** of the values it produces.
"""

from __future__ import annotations

import base64
import secrets
import uuid
from typing import Any, Final, Mapping

import jwt

from vipps_login.broker.clock import Clock, default_clock
from vipps_login.broker.errors import InvalidCredentialError

CREDENTIAL_ALGORITHM: Final[str] = "HS256"
_STATE_BYTES: Final[int] = 32


def generate_state() -> str:
    """Return a cryptographically random, URL-safe ``state`` value."""
    return secrets.token_urlsafe(_STATE_BYTES)


def generate_opaque_id() -> str:
    """Return a random UUID4 string (session handles, refresh ids)."""
    return str(uuid.uuid4())


def basic_auth_header(client_id: str, client_secret: str) -> str:
    """Build the ``Authorization: Basic`` value for *client_id*/*client_secret*."""
    raw = f"{client_id}:{client_secret}".encode("utf-8")
    return "Basic " + base64.b64encode(raw).decode("ascii")


def expires_after(
    seconds: float, *, clock: Clock = default_clock, start: float | None = None
) -> float:
    """Return the epoch timestamp *seconds* after *start* (default: now)."""
    return (clock() if start is None else start) + seconds


def is_expired(expires_at: float, *, clock: Clock = default_clock) -> bool:
    """Return *True* once the current time reached *expires_at*."""
    return clock() >= expires_at


def sign_credential(
    claims: Mapping[str, Any],
    secret: str,
    *,
    expires_in: int,
    clock: Clock = default_clock,
) -> tuple[str, int]:
    """Sign *claims* into a bearer token valid for *expires_in* seconds.

    Parameters
    ----------
    claims:
        Payload to embed; must contain ``sub``.
    secret:
        HMAC signing secret.
    expires_in:
        Lifetime in seconds.
    clock:
        Time source used for ``iat`` / ``exp``.

    Returns
    -------
    tuple[str, int]
        ``(token, exp)`` where *exp* is the UNIX expiry timestamp.
    """
    if not claims.get("sub"):
        raise ValueError("credential claims require a subject")
    now = int(clock())
    exp = now + int(expires_in)
    payload = dict(claims)
    payload["sub"] = str(payload["sub"])
    payload.update({"iat": now, "exp": exp})
    token = jwt.encode(payload, secret, algorithm=CREDENTIAL_ALGORITHM)
    return token, exp


def verify_credential(
    token: str,
    secret: str,
    *,
    clock: Clock = default_clock,
) -> dict[str, Any]:
    """Validate signature and expiry of *token* and return its claims.

    Expiry is checked against *clock* rather than PyJWT's wall clock so the
    result is deterministic under test.

    Raises
    ------
    InvalidCredentialError
        If the token is malformed, tampered with or expired.
    """
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[CREDENTIAL_ALGORITHM],
            options={"require": ["exp", "sub"], "verify_exp": False, "verify_iat": False},
        )
    except jwt.InvalidTokenError as exc:
        raise InvalidCredentialError(f"Invalid credential: {exc}") from None

    if is_expired(float(payload["exp"]), clock=clock):
        raise InvalidCredentialError("Credential expired")
    return payload
