"""Typed records used by the login broker."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping
from urllib.parse import urlencode

from vipps_login.broker.clock import Clock, default_clock


class SessionStatus(str, enum.Enum):
    """Lifecycle states of a :class:`LoginSession`."""

    STARTED = "started"
    COMPLETED = "completed"
    CLOSED = "closed"


@dataclass(frozen=True, slots=True)
class ProfileRecord:
    """Identity of the authenticated user as returned by the userinfo endpoint.

    The provider payload is kept verbatim in ``raw``; the typed attributes
    are convenience views over the fields the broker relies on.
    """

    sub: str
    name: str | None = None
    email: str | None = None
    phone_number: str | None = None
    address: Mapping[str, Any] | None = None
    birth_date: str | None = None
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_userinfo(cls, data: Mapping[str, Any]) -> "ProfileRecord":
        """Build a record from a userinfo payload (snake or camel case keys)."""
        sub = data.get("sub")
        if not sub:
            raise ValueError("userinfo payload missing 'sub'")
        return cls(
            sub=str(sub),
            name=data.get("name"),
            email=data.get("email"),
            phone_number=data.get("phone_number") or data.get("phoneNumber"),
            address=data.get("address"),
            birth_date=data.get("birthdate") or data.get("birthDate"),
            raw=dict(data),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the profile as handed to clients and embedded in credentials."""
        if self.raw:
            return dict(self.raw)
        data: dict[str, Any] = {"sub": self.sub}
        for key, value in (
            ("name", self.name),
            ("email", self.email),
            ("phone_number", self.phone_number),
            ("address", dict(self.address) if self.address else None),
            ("birthdate", self.birth_date),
        ):
            if value is not None:
                data[key] = value
        return data


@dataclass(slots=True)
class LoginSession:
    """In-flight or completed login attempt.

    Instances handed out by a store are snapshots; only
    :meth:`~vipps_login.broker.store.SessionStore.update_session` changes the
    stored record.
    """

    id: str
    state: str
    created_at: float
    expires_at: float
    provider_access_token: str | None = field(default=None, repr=False)
    provider_refresh_token: str | None = field(default=None, repr=False)
    profile: ProfileRecord | None = None

    @property
    def status(self) -> SessionStatus:
        return SessionStatus.COMPLETED if self.profile is not None else SessionStatus.STARTED

    def is_expired(self, *, clock: Clock = default_clock) -> bool:
        """Return *True* once the session is no longer readable."""
        return clock() >= self.expires_at


@dataclass(frozen=True, slots=True)
class ProviderTokens:
    """Result of a successful authorization code exchange."""

    access_token: str = field(repr=False)
    refresh_token: str | None = field(default=None, repr=False)
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False, compare=False)


def _iso_utc(ts: float) -> str:
    stamp = datetime.fromtimestamp(ts, tz=timezone.utc).isoformat(timespec="milliseconds")
    return stamp.replace("+00:00", "Z")


@dataclass(frozen=True, slots=True)
class IssuedCredential:
    """Signed bearer token issued when a completed session is redeemed.

    ``refresh_token`` is an opaque identifier with no server-side record;
    nothing accepts it for refresh.
    """

    token: str = field(repr=False)
    refresh_token: str = field(repr=False)
    profile: ProfileRecord
    expires_at: int

    def to_payload(self) -> dict[str, Any]:
        return {
            "token": self.token,
            "refreshToken": self.refresh_token,
            "user": self.profile.to_dict(),
            "expiresAt": _iso_utc(self.expires_at),
        }


# --------------------------------------------------------------------------- #
# Orchestrator outcomes                                                       #
# --------------------------------------------------------------------------- #
@dataclass(frozen=True, slots=True)
class LoginStart:
    auth_url: str
    session_id: str

    def to_payload(self) -> dict[str, str]:
        return {"authUrl": self.auth_url, "sessionId": self.session_id}


@dataclass(frozen=True, slots=True)
class CallbackOutcome:
    """Terminal result of the provider callback.

    Carries the session handle on success, never provider tokens.
    """

    success: bool
    session_id: str | None = None
    error: str | None = None

    @classmethod
    def ok(cls, session_id: str) -> "CallbackOutcome":
        return cls(success=True, session_id=session_id)

    @classmethod
    def failed(cls, error: str) -> "CallbackOutcome":
        return cls(success=False, error=error)

    def redirect_url(self, scheme: str) -> str:
        """Return the app deep link that hands this outcome to the client."""
        if self.success:
            query = urlencode({"success": "true", "sessionId": self.session_id})
        else:
            query = urlencode({"success": "false", "error": self.error or ""})
        return f"{scheme}://auth/callback?{query}"


@dataclass(frozen=True, slots=True)
class SessionCheck:
    found: bool
    profile: ProfileRecord | None = None


@dataclass(frozen=True, slots=True)
class RedeemOutcome:
    credential: IssuedCredential | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class SignOutOutcome:
    existed: bool

    def to_payload(self) -> dict[str, Any]:
        return {
            "success": self.existed,
            "message": "Signed out" if self.existed else "Session not found",
        }
