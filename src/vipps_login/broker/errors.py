"""Exception types raised by the login broker core.

Only lightweight, **data-carrying** exceptions live here so that the HTTP
layer can turn them into redirects or JSON payloads.  Messages are safe to
show to the client; they never contain tokens or codes.
"""

from __future__ import annotations


class LoginFlowError(RuntimeError):
    """Base class for every caller-visible login failure."""

    code: str = "login_failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or "Authentication failed")


class MissingParameterError(LoginFlowError):
    """The provider callback lacked ``code`` or ``state``."""

    code = "missing_parameter"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or "missing parameter")


class InvalidStateError(LoginFlowError):
    """The callback ``state`` is unknown, already used or expired."""

    code = "invalid_state"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or "invalid or expired state")


class ProviderDeniedError(LoginFlowError):
    """The provider redirected back with an explicit ``error``."""

    code = "provider_denied"

    def __init__(self, error: str, description: str | None = None) -> None:
        super().__init__(description or error)
        self.provider_error = error
        self.provider_error_description = description


class ProviderError(LoginFlowError):
    """Transport failure or non-2xx answer from the identity provider."""

    code = "provider_error"

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProviderExchangeError(ProviderError):
    """The authorization code could not be exchanged for tokens."""

    code = "provider_exchange_error"


class ProviderProfileError(ProviderError):
    """The user profile could not be fetched with the access token."""

    code = "provider_profile_error"


class SessionNotReadyError(LoginFlowError):
    """Redeem attempted on a session that is absent or not completed."""

    code = "session_not_ready"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or "Session not found or expired")


class StorageFaultError(LoginFlowError):
    """The session store failed; fatal for the current request."""

    code = "storage_fault"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or "Session storage failure")


class InvalidCredentialError(LoginFlowError):
    """An issued bearer credential failed signature or expiry checks."""

    code = "invalid_credential"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or "Invalid credential")
