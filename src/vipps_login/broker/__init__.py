"""Login broker core package.

This namespace hosts the **HTTP-agnostic** building blocks of the Vipps
login flow used by mobile clients that cannot hold a client secret.

Sub-modules
-----------
clock
    Test-friendly time abstraction.
tokens
    Random identifiers, Basic auth header, expiry arithmetic, signed credentials.
models
    Session, profile, credential and outcome records.
errors
    Exception types raised by the flow.
store
    Session storage protocol and in-memory implementation.
sweeper
    Periodic removal of expired sessions.
provider
    Vipps Login HTTP gateway.
service
    The flow orchestrator.
log_utils
    Structured logging helpers (thin wrapper around :pymod:`logging`).

All public objects are re-exported here for convenience.
"""

from __future__ import annotations

from .clock import Clock, default_clock  # noqa: F401
from .errors import (  # noqa: F401
    InvalidCredentialError,
    InvalidStateError,
    LoginFlowError,
    MissingParameterError,
    ProviderDeniedError,
    ProviderExchangeError,
    ProviderProfileError,
    SessionNotReadyError,
    StorageFaultError,
)
from .log_utils import get_flow_logger  # noqa: F401
from .models import (  # noqa: F401
    CallbackOutcome,
    IssuedCredential,
    LoginSession,
    LoginStart,
    ProfileRecord,
    RedeemOutcome,
    SessionCheck,
    SessionStatus,
    SignOutOutcome,
)
from .provider import ProviderGateway, VippsGateway  # noqa: F401
from .service import LoginBrokerService  # noqa: F401
from .store import InMemorySessionStore, SessionStore  # noqa: F401
from .sweeper import SessionSweeper  # noqa: F401

__all__ = [
    # clock
    "Clock",
    "default_clock",
    # errors
    "LoginFlowError",
    "MissingParameterError",
    "InvalidStateError",
    "ProviderDeniedError",
    "ProviderExchangeError",
    "ProviderProfileError",
    "SessionNotReadyError",
    "StorageFaultError",
    "InvalidCredentialError",
    # models
    "LoginSession",
    "ProfileRecord",
    "IssuedCredential",
    "SessionStatus",
    "LoginStart",
    "CallbackOutcome",
    "SessionCheck",
    "RedeemOutcome",
    "SignOutOutcome",
    # components
    "SessionStore",
    "InMemorySessionStore",
    "SessionSweeper",
    "ProviderGateway",
    "VippsGateway",
    "LoginBrokerService",
    # logging helpers
    "get_flow_logger",
]
