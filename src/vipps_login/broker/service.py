"""LoginBrokerService – the login flow orchestrator.

Handlers in :mod:`vipps_login.servers.auth` call the façade methods below.
Each method sequences the session store and the provider gateway and
returns a structured outcome; no :class:`LoginFlowError` escapes except
:class:`StorageFaultError` from :meth:`LoginBrokerService.start_login`,
where there is no outcome to report.

Flow
----
``start_login`` → provider consent → ``handle_callback`` (consume state,
exchange code, fetch profile, complete session) → ``check_session`` /
``redeem_session`` → ``sign_out``.

Provider calls run outside the store lock: the session is read, the lock
is released, the network calls complete, then the result is written back.
"""

from __future__ import annotations

import logging
from typing import Final

from vipps_login.broker.clock import Clock, default_clock
from vipps_login.broker.errors import (
    InvalidStateError,
    LoginFlowError,
    MissingParameterError,
    ProviderDeniedError,
    SessionNotReadyError,
    StorageFaultError,
)
from vipps_login.broker.log_utils import get_flow_logger
from vipps_login.broker.models import (
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
from vipps_login.broker.provider import ProviderGateway
from vipps_login.broker.store import SessionStore
from vipps_login.broker.tokens import generate_opaque_id, generate_state, sign_credential

_LOG = logging.getLogger("vipps-login.broker.service")

DEFAULT_CREDENTIAL_TTL: Final[int] = 7 * 24 * 60 * 60

# Fixed identity used by the development-only populate route.
TEST_PROFILE: Final[dict] = {
    "sub": "4712345678",
    "name": "Test User",
    "email": "test@example.com",
    "phoneNumber": "+4712345678",
    "address": {
        "streetAddress": "Test Street 1",
        "postalCode": "0123",
        "region": "Oslo",
        "country": "NO",
    },
    "birthDate": "1990-01-01",
}


class LoginBrokerService:
    """Application service orchestrating the Vipps login flow."""

    def __init__(
        self,
        *,
        store: SessionStore,
        gateway: ProviderGateway,
        credential_secret: str,
        credential_ttl: int = DEFAULT_CREDENTIAL_TTL,
        clock: Clock = default_clock,
    ) -> None:
        if not credential_secret:
            raise ValueError("credential_secret is required")
        self.store = store
        self.gateway = gateway
        self._credential_secret = credential_secret
        self.credential_ttl = credential_ttl
        self._clock = clock

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #
    def _completed_session(self, session_id: str) -> LoginSession | None:
        try:
            session = self.store.find_by_id(session_id)
        except Exception as exc:
            raise StorageFaultError() from exc
        if session is None or session.status is not SessionStatus.COMPLETED:
            return None
        return session

    # ------------------------------------------------------------------ #
    # Public API called by HTTP handlers                                 #
    # ------------------------------------------------------------------ #
    def start_login(self) -> LoginStart:
        """Create a new session and return the provider redirect target.

        Every call creates an independent session.

        Raises
        ------
        StorageFaultError
            If the session cannot be allocated.
        """
        state = generate_state()
        try:
            session_id = self.store.create_session(state)
        except Exception as exc:
            _LOG.error("Failed to create login session: %s", exc, exc_info=True)
            raise StorageFaultError("Failed to start Vipps login flow") from exc

        auth_url = self.gateway.build_authorization_url(state)
        get_flow_logger(session_id=session_id).info("Login started")
        return LoginStart(auth_url=auth_url, session_id=session_id)

    def handle_callback(
        self,
        *,
        code: str | None,
        state: str | None,
        error: str | None = None,
        error_description: str | None = None,
        correlation_id: str | None = None,
    ) -> CallbackOutcome:
        """Complete the login for the session bound to *state*.

        The state is consumed on resolution, so a replayed callback fails
        with "invalid or expired state".  A provider failure after that
        leaves the session in ``STARTED``; the client must start over.
        """
        log = get_flow_logger(correlation_id=correlation_id)
        try:
            if error:
                raise ProviderDeniedError(error, error_description)
            if not code or not state:
                raise MissingParameterError()

            try:
                session = self.store.consume_state(state)
            except Exception as exc:
                raise StorageFaultError() from exc
            if session is None:
                raise InvalidStateError()

            log = get_flow_logger(session_id=session.id, correlation_id=correlation_id)
            tokens = self.gateway.exchange_code_for_tokens(code)
            profile = self.gateway.fetch_profile(tokens.access_token)

            try:
                updated = self.store.update_session(
                    session.id,
                    access_token=tokens.access_token,
                    refresh_token=tokens.refresh_token,
                    profile=profile,
                )
            except Exception as exc:
                raise StorageFaultError() from exc
            if not updated:
                # expired or signed out while the provider calls were in flight
                raise InvalidStateError()
        except LoginFlowError as exc:
            log.warning("Callback failed (%s): %s", exc.code, exc)
            return CallbackOutcome.failed(str(exc))
        except Exception:  # broad: mapped to user-visible failure
            log.exception("Unexpected callback error")
            return CallbackOutcome.failed("Authentication failed")

        log.info("Callback completed")
        return CallbackOutcome.ok(session.id)

    def check_session(self, session_id: str) -> SessionCheck:
        """Report a session as found only once it is ``COMPLETED``."""
        try:
            session = self._completed_session(session_id)
        except StorageFaultError:
            _LOG.error("Session lookup failed", exc_info=True)
            return SessionCheck(found=False)
        if session is None:
            return SessionCheck(found=False)
        return SessionCheck(found=True, profile=session.profile)

    def redeem_session(self, session_id: str) -> RedeemOutcome:
        """Issue a signed bearer credential for a completed session.

        The session is left untouched and may be redeemed again.
        """
        try:
            session = self._completed_session(session_id)
            if session is None or session.profile is None:
                raise SessionNotReadyError()
        except LoginFlowError as exc:
            get_flow_logger(session_id=session_id).info("Redeem refused: %s", exc)
            return RedeemOutcome(error=str(exc))

        profile: ProfileRecord = session.profile
        token, expires_at = sign_credential(
            {"sub": profile.sub, "user": profile.to_dict()},
            self._credential_secret,
            expires_in=self.credential_ttl,
            clock=self._clock,
        )
        credential = IssuedCredential(
            token=token,
            refresh_token=generate_opaque_id(),
            profile=profile,
            expires_at=expires_at,
        )
        get_flow_logger(session_id=session_id).info("Credential issued")
        return RedeemOutcome(credential=credential)

    def sign_out(self, session_id: str) -> SignOutOutcome:
        """Delete the session; succeeds whether or not it existed."""
        try:
            existed = self.store.delete_session(session_id)
        except Exception:
            _LOG.error("Session delete failed", exc_info=True)
            existed = False
        get_flow_logger(session_id=session_id).info(
            "Sign-out %s", SessionStatus.CLOSED.value if existed else "no-op"
        )
        return SignOutOutcome(existed=existed)

    # ------------------------------------------------------------------ #
    # Development helpers                                                #
    # ------------------------------------------------------------------ #
    def find_test_session(self, session_id: str) -> LoginSession | None:
        """Return *session_id* in any status; *None* when absent or expired."""
        return self.store.find_by_id(session_id)

    def populate_test_session(self, session_id: str) -> ProfileRecord | None:
        """Complete *session_id* with :data:`TEST_PROFILE`; *None* if absent."""
        profile = ProfileRecord.from_userinfo(TEST_PROFILE)
        now = int(self._clock())
        updated = self.store.update_session(
            session_id,
            access_token=f"test_access_token_{now}",
            refresh_token=f"test_refresh_token_{now}",
            profile=profile,
        )
        if not updated:
            return None
        get_flow_logger(session_id=session_id).info("Session populated with test user")
        return profile
