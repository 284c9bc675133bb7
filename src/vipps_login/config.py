"""Process-wide settings for the login broker.

Values are read once from the environment by :meth:`BrokerSettings.from_env`;
nothing re-reads them at runtime.

Environment variables
---------------------
VIPPS_API_URL
    Provider base URL (default ``https://apitest.vipps.no``).
VIPPS_CLIENT_ID / VIPPS_CLIENT_SECRET
    OAuth client credentials.  The secret is required.
VIPPS_REDIRECT_URI
    Callback URL registered with the provider.
VIPPS_OCP_APIM_SUBSCRIPTION_KEY
    API subscription key sent as ``Ocp-Apim-Subscription-Key``.
JWT_SECRET
    Signing secret for issued credentials.  A transient secret is generated
    when unset.
APP_REDIRECT_SCHEME
    Deep-link scheme of the mobile app receiving the callback outcome.
APP_ENV
    ``production`` disables the development-only test routes.
SESSION_INITIAL_TTL_SECONDS, SESSION_EXTENDED_TTL_SECONDS,
CREDENTIAL_TTL_SECONDS, SESSION_SWEEP_INTERVAL_SECONDS,
VIPPS_HTTP_TIMEOUT_SECONDS
    Durations in seconds.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from typing import Final

from vipps_login.utils.environment import env_int, env_str, is_production

logger = logging.getLogger("vipps-login.config")

DEFAULT_API_URL: Final[str] = "https://apitest.vipps.no"
DEFAULT_REDIRECT_SCHEME: Final[str] = "vippslogin"


@dataclass(frozen=True)
class BrokerSettings:
    """Configuration consumed by the gateway, the store and the orchestrator."""

    client_id: str
    client_secret: str = field(repr=False)
    redirect_uri: str
    api_url: str = DEFAULT_API_URL
    subscription_key: str = field(default="", repr=False)
    credential_secret: str = field(default="", repr=False)
    app_redirect_scheme: str = DEFAULT_REDIRECT_SCHEME
    production: bool = False
    session_initial_ttl: int = 30 * 60
    session_extended_ttl: int = 60 * 60
    credential_ttl: int = 7 * 24 * 60 * 60
    sweep_interval: int = 5 * 60
    http_timeout: int = 20

    def __post_init__(self) -> None:
        if not self.client_secret:
            raise ValueError("VIPPS_CLIENT_SECRET environment variable is required")
        if self.session_extended_ttl <= self.session_initial_ttl:
            raise ValueError(
                "SESSION_EXTENDED_TTL_SECONDS must exceed SESSION_INITIAL_TTL_SECONDS"
            )
        if not self.credential_secret:
            # dataclass is frozen; bypass for the one-off default
            object.__setattr__(self, "credential_secret", secrets.token_urlsafe(48))
            logger.warning(
                "JWT_SECRET not set – generated transient secret. "
                "Issued credentials will stop verifying after process restart."
            )
        object.__setattr__(self, "api_url", self.api_url.rstrip("/"))

    @classmethod
    def from_env(cls) -> "BrokerSettings":
        """Build settings from environment variables (see module docstring)."""
        settings = cls(
            client_id=env_str("VIPPS_CLIENT_ID"),
            client_secret=env_str("VIPPS_CLIENT_SECRET"),
            redirect_uri=env_str("VIPPS_REDIRECT_URI"),
            api_url=env_str("VIPPS_API_URL", DEFAULT_API_URL),
            subscription_key=env_str("VIPPS_OCP_APIM_SUBSCRIPTION_KEY"),
            credential_secret=env_str("JWT_SECRET"),
            app_redirect_scheme=env_str("APP_REDIRECT_SCHEME", DEFAULT_REDIRECT_SCHEME),
            production=is_production(),
            session_initial_ttl=env_int("SESSION_INITIAL_TTL_SECONDS", 30 * 60),
            session_extended_ttl=env_int("SESSION_EXTENDED_TTL_SECONDS", 60 * 60),
            credential_ttl=env_int("CREDENTIAL_TTL_SECONDS", 7 * 24 * 60 * 60),
            sweep_interval=env_int("SESSION_SWEEP_INTERVAL_SECONDS", 5 * 60),
            http_timeout=env_int("VIPPS_HTTP_TIMEOUT_SECONDS", 20),
        )
        if not settings.client_id or not settings.redirect_uri:
            logger.warning("VIPPS_CLIENT_ID or VIPPS_REDIRECT_URI not set")
        if not settings.subscription_key:
            logger.warning("VIPPS_OCP_APIM_SUBSCRIPTION_KEY not set")
        logger.info(
            "Loaded settings api_url=%s client_id=%s production=%s",
            settings.api_url,
            settings.client_id or "-",
            settings.production,
        )
        return settings
