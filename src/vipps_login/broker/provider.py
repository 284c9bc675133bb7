"""Vipps Login (OpenID Connect) gateway.

Three interactions with the identity provider:

1. :meth:`VippsGateway.build_authorization_url` – pure URL assembly.
2. :meth:`VippsGateway.exchange_code_for_tokens` – POST to the token
   endpoint (form body, HTTP Basic client auth, subscription key).
3. :meth:`VippsGateway.fetch_profile` – GET userinfo with the bearer token.

Calls are made with :mod:`requests`, a bounded timeout and **no retries**.
Failures surface as :class:`~vipps_login.broker.errors.ProviderExchangeError`
or :class:`~vipps_login.broker.errors.ProviderProfileError` carrying the
provider's ``error_description`` / ``error`` when present, otherwise the
transport error text.

SECURITY NOTE
-------------
Authorization codes, access tokens and client secrets are never logged.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Final, Mapping, Protocol, runtime_checkable
from urllib.parse import urlencode

import requests

from vipps_login.broker.errors import ProviderExchangeError, ProviderProfileError
from vipps_login.broker.models import ProfileRecord, ProviderTokens
from vipps_login.broker.tokens import basic_auth_header
from vipps_login.utils.logging import mask_sensitive

if TYPE_CHECKING:  # pragma: no cover
    from vipps_login.config import BrokerSettings

_LOG = logging.getLogger("vipps-login.broker.provider")

AUTHORIZE_PATH: Final[str] = "/access-management-1.0/access/oauth2/auth"
TOKEN_PATH: Final[str] = "/access-management-1.0/access/oauth2/token"
USERINFO_PATH: Final[str] = "/vipps-userinfo-api/userinfo"
DEFAULT_SCOPE: Final[str] = "openid name phoneNumber email address birthDate"

SYSTEM_HEADERS: Final[dict[str, str]] = {
    "Vipps-System-Name": "vipps-login-broker",
    "Vipps-System-Version": "1.0.0",
    "Vipps-System-Plugin-Name": "python-backend",
    "Vipps-System-Plugin-Version": "1.0.0",
}

_CONNECT_TIMEOUT: Final[int] = 5


@runtime_checkable
class ProviderGateway(Protocol):
    """What the orchestrator needs from an identity provider."""

    def build_authorization_url(self, state: str) -> str: ...
    def exchange_code_for_tokens(self, code: str) -> ProviderTokens: ...
    def fetch_profile(self, access_token: str) -> ProfileRecord: ...


def _error_from_response(resp: Any) -> str:
    """Extract the provider's error text, falling back to the HTTP status."""
    try:
        data = resp.json()
    except ValueError:
        data = None
    if isinstance(data, Mapping):
        message = data.get("error_description") or data.get("error")
        if message:
            return str(message)
    return f"HTTP {resp.status_code}"


def _json_body(resp: Any) -> Mapping[str, Any] | None:
    try:
        data = resp.json()
    except ValueError:
        return None
    return data if isinstance(data, Mapping) else None


class VippsGateway(ProviderGateway):
    """HTTP client for the Vipps Login endpoints."""

    def __init__(
        self,
        *,
        api_url: str,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        subscription_key: str = "",
        scope: str = DEFAULT_SCOPE,
        timeout: float = 20,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.client_id = client_id
        self._client_secret = client_secret
        self.redirect_uri = redirect_uri
        self._subscription_key = subscription_key
        self.scope = scope
        self.timeout = (_CONNECT_TIMEOUT, timeout)

    @classmethod
    def from_settings(cls, settings: "BrokerSettings") -> "VippsGateway":
        return cls(
            api_url=settings.api_url,
            client_id=settings.client_id,
            client_secret=settings.client_secret,
            redirect_uri=settings.redirect_uri,
            subscription_key=settings.subscription_key,
            timeout=settings.http_timeout,
        )

    # ------------------------------------------------------------------ #
    # URLs & headers                                                     #
    # ------------------------------------------------------------------ #
    @property
    def authorize_endpoint(self) -> str:
        return self.api_url + AUTHORIZE_PATH

    @property
    def token_endpoint(self) -> str:
        return self.api_url + TOKEN_PATH

    @property
    def userinfo_endpoint(self) -> str:
        return self.api_url + USERINFO_PATH

    def _headers(self, authorization: str) -> dict[str, str]:
        headers = {
            "Authorization": authorization,
            "Ocp-Apim-Subscription-Key": self._subscription_key,
        }
        headers.update(SYSTEM_HEADERS)
        return headers

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #
    def build_authorization_url(self, state: str) -> str:
        """Return the provider authorize URL for *state* (no network I/O)."""
        query_params: dict[str, str] = {
            "client_id": self.client_id,
            "response_type": "code",
            "scope": self.scope,
            "state": state,
            "redirect_uri": self.redirect_uri,
        }
        url = f"{self.authorize_endpoint}?{urlencode(query_params)}"
        _LOG.debug("Built authorize URL state=%s", mask_sensitive(state, 6))
        return url

    def exchange_code_for_tokens(self, code: str) -> ProviderTokens:
        """Exchange an authorization *code* for provider tokens."""
        payload = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
        }
        headers = self._headers(basic_auth_header(self.client_id, self._client_secret))
        headers["Content-Type"] = "application/x-www-form-urlencoded"

        try:
            resp = requests.post(
                self.token_endpoint, data=payload, headers=headers, timeout=self.timeout
            )
        except requests.RequestException as exc:
            _LOG.warning("Token exchange transport error: %s", exc)
            raise ProviderExchangeError(
                f"Failed to exchange code for tokens: {exc}"
            ) from exc

        if not resp.ok:
            message = _error_from_response(resp)
            _LOG.warning("Token exchange failed status=%s: %s", resp.status_code, message)
            raise ProviderExchangeError(
                f"Failed to exchange code for tokens: {message}",
                status_code=resp.status_code,
            )

        data = _json_body(resp)
        if data is None or not data.get("access_token"):
            raise ProviderExchangeError(
                "Failed to exchange code for tokens: malformed token response",
                status_code=resp.status_code,
            )

        _LOG.info("Token exchange succeeded")
        return ProviderTokens(
            access_token=str(data["access_token"]),
            refresh_token=data.get("refresh_token"),
            raw=dict(data),
        )

    def fetch_profile(self, access_token: str) -> ProfileRecord:
        """Fetch the userinfo document for *access_token*."""
        headers = self._headers(f"Bearer {access_token}")
        try:
            resp = requests.get(self.userinfo_endpoint, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            _LOG.warning("Userinfo transport error: %s", exc)
            raise ProviderProfileError(
                f"Failed to retrieve Vipps user info: {exc}"
            ) from exc

        if not resp.ok:
            message = _error_from_response(resp)
            _LOG.warning("Userinfo fetch failed status=%s: %s", resp.status_code, message)
            raise ProviderProfileError(
                f"Failed to retrieve Vipps user info: {message}",
                status_code=resp.status_code,
            )

        data = _json_body(resp)
        try:
            if data is None:
                raise ValueError("userinfo response is not a JSON object")
            profile = ProfileRecord.from_userinfo(data)
        except ValueError as exc:
            raise ProviderProfileError(
                f"Failed to retrieve Vipps user info: {exc}",
                status_code=resp.status_code,
            ) from exc

        _LOG.info("Userinfo retrieved sub=%s", mask_sensitive(profile.sub, 4))
        return profile
