"""Login endpoints for native clients.

Handlers are intentionally thin:

1. Parse and validate HTTP-layer parameters.
2. Delegate flow logic to ``LoginBrokerService``.
3. Return an appropriate Starlette ``Response`` type.

The base path is configurable (default: ``/auth``) so that reverse-proxies can
mount the application under arbitrary prefixes.

SECURITY NOTE
-------------
• No raw secrets (state, authorization codes, provider tokens, issued
  credentials) are ever logged.
• Correlation IDs, if present in ``request.state.correlation_id``, are included
  in INFO logs to aid troubleshooting.

This module is HTTP-only and MUST remain free from flow logic.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any
from urllib.parse import parse_qsl

from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response
from starlette.routing import Route

from vipps_login.broker.errors import StorageFaultError
from vipps_login.broker.models import CallbackOutcome
from vipps_login.broker.service import LoginBrokerService
from vipps_login.config import BrokerSettings
from vipps_login.utils.logging import mask_sensitive

_LOG = logging.getLogger("vipps-login.auth.routes")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", "-")


async def _body_params(request: Request) -> dict[str, Any]:
    """Return JSON or form body parameters; empty dict when unparsable."""
    content_type = (request.headers.get("content-type") or "").lower()
    raw = await request.body()
    if not raw:
        return {}
    if content_type.startswith("application/x-www-form-urlencoded"):
        return dict(parse_qsl(raw.decode("utf-8", "replace")))
    try:
        payload = json.loads(raw)
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


# --------------------------------------------------------------------------- #
# Public API                                                                  #
# --------------------------------------------------------------------------- #
def auth_routes(
    svc: LoginBrokerService,
    settings: BrokerSettings,
    *,
    base_path: str = "/auth",
) -> list[Route]:
    """Return the login routes bound to *svc* under *base_path*."""
    scheme = settings.app_redirect_scheme

    # ----- GET /auth/vipps/login ------------------------------------------ #
    async def _start_login(request: Request) -> Response:  # noqa: D401
        try:
            start = svc.start_login()
        except StorageFaultError:
            return JSONResponse({"error": "Failed to start Vipps login flow"}, status_code=500)
        _LOG.info(
            "Login start session=%s correlation_id=%s",
            mask_sensitive(start.session_id, 8),
            _correlation_id(request),
        )
        return JSONResponse(start.to_payload())

    # ----- GET /auth/vipps/callback --------------------------------------- #
    async def _callback(request: Request) -> Response:  # noqa: D401
        params = request.query_params
        # provider calls block; keep them off the event loop
        outcome = await run_in_threadpool(
            svc.handle_callback,
            code=params.get("code"),
            state=params.get("state"),
            error=params.get("error"),
            error_description=params.get("error_description"),
            correlation_id=_correlation_id(request),
        )
        _LOG.info(
            "Callback success=%s correlation_id=%s",
            outcome.success,
            _correlation_id(request),
        )
        return RedirectResponse(outcome.redirect_url(scheme), status_code=302)

    # ----- GET /auth/session/{session_id} --------------------------------- #
    async def _check_session(request: Request) -> Response:  # noqa: D401
        session_id = request.path_params.get("session_id")
        if not session_id:
            return JSONResponse({"error": "sessionId is required"}, status_code=400)
        check = svc.check_session(session_id)
        if not check.found or check.profile is None:
            return JSONResponse({"error": "Session not found or expired"}, status_code=401)
        return JSONResponse(
            {"success": True, "user": check.profile.to_dict(), "authenticated": True}
        )

    # ----- POST /auth/vipps/session --------------------------------------- #
    async def _redeem(request: Request) -> Response:  # noqa: D401
        session_id = (await _body_params(request)).get("sessionId")
        if not session_id:
            return JSONResponse({"error": "sessionId is required"}, status_code=400)
        outcome = svc.redeem_session(str(session_id))
        if outcome.credential is None:
            return JSONResponse({"error": outcome.error}, status_code=401)
        return JSONResponse(outcome.credential.to_payload())

    # ----- POST /auth/signout --------------------------------------------- #
    async def _sign_out(request: Request) -> Response:  # noqa: D401
        session_id = (await _body_params(request)).get("sessionId")
        if not session_id:
            return JSONResponse({"error": "sessionId is required"}, status_code=400)
        outcome = svc.sign_out(str(session_id))
        return JSONResponse(outcome.to_payload())

    # ----- GET /auth/health ----------------------------------------------- #
    async def _health(request: Request) -> Response:  # noqa: D401
        return JSONResponse({"status": "ok", "timestamp": _now_iso()})

    # ----- development only ----------------------------------------------- #
    async def _test_callback(request: Request) -> Response:  # noqa: D401
        if settings.production:
            return JSONResponse({"error": "Not found"}, status_code=404)
        params = request.query_params
        session_id = params.get("sessionId")
        if not session_id:
            return JSONResponse(
                {
                    "error": "sessionId is required",
                    "example": f"{base_path}/test/callback?sessionId=xxx&success=true",
                },
                status_code=400,
            )
        if params.get("success") == "false" or params.get("error"):
            outcome = CallbackOutcome.failed(params.get("error") or "User cancelled")
            return JSONResponse(
                {"message": "Test callback simulated", "redirectUrl": outcome.redirect_url(scheme)}
            )
        session = svc.find_test_session(session_id)
        if session is None:
            return JSONResponse({"error": "Session not found"}, status_code=404)
        if session.profile is None:
            return JSONResponse({"error": "Session exists but has no user data"}, status_code=400)
        return JSONResponse(
            {
                "message": "Test callback simulated",
                "redirectUrl": CallbackOutcome.ok(session_id).redirect_url(scheme),
                "sessionData": {
                    "id": session_id,
                    "user": session.profile.to_dict(),
                    "authenticated": True,
                },
            }
        )

    async def _populate_session(request: Request) -> Response:  # noqa: D401
        if settings.production:
            return JSONResponse({"error": "Not found"}, status_code=404)
        session_id = (await _body_params(request)).get("sessionId")
        if not session_id:
            return JSONResponse({"error": "sessionId is required"}, status_code=400)
        profile = svc.populate_test_session(str(session_id))
        if profile is None:
            return JSONResponse({"error": "Session not found"}, status_code=404)
        return JSONResponse(
            {
                "message": "Session populated with test user",
                "sessionId": session_id,
                "user": profile.to_dict(),
            }
        )

    return [
        Route(f"{base_path}/vipps/login", _start_login, methods=["GET"]),
        Route(f"{base_path}/vipps/callback", _callback, methods=["GET"]),
        Route(f"{base_path}/session/{{session_id}}", _check_session, methods=["GET"]),
        Route(f"{base_path}/vipps/session", _redeem, methods=["POST"]),
        Route(f"{base_path}/signout", _sign_out, methods=["POST"]),
        Route(f"{base_path}/health", _health, methods=["GET"]),
        Route(f"{base_path}/test/callback", _test_callback, methods=["GET"]),
        Route(f"{base_path}/test/populate-session", _populate_session, methods=["POST"]),
    ]
