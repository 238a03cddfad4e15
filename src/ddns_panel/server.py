"""
FastAPI server for DDNS Panel.

This module provides the web API used by the configuration form: saving
the configuration, reading it back in masked form, viewing recent logs and
testing the webhook. Access is protected by HTTP Basic authentication once
credentials are set, and optionally restricted to private networks.
"""

from __future__ import annotations

import base64
import binascii
import ipaddress
import logging
import secrets
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import httpx
from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from starlette import status as st_status
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from ddns_panel import __version__
from ddns_panel.config import Config, load_config
from ddns_panel.credentials import verify_password
from ddns_panel.i18n import select_language, translate
from ddns_panel.masking import to_client_dto
from ddns_panel.models import ConfigView
from ddns_panel.runtime import PanelRuntime, build_runtime
from ddns_panel.webhook import SAMPLE_VARIABLES, send_webhook

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from typing import Final


logger = logging.getLogger(__name__)

REALM: Final[str] = "ddns-panel"

# Paths reachable without credentials
_PUBLIC_PATHS: Final[frozenset[str]] = frozenset({"/health"})

# Global settings (set during startup)
_config: Config | None = None


def get_config() -> Config:
    """Get the current settings."""
    if _config is None:
        msg = "Configuration not loaded"
        raise RuntimeError(msg)
    return _config


def set_preloaded_config(config: Config) -> None:
    """
    Inject pre-loaded settings into the server module.

    This allows the CLI entry point to pass the parsed settings to the
    server instance, avoiding the need to re-parse command-line arguments
    during application startup (e.g. in the lifespan handler).

    Parameters
    ----------
    config : Config
        The settings object to set.
    """
    global _config  # noqa: PLW0603
    _config = config


def get_runtime(request: Request) -> PanelRuntime:
    """
    Get the runtime attached to the application.

    Raises
    ------
    HTTPException
        503 if the application has not finished starting.
    """
    runtime: PanelRuntime | None = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(
            status_code=st_status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not ready",
        )
    return runtime


def is_lan_client(host: str | None) -> bool:
    """
    Check whether a client address belongs to a private network.

    Parameters
    ----------
    host : str | None
        Client host as reported by the ASGI server (None for Unix sockets).

    Returns
    -------
    bool
        True for loopback, private and link-local addresses and for
        connections without a network peer.
    """
    if host is None:
        return True
    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        return False
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return ip.is_loopback or ip.is_private or ip.is_link_local


def parse_basic_auth(header_value: str) -> tuple[str, str] | None:
    """
    Parse an ``Authorization: Basic ...`` header value.

    Parameters
    ----------
    header_value : str
        Raw header value.

    Returns
    -------
    tuple[str, str] | None
        ``(username, password)``, or None if the header is missing or
        malformed.
    """
    scheme, _, encoded = header_value.partition(" ")
    if scheme.lower() != "basic" or not encoded.strip():
        return None
    try:
        decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    username, sep, password = decoded.partition(":")
    if not sep:
        return None
    return username, password


def _error_response(
    status_code: int,
    message: str,
    headers: dict[str, str] | None = None,
) -> Response:
    return JSONResponse(
        status_code=status_code,
        content={"status": "error", "code": status_code, "message": message},
        headers=headers,
    )


class AuthMiddleware(BaseHTTPMiddleware):
    """
    Middleware for network restriction and authentication.

    1. WAN access disabled and client outside private networks -> 403
    2. Credentials set and missing/invalid Basic credentials -> 401
    Until credentials are set (first run) requests pass through; the
    bootstrap window protects the save endpoint instead.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """Process the request through network and credential checks."""
        if request.url.path in _PUBLIC_PATHS:
            return await call_next(request)

        runtime: PanelRuntime | None = getattr(request.app.state, "runtime", None)
        if runtime is None:
            return await call_next(request)

        config, _ = runtime.service.get()
        client_host = request.client.host if request.client else None

        if config.not_allow_wan_access and not is_lan_client(client_host):
            logger.warning("[auth] Rejected WAN client %s.", client_host)
            return _error_response(
                st_status.HTTP_403_FORBIDDEN,
                "Access from public networks is disabled",
            )

        if not config.has_credentials:
            return await call_next(request)

        challenge = {"WWW-Authenticate": f'Basic realm="{REALM}"'}
        credentials = parse_basic_auth(request.headers.get("authorization", ""))
        if credentials is None:
            return _error_response(
                st_status.HTTP_401_UNAUTHORIZED,
                "Missing credentials",
                challenge,
            )

        username, password = credentials
        username_ok = secrets.compare_digest(
            username.encode("utf-8"),
            config.username.encode("utf-8"),
        )
        # bcrypt is slow on purpose, keep it off the event loop
        password_ok = await run_in_threadpool(verify_password, password, config.password)
        if not (username_ok and password_ok):
            logger.warning("[auth] Invalid credentials from %s.", client_host)
            return _error_response(
                st_status.HTTP_401_UNAUTHORIZED,
                "Invalid username or password",
                challenge,
            )

        return await call_next(request)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    global _config  # noqa: PLW0603

    # If settings were not set by CLI (e.g., running via uvicorn directly),
    # load them here
    if _config is None:
        _config = load_config()

    # A runtime attached beforehand is owned by whoever attached it
    owns_runtime = getattr(_app.state, "runtime", None) is None
    if owns_runtime:
        _app.state.runtime = build_runtime(_config)
        _app.state.runtime.start()

    # Dynamically register "/health" endpoint (GET method) if enabled
    if _config.health.enabled:
        _app.add_api_route("/health", health, methods=["GET"])

    logger.info(
        'DDNS Panel starting on "%s:%d" (store: "%s").',
        _config.server.host,
        _config.server.port,
        _config.store.path_as_path,
    )

    yield

    if owns_runtime:
        _app.state.runtime.stop()
        _app.state.runtime = None

    logger.info("DDNS Panel shutting down.")


app = FastAPI(
    title="DDNS Panel",
    description="Web configuration panel for a dynamic-DNS updater",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(AuthMiddleware)


@app.exception_handler(HTTPException)
async def http_exception_handler(_request: Request, exc: HTTPException) -> Response:
    """
    Handle HTTP exceptions with consistent JSON responses.

    Convert FastAPI's default {"detail": "..."} format to the unified
    API response format {"status": "error", "code": ..., "message": "..."}.
    """
    return _error_response(exc.status_code, str(exc.detail), exc.headers)


@app.post("/save")
async def save(request: Request) -> Response:
    """
    Save the configuration submitted by the form.

    Always answers 200; failures are reported in the "result" field in the
    language selected by the Accept-Language header.
    """
    runtime = get_runtime(request)
    lang = select_language(request.headers.get("accept-language"))
    body = await request.body()

    response = await run_in_threadpool(runtime.pipeline.save, body, lang)

    return JSONResponse(content=response.model_dump(by_alias=True))


@app.get("/config")
async def read_config(request: Request) -> Response:
    """Return the configuration with provider credentials masked."""
    runtime = get_runtime(request)
    config, _ = runtime.service.get()
    view = ConfigView(
        username=config.username,
        not_allow_wan_access=config.not_allow_wan_access,
        webhook_url=config.webhook_url,
        webhook_request_body=config.webhook_request_body,
        webhook_headers=config.webhook_headers,
        dns_conf=[to_client_dto(d) for d in config.dns_conf],
    )
    return JSONResponse(content=view.model_dump(by_alias=True))


@app.get("/logs")
async def read_logs(request: Request) -> Response:
    """Return recent log lines, oldest first."""
    runtime = get_runtime(request)
    return JSONResponse(content={"logs": runtime.log_buffer.lines()})


@app.post("/logs/clear")
async def clear_logs(request: Request) -> Response:
    """Discard the buffered log lines."""
    runtime = get_runtime(request)
    runtime.log_buffer.clear()
    return JSONResponse(content={"status": "ok"})


@app.post("/webhook-test")
async def webhook_test(request: Request) -> Response:
    """Send the configured webhook once with sample values."""
    runtime = get_runtime(request)
    lang = select_language(request.headers.get("accept-language"))
    config, _ = runtime.service.get()

    if not config.webhook_url:
        return JSONResponse(content={"result": translate(lang, "webhook_not_configured")})

    try:
        upstream = await send_webhook(
            config.webhook_url,
            config.webhook_request_body,
            config.webhook_headers,
            SAMPLE_VARIABLES,
        )
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.warning("[webhook] Test call failed: %s", e)
        return JSONResponse(
            content={"result": translate(lang, "webhook_failed", reason=str(e))},
        )

    return JSONResponse(
        content={
            "result": translate(lang, "webhook_result", status_code=upstream.status_code),
            "status_code": upstream.status_code,
            "body": upstream.text,
        },
    )


# Note: Unlike the routes above, this endpoint is dynamically registered
# in lifespan() based on config.health.enabled.
async def health() -> Response:
    """Health check endpoint."""
    return JSONResponse(content={"status": "ok"})
