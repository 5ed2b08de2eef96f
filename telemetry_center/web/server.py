"""HTTP server exposing the Telemetry Center JSON API."""

from __future__ import annotations

import argparse
import base64
import binascii
import errno
import hmac
import json
import logging
import re
import threading
import time
from collections import deque
from dataclasses import dataclass, field, replace
from functools import partial
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any, Callable, ClassVar, Deque, Optional
from urllib.parse import parse_qs, unquote, urlsplit

from telemetry_center.core import SECURITY, Settings
from telemetry_center.core.config import SecurityConfig
from telemetry_center.core.errors import (
    NotFoundError,
    SourceUnreachable,
    TelemetryError,
    UnsupportedOperation,
    ValidationError,
)

from .service import TelemetryService

logger = logging.getLogger(__name__)


class PayloadTooLarge(ValidationError):
    code = "payload_too_large"


_STATUS_BY_ERROR: dict[type[TelemetryError], HTTPStatus] = {
    PayloadTooLarge: HTTPStatus.REQUEST_ENTITY_TOO_LARGE,
    ValidationError: HTTPStatus.BAD_REQUEST,
    NotFoundError: HTTPStatus.NOT_FOUND,
    UnsupportedOperation: HTTPStatus.NOT_IMPLEMENTED,
    SourceUnreachable: HTTPStatus.SERVICE_UNAVAILABLE,
}


def status_for_error(exc: TelemetryError) -> HTTPStatus:
    for klass in type(exc).__mro__:
        status = _STATUS_BY_ERROR.get(klass)
        if status is not None:
            return status
    return HTTPStatus.INTERNAL_SERVER_ERROR


def cors_origin(origin: str | None, security: SecurityConfig) -> tuple[bool, str | None]:
    """Return ``(allowed, Access-Control-Allow-Origin value)`` for a request origin."""

    allowed = security.allowed_origins
    if origin and "*" not in allowed and origin not in allowed:
        return False, None
    if "*" in allowed and not security.allow_credentials:
        return True, "*"
    return True, origin


def credentials_match(header: str | None, security: SecurityConfig) -> bool:
    """Check a Basic ``Authorization`` header; always true when auth is not configured."""

    username, password = security.basic_auth_username, security.basic_auth_password
    if not username or not password:
        return True
    scheme, _, token = (header or "").partition(" ")
    if scheme != "Basic" or not token:
        return False
    try:
        decoded = base64.b64decode(token.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return False
    provided_user, _, provided_pass = decoded.partition(":")
    user_ok = hmac.compare_digest(provided_user.encode(), username.encode())
    pass_ok = hmac.compare_digest(provided_pass.encode(), password.encode())
    return user_ok and pass_ok


class RateLimiter:
    """Sliding-window request counter per client address, shared by all handler threads."""

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max(1, max_requests)
        self.window_seconds = max(1.0, float(window_seconds))
        self._clock = clock
        self._lock = threading.Lock()
        self._hits: dict[str, Deque[float]] = {}

    @classmethod
    def from_config(cls, security: SecurityConfig) -> "RateLimiter | None":
        if not security.enable_rate_limit:
            return None
        return cls(security.rate_limit_requests, security.rate_limit_window_seconds)

    def allow(self, client: str) -> bool:
        now = self._clock()
        with self._lock:
            hits = self._hits.setdefault(client, deque())
            while hits and now - hits[0] > self.window_seconds:
                hits.popleft()
            if len(hits) >= self.max_requests:
                return False
            hits.append(now)
            return True

    def retry_after(self) -> int:
        return int(self.window_seconds)


@dataclass(slots=True)
class ApiRequest:
    params: dict[str, str] = field(default_factory=dict)
    query: dict[str, list[str]] = field(default_factory=dict)
    body: dict[str, Any] = field(default_factory=dict)

    def arg(self, name: str, default: str | None = None) -> str | None:
        values = self.query.get(name)
        return values[-1] if values else default

    def int_arg(self, name: str, *, minimum: int = 1, maximum: int = 10_000) -> int | None:
        raw = self.arg(name)
        if raw is None or raw == "":
            return None
        try:
            value = int(raw)
        except ValueError as exc:
            raise ValidationError(f"{name} must be an integer") from exc
        if not minimum <= value <= maximum:
            raise ValidationError(f"{name} must be between {minimum} and {maximum}")
        return value


def _external(feature: str) -> Callable[[TelemetryService, ApiRequest], Any]:
    def handler(service: TelemetryService, request: ApiRequest) -> Any:
        raise UnsupportedOperation(f"{feature} is handled by an external service")

    return handler


Handler = Callable[[TelemetryService, ApiRequest], Any]

# Routes without parameters take precedence over parameterized ones on the same path.
ROUTES: tuple[tuple[str, str, Handler], ...] = (
    ("GET", r"/api/system/data", lambda s, r: s.system_data()),
    ("GET", r"/api/system/history", lambda s, r: {"history": s.history(r.int_arg("duration", maximum=86_400 * 30))}),
    ("POST", r"/api/diagnose", lambda s, r: s.diagnose(r.body)),
    ("GET", r"/api/logs", lambda s, r: {"logs": [rec.to_dict() for rec in s.logs(r.int_arg("limit"))]}),
    ("GET", r"/api/logs/analyze", lambda s, r: s.analyze_logs(refresh=r.arg("refresh") == "1").to_dict()),
    ("POST", r"/api/logs/diagnose", lambda s, r: s.diagnose_logs(r.body.get("query"))),
    ("POST", r"/api/logs/train", lambda s, r: s.train(r.body)),
    ("GET", r"/api/predictive", lambda s, r: s.predictive()),
    ("GET", r"/api/logs-analyzer", lambda s, r: s.logs_analyzer()),
    ("GET", r"/api/app-diagnostics/drivers", lambda s, r: s.driver_list()),
    ("GET", r"/api/app-diagnostics/(?P<app>[^/]+)", lambda s, r: s.app_diagnostics(r.params["app"])),
    ("GET", r"/api/app-monitoring/running", lambda s, r: s.running_applications()),
    ("GET", r"/api/app-monitoring/status", lambda s, r: s.monitoring_status()),
    ("POST", r"/api/app-monitoring/(?P<app>[^/]+)", lambda s, r: s.start_monitoring(r.params["app"], r.arg("interval"))),
    ("DELETE", r"/api/app-monitoring/(?P<app>[^/]+)", lambda s, r: s.stop_monitoring(r.params["app"])),
    ("GET", r"/api/driver-updates", lambda s, r: s.driver_list()),
    ("GET", r"/api/driver-updates/check", lambda s, r: s.driver_updates()),
    ("GET", r"/api/driver-updates/problems", lambda s, r: s.driver_problems()),
    ("GET", r"/api/driver-updates/device-manager/(?P<device>[^/]+)", lambda s, r: s.device_manager(r.params["device"])),
    ("GET", r"/api/disk/info", lambda s, r: s.disk_info()),
    ("POST", r"/api/disk/automate", _external("Disk partitioning")),
    ("POST", r"/api/disk/[^/]+/partition", _external("Disk partitioning")),
    ("DELETE", r"/api/disk/[^/]+/partition/[^/]+", _external("Disk partitioning")),
    ("POST", r"/api/network/diagnostics", lambda s, r: s.network_diagnostics()),
    ("GET", r"/api/network/issues", lambda s, r: s.network_issues()),
    ("POST", r"/api/network/fix", lambda s, r: s.network_fix(r.body)),
    ("GET", r"/api/ocr/.*", _external("OCR")),
    ("POST", r"/api/ocr/.*", _external("OCR")),
)

_COMPILED_ROUTES = tuple((method, re.compile(f"^{pattern}$"), handler) for method, pattern, handler in ROUTES)


def match_route(method: str, path: str) -> tuple[Handler | None, dict[str, str], bool]:
    """Return ``(handler, params, path_known)`` for a request.

    Routes without parameters own their path: ``POST /api/app-monitoring/status``
    is a wrong method, not a session named "status".
    """

    for parameterized in (False, True):
        path_known = False
        for route_method, pattern, handler in _COMPILED_ROUTES:
            if bool(pattern.groupindex) != parameterized:
                continue
            found = pattern.match(path)
            if not found:
                continue
            path_known = True
            if route_method == method:
                return handler, {k: unquote(v) for k, v in found.groupdict().items()}, True
        if path_known:
            return None, {}, True
    return None, {}, False


class TelemetryRequestHandler(BaseHTTPRequestHandler):
    """JSON API handler with CORS, optional Basic auth and per-client rate limiting."""

    server_version: ClassVar[str] = "TelemetryCenter/1.0"
    auth_realm: ClassVar[str] = "Telemetry Center"

    def __init__(
        self,
        *args: Any,
        service: TelemetryService,
        security_config: SecurityConfig = SECURITY,
        rate_limiter: RateLimiter | None = None,
        **kwargs: Any,
    ) -> None:
        self._service = service
        self._security = security_config
        self._rate_limiter = rate_limiter
        self._response_origin: Optional[str] = None
        super().__init__(*args, **kwargs)

    def do_GET(self) -> None:  # noqa: N802
        self._dispatch("GET")

    def do_POST(self) -> None:  # noqa: N802
        self._dispatch("POST")

    def do_DELETE(self) -> None:  # noqa: N802
        self._dispatch("DELETE")

    def do_OPTIONS(self) -> None:  # noqa: N802
        if not self._accept_origin():
            return
        origin = self._response_origin
        self.send_response(HTTPStatus.NO_CONTENT)
        self._apply_cors_headers(origin)
        self.send_header("Access-Control-Allow-Methods", "GET, POST, DELETE, OPTIONS")
        self.send_header("Access-Control-Allow-Headers", "Authorization, Content-Type")
        self.send_header("Access-Control-Max-Age", "600")
        self.end_headers()

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002 - parity with BaseHTTPRequestHandler
        logger.debug("%s - %s", self.client_address[0], format % args)

    def _dispatch(self, method: str) -> None:
        self._response_origin = None
        parts = urlsplit(self.path)
        path = parts.path.rstrip("/") or "/"
        if not self._prepare_api_request():
            return

        handler, params, path_known = match_route(method, path)
        if handler is None:
            if path_known:
                self._send_error(HTTPStatus.METHOD_NOT_ALLOWED, "method_not_allowed", f"{method} is not supported on {path}")
            else:
                self._send_error(HTTPStatus.NOT_FOUND, "not_found", f"No route for {path}")
            return

        try:
            request = ApiRequest(
                params=params,
                query=parse_qs(parts.query),
                body=self._read_json() if method == "POST" else {},
            )
            payload = handler(self._service, request)
        except TelemetryError as exc:
            status = status_for_error(exc)
            if status >= HTTPStatus.INTERNAL_SERVER_ERROR and status != HTTPStatus.NOT_IMPLEMENTED:
                logger.warning("%s %s falló: %s", method, path, exc)
            self._send_error(status, exc.code, str(exc))
        except Exception as exc:
            logger.exception("Error inesperado en %s %s", method, path, exc_info=exc)
            self._send_error(HTTPStatus.INTERNAL_SERVER_ERROR, "internal_error", "Unexpected server error")
        else:
            self._send_json(payload)

    def _read_json(self) -> dict[str, Any]:
        try:
            length = int(self.headers.get("Content-Length") or 0)
        except ValueError as exc:
            raise ValidationError("invalid Content-Length header") from exc
        if length > self._security.max_body_bytes:
            raise PayloadTooLarge(f"request body exceeds {self._security.max_body_bytes} bytes")
        if length <= 0:
            return {}
        raw = self.rfile.read(length)
        try:
            payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ValidationError(f"request body is not valid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise ValidationError("request body must be a JSON object")
        return payload

    def _send_json(
        self,
        payload: Any,
        status: HTTPStatus = HTTPStatus.OK,
        headers: dict[str, str] | None = None,
    ) -> None:
        body = json.dumps(payload if payload is not None else {}, ensure_ascii=False).encode("utf-8")
        self.send_response(status)
        self._apply_cors_headers(self._response_origin)
        for name, value in (headers or {}).items():
            self.send_header(name, value)
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _send_error(
        self, status: HTTPStatus, code: str, message: str, headers: dict[str, str] | None = None
    ) -> None:
        self._send_json({"error": code, "message": message}, status, headers)

    def _prepare_api_request(self) -> bool:
        if not self._accept_origin():
            return False
        client = self.client_address[0]
        if not credentials_match(self.headers.get("Authorization"), self._security):
            logger.info("Credenciales rechazadas para %s", client)
            challenge = f'Basic realm="{self.auth_realm}", charset="UTF-8"'
            self._send_error(
                HTTPStatus.UNAUTHORIZED, "unauthorized", "Authentication required",
                {"WWW-Authenticate": challenge},
            )
            return False
        if self._rate_limiter is not None and not self._rate_limiter.allow(client):
            logger.warning("Rate limit excedido para %s", client)
            self._send_error(
                HTTPStatus.TOO_MANY_REQUESTS, "rate_limit", "Too many requests",
                {"Retry-After": str(self._rate_limiter.retry_after())},
            )
            return False
        return True

    def _accept_origin(self) -> bool:
        origin = self.headers.get("Origin")
        allowed, header_value = cors_origin(origin, self._security)
        if not allowed:
            logger.warning("Solicitud bloqueada por CORS desde %s: %s", self.client_address[0], origin)
            self._send_error(HTTPStatus.FORBIDDEN, "forbidden", f"Origin {origin} is not allowed")
            return False
        self._response_origin = header_value
        return True

    def _apply_cors_headers(self, origin: Optional[str]) -> None:
        if origin:
            self.send_header("Access-Control-Allow-Origin", origin)
            if self._security.allow_credentials and origin != "*":
                self.send_header("Access-Control-Allow-Credentials", "true")
        self.send_header("Vary", "Origin")


class TelemetryServer:
    """Wraps the HTTP server and the lifecycle of the telemetry service."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        service: TelemetryService | None = None,
        start_service: bool = True,
        max_port_attempts: int = 10,
    ) -> None:
        self.settings = settings or Settings()
        self._service = service or TelemetryService(self.settings)
        handler = partial(
            TelemetryRequestHandler,
            service=self._service,
            security_config=self.settings.security,
            rate_limiter=RateLimiter.from_config(self.settings.security),
        )

        host, port = self.settings.host, self.settings.port
        for attempt in range(max_port_attempts):
            candidate = port + attempt if port else 0
            try:
                self._httpd = ThreadingHTTPServer((host, candidate), handler)
            except OSError as exc:
                if exc.errno == errno.EADDRINUSE and port and attempt < max_port_attempts - 1:
                    logger.warning("Puerto %d ocupado, probando el siguiente", candidate)
                    continue
                raise
            break
        self._httpd.daemon_threads = True
        if start_service:
            self._service.start()

    @property
    def service(self) -> TelemetryService:
        return self._service

    def serve_forever(self) -> None:
        try:
            self._httpd.serve_forever()
        finally:
            self.stop()

    def stop(self) -> None:
        try:
            self._httpd.shutdown()
            self._httpd.server_close()
        except OSError as exc:
            logger.warning("Error al cerrar el servidor: %s", exc)
        finally:
            self._service.stop()

    def server_address(self) -> str:
        host, port = self._httpd.server_address[:2]
        return f"http://{host}:{port}"


def create_app(settings: Settings | None = None, **kwargs: Any) -> TelemetryServer:
    """Factory helper used by the CLI, scripts and tests."""

    return TelemetryServer(settings, **kwargs)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="telemetry-center", description="Telemetry Center API server")
    parser.add_argument("--host", help="Interface to bind (default from TELEMETRY_CENTER_HOST or 127.0.0.1)")
    parser.add_argument("--port", type=int, help="Port to listen on (default 5000)")
    parser.add_argument("--data-dir", type=Path, help="Directory for the feedback journal")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity",
    )
    return parser


def settings_from_args(args: argparse.Namespace, base: Settings | None = None) -> Settings:
    settings = base or Settings.from_env()
    overrides: dict[str, Any] = {}
    if args.host:
        overrides["host"] = args.host
    if args.port is not None:
        overrides["port"] = args.port
    if args.data_dir:
        overrides["data_dir"] = args.data_dir.expanduser()
    return replace(settings, **overrides) if overrides else settings


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    server = create_app(settings_from_args(args))
    logger.info("Telemetry Center escuchando en %s", server.server_address())
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Deteniendo servidor...")


if __name__ == "__main__":
    main()
