import logging
import re
import time
import uuid
from typing import Any

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from image_upload.common.config import get_settings
from image_upload.infra.observability.metrics import LATENCY, REQUESTS

_SECRET_PATTERN = re.compile(
    r"(?i)(secret|token|api_key|x-api-key|password|authorization|access_key)"
    r"(\s*[:=]\s*)[^\s&]+"
)


def mask_secrets(text: str) -> str:
    """Blank out ``key=value`` / ``key: value`` pairs whose key looks sensitive."""
    return _SECRET_PATTERN.sub(lambda m: f"{m.group(1)}{m.group(2)}***", text)


def _client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def _route_template(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None and hasattr(route, "path"):
        return route.path
    return request.url.path


class MetricsMiddleware(BaseHTTPMiddleware):
    """Records request metrics and a structured access log line.

    Request bodies are never logged: they carry base64 image payloads.
    With ``TRACE_HTTP`` the query string is logged after masking.
    """

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        logger = logging.getLogger("http")
        extra_payload: dict[str, Any] = {
            "method": request.method,
            "request_id": request_id,
            "client_ip": _client_ip(request),
            "user_agent": request.headers.get("User-Agent"),
        }
        if get_settings().TRACE_HTTP:
            extra_payload["query"] = mask_secrets(request.url.query or "")

        try:
            response = await call_next(request)
        except Exception as exc:
            elapsed = time.perf_counter() - start
            route = _route_template(request)
            REQUESTS.labels(request.method, route, "500").inc()
            LATENCY.labels(request.method, route).observe(elapsed)
            logger.exception(
                "request_error method=%s route=%s status=500 duration_ms=%.3f request_id=%s",
                request.method,
                route,
                round(elapsed * 1000, 3),
                request_id,
                extra={
                    "extra": {
                        **extra_payload,
                        "route": route,
                        "status": 500,
                        "duration_ms": round(elapsed * 1000, 3),
                        "exception": repr(exc),
                    }
                },
            )
            raise

        elapsed = time.perf_counter() - start
        route = _route_template(request)
        status_code = response.status_code
        REQUESTS.labels(request.method, route, str(status_code)).inc()
        LATENCY.labels(request.method, route).observe(elapsed)

        if "X-Request-Id" not in response.headers:
            response.headers["X-Request-Id"] = request_id

        level = logging.INFO
        if status_code >= 500:
            level = logging.ERROR
        elif status_code >= 400:
            level = logging.WARNING

        duration_ms = round(elapsed * 1000, 3)
        logger.log(
            level,
            "request method=%s route=%s status=%s duration_ms=%.3f request_id=%s",
            request.method,
            route,
            status_code,
            duration_ms,
            request_id,
            extra={
                "extra": {
                    **extra_payload,
                    "route": route,
                    "status": status_code,
                    "duration_ms": duration_ms,
                }
            },
        )
        return response
