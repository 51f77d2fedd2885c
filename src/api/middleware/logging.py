"""Request/response logging middleware and logging setup."""

import logging
import re
import time
from uuid import uuid4

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.shared.config import get_settings
from src.shared.constants import REQUEST_ID_PATTERN

logger = logging.getLogger(__name__)

_REQUEST_ID_RE = re.compile(REQUEST_ID_PATTERN)


def resolve_request_id(header_value: str | None) -> str:
    """Reuse a caller's X-Request-ID when it is well formed, else mint one."""
    if header_value and _REQUEST_ID_RE.match(header_value):
        return header_value
    return str(uuid4())


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag each request with an ID (echoed as X-Request-ID) and log one line per request."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = resolve_request_id(request.headers.get("X-Request-ID"))
        request.state.request_id = request_id
        started = time.perf_counter()

        def context(**fields) -> dict:
            elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
            return {"request_id": request_id, "duration_ms": elapsed_ms, **fields}

        line = f"{request.method} {request.url.path}"
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(f"{line} raised", extra=context(error=str(exc)))
            raise

        response.headers["X-Request-ID"] = request_id
        # Conflicts and NO_CONTENT are routine, so 4xx/5xx log at WARNING
        level = logging.WARNING if response.status_code >= 400 else logging.INFO
        logger.log(level, f"{line} - {response.status_code}", extra=context(status_code=response.status_code))
        return response


_JSON_FORMAT = (
    '{"timestamp": "%(asctime)s", "level": "%(levelname)s", '
    '"logger": "%(name)s", "message": "%(message)s"}'
)
_TEXT_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"

# Third-party chatter stays at WARNING
_QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine")


def setup_logging() -> None:
    """Configure root logging: JSON lines in production, plain text elsewhere."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format=_JSON_FORMAT if settings.is_production else _TEXT_FORMAT,
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
