"""Structured logging for the share server.

structlog renders every record, including uvicorn's, as one JSON line.
Request-scoped fields (request id, client ip) are carried in structlog's
contextvars and merged into every event logged while a request is handled.

Usage:
    from photobooth_server.logging import setup_logging, get_logger

    setup_logging("INFO")
    log = get_logger("photobooth_server.api")
    log.info("photo_stored", key="Ab3dE5gH9k.png", file_size=50000)
"""

from __future__ import annotations

import logging
import sys
import time
import uuid
from typing import TYPE_CHECKING

import structlog
from structlog.types import Processor

if TYPE_CHECKING:
    from fastapi import Request, Response
    from starlette.middleware.base import RequestResponseEndpoint

REQUEST_ID_HEADER = "X-Request-ID"

_UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def setup_logging(level: str = "INFO") -> None:
    """Route structlog and stdlib logging through one JSON renderer on stdout.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    pre_chain: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=pre_chain,
        )
    )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level.upper())

    for name in _UVICORN_LOGGERS:
        server_logger = logging.getLogger(name)
        server_logger.handlers[:] = [handler]
        server_logger.propagate = False


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name) if name else structlog.get_logger()


def client_ip(request: Request, trust_forwarded_for: bool = False) -> str:
    """Client IP address.

    X-Forwarded-For is client-controlled unless a reverse proxy overwrites
    it, so it is only read when trust_forwarded_for is set.
    """
    forwarded = request.headers.get("x-forwarded-for") if trust_forwarded_for else None
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class LoggingMiddleware:
    """HTTP middleware logging one line per request.

    Reuses an incoming X-Request-ID when the proxy set one, otherwise
    generates it, and echoes it on the response.
    """

    def __init__(self, trust_forwarded_for: bool = False) -> None:
        self.logger = get_logger("photobooth_server.requests")
        self.trust_forwarded_for = trust_forwarded_for

    async def __call__(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            self.logger.exception("request_failed", duration_ms=_elapsed_ms(started))
            raise
        else:
            self.logger.info(
                "request_handled",
                status_code=response.status_code,
                client_ip=client_ip(request, self.trust_forwarded_for),
                duration_ms=_elapsed_ms(started),
            )
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            structlog.contextvars.clear_contextvars()


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


# --- Audit events ---


def log_photo_stored(
    logger: structlog.stdlib.BoundLogger,
    key: str,
    file_size: int,
    client_ip: str,
    overwritten: bool,
) -> None:
    """Record an object written to share storage.

    Args:
        logger: Logger instance
        key: Object storage key
        file_size: Bytes written
        client_ip: Uploading booth
        overwritten: True when a retry replaced an existing object
    """
    logger.info(
        "photo_stored",
        key=key,
        file_size=file_size,
        client_ip=client_ip,
        overwritten=overwritten,
    )


def log_photo_deleted(
    logger: structlog.stdlib.BoundLogger,
    photo_id: str,
    reason: str,
) -> None:
    logger.info("photo_deleted", photo_id=photo_id, reason=reason)


def log_api_error(
    logger: structlog.stdlib.BoundLogger,
    endpoint: str,
    error_type: str,
    message: str,
) -> None:
    # Only for failures that become a 5xx; client mistakes are warnings
    logger.error("api_error", endpoint=endpoint, error_type=error_type, message=message)
