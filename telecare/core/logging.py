"""
Structured logging for the scheduling service.

Every log line goes through structlog. Slot, booking and request state
changes are also written to the ``audit`` logger.
"""

import logging
import sys
from typing import Any, Dict, Optional
import structlog
from structlog.stdlib import LoggerFactory
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from telecare.core.config import settings


def configure_logging():
    """Set up structlog, stdlib log levels and Sentry."""
    renderer = (
        structlog.processors.JSONRenderer()
        if settings.is_production
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=logging.DEBUG if settings.debug else logging.INFO,
        stream=sys.stdout,
    )

    # SQL echo only in debug; driver chatter never.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if settings.debug else logging.WARNING)
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)

    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            integrations=[FastApiIntegration(), SqlalchemyIntegration()],
            traces_sample_rate=0.1 if settings.is_production else 1.0,
            environment=settings.app_env,
            release=settings.app_version,
        )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def _as_str(value: Any) -> Optional[str]:
    return str(value) if value is not None else None


class AuditLogger:
    """Audit trail of slot, booking and consultation state changes."""

    def __init__(self):
        self.logger = get_logger("audit")

    def log_user_action(
        self,
        action: str,
        entity: str,
        entity_id: Any = None,
        actor_id: Any = None,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Record one state change.

        ``entity`` is the record kind (slot, appointment, consultation_request)
        and ``actor_id`` the patient or doctor profile that caused it, if known.
        """
        self.logger.info(
            action,
            entity=entity,
            entity_id=_as_str(entity_id),
            actor_id=_as_str(actor_id),
            **(details or {})
        )

    def log_security_event(
        self,
        event_type: str,
        user_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        """Record a rejected credential or access attempt."""
        self.logger.warning(
            "security_event",
            event_type=event_type,
            subject=user_id,
            ip_address=ip_address,
            **(details or {})
        )


audit_logger = AuditLogger()


class RequestLogger:
    """One line per HTTP request, written by the middleware in main."""

    def __init__(self):
        self.logger = get_logger("requests")

    async def log_request(self, request, response, process_time: float):
        log = self.logger.warning if response.status_code >= 500 else self.logger.info
        log(
            "http_request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(process_time * 1000, 2),
            client=request.client.host if request.client else None,
        )


request_logger = RequestLogger()
