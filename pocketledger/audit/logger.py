"""
Audit Logger

Every ledger change is logged twice:
1. To the structured local log (structlog, JSON lines)
2. To audit storage, when one is configured

The audit logger:
- Is async, like the storage it writes to
- Never lets an audit-storage failure break a ledger operation
- Uses the session ID as the correlation ID of every event
"""

import logging
import sys
from typing import Optional

import structlog

from pocketledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from pocketledger.models.ledger import Session
from pocketledger.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(log_level: str = "INFO", debug: bool = False) -> int:
    """
    Route the stdlib logger structlog writes through to stderr.

    Debug mode forces DEBUG regardless of log_level. Returns the level set.
    """
    level = logging.DEBUG if debug else getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=level,
    )
    return level


class AuditLogger:
    """
    Central audit logging service.
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("pocketledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Audit persistence is best-effort
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_storage_error(
        self,
        session: Session,
        operation: str,
        error: Exception,
    ) -> None:
        """Log a storage failure that is about to propagate to the caller."""
        event = AuditEventBuilder.storage_error(
            operation=operation,
            error_message=str(error),
            owner_id=session.owner_id,
            correlation_id=session.session_id,
        )
        await self.log(event)

    async def session_history(self, session: Session) -> list[AuditEvent]:
        """All persisted events produced by one session, oldest first."""
        if not self._storage:
            return []
        return await self._storage.get_events_by_correlation_id(session.session_id)
