"""
Structured logging built on structlog.
Provides the output format setup and an audit logger for security-relevant events.
"""

import logging
import sys
from pathlib import Path
from typing import Iterable, Optional
import structlog
from structlog.stdlib import LoggerFactory


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[str] = None,
    debug: bool = False
) -> None:
    """
    Set up structured logging with configurable output formats.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format (json or console)
        log_file: Optional log file path
        debug: Add call site information to every event
    """

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if debug:
        processors.append(structlog.processors.CallsiteParameterAdder())

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(getattr(logging, log_level.upper()))
        file_handler.setFormatter(logging.Formatter('%(message)s'))
        logging.getLogger().addHandler(file_handler)

    logger = structlog.get_logger(__name__)
    logger.info(
        "Logging system initialized",
        level=log_level,
        format=log_format,
        file=str(log_file) if log_file else None,
        debug=debug
    )


class AuditLogger:
    """
    Logger for security-relevant events: authentication, throttling,
    moderation and deletions. Never receives passwords or tokens.
    """

    def __init__(self, name: str = "audit", **context):
        self.logger = structlog.get_logger(name)
        self.context = context

    def log_login_failure(self, email: str, reason: str) -> None:
        """Log a rejected login attempt."""
        self.logger.warning("Login rejected", email=email, reason=reason, **self.context)

    def log_login_success(self, user_id: str) -> None:
        """Log a successful login."""
        self.logger.info("Login succeeded", user_id=user_id, **self.context)

    def log_access_denied(self, actor_id: Optional[str], operation: str, resource_id: Optional[str] = None) -> None:
        """Log an authorization denial."""
        self.logger.warning(
            "Access denied",
            actor_id=actor_id,
            operation=operation,
            resource_id=resource_id,
            **self.context
        )

    def log_rate_limited(self, tracker: str, retry_after_seconds: int) -> None:
        """Log a throttled request."""
        self.logger.warning(
            "Rate limit exceeded",
            tracker=tracker,
            retry_after_seconds=retry_after_seconds,
            **self.context
        )

    def log_moderation(self, actor_id: str, feedback_id: str, old_status: str, new_status: str) -> None:
        """Log a feedback moderation decision."""
        self.logger.info(
            "Feedback moderated",
            actor_id=actor_id,
            feedback_id=feedback_id,
            old_status=old_status,
            new_status=new_status,
            changed=old_status != new_status,
            **self.context
        )

    def log_deletion(
        self,
        actor_id: str,
        resource: str,
        deleted_ids: Iterable[str],
        failed_ids: Iterable[str] = ()
    ) -> None:
        """Log a deletion, single or bulk."""
        deleted_ids = list(deleted_ids)
        failed_ids = list(failed_ids)
        level = "info" if not failed_ids else "warning"
        getattr(self.logger, level)(
            "Resources deleted",
            actor_id=actor_id,
            resource=resource,
            deleted_ids=deleted_ids,
            failed_ids=failed_ids,
            deleted_count=len(deleted_ids),
            failed_count=len(failed_ids),
            **self.context
        )
