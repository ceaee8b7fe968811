"""Structured logging configuration for the application."""

from datetime import UTC, datetime
import json
import logging
import sys
from typing import Any

from app.core.config import settings

ENVIRONMENT_LOG_LEVELS = {
    "development": logging.DEBUG,
    "test": logging.WARNING,
    "production": logging.INFO,
}


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with any ``extra_fields`` merged in."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra_fields = getattr(record, "extra_fields", None)
        if extra_fields:
            log_data.update(extra_fields)

        # Bangla location names are logged as-is
        return json.dumps(log_data, ensure_ascii=False, default=str)


class StandardFormatter(logging.Formatter):
    """Human-readable formatter; appends ``extra_fields`` as key=value pairs."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        extra_fields = getattr(record, "extra_fields", None)
        if extra_fields:
            pairs = " ".join(f"{k}={v}" for k, v in extra_fields.items() if v is not None)
            message = f"{message} [{pairs}]"
        return message


def setup_logging() -> None:
    """Configure the root logger from ENVIRONMENT, LOG_LEVEL and LOG_FORMAT."""
    if settings.LOG_LEVEL:
        log_level = logging.getLevelName(settings.LOG_LEVEL.upper())
    else:
        log_level = ENVIRONMENT_LOG_LEVELS.get(settings.ENVIRONMENT, logging.INFO)

    log_format = settings.LOG_FORMAT or (
        "json" if settings.ENVIRONMENT == "production" else "text"
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(JSONFormatter() if log_format == "json" else StandardFormatter())
    root_logger.addHandler(console_handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("asyncpg").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name."""
    return logging.getLogger(name)


class SecurityLogger:
    """
    Authentication and access-control events on the ``security`` logger.

    Every event carries an ``event_type`` plus its fields in ``extra_fields``
    so the JSON formatter emits them as top-level keys.
    """

    def __init__(self) -> None:
        self.logger = get_logger("security")

    def _event(self, level: int, message: str, event_type: str, **fields: Any) -> None:
        self.logger.log(
            level, message, extra={"extra_fields": {"event_type": event_type, **fields}}
        )

    def log_login_attempt(
        self,
        username: str,
        success: bool,
        ip_address: str | None = None,
        reason: str | None = None,
    ) -> None:
        self._event(
            logging.INFO if success else logging.WARNING,
            f"Login {'succeeded' if success else 'failed'} for user: {username}",
            "login_attempt",
            username=username,
            success=success,
            ip_address=ip_address,
            failure_reason=None if success else reason,
        )

    def log_unauthorized_access(
        self,
        resource: str,
        user_id: str | None = None,
        role: str | None = None,
        reason: str | None = None,
    ) -> None:
        """A request refused for missing permission or out-of-scope location."""
        self._event(
            logging.WARNING,
            f"Unauthorized access attempt to: {resource}",
            "unauthorized_access",
            resource=resource,
            user_id=user_id,
            role=role,
            reason=reason,
        )

    def log_scope_integrity_failure(
        self,
        user_id: str | None,
        role: str | None,
        error: str,
    ) -> None:
        """
        A stored user whose role or scope cannot be resolved.

        Approval validates scopes, so this means the record is corrupt or was
        edited outside the application.
        """
        self._event(
            logging.ERROR,
            f"Access scope integrity failure for user: {user_id}",
            "scope_integrity_failure",
            user_id=user_id,
            role=role,
            error=error,
        )

    def log_user_registration(self, username: str, requested_role: str) -> None:
        self._event(
            logging.INFO,
            f"New user registered: {username}",
            "user_registration",
            username=username,
            requested_role=requested_role,
        )

    def log_user_review(
        self,
        user_id: str,
        reviewed_by: str,
        approved: bool,
        role: str | None = None,
    ) -> None:
        self._event(
            logging.INFO,
            f"User {user_id} {'approved' if approved else 'rejected'} by {reviewed_by}",
            "user_review",
            user_id=user_id,
            reviewed_by=reviewed_by,
            approved=approved,
            role=role,
        )


security_logger = SecurityLogger()
