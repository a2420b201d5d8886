"""
Log Sanitization

Message metadata is copied into log lines when a message fails. Metadata can
carry device credentials and gateway tokens, so these filters redact them.
"""

from __future__ import annotations

import logging
import re
from re import Pattern
from typing import Any

# Patterns for sensitive data that should be redacted
SENSITIVE_PATTERNS: list[tuple[str, Pattern[str]]] = [
    # Device access tokens and credentials ids
    (
        "ACCESS_TOKEN",
        re.compile(
            r"(access[_-]?token|credentials[_-]?id)['\"]?\s*[=:]\s*['\"]?[\w\-]{8,}['\"]?",
            re.IGNORECASE,
        ),
    ),
    (
        "SECRET",
        re.compile(
            r"(secret|password|passwd|pwd)['\"]?\s*[=:]\s*['\"]?[^\s'\",}]{4,}['\"]?",
            re.IGNORECASE,
        ),
    ),
    # Bearer tokens in headers
    ("BEARER", re.compile(r"Bearer\s+[a-zA-Z0-9\-_\.]+", re.IGNORECASE)),
    # JWTs outside a header
    ("JWT", re.compile(r"eyJ[a-zA-Z0-9_\-]+\.[a-zA-Z0-9_\-]+\.[a-zA-Z0-9_\-]+")),
    # PostgreSQL connection strings with password
    ("PG_CONN", re.compile(r"postgresql://[^:]+:[^@]+@", re.IGNORECASE)),
]

# Placeholder for redacted content
REDACTION_PLACEHOLDER = "[REDACTED]"


class SanitizingFilter(logging.Filter):
    """
    A logging filter that redacts sensitive information from log messages.

    Usage:
        logger = logging.getLogger(__name__)
        logger.addFilter(SanitizingFilter())
    """

    def __init__(
        self,
        name: str = "",
        additional_patterns: list[tuple[str, Pattern[str]]] | None = None,
        redaction_placeholder: str = REDACTION_PLACEHOLDER,
    ):
        """
        Initialize the sanitizing filter.

        Args:
            name: Filter name (passed to parent)
            additional_patterns: Extra patterns to redact beyond defaults
            redaction_placeholder: Text to replace sensitive data with
        """
        super().__init__(name)
        self._patterns = list(SENSITIVE_PATTERNS)
        if additional_patterns:
            self._patterns.extend(additional_patterns)
        self._placeholder = redaction_placeholder

    def filter(self, record: logging.LogRecord) -> bool:
        """Sanitize the record in place. Always lets the record through."""
        if record.msg:
            record.msg = self.sanitize(str(record.msg))

        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: self._sanitize_value(v) for k, v in record.args.items()}
            elif isinstance(record.args, tuple):
                record.args = tuple(self._sanitize_value(arg) for arg in record.args)

        return True

    def sanitize(self, text: str) -> str:
        """Redact every sensitive pattern in a string."""
        result = text
        for pattern_name, pattern in self._patterns:
            result = pattern.sub(f"{pattern_name}={self._placeholder}", result)
        return result

    def _sanitize_value(self, value: Any) -> Any:
        if isinstance(value, str):
            return self.sanitize(value)
        return value


def configure_sanitized_logging(
    level: int | str = logging.INFO,
    format_string: str | None = None,
    additional_patterns: list[tuple[str, Pattern[str]]] | None = None,
) -> None:
    """
    Configure the root logger with sanitization enabled.

    Args:
        level: Logging level
        format_string: Log format string (uses default if not specified)
        additional_patterns: Extra patterns to redact
    """
    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(level=level, format=format_string)

    root_logger = logging.getLogger()
    sanitizing_filter = SanitizingFilter(additional_patterns=additional_patterns)
    root_logger.addFilter(sanitizing_filter)

    # Handler filters also catch records propagated from child loggers
    for handler in root_logger.handlers:
        handler.addFilter(sanitizing_filter)


def get_sanitized_logger(name: str) -> logging.Logger:
    """
    Get a logger with sanitization filter attached.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger with SanitizingFilter attached
    """
    logger = logging.getLogger(name)

    if not any(isinstance(f, SanitizingFilter) for f in logger.filters):
        logger.addFilter(SanitizingFilter())

    return logger
