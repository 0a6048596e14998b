"""Authentication attempt logging.

Records each client certificate authentication attempt with configurable
log levels and sensitive data protection.

Log levels:
- ERROR: Only log failed attempts
- INFO: Log attempt outcomes (subject, error kind)
- DEBUG: Log mapped attributes and request details
- TRACE: Log the full presented certificate (requires explicit enable)
"""

from __future__ import annotations

import logging
import re
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import IntEnum
from typing import Any

# Custom log level for TRACE (below DEBUG)
TRACE = 5
logging.addLevelName(TRACE, "TRACE")

# Package logger, parent of every authx509.* logger
root_logger = logging.getLogger("authx509")
logger = logging.getLogger("authx509.auth")


class LogLevel(IntEnum):
    """Authentication logging levels."""

    ERROR = logging.ERROR  # 40
    INFO = logging.INFO  # 20
    DEBUG = logging.DEBUG  # 10
    TRACE = TRACE  # 5


# Patterns for sensitive data redaction
SENSITIVE_PATTERNS = [
    # PEM blocks, raw or folded onto one line by a header rewrite
    (
        re.compile(
            r"(-----BEGIN [A-Z ]+-----)[A-Za-z0-9+/=\s]+(-----END [A-Z ]+-----)"
        ),
        r"\1[REDACTED]\2",
    ),
    # URL-escaped PEM as forwarded by nginx
    (
        re.compile(r"(-----BEGIN%20[A-Z%0-9]+-----)[A-Za-z0-9+/=%]+?(-----END)"),
        r"\1[REDACTED]\2",
    ),
    # HTTP headers
    (re.compile(r"(Authorization:\s*Bearer\s+)[^\s]+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"(Authorization:\s*Basic\s+)[^\s]+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"(Cookie:\s*)[^\r\n]+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"(Set-Cookie:\s*)[^\r\n]+", re.IGNORECASE), r"\1[REDACTED]"),
]


def redact_sensitive(text: str) -> str:
    """Redact sensitive information from text.

    Args:
        text: Text that may contain sensitive data.

    Returns:
        Text with sensitive data redacted.
    """
    result = text
    for pattern, replacement in SENSITIVE_PATTERNS:
        result = pattern.sub(replacement, result)
    return result


@dataclass
class AuthAttempt:
    """A single client certificate authentication attempt."""

    id: str
    timestamp: datetime
    remote_addr: str | None = None
    certificate_pem: str | None = None
    subject: str | None = None
    error: str | None = None
    error_detail: str | None = None
    attributes: dict[str, list[str]] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def to_dict(self, include_sensitive: bool = False) -> dict[str, Any]:
        """Convert to dictionary for serialization.

        Args:
            include_sensitive: If True, include the raw certificate.
                               If False, redact it.

        Returns:
            Dictionary representation of the attempt.
        """
        pem = self.certificate_pem
        if pem is not None and not include_sensitive:
            pem = redact_sensitive(pem)

        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "remote_addr": self.remote_addr,
            "certificate_pem": pem,
            "subject": self.subject,
            "error": self.error,
            "error_detail": self.error_detail,
            "attributes": {k: list(v) for k, v in self.attributes.items()},
        }

    def format_log(self, level: LogLevel, include_sensitive: bool = False) -> str:
        """Format the attempt for logging.

        Args:
            level: Log level determines how much detail to include.
            include_sensitive: If True, include the raw certificate.

        Returns:
            Formatted log string.
        """
        lines = []
        source = self.remote_addr or "unknown"

        if self.succeeded:
            lines.append(f"X509 authentication {self.id} from {source}: {self.subject}")
        else:
            lines.append(f"X509 authentication {self.id} from {source} failed: {self.error}")
            if self.error_detail:
                lines.append(f"  Detail: {self.error_detail}")

        if level <= LogLevel.DEBUG and self.attributes:
            lines.append("  Attributes:")
            for name, values in self.attributes.items():
                lines.append(f"    {name}: {values}")

        if level <= LogLevel.TRACE and self.certificate_pem:
            pem = self.certificate_pem if include_sensitive else redact_sensitive(self.certificate_pem)
            lines.append("  Certificate:")
            lines.append(f"    {pem}")

        return "\n".join(lines)


class AuthAttemptLogger:
    """Configurable logger for client certificate authentication attempts.

    Keeps a bounded history of recent attempts for diagnostics.
    """

    def __init__(
        self,
        level: LogLevel = LogLevel.INFO,
        trace_enabled: bool = False,
        max_history: int = 100,
    ) -> None:
        """Initialize the attempt logger.

        Args:
            level: Minimum log level.
            trace_enabled: Whether TRACE level is enabled (for full certificates).
            max_history: Number of recent attempts to keep.
        """
        self._level = level
        self._trace_enabled = trace_enabled
        self._history: deque[AuthAttempt] = deque(maxlen=max_history)
        self._attempt_counter = 0
        self._counter_lock = threading.Lock()

    @property
    def level(self) -> LogLevel:
        """Get current log level."""
        return self._level

    @level.setter
    def level(self, value: LogLevel) -> None:
        """Set log level."""
        self._level = value

    @property
    def trace_enabled(self) -> bool:
        """Whether TRACE level is enabled."""
        return self._trace_enabled

    @trace_enabled.setter
    def trace_enabled(self, value: bool) -> None:
        """Enable or disable TRACE level."""
        self._trace_enabled = value

    @property
    def effective_level(self) -> LogLevel:
        """Get effective log level (TRACE only if explicitly enabled)."""
        if self._level == LogLevel.TRACE and not self._trace_enabled:
            return LogLevel.DEBUG
        return self._level

    @property
    def history(self) -> list[AuthAttempt]:
        """Recent attempts, oldest first."""
        return list(self._history)

    def new_attempt(self, remote_addr: str | None = None) -> AuthAttempt:
        """Create a new attempt record with a sequential id."""
        with self._counter_lock:
            self._attempt_counter += 1
            number = self._attempt_counter
        return AuthAttempt(
            id=f"x509_{number:06d}",
            timestamp=datetime.now(UTC),
            remote_addr=remote_addr,
        )

    def log_attempt(self, attempt: AuthAttempt) -> None:
        """Record an attempt and log it at the appropriate level.

        Args:
            attempt: The completed attempt.
        """
        self._history.append(attempt)

        effective = self.effective_level
        include_sensitive = self._trace_enabled and self._level <= LogLevel.TRACE
        log_text = attempt.format_log(effective, include_sensitive)

        if not attempt.succeeded:
            logger.error(log_text)
        elif effective <= LogLevel.DEBUG:
            logger.debug(log_text)
        elif effective <= LogLevel.INFO:
            logger.info(log_text)


# Global attempt logger instance
_global_logger: AuthAttemptLogger | None = None


def get_attempt_logger() -> AuthAttemptLogger:
    """Get the global attempt logger instance.

    Returns:
        The global AuthAttemptLogger.
    """
    global _global_logger
    if _global_logger is None:
        _global_logger = AuthAttemptLogger()
    return _global_logger


def set_attempt_logger(logger_instance: AuthAttemptLogger) -> None:
    """Set the global attempt logger instance.

    Args:
        logger_instance: AuthAttemptLogger to use globally.
    """
    global _global_logger
    _global_logger = logger_instance


def parse_log_level(level: LogLevel | str) -> LogLevel:
    """Parse a level name, falling back to INFO for unknown names."""
    if isinstance(level, LogLevel):
        return level
    level_map = {
        "ERROR": LogLevel.ERROR,
        "INFO": LogLevel.INFO,
        "DEBUG": LogLevel.DEBUG,
        "TRACE": LogLevel.TRACE,
    }
    return level_map.get(level.upper(), LogLevel.INFO)


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    trace_enabled: bool = False,
    log_file: str | None = None,
) -> AuthAttemptLogger:
    """Configure authentication logging.

    Args:
        level: Log level (ERROR, INFO, DEBUG, TRACE) or string name.
        trace_enabled: Whether to enable TRACE level (includes full certificates).
        log_file: Optional file path to write logs to.

    Returns:
        Configured AuthAttemptLogger.
    """
    level = parse_log_level(level)

    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    attempt_logger = AuthAttemptLogger(level=level, trace_enabled=trace_enabled)
    set_attempt_logger(attempt_logger)

    if trace_enabled:
        root_logger.warning(
            "TRACE logging enabled - full client certificates will be logged!"
        )

    return attempt_logger
