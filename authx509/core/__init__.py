"""Core client certificate to attribute mapping."""

from authx509.core.logging import (
    AuthAttempt,
    AuthAttemptLogger,
    LogLevel,
    configure_logging,
    get_attempt_logger,
    redact_sensitive,
    set_attempt_logger,
)
from authx509.core.mapper import (
    AttributeSet,
    CertificateRecord,
    ErrorKind,
    Failure,
    MapperConfig,
    MapperOutcome,
    Success,
    UnparseableCertificate,
    map_certificate,
)

__all__ = [
    # Logging
    "AuthAttempt",
    "AuthAttemptLogger",
    "LogLevel",
    "configure_logging",
    "get_attempt_logger",
    "redact_sensitive",
    "set_attempt_logger",
    # Mapping
    "AttributeSet",
    "CertificateRecord",
    "ErrorKind",
    "Failure",
    "MapperConfig",
    "MapperOutcome",
    "Success",
    "UnparseableCertificate",
    "map_certificate",
]
