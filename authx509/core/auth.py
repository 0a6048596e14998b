"""Client certificate authentication source.

The TLS handshake and certificate validation happen in the web server in
front of the application. This module takes the certificate the server
passes along, maps it to assertion attributes and records the attempt.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from authx509.core.crypto import load_client_certificate
from authx509.core.logging import AuthAttemptLogger, get_attempt_logger
from authx509.core.mapper import (
    MapperConfig,
    MapperOutcome,
    Success,
    UnparseableCertificate,
    map_certificate,
)

logger = logging.getLogger(__name__)

# WSGI environ key set by mod_wsgi with "SSLOptions +ExportCertData"
SSL_CLIENT_CERT = "SSL_CLIENT_CERT"


def header_environ_key(header_name: str) -> str:
    """Translate an HTTP header name to its WSGI environ key."""
    return "HTTP_" + header_name.upper().replace("-", "_")


def extract_client_certificate(
    environ: Mapping[str, Any],
    header_name: str | None = None,
) -> str | None:
    """Get the client certificate PEM passed on by the web server.

    Args:
        environ: WSGI environ of the request.
        header_name: Forwarded header to fall back to, if any.

    Returns:
        The certificate text, or None if no certificate was presented.
    """
    pem = environ.get(SSL_CLIENT_CERT)
    if not pem and header_name:
        pem = environ.get(header_environ_key(header_name))
    return pem or None


class X509AuthSource:
    """Authentication source mapping client certificates to attributes."""

    def __init__(
        self,
        mapper_config: MapperConfig | None = None,
        attempt_logger: AuthAttemptLogger | None = None,
    ) -> None:
        """Initialize the authentication source.

        Args:
            mapper_config: Attribute mapping options.
            attempt_logger: Logger for attempts. Uses the global one if not provided.
        """
        self.mapper_config = mapper_config or MapperConfig()
        self.attempt_logger = attempt_logger or get_attempt_logger()

    def authenticate(self, pem: str | None, remote_addr: str | None = None) -> MapperOutcome:
        """Authenticate a client by its certificate.

        Args:
            pem: Certificate PEM as forwarded by the web server, or None.
            remote_addr: Client address, for logging only.

        Returns:
            Success with subject identifier and attributes, or Failure.
            The caller is expected to act on the outcome exactly once.
        """
        attempt = self.attempt_logger.new_attempt(remote_addr)
        attempt.certificate_pem = pem

        cert = load_client_certificate(pem)
        if isinstance(cert, UnparseableCertificate):
            logger.error("authX509toSAML: invalid cert")
            attempt.error_detail = cert.reason
        elif cert is not None:
            logger.debug(f"X509userCert subject: {cert.subject}")

        outcome = map_certificate(cert, self.mapper_config)

        if isinstance(outcome, Success):
            attempt.subject = outcome.subject_id
            attempt.attributes = outcome.attributes
        else:
            attempt.error = outcome.error.value

        self.attempt_logger.log_attempt(attempt)
        return outcome
