"""Tests for the client certificate authentication source."""

import logging

import pytest

from authx509.core.auth import (
    SSL_CLIENT_CERT,
    X509AuthSource,
    extract_client_certificate,
    header_environ_key,
)
from authx509.core.logging import AuthAttemptLogger
from authx509.core.mapper import ErrorKind, Failure, MapperConfig, Success


class TestExtractClientCertificate:
    """Tests for reading the certificate from the WSGI environ."""

    def test_header_environ_key(self) -> None:
        """Test header name translation."""
        assert header_environ_key("X-SSL-Client-Cert") == "HTTP_X_SSL_CLIENT_CERT"

    def test_environ_variable_preferred(self) -> None:
        """Test that SSL_CLIENT_CERT wins over the header."""
        environ = {SSL_CLIENT_CERT: "from-env", "HTTP_X_SSL_CLIENT_CERT": "from-header"}
        assert extract_client_certificate(environ, "X-SSL-Client-Cert") == "from-env"

    def test_header_fallback(self) -> None:
        """Test reading the forwarded header."""
        environ = {"HTTP_X_SSL_CLIENT_CERT": "from-header"}
        assert extract_client_certificate(environ, "X-SSL-Client-Cert") == "from-header"

    def test_missing(self) -> None:
        """Test that no certificate gives None."""
        assert extract_client_certificate({SSL_CLIENT_CERT: ""}, "X-SSL-Client-Cert") is None
        assert extract_client_certificate({}) is None


class TestX509AuthSource:
    """Tests for X509AuthSource."""

    def test_success(self, client_cert_pem: str, attempt_logger: AuthAttemptLogger) -> None:
        """Test mapping a valid certificate."""
        source = X509AuthSource(MapperConfig(export_eppn=True))
        outcome = source.authenticate(client_cert_pem, remote_addr="192.0.2.1")

        assert isinstance(outcome, Success)
        assert outcome.subject_id == "/O=Example Org/CN=Jane Doe jane@example.org"
        assert outcome.attributes["eduPersonPrincipalName"] == ["jane@example.org"]
        assert outcome.attributes["displayName"] == ["Jane Doe "]
        assert outcome.attributes["mail"] == ["jane@example.org", "j.doe@example.org"]
        assert outcome.attributes["o"] == ["Example Org"]
        assert outcome.attributes["eduPersonAssurance"] == [
            "1.3.6.1.4.1.5923.1.1.1.1",
            "1.2.3.4",
        ]

        attempt = attempt_logger.history[-1]
        assert attempt.succeeded
        assert attempt.remote_addr == "192.0.2.1"
        assert attempt.subject == outcome.subject_id

    @pytest.mark.parametrize("pem", [None, ""])
    def test_no_certificate(self, pem: str | None, attempt_logger: AuthAttemptLogger) -> None:
        """Test that a missing certificate fails with NOCERT."""
        outcome = X509AuthSource().authenticate(pem)
        assert outcome == Failure(ErrorKind.NO_CERTIFICATE)
        assert attempt_logger.history[-1].error == "NOCERT"

    def test_invalid_certificate(
        self,
        attempt_logger: AuthAttemptLogger,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Test that an unparseable certificate fails with INVALIDCERT and is logged."""
        with caplog.at_level(logging.ERROR, logger="authx509"):
            outcome = X509AuthSource().authenticate("not a certificate")

        assert outcome == Failure(ErrorKind.INVALID_CERTIFICATE)
        assert "invalid cert" in caplog.text
        attempt = attempt_logger.history[-1]
        assert attempt.error == "INVALIDCERT"
        assert attempt.error_detail

    def test_explicit_logger(self, client_cert_pem: str) -> None:
        """Test that a given attempt logger is used instead of the global one."""
        own_logger = AuthAttemptLogger()
        X509AuthSource(attempt_logger=own_logger).authenticate(client_cert_pem)
        assert len(own_logger.history) == 1
