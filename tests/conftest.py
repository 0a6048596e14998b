"""Pytest configuration and fixtures."""

import base64
from collections.abc import Generator

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from flask import Flask
from flask.testing import FlaskClient

from authx509.app import create_app
from authx509.core.crypto import (
    generate_client_certificate,
    generate_private_key,
    get_certificate_pem,
)
from authx509.core.logging import AuthAttemptLogger, set_attempt_logger
from authx509.core.mapper import MapperConfig


@pytest.fixture(autouse=True)
def attempt_logger() -> Generator[AuthAttemptLogger, None, None]:
    """Give every test a fresh global attempt logger."""
    logger = AuthAttemptLogger()
    set_attempt_logger(logger)
    yield logger


@pytest.fixture(scope="session")
def private_key() -> rsa.RSAPrivateKey:
    """RSA key shared by generated test certificates."""
    return generate_private_key()


@pytest.fixture(scope="session")
def client_cert(private_key: rsa.RSAPrivateKey) -> x509.Certificate:
    """Client certificate with organization, SAN emails and policies."""
    return generate_client_certificate(
        private_key,
        common_name="Jane Doe jane@example.org",
        organization="Example Org",
        emails=["jane@example.org", "j.doe@example.org"],
        policy_oids=["1.3.6.1.4.1.5923.1.1.1.1", "1.2.3.4"],
    )


@pytest.fixture(scope="session")
def client_cert_pem(client_cert: x509.Certificate) -> str:
    """PEM of the client certificate."""
    return get_certificate_pem(client_cert)


@pytest.fixture(scope="session")
def malformed_name_pem(private_key: rsa.RSAPrivateKey) -> str:
    """Well-formed PEM whose subject and issuer CN is not valid UTF-8."""
    cert = generate_client_certificate(private_key, common_name="BADCNVALUE")
    der = cert.public_bytes(serialization.Encoding.DER)
    der = der.replace(b"BADCNVALUE", b"\xff\xfe" * 5)
    body = base64.b64encode(der).decode("ascii")
    lines = [body[i:i + 64] for i in range(0, len(body), 64)]
    return "\n".join(["-----BEGIN CERTIFICATE-----", *lines, "-----END CERTIFICATE-----"]) + "\n"


@pytest.fixture
def app() -> Generator[Flask, None, None]:
    """Create application for testing."""
    app = create_app(
        {
            "TESTING": True,
            "SECRET_KEY": "test-secret-key",
            "MAPPER_CONFIG": MapperConfig(export_eppn=True),
        }
    )
    yield app


@pytest.fixture
def client(app: Flask) -> FlaskClient:
    """Create test client."""
    return app.test_client()
