"""Tests for client certificate parsing."""

from pathlib import Path
from urllib.parse import quote

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from authx509.core.crypto import (
    CertificateLoadError,
    CertificateParseError,
    certificate_to_record,
    generate_client_certificate,
    get_certificate_info,
    get_certificate_pem,
    load_certificate,
    load_client_certificate,
    load_private_key,
    normalize_pem,
    parse_certificate,
    save_certificate,
    save_private_key,
)
from authx509.core.mapper import CertificateRecord, UnparseableCertificate


def _self_signed(
    private_key: rsa.RSAPrivateKey,
    subject: x509.Name,
    extensions: list[x509.ExtensionType] | None = None,
) -> x509.Certificate:
    """Build a minimal certificate with a custom subject and extensions."""
    from datetime import UTC, datetime, timedelta

    now = datetime.now(UTC)
    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(subject)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + timedelta(days=1))
    )
    for extension in extensions or []:
        builder = builder.add_extension(extension, critical=False)
    return builder.sign(private_key, hashes.SHA256())


class TestNormalizePem:
    """Tests for PEM normalization."""

    def test_plain_pem_unchanged(self, client_cert_pem: str) -> None:
        """Test that a well-formed PEM survives normalization."""
        assert normalize_pem(client_cert_pem) == client_cert_pem

    def test_url_escaped_pem(self, client_cert_pem: str) -> None:
        """Test decoding nginx's escaped certificate variable."""
        assert normalize_pem(quote(client_cert_pem, safe="")) == client_cert_pem

    def test_folded_pem(self, client_cert_pem: str) -> None:
        """Test restoring newlines replaced by spaces."""
        folded = client_cert_pem.replace("\n", " ")
        assert normalize_pem(folded) == client_cert_pem

    def test_not_pem(self) -> None:
        """Test that non-PEM text is returned stripped."""
        assert normalize_pem("  garbage \n") == "garbage"


class TestParseCertificate:
    """Tests for converting certificates into records."""

    def test_subject_and_name(self, client_cert_pem: str) -> None:
        """Test subject RDNs and one-line subject name."""
        record = parse_certificate(client_cert_pem)
        assert record.subject == {
            "O": ("Example Org",),
            "CN": ("Jane Doe jane@example.org",),
        }
        assert record.subject_name == "/O=Example Org/CN=Jane Doe jane@example.org"

    def test_self_signed_issuer(self, client_cert_pem: str) -> None:
        """Test that a self-signed certificate's issuer matches its subject."""
        record = parse_certificate(client_cert_pem)
        assert record.issuer == record.subject

    def test_subject_alt_names(self, client_cert_pem: str) -> None:
        """Test SAN entries in OpenSSL form."""
        record = parse_certificate(client_cert_pem)
        assert record.extensions["subjectAltName"] == (
            "email:jane@example.org",
            "email:j.doe@example.org",
        )

    def test_certificate_policies(self, client_cert_pem: str) -> None:
        """Test certificate policies rendered as OpenSSL text."""
        record = parse_certificate(client_cert_pem)
        assert record.extensions["certificatePolicies"] == (
            "Policy: 1.3.6.1.4.1.5923.1.1.1.1\nPolicy: 1.2.3.4\n"
        )

    def test_repeated_rdn_and_short_names(self, private_key: rsa.RSAPrivateKey) -> None:
        """Test grouping of repeated RDNs and OpenSSL short names."""
        subject = x509.Name([
            x509.NameAttribute(NameOID.DOMAIN_COMPONENT, "org"),
            x509.NameAttribute(NameOID.DOMAIN_COMPONENT, "example"),
            x509.NameAttribute(NameOID.EMAIL_ADDRESS, "jane@example.org"),
            x509.NameAttribute(NameOID.COMMON_NAME, "Old CN"),
            x509.NameAttribute(NameOID.COMMON_NAME, "New CN"),
        ])
        record = certificate_to_record(_self_signed(private_key, subject))
        assert record.subject == {
            "DC": ("org", "example"),
            "emailAddress": ("jane@example.org",),
            "CN": ("Old CN", "New CN"),
        }
        assert record.subject_name == (
            "/DC=org/DC=example/emailAddress=jane@example.org/CN=Old CN/CN=New CN"
        )

    def test_mixed_san_and_policy_qualifiers(self, private_key: rsa.RSAPrivateKey) -> None:
        """Test non-email SAN entries and CPS qualifiers."""
        subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "Jane")])
        cert = _self_signed(
            private_key,
            subject,
            [
                x509.SubjectAlternativeName([
                    x509.DNSName("host.example.org"),
                    x509.RFC822Name("jane@example.org"),
                    x509.UniformResourceIdentifier("https://example.org/jane"),
                ]),
                x509.CertificatePolicies([
                    x509.PolicyInformation(
                        x509.ObjectIdentifier("1.2.3.4"),
                        ["https://example.org/cps"],
                    ),
                ]),
            ],
        )
        record = certificate_to_record(cert)
        assert record.extensions["subjectAltName"] == (
            "DNS:host.example.org",
            "email:jane@example.org",
            "URI:https://example.org/jane",
        )
        assert record.extensions["certificatePolicies"] == (
            "Policy: 1.2.3.4\n  CPS: https://example.org/cps\n"
        )

    def test_no_extensions(self, private_key: rsa.RSAPrivateKey) -> None:
        """Test that absent extensions are left out."""
        subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "Jane")])
        record = certificate_to_record(_self_signed(private_key, subject))
        assert record.extensions == {}

    def test_ca_signed_issuer(self, private_key: rsa.RSAPrivateKey) -> None:
        """Test issuer RDNs of a CA-signed certificate."""
        ca_subject = x509.Name([
            x509.NameAttribute(NameOID.COUNTRY_NAME, "US"),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Example CA"),
        ])
        ca_cert = _self_signed(private_key, ca_subject)
        cert = generate_client_certificate(
            private_key,
            common_name="Jane",
            issuer_cert=ca_cert,
            issuer_key=private_key,
        )
        record = certificate_to_record(cert)
        assert record.issuer == {"C": ("US",), "O": ("Example CA",)}

    def test_invalid_pem_raises(self) -> None:
        """Test that garbage input raises CertificateParseError."""
        with pytest.raises(CertificateParseError):
            parse_certificate("-----BEGIN CERTIFICATE-----\nbm90IGEgY2VydA==\n-----END CERTIFICATE-----\n")


    def test_malformed_name_raises(self, malformed_name_pem: str) -> None:
        """Test that a name with invalid encoding raises CertificateParseError."""
        with pytest.raises(CertificateParseError):
            parse_certificate(malformed_name_pem)


class TestLoadClientCertificate:
    """Tests for the upstream parsing boundary."""

    @pytest.mark.parametrize("pem", [None, "", "   \n"])
    def test_no_certificate(self, pem: str | None) -> None:
        """Test that missing input means no certificate."""
        assert load_client_certificate(pem) is None

    def test_unparseable(self) -> None:
        """Test that bad input is reported as unparseable."""
        result = load_client_certificate("not a certificate")
        assert isinstance(result, UnparseableCertificate)
        assert result.reason

    def test_malformed_name(self, malformed_name_pem: str) -> None:
        """Test that a certificate with an undecodable subject is unparseable."""
        result = load_client_certificate(malformed_name_pem)
        assert isinstance(result, UnparseableCertificate)
        assert result.reason

    def test_valid(self, client_cert_pem: str) -> None:
        """Test that a valid PEM yields a record."""
        assert isinstance(load_client_certificate(client_cert_pem), CertificateRecord)


class TestCertificateFiles:
    """Tests for saving and loading certificate files."""

    def test_save_and_load(
        self,
        tmp_path: Path,
        private_key: rsa.RSAPrivateKey,
        client_cert: x509.Certificate,
    ) -> None:
        """Test writing and reading back a certificate and key."""
        cert_path = tmp_path / "client.crt"
        key_path = tmp_path / "client.key"
        save_certificate(client_cert, cert_path)
        save_private_key(private_key, key_path)

        assert load_certificate(cert_path) == client_cert
        assert load_private_key(key_path).public_key().public_numbers() == (
            private_key.public_key().public_numbers()
        )
        assert key_path.stat().st_mode & 0o777 == 0o600

    def test_load_missing(self, tmp_path: Path) -> None:
        """Test loading a missing file."""
        with pytest.raises(CertificateLoadError):
            load_certificate(tmp_path / "missing.crt")

    def test_load_invalid(self, tmp_path: Path) -> None:
        """Test loading a file that is not a certificate."""
        path = tmp_path / "bad.crt"
        path.write_text("nope")
        with pytest.raises(CertificateLoadError):
            load_certificate(path)

    def test_certificate_info(self, client_cert: x509.Certificate) -> None:
        """Test summary information."""
        info = get_certificate_info(client_cert)
        assert info.subject == "/O=Example Org/CN=Jane Doe jane@example.org"
        assert info.is_self_signed
        assert len(info.fingerprint_sha256) == 64

    def test_pem_roundtrip(self, client_cert: x509.Certificate, client_cert_pem: str) -> None:
        """Test PEM export parses back to the same certificate."""
        assert x509.load_pem_x509_certificate(client_cert_pem.encode()) == client_cert
        assert get_certificate_pem(client_cert) == client_cert_pem
