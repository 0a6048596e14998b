"""Client certificate parsing and test certificate utilities.

Decodes the PEM client certificate handed over by the TLS-terminating web
server into a CertificateRecord, using OpenSSL naming so that existing
attribute configuration keeps working. Also provides helpers to generate
client certificates for development and testing.
"""

from __future__ import annotations

import os
import re
import stat
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from urllib.parse import unquote

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import ExtensionOID, NameOID

from authx509.core.mapper import CertificateRecord, RDNValues, UnparseableCertificate

DEFAULT_CERT_DIR = Path.home() / ".authx509" / "certs"

PEM_HEADER = "-----BEGIN CERTIFICATE-----"
PEM_FOOTER = "-----END CERTIFICATE-----"
_PEM_BLOCK = re.compile(
    re.escape(PEM_HEADER) + r"(?P<body>.*?)" + re.escape(PEM_FOOTER), re.DOTALL
)

# OpenSSL short names for distinguished name attributes
OPENSSL_SHORT_NAMES: dict[x509.ObjectIdentifier, str] = {
    NameOID.COMMON_NAME: "CN",
    NameOID.COUNTRY_NAME: "C",
    NameOID.LOCALITY_NAME: "L",
    NameOID.STATE_OR_PROVINCE_NAME: "ST",
    NameOID.STREET_ADDRESS: "street",
    NameOID.ORGANIZATION_NAME: "O",
    NameOID.ORGANIZATIONAL_UNIT_NAME: "OU",
    NameOID.SERIAL_NUMBER: "serialNumber",
    NameOID.SURNAME: "SN",
    NameOID.GIVEN_NAME: "GN",
    NameOID.TITLE: "title",
    NameOID.GENERATION_QUALIFIER: "generationQualifier",
    NameOID.DN_QUALIFIER: "dnQualifier",
    NameOID.PSEUDONYM: "pseudonym",
    NameOID.USER_ID: "UID",
    NameOID.DOMAIN_COMPONENT: "DC",
    NameOID.EMAIL_ADDRESS: "emailAddress",
    NameOID.POSTAL_CODE: "postalCode",
}


class CertificateError(Exception):
    """Base exception for certificate-related errors."""


class CertificateParseError(CertificateError):
    """Raised when a presented client certificate cannot be decoded."""


class CertificateLoadError(CertificateError):
    """Raised when a certificate file cannot be loaded."""


class KeyLoadError(CertificateError):
    """Raised when a private key cannot be loaded."""


@dataclass
class CertificateInfo:
    """Summary of an X.509 certificate for display."""

    subject: str
    issuer: str
    serial_number: str
    not_before: datetime
    not_after: datetime
    fingerprint_sha256: str
    is_self_signed: bool


def normalize_pem(value: str) -> str:
    """Restore a PEM certificate as forwarded by a reverse proxy.

    Handles URL-escaped PEM (nginx ``$ssl_client_escaped_cert``) and PEM
    whose line breaks were folded into spaces by a header rewrite.

    Args:
        value: Certificate text as received.

    Returns:
        PEM text with one base64 line per row.
    """
    text = value.strip()
    if "%" in text and PEM_HEADER not in text:
        text = unquote(text)

    match = _PEM_BLOCK.search(text)
    if not match:
        return text

    body = "".join(match.group("body").split())
    lines = [body[i:i + 64] for i in range(0, len(body), 64)]
    return "\n".join([PEM_HEADER, *lines, PEM_FOOTER]) + "\n"


def _short_name(oid: x509.ObjectIdentifier) -> str:
    return OPENSSL_SHORT_NAMES.get(oid, oid.dotted_string)


def name_to_rdns(name: x509.Name) -> dict[str, RDNValues]:
    """Group name attributes by OpenSSL short name, keeping certificate order."""
    grouped: dict[str, list[str]] = {}
    for attribute in name:
        value = attribute.value
        if isinstance(value, bytes):
            value = value.decode("utf-8", errors="replace")
        grouped.setdefault(_short_name(attribute.oid), []).append(value)
    return {key: tuple(values) for key, values in grouped.items()}


def name_to_oneline(name: x509.Name) -> str:
    """Render a name in the OpenSSL one-line form (``/C=US/O=Org/CN=Jane``)."""
    parts = []
    for attribute in name:
        value = attribute.value
        if isinstance(value, bytes):
            value = value.decode("utf-8", errors="replace")
        parts.append(f"/{_short_name(attribute.oid)}={value}")
    return "".join(parts)


def _format_general_name(general_name: x509.GeneralName) -> str:
    if isinstance(general_name, x509.RFC822Name):
        return f"email:{general_name.value}"
    if isinstance(general_name, x509.DNSName):
        return f"DNS:{general_name.value}"
    if isinstance(general_name, x509.IPAddress):
        return f"IP Address:{general_name.value}"
    if isinstance(general_name, x509.UniformResourceIdentifier):
        return f"URI:{general_name.value}"
    if isinstance(general_name, x509.DirectoryName):
        return f"DirName:{name_to_oneline(general_name.value)}"
    if isinstance(general_name, x509.RegisteredID):
        return f"Registered ID:{general_name.value.dotted_string}"
    return "othername:<unsupported>"


def format_subject_alt_names(san: x509.SubjectAlternativeName) -> tuple[str, ...]:
    """Render Subject Alternative Names as OpenSSL ``type:value`` entries."""
    return tuple(_format_general_name(name) for name in san)


def format_certificate_policies(policies: x509.CertificatePolicies) -> str:
    """Render certificate policies the way ``openssl x509 -text`` does."""
    lines = []
    for policy in policies:
        lines.append(f"Policy: {policy.policy_identifier.dotted_string}")
        for qualifier in policy.policy_qualifiers or []:
            if isinstance(qualifier, str):
                lines.append(f"  CPS: {qualifier}")
            else:
                lines.append("  User Notice:")
                if qualifier.notice_reference is not None:
                    lines.append(f"    Organization: {qualifier.notice_reference.organization}")
                if qualifier.explicit_text:
                    lines.append(f"    Explicit Text: {qualifier.explicit_text}")
    return "\n".join(lines) + "\n"


def certificate_to_record(cert: x509.Certificate) -> CertificateRecord:
    """Convert a decoded certificate into the mapper's record form.

    Args:
        cert: X.509 certificate.

    Returns:
        CertificateRecord with OpenSSL-style names and extension values.

    Raises:
        CertificateParseError: If a name or extension cannot be decoded.
    """
    extensions: dict[str, str | tuple[str, ...]] = {}
    try:
        san = cert.extensions.get_extension_for_oid(ExtensionOID.SUBJECT_ALTERNATIVE_NAME)
        extensions["subjectAltName"] = format_subject_alt_names(san.value)
    except x509.ExtensionNotFound:
        pass
    except (ValueError, x509.DuplicateExtension, x509.UnsupportedGeneralNameType) as e:
        raise CertificateParseError(f"Malformed subjectAltName extension: {e}") from e

    try:
        policies = cert.extensions.get_extension_for_oid(ExtensionOID.CERTIFICATE_POLICIES)
        extensions["certificatePolicies"] = format_certificate_policies(policies.value)
    except x509.ExtensionNotFound:
        pass
    except (ValueError, x509.DuplicateExtension) as e:
        raise CertificateParseError(f"Malformed certificatePolicies extension: {e}") from e

    # Names are decoded lazily; a bad encoding only surfaces on access
    try:
        subject = name_to_rdns(cert.subject)
        issuer = name_to_rdns(cert.issuer)
        subject_name = name_to_oneline(cert.subject) or None
    except ValueError as e:
        raise CertificateParseError(f"Malformed certificate name: {e}") from e

    return CertificateRecord(
        subject=subject,
        issuer=issuer,
        subject_name=subject_name,
        extensions=extensions,
    )


def parse_certificate(pem: str) -> CertificateRecord:
    """Parse a PEM client certificate into a CertificateRecord.

    Args:
        pem: PEM text, possibly URL-escaped or with folded line breaks.

    Returns:
        CertificateRecord for the certificate.

    Raises:
        CertificateParseError: If the text is not a valid X.509 certificate.
    """
    try:
        cert = x509.load_pem_x509_certificate(normalize_pem(pem).encode("utf-8"))
    except ValueError as e:
        raise CertificateParseError(f"Invalid client certificate: {e}") from e
    return certificate_to_record(cert)


def load_client_certificate(
    pem: str | None,
) -> CertificateRecord | UnparseableCertificate | None:
    """Decode the certificate presented by the client, if any.

    Returns:
        None if no certificate was presented, UnparseableCertificate if it
        could not be decoded, otherwise the CertificateRecord.
    """
    if pem is None or not pem.strip():
        return None
    try:
        return parse_certificate(pem)
    except CertificateParseError as e:
        return UnparseableCertificate(reason=str(e))


def generate_private_key(key_size: int = 2048) -> rsa.RSAPrivateKey:
    """Generate an RSA private key.

    Args:
        key_size: RSA key size in bits. Default 2048.

    Returns:
        RSA private key.
    """
    return rsa.generate_private_key(
        public_exponent=65537,
        key_size=key_size,
    )


def generate_client_certificate(
    private_key: rsa.RSAPrivateKey,
    common_name: str,
    organization: str | None = None,
    emails: list[str] | None = None,
    policy_oids: list[str] | None = None,
    days_valid: int = 365,
    issuer_cert: x509.Certificate | None = None,
    issuer_key: rsa.RSAPrivateKey | None = None,
) -> x509.Certificate:
    """Generate an X.509 client certificate.

    The certificate is self-signed unless an issuer certificate and key
    are given.

    Args:
        private_key: RSA key of the certificate holder.
        common_name: Common Name (CN) for the certificate subject.
        organization: Organization (O) for the certificate subject.
        emails: Addresses to put in the Subject Alternative Name.
        policy_oids: Dotted OIDs for the certificate policies extension.
        days_valid: Number of days the certificate is valid.
        issuer_cert: Signing CA certificate.
        issuer_key: Signing CA private key.

    Returns:
        X.509 client certificate.
    """
    attributes = []
    if organization:
        attributes.append(x509.NameAttribute(NameOID.ORGANIZATION_NAME, organization))
    attributes.append(x509.NameAttribute(NameOID.COMMON_NAME, common_name))
    subject = x509.Name(attributes)

    if issuer_cert is not None and issuer_key is not None:
        issuer = issuer_cert.subject
        signing_key = issuer_key
    else:
        issuer = subject
        signing_key = private_key

    now = datetime.now(UTC)
    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + timedelta(days=days_valid))
        .add_extension(
            x509.BasicConstraints(ca=False, path_length=None),
            critical=True,
        )
        .add_extension(
            x509.ExtendedKeyUsage([x509.oid.ExtendedKeyUsageOID.CLIENT_AUTH]),
            critical=False,
        )
    )

    if emails:
        builder = builder.add_extension(
            x509.SubjectAlternativeName([x509.RFC822Name(e) for e in emails]),
            critical=False,
        )

    if policy_oids:
        builder = builder.add_extension(
            x509.CertificatePolicies([
                x509.PolicyInformation(x509.ObjectIdentifier(oid), None)
                for oid in policy_oids
            ]),
            critical=False,
        )

    return builder.sign(signing_key, hashes.SHA256())


def save_private_key(
    private_key: rsa.RSAPrivateKey,
    path: Path,
    password: bytes | None = None,
) -> None:
    """Save a private key to a PEM file with secure permissions.

    Args:
        private_key: RSA private key to save.
        path: Path to write the key file.
        password: Optional password to encrypt the key.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    encryption = (
        serialization.BestAvailableEncryption(password)
        if password
        else serialization.NoEncryption()
    )

    pem_data = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=encryption,
    )

    path.touch(mode=0o600)
    path.write_bytes(pem_data)
    os.chmod(path, stat.S_IRUSR | stat.S_IWUSR)


def save_certificate(cert: x509.Certificate, path: Path) -> None:
    """Save a certificate to a PEM file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))


def load_certificate(path: Path) -> x509.Certificate:
    """Load a certificate from a PEM file.

    Args:
        path: Path to the certificate file.

    Returns:
        X.509 certificate.

    Raises:
        CertificateLoadError: If the certificate cannot be loaded.
    """
    if not path.exists():
        raise CertificateLoadError(f"Certificate file not found: {path}")

    try:
        return x509.load_pem_x509_certificate(path.read_bytes())
    except ValueError as e:
        raise CertificateLoadError(f"Failed to load certificate from {path}: {e}") from e


def load_private_key(path: Path, password: bytes | None = None) -> rsa.RSAPrivateKey:
    """Load an RSA private key from a PEM file.

    Raises:
        KeyLoadError: If the key cannot be loaded.
    """
    if not path.exists():
        raise KeyLoadError(f"Private key file not found: {path}")

    try:
        key = serialization.load_pem_private_key(path.read_bytes(), password=password)
    except (ValueError, TypeError) as e:
        raise KeyLoadError(f"Failed to load private key from {path}: {e}") from e
    if not isinstance(key, rsa.RSAPrivateKey):
        raise KeyLoadError(f"Expected RSA private key, got {type(key).__name__}")
    return key


def get_certificate_pem(cert: x509.Certificate) -> str:
    """Get PEM-encoded string of a certificate."""
    return cert.public_bytes(serialization.Encoding.PEM).decode("utf-8")


def get_certificate_info(cert: x509.Certificate) -> CertificateInfo:
    """Extract display information from an X.509 certificate.

    Args:
        cert: X.509 certificate.

    Returns:
        CertificateInfo with extracted details.
    """
    return CertificateInfo(
        subject=name_to_oneline(cert.subject),
        issuer=name_to_oneline(cert.issuer),
        serial_number=format(cert.serial_number, "x"),
        not_before=cert.not_valid_before_utc,
        not_after=cert.not_valid_after_utc,
        fingerprint_sha256=cert.fingerprint(hashes.SHA256()).hex(),
        is_self_signed=cert.subject == cert.issuer,
    )


def is_certificate_valid(cert: x509.Certificate) -> bool:
    """Check if a certificate is currently within its validity period."""
    now = datetime.now(UTC)
    return cert.not_valid_before_utc <= now <= cert.not_valid_after_utc
