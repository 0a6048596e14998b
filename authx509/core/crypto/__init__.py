"""Certificate parsing and generation utilities."""

from authx509.core.crypto.certs import (
    DEFAULT_CERT_DIR,
    CertificateError,
    CertificateInfo,
    CertificateLoadError,
    CertificateParseError,
    KeyLoadError,
    certificate_to_record,
    generate_client_certificate,
    generate_private_key,
    get_certificate_info,
    get_certificate_pem,
    is_certificate_valid,
    load_certificate,
    load_client_certificate,
    load_private_key,
    normalize_pem,
    parse_certificate,
    save_certificate,
    save_private_key,
)

__all__ = [
    "DEFAULT_CERT_DIR",
    "CertificateError",
    "CertificateInfo",
    "CertificateLoadError",
    "CertificateParseError",
    "KeyLoadError",
    "certificate_to_record",
    "generate_client_certificate",
    "generate_private_key",
    "get_certificate_info",
    "get_certificate_pem",
    "is_certificate_valid",
    "load_certificate",
    "load_client_certificate",
    "load_private_key",
    "normalize_pem",
    "parse_certificate",
    "save_certificate",
    "save_private_key",
]
