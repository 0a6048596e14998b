"""X.509 client certificate to SAML attribute mapping.

Turns the fields of an already validated client certificate (subject DN,
issuer DN, Subject Alternative Name and certificate policies extensions)
into a flat set of assertion attributes. The mapping is a pure function:
it keeps no state between calls and reports failures through its return
value instead of raising.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

# Prefix used by existing deployments for the option keys
CONFIG_KEY_PREFIX = "authX509toSAML:"

EPPN_ATTRIBUTE = "eduPersonPrincipalName"
MAIL_ATTRIBUTE = "mail"

SAN_EMAIL_PREFIX = "email:"
POLICY_PATTERN = re.compile(r"Policy: ([\d.]+)")

RDNValues = tuple[str, ...]
ExtensionValue = str | tuple[str, ...]
AttributeSet = dict[str, list[str]]


class ErrorKind(StrEnum):
    """Reasons a certificate could not be mapped to attributes."""

    NO_CERTIFICATE = "NOCERT"
    INVALID_CERTIFICATE = "INVALIDCERT"


@dataclass(frozen=True)
class MapperConfig:
    """Options controlling which attributes are produced and how they are named."""

    cert_name_attribute: str = "CN"
    assertion_name_attribute: str = "displayName"
    assertion_dn_attribute: str = "distinguishedName"
    assertion_issuer_dn_attribute: str = "voPersonCertificateIssuerDN"
    assertion_o_attribute: str | None = "o"
    assertion_assurance_attribute: str = "eduPersonAssurance"
    parse_san_emails: bool = True
    parse_policy: bool = True
    export_eppn: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> MapperConfig:
        """Create MapperConfig from a dictionary.

        Keys may be given bare (``export_eppn``) or with the
        ``authX509toSAML:`` prefix. Missing keys take their defaults.
        """
        options: dict[str, Any] = {}
        for key, value in data.items():
            options[key.removeprefix(CONFIG_KEY_PREFIX)] = value

        defaults = cls()
        o_attribute = defaults.assertion_o_attribute
        if "assertion_o_attribute" in options:
            value = options["assertion_o_attribute"]
            o_attribute = value if isinstance(value, str) and value else None

        return cls(
            cert_name_attribute=options.get("cert_name_attribute", defaults.cert_name_attribute),
            assertion_name_attribute=options.get(
                "assertion_name_attribute", defaults.assertion_name_attribute
            ),
            assertion_dn_attribute=options.get(
                "assertion_dn_attribute", defaults.assertion_dn_attribute
            ),
            assertion_issuer_dn_attribute=options.get(
                "assertion_issuer_dn_attribute", defaults.assertion_issuer_dn_attribute
            ),
            assertion_o_attribute=o_attribute,
            assertion_assurance_attribute=options.get(
                "assertion_assurance_attribute", defaults.assertion_assurance_attribute
            ),
            parse_san_emails=_as_bool(options.get("parse_san_emails", defaults.parse_san_emails)),
            parse_policy=_as_bool(options.get("parse_policy", defaults.parse_policy)),
            export_eppn=_as_bool(options.get("export_eppn", defaults.export_eppn)),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "cert_name_attribute": self.cert_name_attribute,
            "assertion_name_attribute": self.assertion_name_attribute,
            "assertion_dn_attribute": self.assertion_dn_attribute,
            "assertion_issuer_dn_attribute": self.assertion_issuer_dn_attribute,
            "assertion_o_attribute": self.assertion_o_attribute or "",
            "assertion_assurance_attribute": self.assertion_assurance_attribute,
            "parse_san_emails": self.parse_san_emails,
            "parse_policy": self.parse_policy,
            "export_eppn": self.export_eppn,
        }


def _as_bool(value: Any) -> bool:
    """Read an option flag; strings such as "false" or "0" are false."""
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


def _as_values(value: Any) -> RDNValues:
    """Normalize a scalar-or-list RDN value to a tuple of strings."""
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple)):
        return tuple(str(v) for v in value)
    return (str(value),)


def _normalize_extensions(value: Any) -> dict[str, ExtensionValue]:
    extensions: dict[str, ExtensionValue] = {}
    for name, raw in (value or {}).items():
        extensions[str(name)] = raw if isinstance(raw, str) else _as_values(raw)
    return extensions


def _normalize_dn(value: Any) -> dict[str, RDNValues]:
    normalized: dict[str, RDNValues] = {}
    for key, raw in (value or {}).items():
        values = _as_values(raw)
        if values:
            normalized[str(key)] = values
    return normalized


@dataclass(frozen=True)
class CertificateRecord:
    """Parsed view of an X.509 certificate as seen by the mapper.

    Every subject/issuer RDN maps to a non-empty tuple of values in
    certificate order; repeated RDNs hold more than one value. ``issuer``
    may instead be a flat DN string when the parser could not split it.
    Extension values are either a single string or a tuple of entries.
    """

    subject: Mapping[str, RDNValues] = field(default_factory=dict)
    issuer: Mapping[str, RDNValues] | str = field(default_factory=dict)
    subject_name: str | None = None
    extensions: Mapping[str, ExtensionValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Accept scalar RDN and extension values on direct construction too
        object.__setattr__(self, "subject", _normalize_dn(self.subject))
        if not isinstance(self.issuer, str):
            object.__setattr__(self, "issuer", _normalize_dn(self.issuer))
        object.__setattr__(self, "extensions", _normalize_extensions(self.extensions))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CertificateRecord:
        """Create a record from an ``openssl_x509_parse``-shaped dictionary.

        Recognized keys are ``subject``, ``issuer``, ``name`` and
        ``extensions``; values may be strings or lists of strings.
        """
        return cls(
            subject=data.get("subject") or {},
            issuer=data.get("issuer") or {},
            subject_name=data.get("name") or None,
            extensions=data.get("extensions") or {},
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to an ``openssl_x509_parse``-shaped dictionary."""
        def flatten(values: RDNValues) -> str | list[str]:
            return values[0] if len(values) == 1 else list(values)

        issuer: str | dict[str, str | list[str]]
        if isinstance(self.issuer, str):
            issuer = self.issuer
        else:
            issuer = {k: flatten(v) for k, v in self.issuer.items()}

        return {
            "name": self.subject_name,
            "subject": {k: flatten(v) for k, v in self.subject.items()},
            "issuer": issuer,
            "extensions": {
                k: v if isinstance(v, str) else list(v)
                for k, v in self.extensions.items()
            },
        }


@dataclass(frozen=True)
class UnparseableCertificate:
    """A certificate was presented but could not be decoded as X.509."""

    reason: str = ""


@dataclass(frozen=True)
class Success:
    """Attributes extracted from a certificate."""

    subject_id: str | None
    attributes: AttributeSet

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": "success",
            "subject_id": self.subject_id,
            "attributes": {k: list(v) for k, v in self.attributes.items()},
        }


@dataclass(frozen=True)
class Failure:
    """Mapping failed; the error kind is the whole payload."""

    error: ErrorKind

    def to_dict(self) -> dict[str, Any]:
        return {"status": "failure", "error": self.error.value}


MapperOutcome = Success | Failure


def resolve_display_name(values: RDNValues) -> str:
    """Pick the effective value of a possibly repeated RDN (last one wins)."""
    return values[-1]


def split_principal_name(name: str) -> tuple[str | None, str]:
    """Split an embedded ``user@scope`` token out of a display name.

    Returns ``(eppn, remaining_name)``. Only the first textual occurrence
    of the token is removed; surrounding whitespace is left untouched.
    When no token contains ``@`` the name is returned unmodified.
    """
    for token in name.split():
        if "@" in token:
            return token, name.replace(token, "", 1)
    return None, name


def format_issuer_dn(issuer: Mapping[str, RDNValues] | str) -> str:
    """Build a ``/key=value`` issuer DN string from its RDN mapping."""
    if isinstance(issuer, str):
        return issuer
    return "".join(
        f"/{key}=" + f"/{key}=".join(values) for key, values in issuer.items()
    )


def extract_san_emails(value: ExtensionValue | None) -> list[str]:
    """Collect the ``email:`` entries of a subjectAltName extension value."""
    if value is None:
        return []
    entries = (value,) if isinstance(value, str) else value
    return [
        entry[len(SAN_EMAIL_PREFIX):]
        for entry in entries
        if entry.startswith(SAN_EMAIL_PREFIX)
    ]


def extract_policy_oids(value: ExtensionValue | None) -> list[str]:
    """Collect the policy OIDs from a certificatePolicies text dump."""
    if not value or not isinstance(value, str):
        return []
    return POLICY_PATTERN.findall(value)


def map_certificate(
    cert: CertificateRecord | UnparseableCertificate | None,
    config: MapperConfig | None = None,
) -> MapperOutcome:
    """Map a client certificate to assertion attributes.

    Args:
        cert: Parsed certificate, an UnparseableCertificate marker when the
            presented certificate could not be decoded, or None when no
            certificate was presented.
        config: Mapping options. Defaults are used if not provided.

    Returns:
        Success with the subject identifier and attributes, or Failure.
    """
    if cert is None:
        return Failure(ErrorKind.NO_CERTIFICATE)
    if isinstance(cert, UnparseableCertificate):
        return Failure(ErrorKind.INVALID_CERTIFICATE)

    config = config or MapperConfig()
    attributes: AttributeSet = {}
    subject_id = None

    if cert.subject_name:
        subject_id = cert.subject_name
        attributes[config.assertion_dn_attribute] = [cert.subject_name]

    name_values = cert.subject.get(config.cert_name_attribute)
    if name_values:
        name = resolve_display_name(name_values)
        if config.export_eppn:
            eppn, name = split_principal_name(name)
            if eppn is not None:
                attributes[EPPN_ATTRIBUTE] = [eppn]
        attributes[config.assertion_name_attribute] = [name]

    if cert.issuer:
        attributes[config.assertion_issuer_dn_attribute] = [format_issuer_dn(cert.issuer)]

    if config.parse_san_emails:
        # Present even when empty
        attributes[MAIL_ATTRIBUTE] = extract_san_emails(cert.extensions.get("subjectAltName"))

    if config.assertion_o_attribute:
        organization = cert.subject.get("O", ())
        if len(organization) == 1 and organization[0]:
            attributes[config.assertion_o_attribute] = [organization[0]]

    if config.parse_policy:
        policies = extract_policy_oids(cert.extensions.get("certificatePolicies"))
        if policies:
            attributes[config.assertion_assurance_attribute] = policies

    return Success(subject_id=subject_id, attributes=attributes)
