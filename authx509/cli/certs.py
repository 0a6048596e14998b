"""Certificate CLI commands."""

from datetime import UTC, datetime
from pathlib import Path

import click


@click.group()
def certs() -> None:
    """Generate and inspect client certificates.

    In production the client certificate comes from the browser through
    the TLS-terminating web server. These commands help create test
    certificates and see what the attribute mapper will extract.
    """
    pass


@certs.command("generate")
@click.option(
    "--common-name",
    "-cn",
    required=True,
    help="Common Name (CN) for the certificate subject",
)
@click.option(
    "--organization",
    "-o",
    default=None,
    help="Organization (O) for the certificate subject",
)
@click.option(
    "--email",
    "emails",
    multiple=True,
    help="Email address for the Subject Alternative Name (repeatable)",
)
@click.option(
    "--policy",
    "policies",
    multiple=True,
    help="Certificate policy OID, e.g. 1.3.6.1.4.1.5923.1.1.1.1 (repeatable)",
)
@click.option(
    "--days",
    "-d",
    type=int,
    default=365,
    help="Days the certificate is valid",
)
@click.option(
    "--name",
    "-n",
    default="client",
    help="Base file name for the certificate and key",
)
@click.option(
    "--output",
    type=click.Path(path_type=Path),  # type: ignore[type-var]
    help="Output directory for certificate files",
)
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Overwrite existing certificate files",
)
def certs_generate(
    common_name: str,
    organization: str | None,
    emails: tuple[str, ...],
    policies: tuple[str, ...],
    days: int,
    name: str,
    output: Path | None,
    force: bool,
) -> None:
    """Generate a self-signed client certificate for testing.

    Examples:

        # Certificate with an embedded principal name
        authx509 certs generate -cn "Jane Doe jane@example.org"

        # With SAN emails and assurance policies
        authx509 certs generate -cn "Jane Doe" -o "Example Org" \\
            --email jane@example.org --policy 1.2.3.4
    """
    from authx509.core.crypto import (
        DEFAULT_CERT_DIR,
        generate_client_certificate,
        generate_private_key,
        get_certificate_info,
        save_certificate,
        save_private_key,
    )

    output_dir = output or DEFAULT_CERT_DIR
    cert_path = output_dir / f"{name}.crt"
    key_path = output_dir / f"{name}.key"

    if not force and (cert_path.exists() or key_path.exists()):
        raise click.ClickException(
            f"Certificate files already exist at {output_dir}. Use --force to overwrite."
        )

    if days < 1:
        raise click.ClickException("--days must be at least 1")

    click.echo("Generating client certificate...")
    click.echo(f"  Common Name: {common_name}")
    click.echo(f"  Valid for: {days} days")
    click.echo("")

    private_key = generate_private_key()
    try:
        cert = generate_client_certificate(
            private_key,
            common_name=common_name,
            organization=organization,
            emails=list(emails),
            policy_oids=list(policies),
            days_valid=days,
        )
    except ValueError as e:
        raise click.ClickException(f"Invalid certificate field: {e}") from None

    save_private_key(private_key, key_path)
    save_certificate(cert, cert_path)

    info = get_certificate_info(cert)

    click.echo("Certificate generated successfully!")
    click.echo("")
    click.echo("Files created:")
    click.echo(f"  Certificate: {cert_path}")
    click.echo(f"  Private key: {key_path}")
    click.echo("")
    click.echo("Certificate details:")
    click.echo(f"  Subject: {info.subject}")
    click.echo(f"  Valid until: {info.not_after.strftime('%Y-%m-%d %H:%M:%S UTC')}")
    click.echo(f"  Fingerprint (SHA-256): {info.fingerprint_sha256}")


@certs.command("inspect")
@click.argument("cert_path", type=click.Path(exists=True, path_type=Path))  # type: ignore[type-var]
def certs_inspect(cert_path: Path) -> None:
    """Inspect a certificate as the attribute mapper sees it.

    Shows the subject and issuer RDNs, the one-line subject name and the
    extension values in the form the mapper consumes.
    """
    from authx509.core.crypto import (
        CertificateLoadError,
        CertificateParseError,
        certificate_to_record,
        get_certificate_info,
        is_certificate_valid,
        load_certificate,
    )

    try:
        cert = load_certificate(cert_path)
        record = certificate_to_record(cert)
    except (CertificateLoadError, CertificateParseError) as e:
        raise click.ClickException(str(e)) from None

    info = get_certificate_info(cert)
    if is_certificate_valid(cert):
        status, status_color = "VALID", "green"
    elif datetime.now(UTC) < info.not_before:
        status, status_color = "NOT YET VALID", "yellow"
    else:
        status, status_color = "EXPIRED", "red"

    click.echo(f"Certificate: {cert_path}")
    click.echo("")
    click.echo(f"Subject name: {record.subject_name}")
    click.echo("Subject:")
    for key, values in record.subject.items():
        for value in values:
            click.echo(f"  {key}: {value}")
    click.echo("Issuer:")
    for key, values in record.issuer.items():
        for value in values:
            click.echo(f"  {key}: {value}")

    click.echo("")
    click.echo("Validity Period:")
    click.echo(f"  Not Before: {info.not_before.strftime('%Y-%m-%d %H:%M:%S UTC')}")
    click.echo(f"  Not After: {info.not_after.strftime('%Y-%m-%d %H:%M:%S UTC')}")
    click.echo(click.style(f"  Status: {status}", fg=status_color))

    san = record.extensions.get("subjectAltName")
    if san:
        click.echo("")
        click.echo("Subject Alternative Names:")
        for entry in san:
            click.echo(f"  {entry}")

    policies = record.extensions.get("certificatePolicies")
    if policies:
        click.echo("")
        click.echo("Certificate Policies:")
        for line in policies.splitlines():
            click.echo(f"  {line}")
