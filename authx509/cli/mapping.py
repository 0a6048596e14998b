"""Attribute mapping CLI command."""

from __future__ import annotations

import dataclasses
import sys
from pathlib import Path

import click

from authx509.cli.config import config_file_option, json_option, output_result


@click.command("map")
@click.argument("cert_path", type=click.Path(exists=True, path_type=Path))  # type: ignore[type-var]
@config_file_option
@click.option(
    "--export-eppn/--no-export-eppn",
    default=None,
    help="Split a user@scope token out of the display name",
)
@click.option(
    "--name-attribute",
    default=None,
    help="Subject RDN supplying the display name (e.g. CN)",
)
@json_option
def map_cert(
    cert_path: Path,
    config_path: Path | None,
    export_eppn: bool | None,
    name_attribute: str | None,
    output_json: bool,
) -> None:
    """Map a PEM client certificate to SAML attributes.

    Shows exactly what the login endpoint would hand to the assertion
    builder for this certificate. Exits with status 1 if the certificate
    cannot be mapped.

    Examples:

        authx509 map client.crt

        authx509 map client.crt --export-eppn --json
    """
    from authx509.core.auth import X509AuthSource
    from authx509.core.config import load_config
    from authx509.core.mapper import Failure

    mapper_config = load_config(config_path).mapper
    if export_eppn is not None:
        mapper_config = dataclasses.replace(mapper_config, export_eppn=export_eppn)
    if name_attribute:
        mapper_config = dataclasses.replace(mapper_config, cert_name_attribute=name_attribute)

    try:
        pem = cert_path.read_text()
    except (OSError, UnicodeDecodeError) as e:
        raise click.ClickException(f"Could not read {cert_path}: {e}") from None

    outcome = X509AuthSource(mapper_config).authenticate(pem, remote_addr="cli")

    if output_json:
        output_result(outcome.to_dict(), as_json=True)
        if isinstance(outcome, Failure):
            sys.exit(1)
        return

    if isinstance(outcome, Failure):
        raise click.ClickException(f"Certificate could not be mapped: {outcome.error.value}")

    click.echo(f"Subject ID: {outcome.subject_id or '(none)'}")
    click.echo("")
    click.echo("Attributes:")
    for name, values in outcome.attributes.items():
        if not values:
            click.echo(f"  {name}: (empty)")
        for value in values:
            click.echo(f"  {name}: {value}")
