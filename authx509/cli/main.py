"""CLI entry point for authx509."""

import click

from authx509 import __version__
from authx509.cli import certs as certs_commands
from authx509.cli import config as config_commands
from authx509.cli import mapping as mapping_commands
from authx509.cli import serve as serve_commands


@click.group()
@click.version_option(version=__version__, prog_name="authx509")
@click.option(
    "--log-level",
    type=click.Choice(["ERROR", "INFO", "DEBUG", "TRACE"], case_sensitive=False),
    default=None,
    help="Log level (default: from config or INFO)",
)
@click.option(
    "--trace",
    is_flag=True,
    help="Log full client certificates at TRACE level",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str | None, trace: bool) -> None:
    """authx509 - X.509 Client Certificate to SAML Attribute Mapper."""
    ctx.ensure_object(dict)

    if log_level or trace:
        from authx509.core.logging import configure_logging

        configure_logging(level=log_level or "INFO", trace_enabled=trace)


cli.add_command(mapping_commands.map_cert)
cli.add_command(certs_commands.certs)
cli.add_command(config_commands.config)
cli.add_command(serve_commands.serve)
