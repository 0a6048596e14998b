"""Configuration management CLI commands."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, NoReturn

import click

# Common option for JSON output
json_option = click.option(
    "--json",
    "output_json",
    is_flag=True,
    help="Output results as JSON for scripting",
)

config_file_option = click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(path_type=Path),  # type: ignore[type-var]
    default=None,
    help="Path to config file (default: ~/.authx509/config.yaml)",
)


def output_result(data: dict[str, Any], as_json: bool = False) -> None:
    """Output result as JSON.

    Args:
        data: Data to output
        as_json: If True, output as JSON
    """
    if as_json:
        click.echo(json.dumps(data, indent=2, default=str))


def error_result(message: str, as_json: bool = False) -> NoReturn:
    """Output error message and exit.

    This function never returns - it either raises ClickException or calls sys.exit.

    Args:
        message: Error message
        as_json: If True, output as JSON
    """
    if as_json:
        click.echo(json.dumps({"error": message}, indent=2), err=True)
        sys.exit(1)
    raise click.ClickException(message)


@click.group()
def config() -> None:
    """Manage authx509 configuration."""
    pass


@config.command("show")
@config_file_option
@json_option
def config_show(config_path: Path | None, output_json: bool) -> None:
    """Show the effective configuration.

    Combines defaults, the config file and AUTHX509_* environment variables.
    """
    from authx509.core.config import DEFAULT_CONFIG_FILE, load_config

    app_config = load_config(config_path)
    data = app_config.to_dict()

    if output_json:
        output_result(data, as_json=True)
        return

    source = app_config.config_path or config_path or DEFAULT_CONFIG_FILE
    loaded = app_config.config_path is not None
    click.echo(f"Config file: {source}{'' if loaded else ' (not found, using defaults)'}")
    for section, values in data.items():
        click.echo("")
        click.echo(f"{section}:")
        for key, value in values.items():
            click.echo(f"  {key}: {value}")


@config.command("init")
@config_file_option
@click.option(
    "--force",
    is_flag=True,
    help="Overwrite an existing config file.",
)
@json_option
def config_init(config_path: Path | None, force: bool, output_json: bool) -> None:
    """Write the default configuration file.

    Examples:

        authx509 config init

        authx509 config init --config ./config.yaml --force
    """
    from authx509.core.config import DEFAULT_CONFIG_FILE, get_default_config_yaml

    path = config_path or DEFAULT_CONFIG_FILE

    if path.exists() and not force:
        if output_json:
            output_result({"status": "exists", "path": str(path)}, as_json=True)
            return
        click.echo(f"Config file already exists: {path}")
        click.echo("Use --force to overwrite.")
        return

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(get_default_config_yaml())
    except OSError as e:
        error_result(f"Could not write config file {path}: {e}", output_json)

    if output_json:
        output_result({"status": "created", "path": str(path)}, as_json=True)
        return

    click.echo(f"Config file written to: {path}")
