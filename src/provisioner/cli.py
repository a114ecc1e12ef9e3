"""Azure development provisioner CLI (azdev).

Usage:
    azdev provision app.yaml   # Provision Azure components of an application model
    azdev validate app.yaml    # Validate an application model without touching Azure
    azdev whoami               # Show the principal id role grants are made for
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

import click
from azure.core.exceptions import AzureError

from .identity import TokenParseError
from .main import provision, setup_logging, whoami
from .model_loader import ModelLoadError, load_app_model


@click.group()
@click.version_option(version="0.1.0", prog_name="azdev")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Provision Azure resources for local development."""
    setup_logging(logging.DEBUG if verbose else logging.INFO)


@cli.command("provision")
@click.argument("model_file", type=click.Path(path_type=Path))
def provision_command(model_file: Path) -> None:
    """Provision the Azure components declared in MODEL_FILE."""
    exit_code, model = asyncio.run(provision(model_file))

    if model is not None:
        for component in model.components:
            assigned = component.assigned_name or "(not provisioned)"
            click.echo(f"{component.name} [{component.kind}]: {assigned}")
            for key, value in component.connection_info().items():
                click.echo(f"  {key}={value}")

    if exit_code != 0:
        click.secho("✗ Provisioning failed, see log for details", fg="red", err=True)
        sys.exit(exit_code)

    click.secho("✓ Azure components provisioned", fg="green")


@cli.command()
@click.argument("model_file", type=click.Path(path_type=Path))
def validate(model_file: Path) -> None:
    """Validate MODEL_FILE without contacting Azure."""
    try:
        model = load_app_model(model_file)
    except ModelLoadError as e:
        raise click.ClickException(str(e)) from e

    click.secho(
        f"✓ {model.name}: {len(model.components)} component(s) valid",
        fg="green",
    )


@cli.command("whoami")
def whoami_command() -> None:
    """Print the object id of the signed-in developer identity."""
    try:
        principal_id = asyncio.run(whoami())
    except (TokenParseError, AzureError) as e:
        raise click.ClickException(f"Could not resolve principal: {e}") from e

    click.echo(principal_id)


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
