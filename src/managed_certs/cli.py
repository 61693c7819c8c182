"""Managed certificate controller CLI (mcrt).

Usage:
    mcrt run                      # Run the controller loop
    mcrt sync NAMESPACE NAME      # Run a single sync pass for one ManagedCertificate
    mcrt state                    # Print tracked state entries as YAML
    mcrt check-config             # Validate configuration from the environment
"""

from __future__ import annotations

import asyncio
import logging

import click
import yaml

from .config import Config, ConfigurationError
from .identity import CertId
from .main import Components, build_components, run as run_controller, setup_logging
from .security import SecretlessViolationError
from .sync import SyncOutcome


def load_components() -> Components:
    """Load configuration and build components, mapping failures to CLI errors."""
    try:
        config = Config.from_env()
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e

    try:
        return build_components(config)
    except SecretlessViolationError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """Managed certificate controller for Azure."""
    setup_logging(logging.DEBUG if verbose else logging.WARNING)


@cli.command()
def run() -> None:
    """Run the controller until interrupted."""
    run_controller()


@cli.command()
@click.argument("namespace")
@click.argument("name")
def sync(namespace: str, name: str) -> None:
    """Run a single sync pass for NAMESPACE/NAME."""
    components = load_components()
    result = asyncio.run(components.sync.managed_certificate(CertId(namespace, name)))

    if result.outcome == SyncOutcome.FAILED:
        kind = result.error_kind.value if result.error_kind else "unknown"
        raise click.ClickException(f"Sync failed ({kind}): {result.error}")

    click.echo(f"{result.cert_id}: {result.outcome.value} ({result.duration_seconds:.2f}s)")


@cli.command()
def state() -> None:
    """Print tracked state entries."""
    components = load_components()
    entries = [
        entry.to_dict(cert_id) for cert_id, entry in sorted(components.state.entries().items())
    ]
    click.echo(yaml.safe_dump(entries, sort_keys=False), nl=False)


@cli.command("check-config")
def check_config() -> None:
    """Validate configuration from the environment."""
    try:
        config = Config.from_env()
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e

    click.echo(
        f"Configuration valid: subscription={config.subscription_id} "
        f"resource_group={config.resource_group_name} location={config.location}"
    )


if __name__ == "__main__":
    cli()
