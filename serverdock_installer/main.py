#!/usr/bin/env python3
"""ServerDock Installer - install the ServerDock agent as a systemd service.

Usage:
    sudo serverdock-install --token TOKEN --server-id ID --server-secret SECRET

Or with environment variables:
    SERVERDOCK_BOOTSTRAP_TOKEN=xxx SERVERDOCK_SERVER_ID=abc \\
    SERVERDOCK_SERVER_SECRET=yyy sudo -E python -m serverdock_installer
"""

import sys

import click
from rich.console import Console

from . import __version__
from .acquisition import AcquisitionOrchestrator, Exhausted
from .config import (
    DEFAULT_BACKEND_URL,
    DEFAULT_INSTALL_DIR,
    DEFAULT_SERVICE_NAME,
    ProvisioningConfig,
)
from .errors import InstallerError, InvalidConfig, ServiceNotRunning
from .metrics import collect_host_facts
from .service import ServiceProvisioner
from .system import check_root, detect_platform
from .utils import setup_logging

console = Console()

RULE = "=" * 40


def install(config: ProvisioningConfig, logger) -> None:
    """Run one provisioning pass.

    Raises:
        InstallerError: on any terminal failure
    """
    config.require_credentials()
    errors = config.validate()
    if errors:
        raise InvalidConfig("; ".join(errors))
    check_root()

    profile = detect_platform()
    facts = collect_host_facts(config.install_dir)
    logger.info(f"Host: {facts.summary()}")

    orchestrator = AcquisitionOrchestrator(config, profile)
    console.print("[yellow]Acquiring ServerDock agent binary...[/yellow]")
    result = orchestrator.acquire()
    if isinstance(result, Exhausted):
        if result.download_error is not None:
            console.print(f"Download: {result.download_error}", style="red", markup=False, highlight=False)
        console.print(f"Build: {result.error}", style="red", markup=False, highlight=False)
        console.print("[yellow]Please either:[/yellow]")
        for hint in orchestrator.remediation_hints():
            console.print(f"  {hint}", markup=False, highlight=False)
        raise result.error

    artifact = result.artifact
    logger.info(f"Using {artifact.provenance.value} binary {artifact.path} ({artifact.size_bytes} bytes)")

    console.print("[yellow]Creating systemd service...[/yellow]")
    ServiceProvisioner(config).provision(artifact)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--token", envvar="SERVERDOCK_BOOTSTRAP_TOKEN", default="", help="Bootstrap token from the ServerDock backend")
@click.option("--server-id", envvar="SERVERDOCK_SERVER_ID", default="", help="Server ID registered in the backend")
@click.option("--server-secret", envvar="SERVERDOCK_SERVER_SECRET", default="", help="Server secret")
@click.option("--backend-url", envvar="SERVERDOCK_BACKEND_URL", default=DEFAULT_BACKEND_URL, show_default=True, help="Backend agent URL (ws:// or wss://)")
@click.option("--install-dir", envvar="SERVERDOCK_INSTALL_DIR", default=DEFAULT_INSTALL_DIR, show_default=True, help="Directory for the agent binary")
@click.option("--service-name", envvar="SERVERDOCK_SERVICE_NAME", default=DEFAULT_SERVICE_NAME, show_default=True, help="systemd unit name")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--version", is_flag=True, help="Show version and exit")
def main(
    token: str,
    server_id: str,
    server_secret: str,
    backend_url: str,
    install_dir: str,
    service_name: str,
    debug: bool,
    version: bool,
):
    """ServerDock Installer - install the agent and register it with systemd."""
    if version:
        click.echo(f"serverdock-install {__version__}")
        return

    logger = setup_logging(debug=debug)

    console.print(f"[green]{RULE}[/green]")
    console.print(f"[green]ServerDock Agent Installer v{__version__}[/green]")
    console.print(f"[green]{RULE}[/green]")

    config = ProvisioningConfig(
        bootstrap_token=token,
        server_id=server_id,
        server_secret=server_secret,
        backend_url=backend_url,
        install_dir=install_dir,
        service_name=service_name,
    )
    logger.debug(f"Backend: {config.http_base_url}, install dir: {config.install_dir}")

    try:
        install(config, logger)

    except InstallerError as e:
        console.print(str(e), style="red", markup=False, highlight=False)
        if isinstance(e, ServiceNotRunning) and e.status_output:
            console.print(e.status_output, markup=False, highlight=False)
        sys.exit(e.exit_code)

    console.print(f"[green]{RULE}[/green]")
    console.print("[green]Installation complete![/green]")
    console.print(f"[green]{RULE}[/green]")
    console.print(f"Service status: systemctl status {config.service_name}", markup=False)
    console.print(f"View logs: journalctl -u {config.service_name} -f", markup=False)


if __name__ == "__main__":
    main()
