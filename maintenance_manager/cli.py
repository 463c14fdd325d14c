"""Main CLI entry point for maintenance orchestration."""

import os
import signal
import threading
from contextlib import contextmanager
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from maintenance_manager.exceptions import (
    ConfigurationError,
    EndpointConnectionError,
    MaintenanceManagerError,
)
from maintenance_manager.logging_config import get_logger, setup_logging
from maintenance_manager.models.health import OperationOutcome, OutcomeStatus

app = typer.Typer(
    name="maint-mgr",
    help="Maintenance-mode orchestration for hyperconverged cluster nodes",
    add_completion=False,
)

console = Console()
logger = get_logger(__name__)

EXIT_ABORTED = 1
EXIT_CONFIGURATION = 2
EXIT_TIMED_OUT = 3
EXIT_INTERRUPTED = 130

DEFAULT_CONFIG = "maintenance.yml"


# Global callback to set up logging
@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    log_file: str | None = typer.Option(None, "--log-file", help="Path to log file"),
):
    """Global options for all commands."""
    log_path = Path(log_file) if log_file else None
    setup_logging(verbose=verbose, log_file=log_path)
    logger.debug("Logging initialized")


def exit_code_for(outcomes: list[OperationOutcome]) -> int:
    """Collapse per-node outcomes into one process exit code.

    Cancellation wins over aborts, aborts over time-outs.
    """
    from maintenance_manager.orchestrator import CANCELLED_CAUSE

    if any(o.cause == CANCELLED_CAUSE for o in outcomes):
        return EXIT_INTERRUPTED
    if any(o.status == OutcomeStatus.ABORTED for o in outcomes):
        return EXIT_ABORTED
    if any(o.status == OutcomeStatus.TIMED_OUT for o in outcomes):
        return EXIT_TIMED_OUT
    return 0


def open_control_plane(config):
    """Create the vSphere control plane for ``config`` (not yet connected)."""
    from maintenance_manager.vsphere import VSphereControlPlane

    password = os.environ.get(config.vcenter.password_env)
    if not password:
        raise ConfigurationError(
            f"No password for {config.vcenter.user}@{config.vcenter.host}",
            f"Export it in the {config.vcenter.password_env} environment variable",
        )
    return VSphereControlPlane(config.vcenter, password)


def build_probe(ssh_settings):
    """Create the cluster health probe for the given ssh settings."""
    from maintenance_manager.health import SshHealthProbe

    return SshHealthProbe(
        user=ssh_settings.user,
        command=ssh_settings.command,
        connect_timeout=ssh_settings.connect_timeout,
        command_timeout=ssh_settings.command_timeout,
        extra_options=ssh_settings.options,
    )


@contextmanager
def cancel_on_interrupt(cancel_event: threading.Event):
    """Turn the first Ctrl-C into a cancellation request.

    The orchestrator stops at its next poll boundary. A second Ctrl-C
    interrupts immediately.
    """

    def handler(signum, frame):
        if cancel_event.is_set():
            signal.signal(signal.SIGINT, signal.default_int_handler)
            raise KeyboardInterrupt
        cancel_event.set()
        console.print(
            "\n[yellow]Cancellation requested; stopping at the next poll boundary. "
            "Press Ctrl-C again to interrupt immediately.[/yellow]"
        )

    try:
        previous = signal.signal(signal.SIGINT, handler)
    except ValueError:
        # Not in the main thread; leave interrupts alone
        yield
        return
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def _resolve_nodes(config, node_ids: list[str]):
    from maintenance_manager.inventory import InventoryManager

    inventory = InventoryManager(config.inventory_path)
    nodes = []
    seen = set()
    for node_id in node_ids:
        if node_id in seen:
            logger.warning(f"Ignoring duplicate node '{node_id}'")
            continue
        seen.add(node_id)
        nodes.append(inventory.get_node(node_id))
    return nodes


def _run_operation(operation: str, node_ids: list[str], config_path: str, parallel: int | None):
    from maintenance_manager.inventory import InventoryError
    from maintenance_manager.locks import NodeLockRegistry
    from maintenance_manager.models.config import OrchestratorConfig
    from maintenance_manager.orchestrator import MaintenanceOrchestrator
    from maintenance_manager.reporting import OperationContext

    context = None
    outcomes: list[OperationOutcome] = []
    try:
        config = OrchestratorConfig.load(config_path)
        nodes = _resolve_nodes(config, node_ids)
        control_plane = open_control_plane(config)

        context = OperationContext(console=console)
        cancel_event = threading.Event()
        with control_plane:
            orchestrator = MaintenanceOrchestrator(
                health_probe=build_probe(config.ssh),
                infrastructure=control_plane,
                workload=control_plane,
                settings=config.orchestration,
                context=context,
                locks=NodeLockRegistry(),
                cancel_event=cancel_event,
            )
            for node in nodes:
                orchestrator.reconcile_phase(node)
            with cancel_on_interrupt(cancel_event):
                outcomes = orchestrator.run_batch(
                    nodes, operation, max_workers=parallel or config.max_workers
                )

    except (ConfigurationError, InventoryError) as e:
        console.print(f"[red]Configuration Error:[/red] {e.message}")
        if e.details:
            console.print(f"\n{e.details}")
        raise typer.Exit(code=EXIT_CONFIGURATION)
    except EndpointConnectionError as e:
        logger.error(f"Connection error: {e.message}")
        console.print(f"[red]Connection Error:[/red] {e.message}")
        if e.details:
            console.print(f"\n{e.details}")
        raise typer.Exit(code=EXIT_ABORTED)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted; node state may need manual reconciliation[/yellow]")
        raise typer.Exit(code=EXIT_INTERRUPTED)
    except MaintenanceManagerError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(code=EXIT_ABORTED)
    finally:
        if context is not None:
            context.summary(outcomes)

    code = exit_code_for(outcomes)
    if code:
        console.print(
            "\n[yellow]Note:[/yellow] failed nodes were left in the phase shown above. "
            "Nothing was rolled back; reconcile them manually or re-run once the cause is fixed."
        )
    raise typer.Exit(code=code)


@app.command()
def version() -> None:
    """Show version information."""
    from maintenance_manager import __version__

    typer.echo(f"maint-mgr version {__version__}")


@app.command()
def nodes(
    config_path: str = typer.Option(DEFAULT_CONFIG, "--config", "-c", help="Configuration file"),
) -> None:
    """List the nodes in the inventory."""
    from maintenance_manager.inventory import InventoryError, InventoryManager
    from maintenance_manager.models.config import OrchestratorConfig

    try:
        config = OrchestratorConfig.load(config_path)
        inventory_nodes = InventoryManager(config.inventory_path).get_nodes()
    except (ConfigurationError, InventoryError) as e:
        console.print(f"[red]Configuration Error:[/red] {e.message}")
        if e.details:
            console.print(f"\n{e.details}")
        raise typer.Exit(code=EXIT_CONFIGURATION)

    if not inventory_nodes:
        console.print("[yellow]No nodes in the inventory[/yellow]")
        return

    table = Table(title="Cluster Nodes")
    table.add_column("Node", style="cyan")
    table.add_column("Address", style="magenta")
    table.add_column("Service VM", style="green")
    table.add_column("Service Address", style="yellow")
    for node in sorted(inventory_nodes, key=lambda n: n.node_id):
        table.add_row(node.node_id, node.address, node.service_vm, node.service_address or "-")
    console.print(table)
    console.print(f"\n[bold]Total nodes:[/bold] {len(inventory_nodes)}")


@app.command()
def add_node(
    node_id: str = typer.Argument(..., help="Node identifier"),
    address: str = typer.Argument(..., help="Host name of the node on the management endpoint"),
    service_vm: str = typer.Argument(..., help="Name of the node's service VM"),
    service_address: str | None = typer.Option(
        None, "--service-address", help="Address of the service VM, if it is fixed"
    ),
    config_path: str = typer.Option(DEFAULT_CONFIG, "--config", "-c", help="Configuration file"),
) -> None:
    """Add a node to the inventory."""
    from pydantic import ValidationError

    from maintenance_manager.inventory import InventoryError, InventoryManager
    from maintenance_manager.models.config import OrchestratorConfig
    from maintenance_manager.models.node import Node

    try:
        config = OrchestratorConfig.load(config_path)
        try:
            node = Node(
                node_id=node_id,
                address=address,
                service_vm=service_vm,
                service_address=service_address,
            )
        except ValidationError as e:
            console.print("[red]Validation Error:[/red]")
            for error in e.errors():
                field = ".".join(str(x) for x in error["loc"])
                console.print(f"  - {field}: {error['msg']}")
            raise typer.Exit(code=EXIT_CONFIGURATION)

        InventoryManager(config.inventory_path).add_node(node)
    except (ConfigurationError, InventoryError) as e:
        console.print(f"[red]Error:[/red] {e.message}")
        if e.details:
            console.print(f"\n{e.details}")
        raise typer.Exit(code=EXIT_CONFIGURATION)

    console.print(f"[green]✓[/green] Successfully added node '{node_id}' to inventory")
    console.print(f"  Address: {address}")
    console.print(f"  Service VM: {service_vm}")
    if service_address:
        console.print(f"  Service Address: {service_address}")


@app.command()
def remove_node(
    node_id: str = typer.Argument(..., help="Node identifier"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation prompt"),
    config_path: str = typer.Option(DEFAULT_CONFIG, "--config", "-c", help="Configuration file"),
) -> None:
    """Remove a node from the inventory."""
    from maintenance_manager.inventory import InventoryError, InventoryManager
    from maintenance_manager.models.config import OrchestratorConfig

    try:
        config = OrchestratorConfig.load(config_path)
        manager = InventoryManager(config.inventory_path)
        node = manager.get_node(node_id)

        if not force:
            console.print(f"[yellow]Warning:[/yellow] About to remove node '{node_id}'")
            console.print(f"  Address: {node.address}")
            if not typer.confirm("Are you sure you want to continue?"):
                console.print("Operation cancelled")
                raise typer.Exit(code=0)

        manager.remove_node(node_id)
    except (ConfigurationError, InventoryError) as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(code=EXIT_CONFIGURATION)

    console.print(f"[green]✓[/green] Successfully removed node '{node_id}' from inventory")


@app.command()
def enter(
    node_ids: list[str] = typer.Argument(..., help="Nodes to put into maintenance"),
    config_path: str = typer.Option(DEFAULT_CONFIG, "--config", "-c", help="Configuration file"),
    parallel: int | None = typer.Option(
        None, "--parallel", "-p", min=1, help="Number of nodes processed at once"
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Show the planned steps without connecting"
    ),
) -> None:
    """
    Drain nodes and put them into maintenance mode.

    For each node: check cluster health, stop the service VM, confirm it
    stopped, then enter maintenance mode with workload evacuation.

    Examples:
        maint-mgr enter node-a
        maint-mgr enter node-a node-b --parallel 2
    """
    from maintenance_manager.orchestrator import ENTER_MAINTENANCE

    if dry_run:
        _show_plan(ENTER_MAINTENANCE, node_ids, config_path)
        return
    _run_operation(ENTER_MAINTENANCE, node_ids, config_path, parallel)


@app.command(name="exit")
def exit_(
    node_ids: list[str] = typer.Argument(..., help="Nodes to bring out of maintenance"),
    config_path: str = typer.Option(DEFAULT_CONFIG, "--config", "-c", help="Configuration file"),
    parallel: int | None = typer.Option(
        None, "--parallel", "-p", min=1, help="Number of nodes processed at once"
    ),
) -> None:
    """
    Take nodes out of maintenance mode and restore their service VMs.

    For each node: exit maintenance, confirm the host is connected, start the
    service VM, then wait until cluster health stays clean.

    Examples:
        maint-mgr exit node-a
    """
    from maintenance_manager.orchestrator import EXIT_MAINTENANCE

    _run_operation(EXIT_MAINTENANCE, node_ids, config_path, parallel)


def _show_plan(operation: str, node_ids: list[str], config_path: str) -> None:
    from maintenance_manager.inventory import InventoryError
    from maintenance_manager.models.config import OrchestratorConfig

    try:
        config = OrchestratorConfig.load(config_path)
        plan_nodes = _resolve_nodes(config, node_ids)
    except (ConfigurationError, InventoryError) as e:
        console.print(f"[red]Configuration Error:[/red] {e.message}")
        raise typer.Exit(code=EXIT_CONFIGURATION)

    settings = config.orchestration
    console.print(f"[bold cyan]Planned {operation}[/bold cyan] (dry run, nothing is changed)")
    for node in plan_nodes:
        console.print(f"\n[bold]{node.node_id}[/bold] ({node.address})")
        if settings.preflight_health_check:
            console.print(f"  1. Check cluster health ({settings.preflight})")
        console.print(f"  2. Stop service VM '{node.service_vm}'")
        console.print(f"  3. Confirm it stopped ({settings.grace})")
        console.print("  4. Enter maintenance mode with evacuation")
        console.print(f"  5. Confirm maintenance mode ({settings.maintenance})")


@app.command()
def check(
    address: str = typer.Argument(..., help="Address of a service VM to query"),
    user: str | None = typer.Option(None, "--user", "-u", help="ssh user (overrides config)"),
    config_path: str = typer.Option(DEFAULT_CONFIG, "--config", "-c", help="Configuration file"),
) -> None:
    """
    Run one cluster health query and show its classification.

    Uses the ssh settings from the configuration file when it exists.
    Exits 0 when healthy, 1 otherwise.
    """
    from maintenance_manager.models.config import OrchestratorConfig, SshSettings
    from maintenance_manager.models.health import HealthStatus

    try:
        if Path(config_path).exists():
            ssh_settings = OrchestratorConfig.load(config_path).ssh
        else:
            logger.debug(f"No configuration at {config_path}, using default ssh settings")
            ssh_settings = SshSettings()
    except ConfigurationError as e:
        console.print(f"[red]Configuration Error:[/red] {e.message}")
        if e.details:
            console.print(f"\n{e.details}")
        raise typer.Exit(code=EXIT_CONFIGURATION)

    if user:
        ssh_settings = ssh_settings.model_copy(update={"user": user})

    result = build_probe(ssh_settings).check_status(address)
    styles = {
        HealthStatus.HEALTHY: "[green]✓ Healthy[/green]",
        HealthStatus.DEGRADED: "[yellow]⚠ Degraded[/yellow]",
        HealthStatus.UNREACHABLE: "[red]✗ Unreachable[/red]",
    }
    console.print(f"{address}: {styles[result.status]}")
    if result.reason:
        console.print(f"  Reason: {result.reason}")

    if not result.is_healthy:
        raise typer.Exit(code=EXIT_ABORTED)


@app.command()
def validate_container(
    name: str = typer.Argument(..., help="Container name"),
    replication_factor: int = typer.Option(2, "--rf", help="Replication factor (2 or 3)"),
    compression: bool = typer.Option(False, "--compression", help="Enable compression"),
    compression_delay: int = typer.Option(
        0, "--compression-delay", help="Seconds before data is compressed"
    ),
    dedupe: bool = typer.Option(False, "--dedupe", help="Enable deduplication"),
    fingerprint: bool = typer.Option(False, "--fingerprint", help="Enable fingerprinting"),
) -> None:
    """
    Validate a storage container configuration without connecting anywhere.

    Examples:
        maint-mgr validate-container ctr-01 --rf 3 --compression
        maint-mgr validate-container ctr-02 --dedupe --fingerprint
    """
    from pydantic import ValidationError

    from maintenance_manager.models.storage import ContainerConfig

    try:
        container = ContainerConfig(
            name=name,
            replication_factor=replication_factor,
            compression_enabled=compression,
            compression_delay_seconds=compression_delay,
            dedupe_enabled=dedupe,
            fingerprint_enabled=fingerprint,
        )
    except ConfigurationError as e:
        console.print(f"[red]Configuration Error:[/red] {e.message}")
        if e.details:
            console.print(f"\n{e.details}")
        raise typer.Exit(code=EXIT_CONFIGURATION)
    except ValidationError as e:
        console.print("[red]Validation Error:[/red]")
        for error in e.errors():
            field = ".".join(str(x) for x in error["loc"])
            console.print(f"  - {field}: {error['msg']}")
        raise typer.Exit(code=EXIT_CONFIGURATION)

    table = Table(title=f"Container '{container.name}'")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    for key, value in container.to_request().items():
        table.add_row(key, str(value))
    console.print(table)
    console.print("[green]✓[/green] Configuration is valid")


if __name__ == "__main__":
    app()
