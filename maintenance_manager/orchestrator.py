"""Maintenance orchestration for cluster nodes.

Drives one node at a time through drain -> maintenance -> restore, polling
the external control planes at every phase boundary. Partially completed
transitions are never rolled back: a failed operation leaves the node in the
last phase it reached, recorded on the returned outcome, and an operator or a
re-run has to reconcile it.
"""

import concurrent.futures as cf
import threading
import time
from collections.abc import Callable

from maintenance_manager.collaborators import (
    ClusterHealthProbe,
    ConnectionState,
    GuestPowerState,
    InfrastructureControlPlane,
    WorkloadControlPlane,
)
from maintenance_manager.exceptions import (
    BudgetExhaustedError,
    EndpointConnectionError,
    MaintenanceManagerError,
    PreconditionFailedError,
)
from maintenance_manager.locks import NodeLockRegistry
from maintenance_manager.logging_config import get_logger
from maintenance_manager.models.config import OrchestratorSettings
from maintenance_manager.models.health import HealthCheckResult, OperationOutcome, OutcomeStatus
from maintenance_manager.models.node import LifecyclePhase, Node
from maintenance_manager.models.policy import RetryPolicy
from maintenance_manager.polling import CANCELLED, PollResult, poll_until
from maintenance_manager.reporting import OperationContext

logger = get_logger(__name__)

ENTER_MAINTENANCE = "enter-maintenance"
EXIT_MAINTENANCE = "exit-maintenance"

CANCELLED_CAUSE = "cancelled by operator"
SKIPPED_CAUSE = "skipped after connection failure"




class MaintenanceOrchestrator:
    """Sequences disruptive lifecycle operations against cluster nodes."""

    def __init__(
        self,
        health_probe: ClusterHealthProbe,
        infrastructure: InfrastructureControlPlane,
        workload: WorkloadControlPlane,
        settings: OrchestratorSettings | None = None,
        context: OperationContext | None = None,
        locks: NodeLockRegistry | None = None,
        cancel_event: threading.Event | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        wait_for_lock: bool = False,
    ):
        """Initialize the orchestrator.

        Args:
            health_probe: Cluster status surface
            infrastructure: Host connection/maintenance state
            workload: Dependent service VM power control
            settings: Poll budgets; defaults to OrchestratorSettings()
            context: Reporting handle
            locks: Registry shared by every orchestrator touching the same nodes
            cancel_event: Set to stop at the next poll iteration boundary
            clock: Monotonic clock
            sleep: Sleep between poll iterations
            wait_for_lock: Block on a busy node instead of rejecting the call
        """
        self.health_probe = health_probe
        self.infrastructure = infrastructure
        self.workload = workload
        self.settings = settings or OrchestratorSettings()
        self.context = context or OperationContext(quiet=True)
        self.locks = locks or NodeLockRegistry()
        self.cancel_event = cancel_event or threading.Event()
        self.clock = clock
        self.sleep = sleep
        self.wait_for_lock = wait_for_lock

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def drain_and_enter_maintenance(
        self, node: Node, policy: RetryPolicy | None = None
    ) -> OperationOutcome:
        """Stop the node's service VM and put the host into maintenance.

        Steps: optional cluster health preflight, stop the service VM,
        confirm it stopped within the grace budget, request maintenance with
        workload evacuation, confirm the host reports maintenance.
        """
        return self._run(
            node, ENTER_MAINTENANCE, self._drain, policy or self.settings.maintenance
        )

    def exit_maintenance_and_restore(
        self, node: Node, policy: RetryPolicy | None = None
    ) -> OperationOutcome:
        """Take the host out of maintenance and bring its service VM back.

        Steps: request exit, confirm the host is connected, start the service
        VM, wait for its address, then poll cluster health until it stays
        healthy for the settle delay.
        """
        return self._run(node, EXIT_MAINTENANCE, self._restore, policy or self.settings.restore)

    def run_batch(
        self, nodes: list[Node], operation: str, max_workers: int = 1
    ) -> list[OperationOutcome]:
        """Run one operation over several nodes.

        Each node's sequence is independent. A connection failure against a
        management endpoint aborts the run: nodes that have not started yet
        are skipped.

        Args:
            nodes: Target nodes
            operation: ENTER_MAINTENANCE or EXIT_MAINTENANCE
            max_workers: Number of nodes processed concurrently

        Returns:
            One outcome per node, in input order
        """
        operations = {
            ENTER_MAINTENANCE: self.drain_and_enter_maintenance,
            EXIT_MAINTENANCE: self.exit_maintenance_and_restore,
        }
        if operation not in operations:
            raise ValueError(f"operation must be one of {list(operations)}, got '{operation}'")
        run = operations[operation]
        abort_run = threading.Event()

        def run_one(node: Node) -> OperationOutcome:
            if abort_run.is_set():
                self.context.warning(f"{node.node_id}: {SKIPPED_CAUSE}")
                return OperationOutcome(
                    status=OutcomeStatus.ABORTED,
                    node_id=node.node_id,
                    operation=operation,
                    phase=node.phase,
                    cause=SKIPPED_CAUSE,
                )
            outcome = run(node)
            if outcome.error_type == EndpointConnectionError.__name__:
                abort_run.set()
            return outcome

        logger.info(f"Running {operation} on {len(nodes)} nodes with {max_workers} workers")
        if max_workers <= 1 or len(nodes) <= 1:
            return [run_one(node) for node in nodes]

        with cf.ThreadPoolExecutor(
            max_workers=min(len(nodes), max_workers), thread_name_prefix="maint"
        ) as pool:
            return list(pool.map(run_one, nodes))

    def reconcile_phase(self, node: Node) -> LifecyclePhase:
        """Set a freshly looked-up node's phase from its host state.

        A host in maintenance is UNDER_MAINTENANCE, anything else ACTIVE.
        Intermediate phases cannot be observed from outside a running
        sequence.
        """
        state = self.infrastructure.get_connection_state(node)
        if state == ConnectionState.MAINTENANCE:
            node.phase = LifecyclePhase.UNDER_MAINTENANCE
        else:
            node.phase = LifecyclePhase.ACTIVE
        logger.debug(f"{node.node_id}: host is {state.value}, phase {node.phase.value}")
        return node.phase

    # ------------------------------------------------------------------
    # Sequences
    # ------------------------------------------------------------------

    def _drain(self, node: Node, policy: RetryPolicy, tally: list[int]) -> None:
        self._require_phase(node, LifecyclePhase.ACTIVE)

        if self.settings.preflight_health_check:
            target = node.service_address or self.workload.get_guest_address(node.service_vm)
            if not target:
                raise PreconditionFailedError(
                    f"No address for service VM '{node.service_vm}' on node '{node.node_id}'",
                    "Set service_address in the node inventory or disable the preflight check",
                )
            self._await(
                lambda: self.health_probe.check_status(target),
                self.settings.preflight,
                f"{node.node_id}: cluster health before drain",
                tally,
            )

        self._transition(node, LifecyclePhase.DRAINING)
        self.context.info(f"{node.node_id}: stopping service VM '{node.service_vm}'")
        self.workload.stop_guest(node.service_vm)

        try:
            self._await(
                lambda: self._power_state_check(node.service_vm, GuestPowerState.POWERED_OFF),
                self.settings.grace,
                f"{node.node_id}: service VM '{node.service_vm}' stopped",
                tally,
            )
        except BudgetExhaustedError as e:
            if e.poll_result.exhausted_by == CANCELLED:
                raise
            raise PreconditionFailedError(
                f"Service VM '{node.service_vm}' did not stop within its grace period",
                f"{e.poll_result.describe()}. Maintenance was not requested for '{node.node_id}'.",
            )

        self.context.info(f"{node.node_id}: entering maintenance mode with evacuation")
        self.infrastructure.set_node_state(node, ConnectionState.MAINTENANCE, evacuate=True)
        self._await(
            lambda: self._connection_check(node, ConnectionState.MAINTENANCE),
            policy,
            f"{node.node_id}: host in maintenance",
            tally,
        )
        self._transition(node, LifecyclePhase.UNDER_MAINTENANCE)

    def _restore(self, node: Node, policy: RetryPolicy, tally: list[int]) -> None:
        self._require_phase(node, LifecyclePhase.UNDER_MAINTENANCE)
        self._transition(node, LifecyclePhase.RESTORING)

        self.context.info(f"{node.node_id}: exiting maintenance mode")
        self.infrastructure.set_node_state(node, ConnectionState.CONNECTED, evacuate=False)
        self._await(
            lambda: self._connection_check(node, ConnectionState.CONNECTED),
            policy,
            f"{node.node_id}: host connected",
            tally,
        )

        self.context.info(f"{node.node_id}: starting service VM '{node.service_vm}'")
        self.workload.start_guest(node.service_vm)

        found: dict[str, str] = {}

        def address_check() -> HealthCheckResult:
            address = self.workload.get_guest_address(node.service_vm)
            if not address:
                return HealthCheckResult.degraded("no guest address reported yet")
            found["address"] = address
            return HealthCheckResult.healthy()

        try:
            self._await(
                address_check,
                self.settings.grace,
                f"{node.node_id}: service VM '{node.service_vm}' address",
                tally,
            )
            target = found["address"]
        except BudgetExhaustedError as e:
            if e.poll_result.exhausted_by == CANCELLED or not node.service_address:
                raise
            target = node.service_address
            self.context.warning(
                f"{node.node_id}: no guest address reported, "
                f"using configured service address {target}"
            )

        self._await(
            lambda: self.health_probe.check_status(target),
            policy,
            f"{node.node_id}: cluster health via {target}",
            tally,
            settle=self.settings.settle_delay,
        )
        self._transition(node, LifecyclePhase.ACTIVE)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _run(
        self,
        node: Node,
        operation: str,
        sequence: Callable[[Node, RetryPolicy, list[int]], None],
        policy: RetryPolicy,
    ) -> OperationOutcome:
        started = self.clock()
        tally = [0]
        status = OutcomeStatus.SUCCESS
        cause = None
        error_type = None

        self.context.info(f"{node.node_id}: {operation} started ({policy})")
        try:
            with self.locks.hold(node.node_id, operation, blocking=self.wait_for_lock):
                sequence(node, policy, tally)
        except BudgetExhaustedError as e:
            if e.poll_result.exhausted_by == CANCELLED:
                status, cause, error_type = OutcomeStatus.ABORTED, CANCELLED_CAUSE, "Cancelled"
            else:
                status, cause, error_type = OutcomeStatus.TIMED_OUT, e.message, type(e).__name__
        except MaintenanceManagerError as e:
            status, cause, error_type = OutcomeStatus.ABORTED, e.message, type(e).__name__
            if e.details:
                logger.info(f"{node.node_id}: {e.details}")
        except Exception as e:
            logger.error(f"{node.node_id}: unexpected error during {operation}", exc_info=True)
            status, cause, error_type = OutcomeStatus.ABORTED, str(e), type(e).__name__

        outcome = OperationOutcome(
            status=status,
            node_id=node.node_id,
            operation=operation,
            phase=node.phase,
            cause=cause,
            error_type=error_type,
            elapsed=self.clock() - started,
            attempts=tally[0],
        )

        if outcome.succeeded:
            self.context.info(
                f"{node.node_id}: {operation} completed in {outcome.elapsed:.1f}s, "
                f"node is {node.phase.value}"
            )
        else:
            self.context.error(
                f"{node.node_id}: {operation} {status.value}: {cause}. "
                f"Node left in phase '{node.phase.value}'; no rollback was attempted"
            )
        return outcome

    def _await(
        self,
        probe: Callable[[], HealthCheckResult],
        policy: RetryPolicy,
        description: str,
        tally: list[int],
        settle: float = 0.0,
    ) -> PollResult:
        result = poll_until(
            probe,
            policy,
            description=description,
            context=self.context,
            clock=self.clock,
            sleep=self.sleep,
            cancel_event=self.cancel_event,
            settle=settle,
        )
        tally[0] += result.attempts
        if not result.succeeded:
            raise BudgetExhaustedError(f"{description}: {result.describe()}", poll_result=result)
        return result

    def _require_phase(self, node: Node, phase: LifecyclePhase) -> None:
        if node.phase != phase:
            raise PreconditionFailedError(
                f"Node '{node.node_id}' is {node.phase.value}, expected {phase.value}",
                "Reconcile the node state before re-running this operation",
            )

    def _transition(self, node: Node, phase: LifecyclePhase) -> None:
        previous = node.transition_to(phase)
        self.context.info(f"{node.node_id}: phase {previous.value} -> {phase.value}")

    def _connection_check(self, node: Node, expected: ConnectionState) -> HealthCheckResult:
        state = self.infrastructure.get_connection_state(node)
        if state == expected:
            return HealthCheckResult.healthy()
        return HealthCheckResult.degraded(f"host is {state.value}, waiting for {expected.value}")

    def _power_state_check(self, vm_id: str, expected: GuestPowerState) -> HealthCheckResult:
        state = self.workload.get_power_state(vm_id)
        if state == expected:
            return HealthCheckResult.healthy()
        return HealthCheckResult.degraded(f"VM is {state.value}, waiting for {expected.value}")
