"""Pytest configuration and shared fixtures."""

import pytest
from hypothesis import Verbosity, settings

from maintenance_manager.collaborators import ConnectionState, GuestPowerState
from maintenance_manager.models.config import OrchestratorSettings
from maintenance_manager.models.health import HealthCheckResult
from maintenance_manager.models.node import Node
from maintenance_manager.models.policy import RetryPolicy
from maintenance_manager.orchestrator import MaintenanceOrchestrator
from maintenance_manager.reporting import OperationContext

# Configure Hypothesis for property-based testing
settings.register_profile("default", max_examples=100, verbosity=Verbosity.normal)
settings.register_profile("ci", max_examples=1000, verbosity=Verbosity.verbose)
settings.register_profile("dev", max_examples=10, verbosity=Verbosity.verbose)

# Load the default profile
settings.load_profile("default")


class FakeClock:
    """Monotonic clock that only moves when something sleeps."""

    def __init__(self, now: float = 0.0):
        self.now = now
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class ScriptedProbe:
    """Health probe returning scripted results; the last one repeats."""

    def __init__(self, *results: HealthCheckResult):
        self.results = list(results) or [HealthCheckResult.healthy()]
        self.addresses: list[str] = []

    def check_status(self, address: str) -> HealthCheckResult:
        self.addresses.append(address)
        if len(self.results) > 1:
            return self.results.pop(0)
        return self.results[0]

    @property
    def calls(self) -> int:
        return len(self.addresses)


class FakeInfrastructure:
    """Host state that follows requests, optionally after scripted readings."""

    def __init__(self, readings: list[ConnectionState] | None = None, fail_with=None):
        self.state = ConnectionState.CONNECTED
        self.readings = list(readings or [])
        self.requests: list[tuple[str, ConnectionState, bool]] = []
        self.fail_with = fail_with

    def set_node_state(self, node, state, evacuate):
        if self.fail_with is not None:
            raise self.fail_with
        self.requests.append((node.node_id, state, evacuate))
        self.state = state

    def get_connection_state(self, node):
        if self.fail_with is not None:
            raise self.fail_with
        if self.readings:
            return self.readings.pop(0)
        return self.state


class FakeWorkload:
    """Service VM power control; ``stuck`` keeps the VM running on stop."""

    def __init__(self, stuck: bool = False, address: str | None = "10.0.0.31", address_after=0):
        self.power = GuestPowerState.POWERED_ON
        self.stuck = stuck
        self.address = address
        self.address_after = address_after
        self.calls: list[tuple[str, str]] = []

    def stop_guest(self, vm_id):
        self.calls.append(("stop", vm_id))
        if not self.stuck:
            self.power = GuestPowerState.POWERED_OFF

    def start_guest(self, vm_id):
        self.calls.append(("start", vm_id))
        self.power = GuestPowerState.POWERED_ON

    def get_guest_address(self, vm_id):
        if self.power != GuestPowerState.POWERED_ON:
            return None
        if self.address_after > 0:
            self.address_after -= 1
            return None
        return self.address

    def get_power_state(self, vm_id):
        return self.power


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def node():
    return Node(node_id="node-a", address="esx-a.example.com", service_vm="svc-vm-a")


@pytest.fixture
def fast_settings():
    """Small budgets so scripted scenarios stay readable."""
    return OrchestratorSettings(
        maintenance=RetryPolicy(max_attempts=5, interval=10, total_timeout=300),
        restore=RetryPolicy(max_attempts=5, interval=10, total_timeout=300),
        preflight=RetryPolicy(max_attempts=2, interval=5, total_timeout=30),
        grace=RetryPolicy(max_attempts=3, interval=5, total_timeout=60),
        settle_delay=0,
        preflight_health_check=False,
    )


@pytest.fixture
def make_orchestrator(fake_clock, fast_settings):
    """Build an orchestrator around fakes; override any piece by keyword."""

    def build(**overrides):
        parts = {
            "health_probe": ScriptedProbe(),
            "infrastructure": FakeInfrastructure(),
            "workload": FakeWorkload(),
            "settings": fast_settings,
            "context": OperationContext(quiet=True, clock=fake_clock),
            "clock": fake_clock,
            "sleep": fake_clock.sleep,
        }
        parts.update(overrides)
        return MaintenanceOrchestrator(**parts)

    return build


@pytest.fixture
def fakes():
    """Access to the fake collaborator classes."""

    class Fakes:
        Probe = ScriptedProbe
        Infrastructure = FakeInfrastructure
        Workload = FakeWorkload
        Clock = FakeClock

    return Fakes


@pytest.fixture
def sample_inventory_data():
    """Sample node inventory data for testing."""
    return {
        "nodes": {
            "node-a": {"address": "esx-a.example.com", "service_vm": "svc-vm-a"},
            "node-b": {
                "address": "esx-b.example.com",
                "service_vm": "svc-vm-b",
                "service_address": "10.0.0.32",
            },
        }
    }


@pytest.fixture
def config_dir(tmp_path, sample_inventory_data):
    """Directory holding a valid configuration file and node inventory."""
    import yaml

    (tmp_path / "nodes.yml").write_text(yaml.safe_dump(sample_inventory_data))
    (tmp_path / "maintenance.yml").write_text(
        yaml.safe_dump(
            {
                "vcenter": {"host": "vcenter.example.com", "user": "admin"},
                "inventory_path": "nodes.yml",
                "orchestration": {
                    "preflight_health_check": False,
                    "settle_delay": 0,
                    "maintenance": {"max_attempts": 3, "interval": 0, "total_timeout": 10},
                    "restore": {"max_attempts": 3, "interval": 0, "total_timeout": 10},
                    "grace": {"max_attempts": 3, "interval": 0, "total_timeout": 10},
                },
            }
        )
    )
    return tmp_path
