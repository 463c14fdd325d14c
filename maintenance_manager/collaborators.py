"""Contracts for the external systems the orchestrator drives.

The orchestrator consumes these and never implements them. Concrete
implementations live in :mod:`maintenance_manager.health` (remote shell
probe) and :mod:`maintenance_manager.vsphere` (hypervisor management).
"""

from enum import Enum
from typing import Protocol, runtime_checkable

from maintenance_manager.models.health import HealthCheckResult
from maintenance_manager.models.node import Node


class ConnectionState(str, Enum):
    """Host connection state as seen by the hypervisor management plane."""

    CONNECTED = "connected"
    MAINTENANCE = "maintenance"
    DISCONNECTED = "disconnected"
    NOT_RESPONDING = "notResponding"


class GuestPowerState(str, Enum):
    """Power state of a guest VM."""

    POWERED_ON = "poweredOn"
    POWERED_OFF = "poweredOff"
    SUSPENDED = "suspended"


@runtime_checkable
class ClusterHealthProbe(Protocol):
    def check_status(self, address: str) -> HealthCheckResult: ...


@runtime_checkable
class InfrastructureControlPlane(Protocol):
    def set_node_state(self, node: Node, state: ConnectionState, evacuate: bool) -> None: ...

    def get_connection_state(self, node: Node) -> ConnectionState: ...


@runtime_checkable
class WorkloadControlPlane(Protocol):
    def stop_guest(self, vm_id: str) -> None: ...

    def start_guest(self, vm_id: str) -> None: ...

    def get_guest_address(self, vm_id: str) -> str | None: ...

    def get_power_state(self, vm_id: str) -> GuestPowerState: ...
