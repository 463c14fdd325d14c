"""vSphere-backed infrastructure and workload control plane."""

import functools
import http.client

from pyVim import connect
from pyVim.task import WaitForTask
from pyVmomi import vim, vmodl

from maintenance_manager.collaborators import ConnectionState, GuestPowerState
from maintenance_manager.exceptions import EndpointConnectionError, PreconditionFailedError
from maintenance_manager.logging_config import get_logger
from maintenance_manager.models.config import VCenterSettings
from maintenance_manager.models.node import Node

logger = get_logger(__name__)

POWER_STATES = {
    "poweredOn": GuestPowerState.POWERED_ON,
    "poweredOff": GuestPowerState.POWERED_OFF,
    "suspended": GuestPowerState.SUSPENDED,
}

# Raised by pyVmomi once an established session is gone
SESSION_ERRORS = (
    OSError,
    http.client.HTTPException,
    vim.fault.NotAuthenticated,
    vmodl.fault.HostCommunication,
)


def endpoint_call(method):
    """Report a lost management session as EndpointConnectionError."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except SESSION_ERRORS as e:
            logger.error(f"Session to {self.settings.host} lost during {method.__name__}: {e}")
            raise EndpointConnectionError(
                f"Lost connection to {self.settings.host}",
                f"{type(e).__name__}: {e}",
            ) from e

    return wrapper


class VSphereControlPlane:
    """Host maintenance and VM power control through a vCenter or ESXi endpoint.

    Use as a context manager so the session is always disconnected.
    """

    def __init__(self, settings: VCenterSettings, password: str):
        self.settings = settings
        self._password = password
        self.si = None

    def __enter__(self) -> "VSphereControlPlane":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.disconnect()

    def connect(self) -> None:
        """Open the management session.

        Raises:
            EndpointConnectionError: If the endpoint cannot be reached or
                rejects the credentials
        """
        host = self.settings.host
        logger.debug(f"Connecting to {host}:{self.settings.port} as {self.settings.user}")
        try:
            self.si = connect.SmartConnect(
                host=host,
                user=self.settings.user,
                pwd=self._password,
                port=self.settings.port,
                disableSslCertValidation=not self.settings.verify_ssl,
            )
        except vim.fault.InvalidLogin as e:
            raise EndpointConnectionError(
                f"Login to {host} failed",
                f"{e.msg}. Check the user name and the password environment variable "
                f"{self.settings.password_env}",
            )
        except Exception as e:
            raise EndpointConnectionError(
                f"Failed to connect to {host}",
                f"{e}\n\nCheck that the endpoint is reachable on port {self.settings.port}",
            )
        logger.info(f"Connected to {host}")

    def disconnect(self) -> None:
        if self.si is None:
            return
        try:
            connect.Disconnect(self.si)
            logger.info(f"Disconnected from {self.settings.host}")
        except Exception as e:
            logger.warning(f"Failed to disconnect from {self.settings.host}: {e}")
        finally:
            self.si = None

    def _find(self, vimtype, name: str):
        if self.si is None:
            raise EndpointConnectionError(f"Not connected to {self.settings.host}")
        content = self.si.RetrieveContent()
        container = content.viewManager.CreateContainerView(content.rootFolder, [vimtype], True)
        try:
            for obj in container.view:
                if obj.name == name:
                    return obj
        finally:
            container.Destroy()
        return None

    def _host(self, node: Node):
        host = self._find(vim.HostSystem, node.address)
        if host is None:
            raise PreconditionFailedError(
                f"Host '{node.address}' for node '{node.node_id}' not found on "
                f"{self.settings.host}"
            )
        return host

    def _vm(self, vm_id: str):
        vm = self._find(vim.VirtualMachine, vm_id)
        if vm is None:
            raise PreconditionFailedError(f"VM '{vm_id}' not found on {self.settings.host}")
        return vm

    # InfrastructureControlPlane

    @endpoint_call
    def set_node_state(self, node: Node, state: ConnectionState, evacuate: bool) -> None:
        host = self._host(node)
        if state == ConnectionState.MAINTENANCE:
            if host.runtime.inMaintenanceMode:
                logger.info(f"{host.name} is already in maintenance mode")
                return
            # Not waited on; the orchestrator polls get_connection_state
            host.EnterMaintenanceMode_Task(timeout=0, evacuatePoweredOffVms=evacuate)
        elif state == ConnectionState.CONNECTED:
            if not host.runtime.inMaintenanceMode:
                logger.info(f"{host.name} is not in maintenance mode")
                return
            host.ExitMaintenanceMode_Task(0)
        else:
            raise ValueError(f"Cannot request host state '{state.value}'")

    @endpoint_call
    def get_connection_state(self, node: Node) -> ConnectionState:
        host = self._host(node)
        if host.runtime.inMaintenanceMode:
            return ConnectionState.MAINTENANCE
        return ConnectionState(str(host.runtime.connectionState))

    # WorkloadControlPlane

    @endpoint_call
    def stop_guest(self, vm_id: str) -> None:
        vm = self._vm(vm_id)
        if vm.runtime.powerState == vim.VirtualMachinePowerState.poweredOff:
            logger.info(f"{vm_id} is already powered off")
            return
        if vm.guest.toolsRunningStatus == "guestToolsRunning":
            logger.info(f"{vm_id}: initiating graceful guest shutdown")
            vm.ShutdownGuest()
        else:
            logger.info(f"{vm_id}: guest tools not running, forcing power off")
            WaitForTask(vm.PowerOffVM_Task())

    @endpoint_call
    def start_guest(self, vm_id: str) -> None:
        vm = self._vm(vm_id)
        if vm.runtime.powerState == vim.VirtualMachinePowerState.poweredOn:
            logger.info(f"{vm_id} is already powered on")
            return
        WaitForTask(vm.PowerOnVM_Task())
        logger.info(f"Powered on VM: {vm_id}")

    @endpoint_call
    def get_guest_address(self, vm_id: str) -> str | None:
        return self._vm(vm_id).guest.ipAddress or None

    @endpoint_call
    def get_power_state(self, vm_id: str) -> GuestPowerState:
        return POWER_STATES[str(self._vm(vm_id).runtime.powerState)]
