"""Cluster health probing over a remote shell.

The cluster status surface only speaks free text, so classification is kept in
one pure function with its markers as data, separate from the remote call.
"""

import subprocess

from maintenance_manager.logging_config import get_logger
from maintenance_manager.models.health import HealthCheckResult

logger = get_logger(__name__)

# A node or service reported as down
DOWN_MARKERS = ("Down", "DOWN")
# The status command could not open a connection to a peer
CONNECTION_FAILURE_MARKERS = ("Could not connect", "could not connect", "Connection refused")
# A peer could not be reached at all
UNREACHABLE_MARKERS = ("could not be reached", "Could not be reached", "No route to host")

ALL_MARKERS = DOWN_MARKERS + CONNECTION_FAILURE_MARKERS + UNREACHABLE_MARKERS

SSH_CONNECTION_FAILURE = 255


def find_marker(text: str) -> str | None:
    """Return the first degradation marker contained in ``text``."""
    for marker in ALL_MARKERS:
        if marker in text:
            return marker
    return None


def classify_output(text: str) -> HealthCheckResult:
    """Classify cluster status output.

    Degraded if the text contains a down marker, a connection-failure marker
    or a reachability-failure marker; healthy otherwise.
    """
    marker = find_marker(text or "")
    if marker is None:
        return HealthCheckResult.healthy()
    return HealthCheckResult.degraded(f"status output contains '{marker}'")


class SshHealthProbe:
    """Runs the cluster status command on a service VM over ssh.

    Every call spawns its own ssh process, so no session outlives a query.
    """

    def __init__(
        self,
        user: str,
        command: str = "cluster status",
        ssh_binary: str = "ssh",
        connect_timeout: int = 10,
        command_timeout: int = 60,
        extra_options: list[str] | None = None,
    ):
        self.user = user
        self.command = command
        self.ssh_binary = ssh_binary
        self.connect_timeout = connect_timeout
        self.command_timeout = command_timeout
        self.extra_options = list(extra_options or [])

    def build_command(self, address: str) -> list[str]:
        """Build the ssh argument vector for one query."""
        return [
            self.ssh_binary,
            "-o",
            "BatchMode=yes",
            "-o",
            f"ConnectTimeout={self.connect_timeout}",
            *self.extra_options,
            f"{self.user}@{address}",
            self.command,
        ]

    def check_status(self, address: str) -> HealthCheckResult:
        """Query cluster status through ``address`` and classify the output."""
        args = self.build_command(address)
        logger.debug(f"Running health probe: {' '.join(args)}")

        try:
            result = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=self.command_timeout,
            )
        except subprocess.TimeoutExpired:
            logger.warning(f"Health probe against {address} timed out")
            return HealthCheckResult.unreachable(
                f"no response from {address} within {self.command_timeout}s"
            )
        except FileNotFoundError:
            logger.error(f"ssh binary '{self.ssh_binary}' not found in PATH")
            return HealthCheckResult.unreachable(f"'{self.ssh_binary}' is not installed")
        except OSError as e:
            logger.warning(f"Health probe against {address} failed to start: {e}")
            return HealthCheckResult.unreachable(str(e))

        logger.debug(f"Health probe against {address} exited with {result.returncode}")

        if result.returncode == SSH_CONNECTION_FAILURE:
            reason = (result.stderr or "").strip().splitlines()
            return HealthCheckResult.unreachable(
                reason[-1] if reason else f"ssh to {address} failed"
            )

        return classify_output(f"{result.stdout}\n{result.stderr}")
