"""Unit tests for the ssh cluster health probe."""

import subprocess
from unittest.mock import Mock, patch

from maintenance_manager.health import SshHealthProbe
from maintenance_manager.models.health import HealthStatus

HEALTHY_OUTPUT = """\
The state of the cluster: start
    CVM: 10.0.0.31 Up
                         Zeus   UP   [5362, 5391, 5392]
                        Stargate   UP   [7120, 7165]
"""

DEGRADED_OUTPUT = """\
The state of the cluster: start
    CVM: 10.0.0.32 Down
"""


def completed(stdout="", stderr="", returncode=0):
    return Mock(stdout=stdout, stderr=stderr, returncode=returncode)


def test_build_command():
    probe = SshHealthProbe(user="admin", connect_timeout=5, extra_options=["-p", "2222"])

    assert probe.build_command("10.0.0.31") == [
        "ssh",
        "-o",
        "BatchMode=yes",
        "-o",
        "ConnectTimeout=5",
        "-p",
        "2222",
        "admin@10.0.0.31",
        "cluster status",
    ]


@patch("maintenance_manager.health.subprocess.run")
def test_healthy_output(mock_run):
    mock_run.return_value = completed(stdout=HEALTHY_OUTPUT)

    result = SshHealthProbe(user="admin").check_status("10.0.0.31")

    assert result.status == HealthStatus.HEALTHY
    assert mock_run.call_args.kwargs["timeout"] == 60


@patch("maintenance_manager.health.subprocess.run")
def test_degraded_output(mock_run):
    mock_run.return_value = completed(stdout=DEGRADED_OUTPUT)

    result = SshHealthProbe(user="admin").check_status("10.0.0.31")

    assert result.status == HealthStatus.DEGRADED
    assert "Down" in result.reason


@patch("maintenance_manager.health.subprocess.run")
def test_markers_in_stderr_count(mock_run):
    mock_run.return_value = completed(stderr="Could not connect to 10.0.0.33", returncode=1)

    result = SshHealthProbe(user="admin").check_status("10.0.0.31")

    assert result.status == HealthStatus.DEGRADED


@patch("maintenance_manager.health.subprocess.run")
def test_ssh_failure_is_unreachable(mock_run):
    mock_run.return_value = completed(
        stderr="ssh: connect to host 10.0.0.31 port 22: Connection timed out\n", returncode=255
    )

    result = SshHealthProbe(user="admin").check_status("10.0.0.31")

    assert result.status == HealthStatus.UNREACHABLE
    assert "Connection timed out" in result.reason


@patch("maintenance_manager.health.subprocess.run")
def test_timeout_is_unreachable(mock_run):
    mock_run.side_effect = subprocess.TimeoutExpired(cmd="ssh", timeout=60)

    result = SshHealthProbe(user="admin").check_status("10.0.0.31")

    assert result.status == HealthStatus.UNREACHABLE
    assert "60s" in result.reason


@patch("maintenance_manager.health.subprocess.run")
def test_missing_ssh_binary_is_unreachable(mock_run):
    mock_run.side_effect = FileNotFoundError()

    result = SshHealthProbe(user="admin", ssh_binary="ssh-missing").check_status("10.0.0.31")

    assert result.status == HealthStatus.UNREACHABLE
    assert "ssh-missing" in result.reason


@patch("maintenance_manager.health.subprocess.run")
def test_each_query_spawns_new_session(mock_run):
    mock_run.return_value = completed(stdout=HEALTHY_OUTPUT)
    probe = SshHealthProbe(user="admin")

    probe.check_status("10.0.0.31")
    probe.check_status("10.0.0.31")

    assert mock_run.call_count == 2
