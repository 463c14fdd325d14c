"""Data models for nodes, health checks, policies and configuration."""

from maintenance_manager.models.config import (
    OrchestratorConfig,
    OrchestratorSettings,
    SshSettings,
    VCenterSettings,
)
from maintenance_manager.models.health import (
    HealthCheckResult,
    HealthStatus,
    OperationOutcome,
    OutcomeStatus,
)
from maintenance_manager.models.node import LifecyclePhase, Node
from maintenance_manager.models.policy import RetryPolicy
from maintenance_manager.models.storage import ContainerConfig

__all__ = [
    "Node",
    "LifecyclePhase",
    "HealthCheckResult",
    "HealthStatus",
    "OperationOutcome",
    "OutcomeStatus",
    "RetryPolicy",
    "ContainerConfig",
    "OrchestratorConfig",
    "OrchestratorSettings",
    "SshSettings",
    "VCenterSettings",
]
