"""Data models for health-check results and operation outcomes."""

from enum import Enum

from pydantic import BaseModel, ConfigDict

from maintenance_manager.models.node import LifecyclePhase


class HealthStatus(str, Enum):
    """Classification of a single health query."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNREACHABLE = "unreachable"


class HealthCheckResult(BaseModel):
    """Immutable snapshot of one poll."""

    model_config = ConfigDict(frozen=True)

    status: HealthStatus
    reason: str | None = None

    @property
    def is_healthy(self) -> bool:
        return self.status == HealthStatus.HEALTHY

    @classmethod
    def healthy(cls) -> "HealthCheckResult":
        return cls(status=HealthStatus.HEALTHY)

    @classmethod
    def degraded(cls, reason: str) -> "HealthCheckResult":
        return cls(status=HealthStatus.DEGRADED, reason=reason)

    @classmethod
    def unreachable(cls, reason: str) -> "HealthCheckResult":
        return cls(status=HealthStatus.UNREACHABLE, reason=reason)

    def __str__(self) -> str:
        if self.reason:
            return f"{self.status.value} ({self.reason})"
        return self.status.value


class OutcomeStatus(str, Enum):
    """Terminal result of a lifecycle transition."""

    SUCCESS = "success"
    TIMED_OUT = "timed-out"
    ABORTED = "aborted"


EXIT_CODES = {
    OutcomeStatus.SUCCESS: 0,
    OutcomeStatus.ABORTED: 1,
    OutcomeStatus.TIMED_OUT: 3,
}


class OperationOutcome(BaseModel):
    """Terminal result of one full lifecycle transition on one node."""

    model_config = ConfigDict(frozen=True)

    status: OutcomeStatus
    node_id: str
    operation: str
    phase: LifecyclePhase
    cause: str | None = None
    error_type: str | None = None
    elapsed: float = 0.0
    attempts: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status == OutcomeStatus.SUCCESS

    @property
    def exit_code(self) -> int:
        return EXIT_CODES[self.status]
