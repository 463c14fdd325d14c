"""Data models for cluster nodes and their lifecycle phases."""

import re
from enum import Enum

from pydantic import BaseModel, field_validator

from maintenance_manager.exceptions import PreconditionFailedError


class LifecyclePhase(str, Enum):
    """Lifecycle phase of a node during a maintenance transition."""

    ACTIVE = "active"
    DRAINING = "draining"
    UNDER_MAINTENANCE = "under-maintenance"
    RESTORING = "restoring"


# Phases only move forward around this ring, one step at a time
ALLOWED_TRANSITIONS: dict[LifecyclePhase, LifecyclePhase] = {
    LifecyclePhase.ACTIVE: LifecyclePhase.DRAINING,
    LifecyclePhase.DRAINING: LifecyclePhase.UNDER_MAINTENANCE,
    LifecyclePhase.UNDER_MAINTENANCE: LifecyclePhase.RESTORING,
    LifecyclePhase.RESTORING: LifecyclePhase.ACTIVE,
}


class Node(BaseModel):
    """A cluster member and the dependent service VM it hosts."""

    node_id: str
    address: str
    service_vm: str
    service_address: str | None = None
    phase: LifecyclePhase = LifecyclePhase.ACTIVE

    @field_validator("node_id")
    @classmethod
    def validate_node_id(cls, v: str) -> str:
        """Validate node_id follows DNS naming conventions."""
        if not v:
            raise ValueError("node_id cannot be empty")
        if len(v) > 253:
            raise ValueError("node_id cannot exceed 253 characters")
        # RFC 1123 hostname validation
        hostname_pattern = re.compile(
            r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$", re.IGNORECASE
        )
        if not hostname_pattern.match(v):
            raise ValueError(
                f"node_id '{v}' must contain only alphanumeric characters, "
                "hyphens, and dots, and cannot start or end with a hyphen"
            )
        return v

    @field_validator("address", "service_vm")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        """Validate required identifiers are not empty."""
        if not v or not v.strip():
            raise ValueError("value cannot be empty")
        return v.strip()

    def can_transition_to(self, phase: LifecyclePhase) -> bool:
        """Return True if moving to ``phase`` is the next legal step."""
        return ALLOWED_TRANSITIONS[self.phase] == phase

    def transition_to(self, phase: LifecyclePhase) -> LifecyclePhase:
        """Move the node to its next phase.

        Args:
            phase: Phase to move to

        Returns:
            The phase the node was in before the transition

        Raises:
            PreconditionFailedError: If the transition skips or repeats a phase
        """
        if not self.can_transition_to(phase):
            raise PreconditionFailedError(
                f"Node '{self.node_id}' cannot move from {self.phase.value} to {phase.value}",
                f"The next phase after {self.phase.value} is "
                f"{ALLOWED_TRANSITIONS[self.phase].value}",
            )
        previous = self.phase
        self.phase = phase
        return previous

    def to_inventory_dict(self) -> dict:
        """Convert to node inventory format."""
        result = {"address": self.address, "service_vm": self.service_vm}
        if self.service_address:
            result["service_address"] = self.service_address
        return result

    @classmethod
    def from_inventory_dict(cls, node_id: str, data: dict) -> "Node":
        """Parse from node inventory format."""
        return cls(
            node_id=node_id,
            address=data["address"],
            service_vm=data["service_vm"],
            service_address=data.get("service_address"),
        )
