"""Storage container configuration."""

import re

from pydantic import BaseModel, Field, field_validator, model_validator

from maintenance_manager.exceptions import ConfigurationError


class ContainerConfig(BaseModel):
    """Storage container settings.

    Each field is set independently. Cross-field rules (deduplication needs
    fingerprinting, a compression delay needs compression) are checked once
    by :meth:`validate_combination`.
    """

    name: str
    replication_factor: int = 2
    compression_enabled: bool = False
    compression_delay_seconds: int = Field(default=0, ge=0)
    dedupe_enabled: bool = False
    fingerprint_enabled: bool = False
    storage_pool: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate container name is usable as a datastore name."""
        if not v:
            raise ValueError("name cannot be empty")
        if not re.match(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$", v):
            raise ValueError(
                f"name '{v}' must start with a letter or digit and contain only "
                "letters, digits, '.', '_' and '-'"
            )
        return v

    @field_validator("replication_factor")
    @classmethod
    def validate_replication_factor(cls, v: int) -> int:
        """Validate replication factor is 2 or 3."""
        if v not in (2, 3):
            raise ValueError(f"replication_factor must be 2 or 3, got {v}")
        return v

    @model_validator(mode="after")
    def check_combination(self) -> "ContainerConfig":
        self.validate_combination()
        return self

    def validate_combination(self) -> None:
        """Raise ConfigurationError for settings that cannot be combined."""
        if self.dedupe_enabled and not self.fingerprint_enabled:
            raise ConfigurationError(
                f"Container '{self.name}' requests deduplication without fingerprinting",
                "Enable fingerprinting (--fingerprint) or drop --dedupe",
            )
        if self.compression_delay_seconds and not self.compression_enabled:
            raise ConfigurationError(
                f"Container '{self.name}' sets a compression delay with compression disabled",
                "Enable compression (--compression) or drop --compression-delay",
            )

    def to_request(self) -> dict:
        """Flatten into the field set a container-create request takes."""
        request = {
            "name": self.name,
            "replication_factor": self.replication_factor,
            "compression_enabled": self.compression_enabled,
            "dedupe_enabled": self.dedupe_enabled,
            "fingerprint_enabled": self.fingerprint_enabled,
        }
        if self.compression_enabled:
            request["compression_delay_seconds"] = self.compression_delay_seconds
        if self.storage_pool:
            request["storage_pool"] = self.storage_pool
        return request
