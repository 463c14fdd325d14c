"""Configuration models for the maintenance orchestrator."""

from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, field_validator

from maintenance_manager.exceptions import ConfigurationError
from maintenance_manager.models.policy import RetryPolicy


class VCenterSettings(BaseModel):
    """Hypervisor management endpoint."""

    host: str
    user: str
    port: int = 443
    password_env: str = "MAINT_MGR_PASSWORD"
    verify_ssl: bool = False

    @field_validator("host", "user")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("value cannot be empty")
        return v


class SshSettings(BaseModel):
    """Remote shell used by the cluster health probe."""

    user: str = "admin"
    command: str = "cluster status"
    connect_timeout: int = Field(default=10, ge=1)
    command_timeout: int = Field(default=60, ge=1)
    options: list[str] = Field(default_factory=list)


class OrchestratorSettings(BaseModel):
    """Poll budgets for each phase of a lifecycle transition."""

    # Cluster health and infrastructure confirmation polls
    maintenance: RetryPolicy = RetryPolicy(max_attempts=60, interval=10, total_timeout=1800)
    restore: RetryPolicy = RetryPolicy(max_attempts=90, interval=20, total_timeout=3600)
    preflight: RetryPolicy = RetryPolicy(max_attempts=3, interval=10, total_timeout=60)
    # Dependent service stop/start confirmation
    grace: RetryPolicy = RetryPolicy(max_attempts=30, interval=10, total_timeout=300)
    settle_delay: float = Field(default=30.0, ge=0)
    preflight_health_check: bool = True


class OrchestratorConfig(BaseModel):
    """Top-level configuration file."""

    vcenter: VCenterSettings
    ssh: SshSettings = SshSettings()
    inventory_path: str = "nodes.yml"
    orchestration: OrchestratorSettings = OrchestratorSettings()
    max_workers: int = Field(default=1, ge=1)

    def save(self, path: str) -> None:
        """Save configuration to YAML file."""
        import yaml

        with open(path, "w") as f:
            yaml.dump(self.model_dump(mode="json"), f, default_flow_style=False)

    @classmethod
    def load(cls, path: str | Path) -> "OrchestratorConfig":
        """Load configuration from YAML file.

        Raises:
            ConfigurationError: If the file is missing, unparsable or invalid
        """
        import yaml

        path = Path(path)
        if not path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {path}",
                f"Expected location: {path.absolute()}\n"
                "Create the file or specify a different path with --config",
            )

        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse configuration file {path}", str(e))

        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Configuration file {path} is empty or not a mapping",
                "The file must contain at least a 'vcenter' section",
            )

        try:
            config = cls(**data)
        except ValidationError as e:
            problems = "\n".join(
                f"  - {'.'.join(str(x) for x in error['loc'])}: {error['msg']}"
                for error in e.errors()
            )
            raise ConfigurationError(f"Invalid configuration in {path}", problems)

        # Relative inventory paths are relative to the configuration file
        inventory = Path(config.inventory_path)
        if not inventory.is_absolute():
            config.inventory_path = str(path.parent / inventory)
        return config
