"""Unit tests for configuration loading."""

import pytest
import yaml

from maintenance_manager.exceptions import ConfigurationError
from maintenance_manager.models.config import OrchestratorConfig, VCenterSettings
from maintenance_manager.models.policy import RetryPolicy


def test_load_applies_defaults(tmp_path):
    path = tmp_path / "maintenance.yml"
    path.write_text(yaml.safe_dump({"vcenter": {"host": "vc.example.com", "user": "admin"}}))

    config = OrchestratorConfig.load(path)

    assert config.vcenter.port == 443
    assert config.ssh.command == "cluster status"
    assert config.orchestration.preflight_health_check is True
    assert config.max_workers == 1
    assert config.inventory_path == str(tmp_path / "nodes.yml")


def test_load_custom_policies(config_dir):
    config = OrchestratorConfig.load(config_dir / "maintenance.yml")

    assert config.orchestration.maintenance == RetryPolicy(
        max_attempts=3, interval=0, total_timeout=10
    )
    assert config.orchestration.settle_delay == 0


def test_absolute_inventory_path_is_kept(tmp_path):
    path = tmp_path / "maintenance.yml"
    path.write_text(
        yaml.safe_dump(
            {
                "vcenter": {"host": "vc", "user": "admin"},
                "inventory_path": "/etc/maint/nodes.yml",
            }
        )
    )

    assert OrchestratorConfig.load(path).inventory_path == "/etc/maint/nodes.yml"


def test_missing_file(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        OrchestratorConfig.load(tmp_path / "missing.yml")


def test_invalid_yaml(tmp_path):
    path = tmp_path / "maintenance.yml"
    path.write_text("vcenter: [unclosed")

    with pytest.raises(ConfigurationError, match="Failed to parse"):
        OrchestratorConfig.load(path)


def test_empty_file(tmp_path):
    path = tmp_path / "maintenance.yml"
    path.write_text("")

    with pytest.raises(ConfigurationError, match="empty"):
        OrchestratorConfig.load(path)


def test_invalid_values_are_listed(tmp_path):
    path = tmp_path / "maintenance.yml"
    path.write_text(
        yaml.safe_dump(
            {
                "vcenter": {"host": "vc", "user": "admin"},
                "orchestration": {
                    "grace": {"max_attempts": 0, "interval": 5, "total_timeout": 60}
                },
            }
        )
    )

    with pytest.raises(ConfigurationError) as exc_info:
        OrchestratorConfig.load(path)

    assert "orchestration.grace.max_attempts" in exc_info.value.details


def test_save_round_trip(tmp_path):
    config = OrchestratorConfig(vcenter=VCenterSettings(host="vc", user="admin"))
    path = tmp_path / "maintenance.yml"

    config.save(str(path))
    loaded = OrchestratorConfig.load(path)

    assert loaded.vcenter == config.vcenter
    assert loaded.orchestration == config.orchestration
