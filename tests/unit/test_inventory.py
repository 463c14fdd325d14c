"""Unit tests for node inventory management."""

import pytest
import yaml

from maintenance_manager.inventory import (
    InventoryError,
    InventoryManager,
    InventoryValidationError,
)
from maintenance_manager.models.node import LifecyclePhase, Node


@pytest.fixture
def inventory_file(tmp_path, sample_inventory_data):
    path = tmp_path / "nodes.yml"
    path.write_text(yaml.safe_dump(sample_inventory_data))
    return path


def test_get_nodes(inventory_file):
    nodes = InventoryManager(inventory_file).get_nodes()

    assert [n.node_id for n in nodes] == ["node-a", "node-b"]
    assert nodes[1].service_address == "10.0.0.32"
    assert all(n.phase == LifecyclePhase.ACTIVE for n in nodes)


def test_get_node(inventory_file):
    node = InventoryManager(inventory_file).get_node("node-a")

    assert node.address == "esx-a.example.com"
    assert node.service_vm == "svc-vm-a"


def test_get_unknown_node(inventory_file):
    with pytest.raises(InventoryError) as exc_info:
        InventoryManager(inventory_file).get_node("node-z")

    assert "node-z" in exc_info.value.message


def test_missing_file(tmp_path):
    with pytest.raises(InventoryError) as exc_info:
        InventoryManager(tmp_path / "nonexistent.yml").read()

    assert "not found" in str(exc_info.value).lower()
    assert "nonexistent.yml" in str(exc_info.value)


def test_empty_file(tmp_path):
    path = tmp_path / "nodes.yml"
    path.write_text("")

    with pytest.raises(InventoryError, match="empty"):
        InventoryManager(path).read()


@pytest.mark.parametrize(
    "data, message",
    [
        ({"hosts": {}}, "'nodes' section"),
        ({"nodes": ["node-a"]}, "must be a dictionary"),
        ({"nodes": {"node-a": {"address": "esx-a"}}}, "service_vm"),
        ({"nodes": {"-bad-": {"address": "esx-a", "service_vm": "svc"}}}, "validation failed"),
        (
            {
                "nodes": {
                    "node-a": {"address": "esx-a", "service_vm": "svc-a"},
                    "node-b": {"address": "esx-a", "service_vm": "svc-b"},
                }
            },
            "share address",
        ),
    ],
)
def test_validation_errors(data, message):
    with pytest.raises(InventoryValidationError, match=message):
        InventoryManager("unused.yml").validate(data)


def test_add_node_preserves_comments(tmp_path):
    path = tmp_path / "nodes.yml"
    path.write_text(
        "# production cluster\n"
        "nodes:\n"
        "  node-a:\n"
        "    address: esx-a.example.com  # rack 1\n"
        "    service_vm: svc-vm-a\n"
    )
    manager = InventoryManager(path)

    manager.add_node(Node(node_id="node-c", address="esx-c.example.com", service_vm="svc-vm-c"))

    text = path.read_text()
    assert "# production cluster" in text
    assert "# rack 1" in text
    assert [n.node_id for n in manager.get_nodes()] == ["node-a", "node-c"]
    assert (tmp_path / "nodes.yml.backup").exists()


def test_add_node_creates_file(tmp_path):
    manager = InventoryManager(tmp_path / "new" / "nodes.yml")

    manager.add_node(Node(node_id="node-a", address="esx-a", service_vm="svc-a"))

    assert manager.get_node("node-a").service_vm == "svc-a"


def test_add_duplicate_node(inventory_file):
    manager = InventoryManager(inventory_file)

    with pytest.raises(InventoryError, match="already exists"):
        manager.add_node(Node(node_id="node-a", address="esx-z", service_vm="svc-z"))


def test_add_duplicate_address(inventory_file):
    manager = InventoryManager(inventory_file)

    with pytest.raises(InventoryError, match="already used"):
        manager.add_node(
            Node(node_id="node-z", address="esx-a.example.com", service_vm="svc-z")
        )


def test_remove_node(inventory_file):
    manager = InventoryManager(inventory_file)

    manager.remove_node("node-a")

    assert [n.node_id for n in manager.get_nodes()] == ["node-b"]
    with pytest.raises(InventoryError, match="not found"):
        manager.remove_node("node-a")
