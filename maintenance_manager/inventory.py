"""Node inventory management module.

This module reads and updates the node inventory file, which maps each
cluster node to its management address and its dependent service VM. It uses
ruamel.yaml so operator comments and formatting survive updates.

Expected layout::

    nodes:
      node-a:
        address: esx-a.example.com
        service_vm: svc-vm-a
        service_address: 10.0.0.31   # optional
"""

import shutil
from pathlib import Path

from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap

from maintenance_manager.exceptions import MaintenanceManagerError
from maintenance_manager.logging_config import get_logger
from maintenance_manager.models.node import Node

logger = get_logger(__name__)


class InventoryError(MaintenanceManagerError):
    """Base exception for inventory operations."""

    pass


class InventoryValidationError(InventoryError):
    """Exception raised when inventory validation fails."""

    pass


class InventoryManager:
    """Manager for node inventory operations."""

    def __init__(self, inventory_path: str | Path):
        """Initialize inventory manager.

        Args:
            inventory_path: Path to the node inventory file
        """
        self.inventory_path = Path(inventory_path)
        self.yaml = YAML()
        self.yaml.preserve_quotes = True
        self.yaml.default_flow_style = False
        self.yaml.indent(mapping=2, sequence=2, offset=0)

    def read(self) -> dict:
        """Read inventory file and return parsed data.

        Returns:
            Dictionary containing inventory data

        Raises:
            InventoryError: If file cannot be read or parsed
        """
        logger.debug(f"Reading inventory file: {self.inventory_path}")

        if not self.inventory_path.exists():
            logger.error(f"Inventory file not found: {self.inventory_path}")
            raise InventoryError(
                f"Inventory file not found: {self.inventory_path}",
                f"Expected location: {self.inventory_path.absolute()}\n"
                f"Create the file or set inventory_path in the configuration",
            )

        try:
            with open(self.inventory_path) as f:
                data = self.yaml.load(f)
        except Exception as e:
            logger.error(f"Failed to read inventory file: {e}", exc_info=True)
            raise InventoryError(
                f"Failed to read inventory file: {e}",
                f"The file may have invalid YAML syntax. "
                f"Check the file at: {self.inventory_path.absolute()}",
            )

        if data is None:
            logger.error("Inventory file is empty")
            raise InventoryError(
                "Inventory file is empty",
                "The inventory file exists but contains no data. It needs a 'nodes' mapping.",
            )

        logger.debug(f"Successfully read inventory with {len(data)} top-level keys")
        return data

    def write(self, data: dict) -> None:
        """Write inventory data to file, keeping a backup of the previous one.

        Raises:
            InventoryError: If file cannot be written
        """
        logger.debug(f"Writing inventory file: {self.inventory_path}")

        try:
            self.inventory_path.parent.mkdir(parents=True, exist_ok=True)

            if self.inventory_path.exists():
                backup_path = self.inventory_path.with_suffix(".yml.backup")
                logger.debug(f"Creating backup at: {backup_path}")
                shutil.copy2(self.inventory_path, backup_path)

            with open(self.inventory_path, "w") as f:
                self.yaml.dump(data, f)

            logger.info(f"Successfully wrote inventory file: {self.inventory_path}")

        except PermissionError as e:
            logger.error(f"Permission denied writing inventory file: {e}")
            raise InventoryError(
                f"Permission denied writing inventory file: {self.inventory_path}",
                "Check file permissions or try running with appropriate privileges",
            )
        except OSError as e:
            logger.error(f"OS error writing inventory file: {e}")
            raise InventoryError(
                f"Failed to write inventory file: {e}",
                "Check disk space and file system permissions",
            )

    def validate(self, data: dict) -> None:
        """Validate inventory structure and required fields.

        Raises:
            InventoryValidationError: If validation fails
        """
        if not isinstance(data, dict):
            raise InventoryValidationError("Inventory must be a dictionary")

        if "nodes" not in data:
            raise InventoryValidationError("Inventory must have a 'nodes' section")

        nodes = data["nodes"]
        if not isinstance(nodes, dict):
            raise InventoryValidationError("'nodes' must be a dictionary")

        addresses: dict[str, str] = {}
        for node_id, node_data in nodes.items():
            self._validate_node(str(node_id), node_data)
            address = node_data["address"]
            if address in addresses:
                raise InventoryValidationError(
                    f"Nodes '{addresses[address]}' and '{node_id}' share address '{address}'"
                )
            addresses[address] = str(node_id)

    def _validate_node(self, node_id: str, node_data: dict) -> None:
        if not isinstance(node_data, dict):
            raise InventoryValidationError(f"Node '{node_id}' must be a dictionary")

        for field in ("address", "service_vm"):
            if field not in node_data:
                raise InventoryValidationError(
                    f"Node '{node_id}' missing required field: {field}"
                )

        try:
            Node.from_inventory_dict(node_id, node_data)
        except Exception as e:
            raise InventoryValidationError(f"Node '{node_id}' validation failed: {e}")

    def get_nodes(self) -> list[Node]:
        """Get all nodes from inventory.

        Raises:
            InventoryError: If inventory cannot be read or parsed
        """
        data = self.read()
        self.validate(data)
        return [
            Node.from_inventory_dict(str(node_id), node_data)
            for node_id, node_data in data["nodes"].items()
        ]

    def get_node(self, node_id: str) -> Node:
        """Look up a single node.

        Raises:
            InventoryError: If the node is not in the inventory
        """
        for node in self.get_nodes():
            if node.node_id == node_id:
                return node
        raise InventoryError(
            f"Node '{node_id}' not found in inventory",
            f"Known nodes are listed by 'maint-mgr nodes' (inventory: {self.inventory_path})",
        )

    def add_node(self, node: Node) -> None:
        """Add a node to the inventory, creating the file if needed.

        Raises:
            InventoryError: If the node id or address is already used
        """
        logger.info(f"Adding node '{node.node_id}' to inventory")

        if self.inventory_path.exists():
            data = self.read()
            self.validate(data)
        else:
            data = CommentedMap()
            data["nodes"] = CommentedMap()

        existing = [
            Node.from_inventory_dict(str(node_id), node_data)
            for node_id, node_data in data["nodes"].items()
        ]
        if any(n.node_id == node.node_id for n in existing):
            raise InventoryError(
                f"Node '{node.node_id}' already exists in inventory",
                f"Use 'maint-mgr remove-node {node.node_id}' to remove it first",
            )
        if any(n.address == node.address for n in existing):
            raise InventoryError(
                f"Address '{node.address}' is already used by another node",
                "Each node must have a unique management address",
            )

        data["nodes"][node.node_id] = node.to_inventory_dict()
        self.write(data)

    def remove_node(self, node_id: str) -> None:
        """Remove a node from the inventory.

        Raises:
            InventoryError: If node not found or operation fails
        """
        data = self.read()
        self.validate(data)

        if node_id not in data["nodes"]:
            raise InventoryError(f"Node '{node_id}' not found in inventory")

        del data["nodes"][node_id]
        self.write(data)
