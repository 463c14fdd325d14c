"""Per-node mutual exclusion for orchestration sequences."""

import threading
from contextlib import contextmanager

from maintenance_manager.exceptions import NodeBusyError
from maintenance_manager.logging_config import get_logger

logger = get_logger(__name__)


class NodeLockRegistry:
    """Hands out one lock per node id.

    Two sequences on the same node must never run at the same time; the
    second caller either fails fast or waits for the first to finish.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._owners: dict[str, str] = {}

    def _lock_for(self, node_id: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(node_id, threading.Lock())

    def is_held(self, node_id: str) -> bool:
        return self._lock_for(node_id).locked()

    def owner(self, node_id: str) -> str | None:
        """Operation currently holding ``node_id``, if any."""
        with self._guard:
            return self._owners.get(node_id)

    @contextmanager
    def hold(
        self,
        node_id: str,
        operation: str = "operation",
        blocking: bool = False,
        timeout: float | None = None,
    ):
        """Hold the lock for ``node_id`` for the duration of the block.

        Raises:
            NodeBusyError: If the node is held and ``blocking`` is False, or the
                wait exceeds ``timeout``
        """
        lock = self._lock_for(node_id)
        if blocking:
            acquired = lock.acquire(timeout=-1 if timeout is None else timeout)
        else:
            acquired = lock.acquire(blocking=False)

        if not acquired:
            holder = self.owner(node_id) or "another operation"
            raise NodeBusyError(
                f"Node '{node_id}' is busy",
                f"{holder} is still running on this node; wait for it to finish",
            )

        with self._guard:
            self._owners[node_id] = operation
        logger.debug(f"Acquired lock for node '{node_id}' ({operation})")
        try:
            yield
        finally:
            with self._guard:
                self._owners.pop(node_id, None)
            lock.release()
            logger.debug(f"Released lock for node '{node_id}'")
