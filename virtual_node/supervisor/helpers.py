from __future__ import annotations

from ..models import Node


class SupervisorHelperMixin:
    """
    Low-level utility methods shared across mixins.
    """

    def _inc_stat(self, key: str, *, delta: int = 1) -> None:
        with self._stats_lock:
            self._stats[key] = self._stats.get(key, 0) + delta

    @property
    def node_name(self) -> str:
        """Return the supervised node's name."""
        return self._node.name

    @property
    def node(self) -> Node:
        """
        Return a copy of the last published local node.

        Waits for an in-flight publication to finish.
        """
        with self._publish_lock:
            return self._node.copy()
