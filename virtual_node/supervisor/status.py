from __future__ import annotations

import copy
import logging

from ..exceptions import NotFoundError
from ..models import Node, NodeStatus
from ..patch import prepare_node_status_patch
from .loop import _EventKind, _LoopEvent

_LOGGER = logging.getLogger(__name__)


class SupervisorStatusMixin:
    """
    Status publication protocol shared by the loop and external callers.
    """

    def update_node_from_outside(self, node: Node, skip_error_handler: bool = False) -> None:
        """
        Replace the local node and publish its status immediately.

        Safe to call from any thread; publication is serialized with the
        control loop. On success the loop's active timer is rearmed to a full
        interval.

        Parameters
        ----------
        node:
            New local node. Must carry the supervised node's name.
        skip_error_handler:
            When true, publication errors are raised without consulting the
            configured status error handler.
        """
        if node.name != self._node.name:
            raise ValueError(
                f"Supervisor manages node {self._node.name!r}, got node {node.name!r}."
            )
        self._inc_stat("external_updates")
        self._update_status(skip_error_handler=skip_error_handler, replacement_node=node)
        self._events.put(_LoopEvent(_EventKind.REARM))

    def _update_status(
        self,
        *,
        skip_error_handler: bool = False,
        replacement_node: Node | None = None,
        replacement_status: NodeStatus | None = None,
    ) -> Node:
        """
        Stamp condition heartbeats and patch the remote node status.

        ``NotFoundError`` is always raised to the caller. Other errors go to
        the status error handler once (unless skipped); when the handler
        returns, the publish is retried once.
        """
        with self._publish_lock:
            if replacement_node is not None:
                self._node = replacement_node.copy()
            if replacement_status is not None:
                self._node.status = copy.deepcopy(replacement_status)
            self._stamp_heartbeats()

            try:
                updated = self._patch_remote_status()
            except NotFoundError:
                self._inc_stat("status_update_failures")
                raise
            except Exception as exc:
                handler = self.config.status_error_handler
                if skip_error_handler or handler is None:
                    self._inc_stat("status_update_failures")
                    raise
                self._inc_stat("error_handler_invocations")
                _LOGGER.debug(
                    "Invoking status error handler node=%s error=%s", self._node.name, exc
                )
                try:
                    handler(exc)
                    updated = self._patch_remote_status()
                except Exception:
                    self._inc_stat("status_update_failures")
                    raise

            self._node = updated
        self._inc_stat("status_updates")
        _LOGGER.debug(
            "Updated node %s status resource_version=%s",
            updated.name,
            updated.metadata.resource_version,
        )
        self._trace("status_updated", resource_version=updated.metadata.resource_version)
        return updated

    def _stamp_heartbeats(self) -> None:
        """Refresh every condition's heartbeat time, changed or not."""
        now = self._clock.now()
        for condition in self._node.status.conditions:
            condition.last_heartbeat_time = now

    def _patch_remote_status(self) -> Node:
        """
        Diff the remote node against the local status and send a merge patch.

        Must be called with the publish lock held.
        """
        name = self._node.name
        remote = self._nodes.get(name)
        _LOGGER.debug("Got node %s from control plane", name)
        patch = prepare_node_status_patch(remote, self._node)
        return self._nodes.patch_status(name, patch)
