"""
JSON merge patch codec used for node status publication.

Status updates are sent as RFC 7386 merge patches computed by diffing the
serialized remote node against the desired node. Before diffing, the desired
node is rebuilt from the remote copy so that only status and caller-managed
metadata (labels, annotations) can differ:

* ``spec`` is always pinned to the remote value, so no patch can touch it
* server-managed metadata (name, uid, resource version, creation time) is
  pinned as well
* local labels and annotations are layered over the remote ones, so a key
  another writer added remotely is never removed by a status publish

Lists are replaced as a whole, which matches merge-patch semantics for the
condition and address arrays.
"""

from __future__ import annotations

import copy
import json
from typing import Any

from .models import Node


def create_merge_patch(original: dict[str, Any], modified: dict[str, Any]) -> dict[str, Any]:
    """
    Compute the merge patch that turns ``original`` into ``modified``.

    Keys missing from ``modified`` are emitted as ``None`` (delete), nested
    mappings are diffed recursively and every other changed value is replaced.
    """
    patch: dict[str, Any] = {}
    for key in original:
        if key not in modified:
            patch[key] = None
    for key, new_value in modified.items():
        old_value = original.get(key, _MISSING)
        if old_value is _MISSING:
            patch[key] = copy.deepcopy(new_value)
            continue
        if isinstance(old_value, dict) and isinstance(new_value, dict):
            nested = create_merge_patch(old_value, new_value)
            if nested:
                patch[key] = nested
            continue
        if old_value != new_value:
            patch[key] = copy.deepcopy(new_value)
    return patch


def apply_merge_patch(target: Any, patch: Any) -> Any:
    """
    Apply an RFC 7386 merge patch and return the patched document.

    ``target`` is not modified in place.
    """
    if not isinstance(patch, dict):
        return copy.deepcopy(patch)
    result = copy.deepcopy(target) if isinstance(target, dict) else {}
    for key, value in patch.items():
        if value is None:
            result.pop(key, None)
        else:
            result[key] = apply_merge_patch(result.get(key), value)
    return result


def desired_status_node(remote: Node, local: Node) -> Node:
    """
    Build the node the status patch should converge to.

    The result is the remote node carrying the local status. Local labels and
    annotations are merged key by key over the remote ones; keys that exist
    only on the remote node are kept, so concurrent writers are not erased.
    """
    desired = remote.copy()
    desired.status = copy.deepcopy(local.status)
    desired.metadata.labels = {**remote.metadata.labels, **local.metadata.labels}
    desired.metadata.annotations = {
        **remote.metadata.annotations,
        **local.metadata.annotations,
    }
    return desired


def prepare_node_status_patch(remote: Node, local: Node) -> bytes:
    """
    Return merge patch bytes moving ``remote`` to the local status.

    Raises
    ------
    ValueError
        If ``remote`` and ``local`` name different nodes.
    """
    if remote.name != local.name:
        raise ValueError(
            f"Cannot patch node {remote.name!r} with status of node {local.name!r}."
        )
    old_data = remote.as_dict()
    new_data = desired_status_node(remote, local).as_dict()
    new_data["spec"] = old_data["spec"]
    patch = create_merge_patch(old_data, new_data)
    return json.dumps(patch, separators=(",", ":"), sort_keys=True).encode("utf-8")


def decode_patch(patch: bytes | str) -> dict[str, Any]:
    """Decode merge patch bytes produced by :func:`prepare_node_status_patch`."""
    raw = patch.decode("utf-8") if isinstance(patch, bytes) else patch
    decoded = json.loads(raw)
    if not isinstance(decoded, dict):
        raise ValueError("Merge patch must be a JSON object.")
    return decoded


def apply_status_patch(current: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    """
    Apply a patch the way a status sub-resource does.

    Only ``status`` and metadata labels/annotations are taken from ``patch``;
    spec and every other metadata field keep their current values. The
    caller is responsible for assigning a new resource version.
    """
    updated = copy.deepcopy(current)
    if "status" in patch:
        updated["status"] = apply_merge_patch(current.get("status", {}), patch["status"])
    metadata_patch = patch.get("metadata") or {}
    metadata = updated.setdefault("metadata", {})
    for key in _STATUS_METADATA_KEYS:
        if key in metadata_patch:
            metadata[key] = apply_merge_patch(metadata.get(key) or {}, metadata_patch[key]) or {}
    return updated


_MISSING = object()
_STATUS_METADATA_KEYS = ("labels", "annotations")
