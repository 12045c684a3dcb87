"""
Heartbeat supervisor package.

This package breaks the supervisor runtime into focused domain modules while
exporting the public ``HeartbeatSupervisor`` entrypoint.
"""

from .lease import LeaseMode
from .node import HeartbeatSupervisor

__all__ = ["HeartbeatSupervisor", "LeaseMode"]
