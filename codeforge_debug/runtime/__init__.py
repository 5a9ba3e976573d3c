"""
Container Runtime Module

- DockerClient: docker CLI wrapper (run args, kill, track, inspect)
- inventory: registry of containers launched by debug sessions
"""

from .client import (
    DockerClient,
    KillResult,
    CommandResult,
    generate_container_name,
)
from . import inventory
from .inventory import (
    TrackedContainer,
    track_container,
    untrack_container,
    get_active_containers,
)

__all__ = [
    "DockerClient",
    "KillResult",
    "CommandResult",
    "generate_container_name",
    "inventory",
    "TrackedContainer",
    "track_container",
    "untrack_container",
    "get_active_containers",
]
