"""
Debug Session Module

Components:
- paths: host <-> container path mapping
- ports: free host port discovery
- FuzzerExecutableResolver: in-container fuzz target lookup
- DebugConfigStore: launch configuration persistence
- LifecycleGuard: kills containers when their terminal closes
- DebugSessionLauncher: session state machine tying it all together
"""

from .paths import map_host_to_container, map_container_to_host, is_within_workspace
from .ports import find_available_port
from .resolver import (
    LookupResult,
    DockerExecutableLookup,
    FuzzerExecutableResolver,
)
from .jsonc import strip_comments
from .config_store import (
    DebugConfigStore,
    detect_backend,
    build_configuration,
)
from .guard import LifecycleGuard, GuardSubscription
from .prereqs import PrerequisiteReport, check_prerequisites, is_initialized
from .launcher import (
    DebugSessionLauncher,
    build_stub_command,
    configuration_name,
)


__all__ = [
    # Paths / ports
    "map_host_to_container",
    "map_container_to_host",
    "is_within_workspace",
    "find_available_port",
    # Resolver
    "LookupResult",
    "DockerExecutableLookup",
    "FuzzerExecutableResolver",
    # Configuration store
    "strip_comments",
    "DebugConfigStore",
    "detect_backend",
    "build_configuration",
    # Guard
    "LifecycleGuard",
    "GuardSubscription",
    # Prerequisites
    "PrerequisiteReport",
    "check_prerequisites",
    "is_initialized",
    # Launcher
    "DebugSessionLauncher",
    "build_stub_command",
    "configuration_name",
]
