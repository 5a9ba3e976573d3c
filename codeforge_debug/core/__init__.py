"""
CodeForge Debug Core Module

Contains configuration, logging, models and the error hierarchy.
"""

from .config import Config
from .exceptions import (
    CodeForgeError,
    ValidationError,
    ResolutionError,
    PortAllocationError,
    LaunchError,
    TrackingError,
    PersistError,
    AttachError,
    CleanupError,
    NotFoundError,
    InvalidTransitionError,
)
from .logging import (
    logger,
    setup_logging,
    setup_console_only,
    get_log_dir,
    get_session_logger,
)

# Re-export models
from .models import (
    SessionState,
    DebugSession,
    ContainerHandle,
    DebuggerBackend,
    DebugConfiguration,
    PersistResult,
    DebugCrashRequest,
    LaunchResult,
)

__all__ = [
    # Config
    "Config",
    # Errors
    "CodeForgeError",
    "ValidationError",
    "ResolutionError",
    "PortAllocationError",
    "LaunchError",
    "TrackingError",
    "PersistError",
    "AttachError",
    "CleanupError",
    "NotFoundError",
    "InvalidTransitionError",
    # Logging
    "logger",
    "setup_logging",
    "setup_console_only",
    "get_log_dir",
    "get_session_logger",
    # Models
    "SessionState",
    "DebugSession",
    "ContainerHandle",
    "DebuggerBackend",
    "DebugConfiguration",
    "PersistResult",
    "DebugCrashRequest",
    "LaunchResult",
]
