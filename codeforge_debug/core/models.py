"""
Debug Session Models

Data classes and enums for containerized debug sessions.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from .exceptions import CodeForgeError, InvalidTransitionError


class SessionState(str, Enum):
    """Debug session state. Declaration order is the forward order."""

    VALIDATING = "validating"
    RESOLVING = "resolving"
    ALLOCATING = "allocating"
    LAUNCHING = "launching"
    TRACKING = "tracking"
    CONFIGURING_DEBUGGER = "configuring_debugger"
    AWAITING_ATTACH = "awaiting_attach"
    ATTACHED = "attached"
    FAILED = "failed"  # Reachable from any live state
    CLOSED = "closed"  # Terminal closed by the user

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.FAILED, SessionState.CLOSED)


_FORWARD_ORDER = [
    SessionState.VALIDATING,
    SessionState.RESOLVING,
    SessionState.ALLOCATING,
    SessionState.LAUNCHING,
    SessionState.TRACKING,
    SessionState.CONFIGURING_DEBUGGER,
    SessionState.AWAITING_ATTACH,
    SessionState.ATTACHED,
]


class DebuggerBackend(str, Enum):
    """Debugger tooling installed in the host editor, best first."""

    PATH_BASED_LAUNCH = "path_based_launch"  # CodeLLDB custom launch + gdb-remote
    REMOTE_ATTACH = "remote_attach"  # Native Debug gdb attach
    REMOTE_ATTACH_FALLBACK = "remote_attach_fallback"  # Nothing installed

    @property
    def rank(self) -> int:
        return list(DebuggerBackend).index(self)


@dataclass
class ContainerHandle:
    """
    Ephemeral container owned by a single debug session.

    Ownership passes to the Lifecycle Guard once the terminal closes.
    """

    name: str
    workspace_path: str
    kind: str = "gdb-server"
    image: str = ""
    tracked: bool = False


@dataclass
class DebugConfiguration:
    """Named debugger attach configuration. `name` is the merge key."""

    name: str
    backend: DebuggerBackend
    host: str = ""
    port: int = 0
    executable: Optional[str] = None
    options: Dict[str, Any] = field(default_factory=dict)

    @property
    def target(self) -> str:
        return f"{self.host}:{self.port}"

    def to_entry(self) -> Dict[str, Any]:
        """Render the launch configuration object written to the store."""
        if self.backend == DebuggerBackend.PATH_BASED_LAUNCH:
            entry: Dict[str, Any] = {
                "name": self.name,
                "type": "lldb",
                "request": "launch",
                "custom": True,
            }
            if self.executable:
                entry["targetCreateCommands"] = [f"target create {self.executable}"]
            entry["processCreateCommands"] = [
                f"gdb-remote {self.host or 'localhost'}:{self.port}"
            ]
            entry["cwd"] = "${workspaceFolder}"
            return entry

        entry = {
            "name": self.name,
            "type": "gdb",
            "request": "attach",
            "remote": True,
            "target": self.target,
            "cwd": "${workspaceFolder}",
            "valuesFormatting": self.options.get("valuesFormatting", "parseText"),
            "printCalls": self.options.get("printCalls", False),
        }
        if self.executable:
            entry["executable"] = self.executable
        if self.options.get("autorun"):
            entry["autorun"] = list(self.options["autorun"])
        # Anything else the caller supplied goes through untouched
        for key, value in self.options.items():
            if key not in ("valuesFormatting", "printCalls", "autorun"):
                entry.setdefault(key, value)
        return entry


@dataclass
class PersistResult:
    """Outcome of writing a configuration to the store."""

    action: str  # "created" | "updated"
    existed_before: bool
    path: str
    name: str


@dataclass
class DebugCrashRequest:
    """Input from the command layer: which crash to debug."""

    crash_id: str
    fuzzer_name: str
    crash_file: str


@dataclass
class DebugSession:
    """
    One crash-debugging session.

    The state only moves forward through SessionState, except that FAILED
    and CLOSED can be entered early and are terminal.
    """

    fuzzer_name: str
    crash_id: str
    crash_file: str
    workspace_path: str
    state: SessionState = SessionState.VALIDATING

    host_port: Optional[int] = None
    container_port: Optional[int] = None
    container_name: Optional[str] = None
    debug_host: str = ""

    executable_path: Optional[str] = None  # Container-side, cached for the session
    container_crash_path: Optional[str] = None
    configuration_name: Optional[str] = None

    guarded: bool = False  # Lifecycle Guard watches the terminal
    degraded: bool = False
    warnings: List[str] = field(default_factory=list)
    error: Optional[CodeForgeError] = None
    history: List[SessionState] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)

    def can_transition(self, new_state: SessionState) -> bool:
        if self.state.is_terminal:
            return False
        if new_state == SessionState.FAILED:
            return True
        if new_state == SessionState.CLOSED:
            return _FORWARD_ORDER.index(self.state) >= _FORWARD_ORDER.index(
                SessionState.LAUNCHING
            )
        if new_state.is_terminal:
            return False
        return _FORWARD_ORDER.index(new_state) > _FORWARD_ORDER.index(self.state)

    def transition(self, new_state: SessionState) -> None:
        if not self.can_transition(new_state):
            raise InvalidTransitionError(
                "Illegal session state change",
                current=self.state.value,
                requested=new_state.value,
            )
        self.history.append(self.state)
        self.state = new_state

    def assign_port(self, host_port: int, container_port: int) -> None:
        if self.host_port is not None:
            raise InvalidTransitionError(
                "Host port already assigned",
                current=str(self.host_port),
                requested=str(host_port),
            )
        self.host_port = host_port
        self.container_port = container_port

    def assign_container(self, name: str) -> None:
        if self.container_name is not None:
            raise InvalidTransitionError(
                "Container name already assigned",
                current=self.container_name,
                requested=name,
            )
        self.container_name = name

    def degrade(self, reason: str) -> None:
        self.degraded = True
        self.warnings.append(reason)

    @property
    def is_active(self) -> bool:
        return not self.state.is_terminal

    @property
    def manual_connect(self) -> Optional[str]:
        """host:port the user can connect a debugger to by hand."""
        if self.host_port is None:
            return None
        return f"{self.debug_host or 'localhost'}:{self.host_port}"

    def to_dict(self) -> dict:
        return {
            "fuzzer_name": self.fuzzer_name,
            "crash_id": self.crash_id,
            "crash_file": self.crash_file,
            "workspace_path": self.workspace_path,
            "state": self.state.value,
            "host_port": self.host_port,
            "container_port": self.container_port,
            "container_name": self.container_name,
            "executable_path": self.executable_path,
            "configuration_name": self.configuration_name,
            "guarded": self.guarded,
            "degraded": self.degraded,
            "warnings": list(self.warnings),
            "error": str(self.error) if self.error else None,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class LaunchResult:
    """What the command layer gets back from the launcher."""

    success: bool
    session: DebugSession
    message: str = ""
    error: Optional[CodeForgeError] = None
