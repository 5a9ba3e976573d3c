"""Shared fixtures and fakes for CodeForge Debug tests."""

from pathlib import Path
from typing import List, Optional

import pytest

from codeforge_debug.core import Config
from codeforge_debug.debug import (
    DebugConfigStore,
    DebugSessionLauncher,
    FuzzerExecutableResolver,
    LookupResult,
)
from codeforge_debug.editor import TerminalCloseEmitter, TerminalOptions
from codeforge_debug.runtime import DockerClient, KillResult, inventory


class FakeTerminal:
    def __init__(self, options: TerminalOptions):
        self.name = options.name
        self.options = options
        self.shown = False

    def show(self):
        self.shown = True


class FakeSurface:
    """In-memory HostEditorSurface that records every interaction."""

    def __init__(self, extensions: Optional[List[str]] = None):
        self.extensions = list(extensions or [])
        self.terminals: List[FakeTerminal] = []
        self.messages: List[tuple] = []
        self.debug_starts: List[tuple] = []
        self.start_result = True
        self.start_error: Optional[Exception] = None
        self.create_error: Optional[Exception] = None
        self.close_events = TerminalCloseEmitter()

    def create_terminal(self, options: TerminalOptions) -> FakeTerminal:
        if self.create_error:
            raise self.create_error
        terminal = FakeTerminal(options)
        self.terminals.append(terminal)
        return terminal

    def on_terminal_close(self, callback):
        return self.close_events.subscribe(callback)

    async def start_debug_session(self, workspace_folder: str, configuration_name: str) -> bool:
        self.debug_starts.append((workspace_folder, configuration_name))
        if self.start_error:
            raise self.start_error
        return self.start_result

    def list_installed_extension_ids(self) -> List[str]:
        return list(self.extensions)

    def show_message(self, level: str, text: str) -> None:
        self.messages.append((level, text))

    def close(self, terminal: FakeTerminal) -> None:
        self.close_events.fire(terminal)


class FakeRuntime(DockerClient):
    """DockerClient with the docker CLI calls replaced."""

    def __init__(self):
        super().__init__("docker")
        self.image_present = True
        self.track_result = True
        self.kill_result: Optional[KillResult] = None
        self.kill_error: Optional[Exception] = None
        self.killed: List[tuple] = []
        self.tracked: List[tuple] = []
        self._counter = 0

    def session_container_name(self, workspace_path: str, kind: str) -> str:
        self._counter += 1
        return f"{self.generate_container_name(workspace_path)}_{kind}_{self._counter}"

    async def kill(self, container_name: str, force: bool = True) -> KillResult:
        self.killed.append((container_name, force))
        if self.kill_error:
            raise self.kill_error
        return self.kill_result or KillResult(container_name, success=True)

    async def track(self, container_name, workspace_path, image, kind="terminal") -> bool:
        self.tracked.append((container_name, workspace_path, image, kind))
        return self.track_result

    async def image_exists(self, image: str) -> bool:
        return self.image_present


def _static_lookup(path: str, returncode: int = 0, stderr: str = ""):
    """Lookup collaborator that always answers the same way."""
    calls = []

    def lookup(workspace_path, fuzzer_name):
        calls.append((workspace_path, fuzzer_name))
        return LookupResult(returncode=returncode, stdout=path, stderr=stderr)

    lookup.calls = calls
    return lookup


@pytest.fixture
def static_lookup():
    return _static_lookup


@pytest.fixture(autouse=True)
def clean_inventory():
    inventory.clear()
    yield
    inventory.clear()


@pytest.fixture
def workspace(tmp_path) -> Path:
    """Initialized workspace with one built fuzzer and one crash."""
    ws = tmp_path / "ws"
    (ws / ".codeforge").mkdir(parents=True)
    (ws / ".codeforge" / "Dockerfile").write_text("FROM ubuntu:24.04\n")
    output = ws / ".codeforge" / "fuzzing" / "img_fuzz-output"
    output.mkdir(parents=True)
    (output / "crash-abc123").write_bytes(b"\x00\xff")
    return ws


@pytest.fixture
def crash_file(workspace) -> str:
    return str(workspace / ".codeforge" / "fuzzing" / "img_fuzz-output" / "crash-abc123")


@pytest.fixture
def surface():
    return FakeSurface(extensions=["webfreak.debug"])


@pytest.fixture
def runtime():
    return FakeRuntime()


@pytest.fixture
def make_launcher(workspace, surface, runtime):
    """Factory for launchers wired to the fakes."""

    def _make(port: int = 54321, lookup=None, store=None, **config_overrides):
        config = Config(workspace=str(workspace), attach_delay=0.0)
        for key, value in config_overrides.items():
            setattr(config, key, value)
        exe = str(workspace / ".codeforge" / "fuzzing" / "img_fuzz")
        lookup = lookup or _static_lookup(exe + "\n")
        return DebugSessionLauncher(
            config,
            runtime,
            surface,
            resolver_factory=lambda: FuzzerExecutableResolver(lookup),
            store=store or DebugConfigStore(config.workspace, config.launch_config_path),
            port_allocator=lambda: port,
        )

    return _make
