"""Debug Session Launcher Tests"""

import asyncio
import json
import shlex

from codeforge_debug.core import (
    Config,
    DebugCrashRequest,
    LaunchError,
    ResolutionError,
    SessionState,
    ValidationError,
)
from codeforge_debug.debug import (
    DebugConfigStore,
    DebugSessionLauncher,
    FuzzerExecutableResolver,
    PrerequisiteReport,
    build_stub_command,
)
from codeforge_debug.runtime import generate_container_name


def _request(crash_file, fuzzer="img_fuzz", crash_id="abc123"):
    return DebugCrashRequest(crash_id=crash_id, fuzzer_name=fuzzer, crash_file=crash_file)


def _launch(launcher, request):
    async def scenario():
        result = await launcher.debug_crash(request)
        await launcher.drain()
        return result

    return asyncio.run(scenario())


def _launch_json(workspace):
    return json.loads((workspace / ".vscode" / "launch.json").read_text())


class TestStubCommand:

    def test_gdbserver_command(self):
        cmd = build_stub_command(2000, "/ws/fuzz", "/ws/crash-1")
        assert cmd == (
            "export LLVM_PROFILE_FILE=/dev/null && "
            "gdbserver --once 0.0.0.0:2000 /ws/fuzz /ws/crash-1"
        )

    def test_paths_are_quoted(self):
        cmd = build_stub_command(2000, "/ws/my fuzz", "/ws/crash;rm")
        assert "'/ws/my fuzz' '/ws/crash;rm'" in cmd


class TestDebugCrash:

    def test_mirrored_workspace_session(self, monkeypatch, tmp_path, surface, runtime, static_lookup):
        """Workspace /ws, executable /ws/.codeforge/fuzzing/img_fuzz, host port 54321."""

        async def prereqs_ok(*args, **kwargs):
            return PrerequisiteReport()

        monkeypatch.setattr("codeforge_debug.debug.launcher.check_prerequisites", prereqs_ok)

        lookup = static_lookup("/ws/.codeforge/fuzzing/img_fuzz\n")
        launcher = DebugSessionLauncher(
            Config(workspace="/ws", attach_delay=0.0),
            runtime,
            surface,
            resolver_factory=lambda: FuzzerExecutableResolver(lookup),
            store=DebugConfigStore(str(tmp_path), ".vscode/launch.json"),
            port_allocator=lambda: 54321,
        )

        result = _launch(
            launcher, _request("/ws/.codeforge/fuzzing/img_fuzz-output/crash-abc123")
        )

        assert result.success
        args = surface.terminals[0].options.shell_args
        assert args[args.index("-p") + 1] == "54321:2000"
        command = args[-1]
        assert "gdbserver --once 0.0.0.0:2000" in command
        assert "/ws/.codeforge/fuzzing/img_fuzz " in command
        assert command.endswith("/ws/.codeforge/fuzzing/img_fuzz-output/crash-abc123")

        configs = json.loads((tmp_path / ".vscode" / "launch.json").read_text())["configurations"]
        assert len(configs) == 1
        assert configs[0]["name"] == "CodeForge GDB: img_fuzz"
        assert configs[0]["target"] == ":54321"

    def test_successful_session(self, make_launcher, surface, runtime, workspace, crash_file):
        launcher = make_launcher()
        ws = str(workspace)
        exe = str(workspace / ".codeforge" / "fuzzing" / "img_fuzz")
        image = generate_container_name(ws)

        result = _launch(launcher, _request(crash_file))

        assert result.success
        session = result.session
        assert session.state == SessionState.ATTACHED
        assert not session.degraded
        assert session.host_port == 54321
        assert session.container_port == 2000
        assert session.container_name == f"{image}_gdb-server_1"
        assert session.history == [
            SessionState.VALIDATING,
            SessionState.RESOLVING,
            SessionState.ALLOCATING,
            SessionState.LAUNCHING,
            SessionState.TRACKING,
            SessionState.CONFIGURING_DEBUGGER,
            SessionState.AWAITING_ATTACH,
        ]

        terminal = surface.terminals[0]
        assert terminal.name == "CodeForge GDB: img_fuzz - abc123"
        assert terminal.shown
        assert terminal.options.shell_path == "docker"
        assert terminal.options.shell_args == [
            "run", "--name", session.container_name, "-i", "-t", "--rm",
            "-p", "54321:2000",
            "-v", f"{ws}:{ws}", "-w", ws,
            image,
            "/bin/bash", "-c", build_stub_command(2000, exe, crash_file),
        ]
        assert shlex.quote(crash_file) in terminal.options.shell_args[-1]

        entry = _launch_json(workspace)["configurations"][0]
        assert entry["name"] == "CodeForge GDB: img_fuzz"
        assert entry["type"] == "gdb"
        assert entry["request"] == "attach"
        assert entry["target"] == ":54321"
        assert entry["executable"] == exe

        assert surface.debug_starts == [(ws, "CodeForge GDB: img_fuzz")]
        assert surface.messages[-1][0] == "info"
        assert runtime.tracked == [(session.container_name, ws, image, "gdb-server")]
        assert runtime.killed == []

    def test_sequential_sessions_update_one_entry(self, make_launcher, workspace, crash_file):
        launcher = make_launcher()

        first = _launch(launcher, _request(crash_file, crash_id="c1"))
        second = _launch(launcher, _request(crash_file, crash_id="c2"))

        assert first.success and second.success
        assert first.session.container_name != second.session.container_name
        configs = _launch_json(workspace)["configurations"]
        assert len(configs) == 1
        assert configs[0]["name"] == "CodeForge GDB: img_fuzz"

    def test_close_ends_session_and_kills_container(self, make_launcher, surface, runtime, crash_file):
        launcher = make_launcher()

        async def scenario():
            result = await launcher.debug_crash(_request(crash_file))
            surface.close(surface.terminals[0])
            surface.close(surface.terminals[0])
            await launcher.wait_closed(result.session)
            await launcher.drain()
            return result

        result = asyncio.run(scenario())

        assert result.session.state == SessionState.CLOSED
        assert runtime.killed == [(result.session.container_name, True)]
        assert launcher.active_sessions() == []
        assert surface.close_events.listener_count == 0

    def test_repeated_sessions_release_bookkeeping(self, make_launcher, surface, runtime, crash_file):
        """Closed sessions leave nothing behind in the launcher or its guard."""
        launcher = make_launcher()

        async def scenario():
            for i in range(5):
                result = await launcher.debug_crash(_request(crash_file, crash_id=f"c{i}"))
                assert result.session.guarded
                surface.close(surface.terminals[-1])
                await launcher.wait_closed(result.session)
            await launcher.drain()

        asyncio.run(scenario())

        assert len(runtime.killed) == 5
        assert launcher.sessions == []
        assert launcher._subscriptions == {}
        assert launcher._background == set()
        assert launcher.guard.subscriptions == []
        assert surface.close_events.listener_count == 0

    def test_close_during_attach_wait_cancels_attach(self, make_launcher, surface, runtime, crash_file):
        launcher = make_launcher(attach_delay=30.0)

        async def scenario():
            task = asyncio.create_task(launcher.debug_crash(_request(crash_file)))
            while not launcher.sessions or launcher.subscription_for(launcher.sessions[0]) is None:
                await asyncio.sleep(0.01)
            surface.close(surface.terminals[0])
            result = await asyncio.wait_for(task, timeout=10)
            await launcher.drain()
            return result

        result = asyncio.run(scenario())

        assert result.success
        assert result.session.state == SessionState.CLOSED
        assert surface.debug_starts == []
        assert len(runtime.killed) == 1
        assert "closed" in result.message


class TestPreLaunchFailures:

    def test_missing_crash_file(self, make_launcher, surface, runtime, workspace):
        launcher = make_launcher()

        result = _launch(launcher, _request(str(workspace / "nope")))

        assert not result.success
        assert isinstance(result.error, ValidationError)
        assert result.session.state == SessionState.FAILED
        assert surface.terminals == []
        assert runtime.tracked == []
        assert not (workspace / ".vscode").exists()
        assert surface.messages[-1][0] == "error"
        assert "Crash file not accessible" in result.message

    def test_missing_parameters(self, make_launcher, crash_file):
        result = _launch(make_launcher(), _request(crash_file, fuzzer=""))
        assert not result.success
        assert "fuzzer name" in result.message

    def test_uninitialized_workspace_and_missing_image(self, make_launcher, runtime, workspace, crash_file):
        (workspace / ".codeforge" / "Dockerfile").unlink()
        runtime.image_present = False

        result = _launch(make_launcher(), _request(crash_file))

        assert not result.success
        assert len(result.error.issues) == 2

    def test_invalid_configuration(self, make_launcher, surface, crash_file):
        result = _launch(make_launcher(container_port=0), _request(crash_file))
        assert not result.success
        assert "Invalid container_port" in result.message
        assert surface.terminals == []

    def test_resolution_failure_carries_diagnostic(self, make_launcher, surface, static_lookup, crash_file):
        lookup = static_lookup("", returncode=1, stderr="Fuzzer executable not found for: img_fuzz")

        result = _launch(make_launcher(lookup=lookup), _request(crash_file))

        assert not result.success
        assert isinstance(result.error, ResolutionError)
        assert "Fuzzer executable not found for: img_fuzz" in result.message
        assert result.session.host_port is None
        assert surface.terminals == []

    def test_lookup_os_error_is_a_resolution_error(self, make_launcher, surface, crash_file):
        def lookup(workspace_path, fuzzer_name):
            raise PermissionError("docker: permission denied")

        launcher = make_launcher(lookup=lookup)
        result = _launch(launcher, _request(crash_file))

        assert not result.success
        assert isinstance(result.error, ResolutionError)
        assert result.error.diagnostic == "docker: permission denied"
        assert surface.terminals == []
        assert launcher.sessions == []

    def test_terminal_creation_failure(self, make_launcher, surface, crash_file):
        surface.create_error = OSError("docker: command not found")

        result = _launch(make_launcher(), _request(crash_file))

        assert not result.success
        assert isinstance(result.error, LaunchError)
        assert "docker: command not found" in result.message
        assert result.session.state == SessionState.FAILED


class TestDegradedSessions:

    def test_persist_failure_falls_back_to_manual_connect(self, make_launcher, surface, workspace, crash_file):
        (workspace / ".vscode").write_text("not a directory")

        result = _launch(make_launcher(), _request(crash_file))

        session = result.session
        assert result.success
        assert session.degraded
        assert session.state == SessionState.CONFIGURING_DEBUGGER
        assert session.configuration_name is None
        assert surface.debug_starts == []
        level, text = surface.messages[-1]
        assert level == "warning"
        assert "localhost:54321" in text

    def test_attach_declined(self, make_launcher, surface, crash_file):
        surface.start_result = False

        result = _launch(make_launcher(), _request(crash_file))

        assert result.success
        assert result.session.degraded
        assert result.session.state == SessionState.AWAITING_ATTACH
        assert "connect manually to localhost:54321" in result.message
        assert surface.messages[-1][0] == "warning"

    def test_attach_error(self, make_launcher, surface, crash_file):
        surface.start_error = RuntimeError("debug adapter crashed")

        result = _launch(make_launcher(), _request(crash_file))

        assert result.success
        assert result.session.degraded
        assert any("debug adapter crashed" in w for w in result.session.warnings)

    def test_inventory_tracking_failure_only_warns(self, make_launcher, runtime, crash_file):
        runtime.track_result = False

        result = _launch(make_launcher(), _request(crash_file))

        assert result.success
        assert result.session.state == SessionState.ATTACHED
        assert any("not shown in container views" in w for w in result.session.warnings)

    def test_guard_failure_degrades(self, make_launcher, surface, crash_file):
        def broken(callback):
            raise RuntimeError("event bus gone")

        surface.on_terminal_close = broken

        result = _launch(make_launcher(), _request(crash_file))

        assert result.success
        assert result.session.degraded
        assert result.session.state == SessionState.ATTACHED
        assert not result.session.guarded


class TestBackendSelection:

    def test_detected_path_based_backend(self, make_launcher, surface, workspace, crash_file):
        surface.extensions = ["vadimcn.vscode-lldb", "webfreak.debug"]

        _launch(make_launcher(), _request(crash_file))

        entry = _launch_json(workspace)["configurations"][0]
        assert entry["type"] == "lldb"
        assert entry["processCreateCommands"] == ["gdb-remote localhost:54321"]

    def test_backend_override(self, make_launcher, surface, workspace, crash_file):
        surface.extensions = ["vadimcn.vscode-lldb"]

        _launch(make_launcher(backend="remote_attach"), _request(crash_file))

        entry = _launch_json(workspace)["configurations"][0]
        assert entry["type"] == "gdb"
        assert entry["valuesFormatting"] == "parseText"
        assert entry["printCalls"] is False

    def test_configured_shell(self, make_launcher, surface, crash_file):
        _launch(make_launcher(default_shell="/bin/sh"), _request(crash_file))

        args = surface.terminals[0].options.shell_args
        assert args[-3:-1] == ["/bin/sh", "-c"]

    def test_debug_host(self, make_launcher, workspace, crash_file):
        result = _launch(make_launcher(debug_host="10.1.2.3"), _request(crash_file))

        assert _launch_json(workspace)["configurations"][0]["target"] == "10.1.2.3:54321"
        assert result.session.manual_connect == "10.1.2.3:54321"
