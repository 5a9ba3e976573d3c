"""
Debug Session Launcher

Runs a fuzzer crash under gdbserver in an ephemeral container and
points the host editor's debugger at it.

Session flow:
    validating -> resolving -> allocating -> launching -> tracking
    -> configuring_debugger -> awaiting_attach -> attached

Anything that goes wrong before the container is launched fails the
session with one user-facing message and no side effects. Once the
terminal is up the user always has a usable container, so later
problems only degrade the session (warnings + manual connect info).
Closing the terminal ends the session at any point after launch.
"""

import asyncio
import shlex
from typing import Callable, Dict, List, Optional, Set

from loguru import logger

from ..core.config import Config
from ..core.exceptions import (
    AttachError,
    CodeForgeError,
    LaunchError,
    PersistError,
    ResolutionError,
    TrackingError,
    ValidationError,
)
from ..core.models import (
    ContainerHandle,
    DebugConfiguration,
    DebugCrashRequest,
    DebuggerBackend,
    DebugSession,
    LaunchResult,
    SessionState,
)
from ..editor.surface import HostEditorSurface, Terminal, TerminalOptions
from ..runtime import inventory
from ..runtime.client import generate_container_name
from .config_store import DebugConfigStore, build_configuration, detect_backend
from .guard import GuardSubscription, LifecycleGuard
from .paths import map_container_to_host, map_host_to_container
from .ports import find_available_port
from .prereqs import check_prerequisites
from .resolver import DockerExecutableLookup, FuzzerExecutableResolver


CONTAINER_KIND = "gdb-server"
CONFIGURATION_PREFIX = "CodeForge GDB"


def configuration_name(fuzzer_name: str) -> str:
    """Launch configuration name for a fuzzer (one entry per fuzzer)."""
    return f"{CONFIGURATION_PREFIX}: {fuzzer_name}"


def build_stub_command(container_port: int, executable: str, crash_file: str) -> str:
    """
    Shell command run inside the debug container.

    Coverage profiling is switched off so the replay does not write
    .profraw files, then gdbserver serves one connection on all
    interfaces.
    """
    return (
        "export LLVM_PROFILE_FILE=/dev/null && "
        f"gdbserver --once 0.0.0.0:{container_port} "
        f"{shlex.quote(executable)} {shlex.quote(crash_file)}"
    )


class DebugSessionLauncher:
    """
    Orchestrates crash debug sessions for one workspace.

    Collaborators are injected so the editor and container runtime can be
    swapped (console surface for the CLI, fakes in tests).
    """

    def __init__(
        self,
        config: Config,
        runtime,
        surface: HostEditorSurface,
        resolver_factory: Optional[Callable[[], FuzzerExecutableResolver]] = None,
        store: Optional[DebugConfigStore] = None,
        port_allocator: Callable[[], int] = find_available_port,
        guard: Optional[LifecycleGuard] = None,
    ):
        self.config = config
        self.runtime = runtime
        self.surface = surface
        self.workspace = config.workspace or ""
        self.image = config.image_name or (
            generate_container_name(self.workspace) if self.workspace else ""
        )

        self.resolver_factory = resolver_factory or self._default_resolver
        self.store = store or DebugConfigStore(self.workspace, config.launch_config_path)
        self.port_allocator = port_allocator
        self.guard = guard or LifecycleGuard(surface, runtime)

        self.sessions: List[DebugSession] = []  # Closed and failed sessions are dropped
        self._subscriptions: Dict[str, GuardSubscription] = {}
        self._background: Set[asyncio.Task] = set()

    def _default_resolver(self) -> FuzzerExecutableResolver:
        return FuzzerExecutableResolver(
            DockerExecutableLookup(
                image=self.image,
                docker_command=self.config.docker_command,
                fuzzing_dir=self.config.fuzzing_dir,
            )
        )

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def debug_crash(self, request: DebugCrashRequest) -> LaunchResult:
        """
        Start a debug session for a crash.

        Returns:
            LaunchResult; success is False only when the session failed
            before a container was started
        """
        session = DebugSession(
            fuzzer_name=request.fuzzer_name,
            crash_id=request.crash_id,
            crash_file=request.crash_file,
            workspace_path=self.workspace,
            debug_host=self.config.debug_host,
        )
        self.sessions.append(session)

        logger.info(
            f"[Launcher] Debugging crash {request.crash_id} from {request.fuzzer_name}"
        )

        try:
            await self._validate(session)
            self._advance(session, SessionState.RESOLVING)
            await self._resolve(session)
            self._advance(session, SessionState.ALLOCATING)
            self._allocate(session)
            self._advance(session, SessionState.LAUNCHING)
            terminal, handle = self._launch(session)
        except CodeForgeError as e:
            return self._fail(session, e)
        except Exception as e:
            logger.exception(f"[Launcher] Unexpected error before launch: {e}")
            return self._fail(session, LaunchError("Unexpected error", diagnostic=str(e)))

        try:
            await self._run_after_launch(session, terminal, handle)
        except Exception as e:
            # The container is running and guarded; keep the session usable
            logger.exception(f"[Launcher] Unexpected error after launch: {e}")
            session.degrade(f"Unexpected error: {e}")

        return LaunchResult(
            success=True,
            session=session,
            message=self._summary(session, terminal),
        )

    async def _run_after_launch(self, session: DebugSession, terminal: Terminal, handle: ContainerHandle):
        if not self._advance(session, SessionState.TRACKING):
            return
        subscription = self._track(session, terminal, handle)

        if not self._advance(session, SessionState.CONFIGURING_DEBUGGER):
            return
        configuration = await self._configure(session)
        if configuration is None:
            self._notify_manual_connect(session)
            return

        if not self._advance(session, SessionState.AWAITING_ATTACH):
            return
        await self._attach(session, subscription)

    # ------------------------------------------------------------------
    # States
    # ------------------------------------------------------------------

    async def _validate(self, session: DebugSession) -> None:
        missing = [
            label for label, value in (
                ("crash identifier", session.crash_id),
                ("fuzzer name", session.fuzzer_name),
                ("crash file path", session.crash_file),
            )
            if not value
        ]
        if missing:
            raise ValidationError(f"Missing required parameters: {', '.join(missing)}")

        config_errors = self.config.validate()
        if config_errors:
            raise ValidationError("Invalid configuration", issues=config_errors)

        report = await check_prerequisites(
            self.workspace, self.image, session.crash_file, self.runtime
        )
        if not report.valid:
            raise ValidationError("Cannot debug crash", issues=report.issues)
        session.warnings.extend(report.warnings)

    async def _resolve(self, session: DebugSession) -> None:
        resolver = self.resolver_factory()
        try:
            executable = await asyncio.to_thread(
                resolver.resolve, self.workspace, session.fuzzer_name
            )
        except CodeForgeError:
            raise
        except Exception as e:
            raise ResolutionError(
                f"Could not resolve executable for fuzzer '{session.fuzzer_name}'",
                diagnostic=str(e),
            ) from e

        try:
            session.executable_path = map_host_to_container(executable, self.workspace)
            session.container_crash_path = map_host_to_container(session.crash_file, self.workspace)
        except ValueError as e:
            raise ResolutionError("Path mapping failed", diagnostic=str(e)) from e

    def _allocate(self, session: DebugSession) -> None:
        session.assign_port(self.port_allocator(), self.config.container_port)
        logger.info(
            f"[Launcher] Port mapping {session.host_port} -> {session.container_port}"
        )

    def _launch(self, session: DebugSession):
        try:
            container_name = self.runtime.session_container_name(self.workspace, CONTAINER_KIND)
            session.assign_container(container_name)

            args = self.runtime.build_run_args(
                self.workspace,
                self.image,
                container_name,
                command=build_stub_command(
                    session.container_port,
                    session.executable_path,
                    session.container_crash_path,
                ),
                publish=[f"{session.host_port}:{session.container_port}"],
                mount_workspace=self.config.mount_workspace,
                additional_args=self.config.additional_docker_run_args,
                shell=self.config.default_shell,
            )

            terminal = self.surface.create_terminal(
                TerminalOptions(
                    name=f"{CONFIGURATION_PREFIX}: {session.fuzzer_name} - {session.crash_id}",
                    shell_path=self.config.docker_command,
                    shell_args=args,
                )
            )
        except CodeForgeError:
            raise
        except Exception as e:
            raise LaunchError("Failed to start debug container", diagnostic=str(e)) from e

        try:
            terminal.show()
        except Exception as e:
            logger.warning(f"[Launcher] Could not show terminal '{terminal.name}': {e}")

        logger.info(f"[Launcher] Started container {container_name} in terminal '{terminal.name}'")
        handle = ContainerHandle(
            name=container_name,
            workspace_path=self.workspace,
            kind=CONTAINER_KIND,
            image=self.image,
        )
        return terminal, handle

    def _track(
        self, session: DebugSession, terminal: Terminal, handle: ContainerHandle
    ) -> Optional[GuardSubscription]:
        subscription = None
        try:
            subscription = self.guard.attach(
                terminal,
                handle,
                on_closed=lambda _handle: self._on_terminal_closed(session),
                on_settled=lambda sub: self._release(session, sub),
            )
            self._subscriptions[handle.name] = subscription
            session.guarded = True
        except Exception as e:
            error = TrackingError("Could not watch terminal for cleanup", diagnostic=str(e))
            logger.warning(f"[Launcher] {error}")
            session.degrade(str(error))

        # Inventory tracking polls docker for a while; don't hold the session up
        task = asyncio.get_running_loop().create_task(self._track_inventory(session, handle))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return subscription

    async def _track_inventory(self, session: DebugSession, handle: ContainerHandle) -> None:
        try:
            tracked = await self.runtime.track(
                handle.name, handle.workspace_path, handle.image, handle.kind
            )
        except Exception as e:
            tracked = False
            logger.warning(f"[Launcher] {TrackingError('Tracking failed', diagnostic=str(e))}")

        handle.tracked = tracked
        if not tracked:
            session.warnings.append(f"Container {handle.name} is not shown in container views")
            logger.warning(f"[Launcher] Launched but could not track container: {handle.name}")
        elif session.state == SessionState.CLOSED:
            # Closed while we were polling; the kill already untracked it
            inventory.untrack_container(handle.name)

    async def _configure(self, session: DebugSession) -> Optional[DebugConfiguration]:
        backend = self._select_backend()
        executable = map_container_to_host(session.executable_path, self.workspace)

        options = {}
        if backend != DebuggerBackend.PATH_BASED_LAUNCH:
            options = {"valuesFormatting": "parseText", "printCalls": False}

        configuration = build_configuration(
            backend,
            configuration_name(session.fuzzer_name),
            self.config.debug_host,
            session.host_port,
            executable=executable,
            options=options,
        )

        try:
            result = await asyncio.to_thread(self.store.persist, configuration)
        except PersistError as e:
            logger.warning(f"[Launcher] {e}")
            session.degrade(f"Debug configuration not saved: {e}")
            return None

        session.configuration_name = configuration.name
        logger.info(
            f"[Launcher] {result.action.capitalize()} debug configuration "
            f"'{configuration.name}' ({backend.value}, target {configuration.target})"
        )
        return configuration

    def _select_backend(self) -> DebuggerBackend:
        if self.config.backend:
            return DebuggerBackend(self.config.backend)
        try:
            installed = self.surface.list_installed_extension_ids()
        except Exception as e:
            logger.warning(f"[Launcher] Could not list installed extensions: {e}")
            installed = []
        return detect_backend(installed)

    async def _attach(self, session: DebugSession, subscription: Optional[GuardSubscription]) -> None:
        if not await self._wait_for_stub(subscription):
            logger.info(f"[Launcher] Terminal closed before attach; skipping {session.configuration_name}")
            return

        try:
            started = await self.surface.start_debug_session(
                self.workspace, session.configuration_name
            )
            error = None if started else AttachError(
                "Host editor did not start the debug session",
                configuration=session.configuration_name,
            )
        except Exception as e:
            error = AttachError("Failed to start debug session", diagnostic=str(e))

        if error is not None:
            logger.warning(f"[Launcher] {error}")
            session.degrade(str(error))
            self._notify_manual_connect(session)
            return

        if self._advance(session, SessionState.ATTACHED):
            self.surface.show_message(
                "info",
                f"Debugger attached to {session.fuzzer_name} crash {session.crash_id}",
            )

    async def _wait_for_stub(self, subscription: Optional[GuardSubscription]) -> bool:
        """
        Give gdbserver time to bind.

        Returns:
            False if the terminal closed during the wait
        """
        delay = self.config.attach_delay
        if subscription is None:
            await asyncio.sleep(delay)
            return True
        if subscription.terminal_closed.is_set():
            return False
        try:
            await asyncio.wait_for(subscription.terminal_closed.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return True
        return False

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _advance(self, session: DebugSession, state: SessionState) -> bool:
        """Move forward unless the session already ended (terminal closed)."""
        if session.state.is_terminal:
            return False
        session.transition(state)
        logger.debug(f"[Launcher] {session.fuzzer_name}: {state.value}")
        return True

    def _on_terminal_closed(self, session: DebugSession) -> None:
        if session.can_transition(SessionState.CLOSED):
            session.transition(SessionState.CLOSED)
            logger.info(f"[Launcher] Session for {session.fuzzer_name} closed")

    def _release(self, session: DebugSession, subscription: GuardSubscription) -> None:
        """Drop bookkeeping once the container kill settled."""
        self._subscriptions.pop(subscription.handle.name, None)
        self._forget_session(session)

    def _forget_session(self, session: DebugSession) -> None:
        if session in self.sessions and not session.is_active:
            self.sessions.remove(session)

    def _fail(self, session: DebugSession, error: CodeForgeError) -> LaunchResult:
        session.error = error
        if session.can_transition(SessionState.FAILED):
            session.transition(SessionState.FAILED)
        self._forget_session(session)
        message = f"Failed to debug crash - {error}"
        logger.error(f"[Launcher] {message}")
        self.surface.show_message("error", message)
        return LaunchResult(success=False, session=session, message=message, error=error)

    def _notify_manual_connect(self, session: DebugSession) -> None:
        self.surface.show_message(
            "warning",
            f"Connect your debugger manually to {session.manual_connect} "
            f"(gdb: target remote {session.manual_connect})",
        )

    def _summary(self, session: DebugSession, terminal: Terminal) -> str:
        if session.state == SessionState.CLOSED:
            return f"Debug session for {session.fuzzer_name} closed"
        if session.degraded:
            return (
                f"Debug container running in '{terminal.name}'; "
                f"connect manually to {session.manual_connect}"
            )
        return f"Debug session started in '{terminal.name}' ({session.state.value})"

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def active_sessions(self) -> List[DebugSession]:
        return [s for s in self.sessions if s.is_active]

    def subscription_for(self, session: DebugSession) -> Optional[GuardSubscription]:
        if session.container_name is None:
            return None
        return self._subscriptions.get(session.container_name)

    async def wait_closed(self, session: DebugSession) -> None:
        """
        Wait until the session's terminal closed and its container kill settled.

        Returns at once for sessions that already settled or were never
        guarded (see DebugSession.guarded).
        """
        subscription = self.subscription_for(session)
        if subscription is not None:
            await subscription.wait()

    async def drain(self) -> None:
        """Wait for background tracking tasks."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
