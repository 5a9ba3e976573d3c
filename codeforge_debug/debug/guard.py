"""
Lifecycle Guard

Ties an ephemeral container to the terminal it runs in: when the
terminal closes, the container is killed right away. The terminal is
already gone at that point, so kill failures are only logged.
"""

import asyncio
import threading
from typing import Callable, List, Optional

from ..core.exceptions import CleanupError
from ..core.logging import get_session_logger
from ..core.models import ContainerHandle
from ..editor.surface import Disposable, HostEditorSurface, Terminal
from ..runtime.client import KillResult


class GuardSubscription:
    """
    One-shot terminal close observer for a single container.

    Close events may arrive from any thread; the kill runs on the event
    loop the subscription was created on. The observer is disposed once
    the kill attempt has settled, and on_settled is called exactly once
    (after the kill, or right away if disposed before any close).
    """

    def __init__(
        self,
        terminal: Terminal,
        handle: ContainerHandle,
        runtime,
        loop: asyncio.AbstractEventLoop,
        on_closed: Optional[Callable[[ContainerHandle], None]] = None,
        on_settled: Optional[Callable[["GuardSubscription"], None]] = None,
    ):
        self.terminal = terminal
        self.handle = handle
        self.runtime = runtime
        self.on_closed = on_closed
        self.on_settled = on_settled
        self.log = get_session_logger(handle.name)

        self.kill_attempts = 0
        self.kill_result: Optional[KillResult] = None
        self.cleanup_error: Optional[CleanupError] = None

        self.terminal_closed = asyncio.Event()
        self.settled = asyncio.Event()

        self._loop = loop
        self._fired = False
        self._lock = threading.Lock()
        self._disposable: Optional[Disposable] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def disposed(self) -> bool:
        return self._disposable is not None and self._disposable.disposed

    def bind(self, disposable: Disposable) -> None:
        self._disposable = disposable

    def dispose(self) -> bool:
        """Unsubscribe. Only the first call has an effect."""
        if self._disposable is None:
            return False
        disposed = self._disposable.dispose()
        if disposed:
            self.log.debug(f"[Guard] Observer disposed for {self.handle.name}")
            if not self._fired:
                # Nothing left to kill
                self._settle()
        return disposed

    def handle_terminal_close(self, terminal: Terminal) -> None:
        if terminal is not self.terminal:
            return

        with self._lock:
            if self._fired or self.disposed:
                return
            self._fired = True

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self._loop:
            self._start()
        else:
            try:
                self._loop.call_soon_threadsafe(self._start)
            except RuntimeError as e:
                # Event loop already shut down; nothing left to run the kill on
                self.log.warning(
                    f"[Guard] Cannot kill {self.handle.name}, event loop closed: {e}"
                )

    def _start(self) -> None:
        self.terminal_closed.set()
        if self.on_closed is not None:
            try:
                self.on_closed(self.handle)
            except Exception as e:
                self.log.warning(f"[Guard] on_closed callback failed for {self.handle.name}: {e}")
        self._task = self._loop.create_task(self._kill())

    async def _kill(self) -> None:
        name = self.handle.name
        self.log.info(f"[Guard] Terminal '{self.terminal.name}' closed, killing {name}")
        self.kill_attempts += 1

        try:
            result = await self.runtime.kill(name, force=True)
            self.kill_result = result
            if result.already_gone:
                self.log.info(f"[Guard] Container {name} was already gone")
            elif result.success:
                self.log.info(f"[Guard] Container {name} killed")
            else:
                self.cleanup_error = CleanupError(
                    f"Failed to kill container {name}", diagnostic=result.output
                )
                self.log.warning(f"[Guard] {self.cleanup_error}")
        except Exception as e:
            self.cleanup_error = CleanupError(
                f"Failed to kill container {name}", diagnostic=str(e)
            )
            self.log.warning(f"[Guard] {self.cleanup_error}")
        finally:
            self.dispose()
            self._settle()

    def _settle(self) -> None:
        self.settled.set()
        if self.on_settled is not None:
            callback, self.on_settled = self.on_settled, None
            try:
                callback(self)
            except Exception as e:
                self.log.warning(f"[Guard] on_settled callback failed for {self.handle.name}: {e}")

    async def wait(self) -> None:
        """Wait until the container kill has settled."""
        await self.settled.wait()


class LifecycleGuard:
    """
    Creates GuardSubscriptions against one editor surface and runtime.

    Subscriptions are only held while they are live; a settled one is
    dropped so repeated sessions do not accumulate.
    """

    def __init__(self, surface: HostEditorSurface, runtime):
        self.surface = surface
        self.runtime = runtime
        self.subscriptions: List[GuardSubscription] = []

    def attach(
        self,
        terminal: Terminal,
        handle: ContainerHandle,
        on_closed: Optional[Callable[[ContainerHandle], None]] = None,
        on_settled: Optional[Callable[[GuardSubscription], None]] = None,
    ) -> GuardSubscription:
        """
        Kill handle's container when terminal closes.

        Must be called from a coroutine running on the loop that should
        perform the kill.
        """
        loop = asyncio.get_running_loop()

        def settled(subscription: GuardSubscription) -> None:
            self._forget(subscription)
            if on_settled is not None:
                on_settled(subscription)

        subscription = GuardSubscription(terminal, handle, self.runtime, loop, on_closed, settled)
        subscription.bind(self.surface.on_terminal_close(subscription.handle_terminal_close))
        self.subscriptions.append(subscription)
        subscription.log.debug(f"[Guard] Watching terminal '{terminal.name}' for {handle.name}")
        return subscription

    def _forget(self, subscription: GuardSubscription) -> None:
        if subscription in self.subscriptions:
            self.subscriptions.remove(subscription)

    @property
    def active(self) -> List[GuardSubscription]:
        return [s for s in self.subscriptions if not s.disposed]
