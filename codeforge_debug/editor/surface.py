"""
Host Editor Surface

Interface to the editor that hosts debug sessions: terminals, terminal
close events, debug session start and installed extensions.
"""

import threading
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol, runtime_checkable


@dataclass
class TerminalOptions:
    name: str
    shell_path: str
    shell_args: List[str] = field(default_factory=list)


@runtime_checkable
class Terminal(Protocol):
    name: str

    def show(self) -> None:
        ...


class Disposable:
    """
    Handle returned by event subscriptions.

    dispose() runs the teardown callback at most once, however many times
    it is called and from whichever thread.
    """

    def __init__(self, on_dispose: Optional[Callable[[], None]] = None):
        self._on_dispose = on_dispose
        self._disposed = False
        self._lock = threading.Lock()

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> bool:
        """Returns True only for the call that actually disposed."""
        with self._lock:
            if self._disposed:
                return False
            self._disposed = True
            callback, self._on_dispose = self._on_dispose, None
        if callback is not None:
            callback()
        return True


TerminalCloseCallback = Callable[[Terminal], None]


class HostEditorSurface(Protocol):
    """What the launcher needs from the editor."""

    def create_terminal(self, options: TerminalOptions) -> Terminal:
        ...

    def on_terminal_close(self, callback: TerminalCloseCallback) -> Disposable:
        ...

    async def start_debug_session(self, workspace_folder: str, configuration_name: str) -> bool:
        ...

    def list_installed_extension_ids(self) -> List[str]:
        ...

    def show_message(self, level: str, text: str) -> None:
        ...


class TerminalCloseEmitter:
    """
    Listener list for terminal close events.

    Shared by surface implementations; listeners removed through their
    Disposable never fire again.
    """

    def __init__(self):
        self._listeners: List[TerminalCloseCallback] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: TerminalCloseCallback) -> Disposable:
        with self._lock:
            self._listeners.append(callback)

        def _remove():
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return Disposable(_remove)

    def fire(self, terminal: Terminal) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(terminal)

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)
