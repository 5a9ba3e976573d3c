"""
Console Editor Surface

Editor surface for the command line: a "terminal" is a child process that
shares the user's TTY, and its exit is the terminal close event.
"""

import subprocess
import threading
from typing import List, Optional

from loguru import logger

from .surface import Disposable, TerminalCloseCallback, TerminalCloseEmitter, TerminalOptions


class ConsoleTerminal:
    """Child process standing in for an editor terminal."""

    def __init__(self, options: TerminalOptions):
        self.name = options.name
        self.options = options
        self.process: Optional[subprocess.Popen] = None

    def show(self) -> None:
        # The process already owns the console
        pass

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process else None

    def close(self) -> None:
        """Terminate the terminal process (the close event follows its exit)."""
        if self.process and self.process.poll() is None:
            self.process.terminate()


class ConsoleEditorSurface:
    """
    HostEditorSurface for CLI use.

    There is no debugger UI on a console, so start_debug_session always
    reports failure and the launcher falls back to manual-connect
    instructions. Installed extension IDs come from configuration.
    """

    def __init__(self, installed_extensions: Optional[List[str]] = None):
        self.installed_extensions = list(installed_extensions or [])
        self.terminals: List[ConsoleTerminal] = []
        self._close_events = TerminalCloseEmitter()

    def create_terminal(self, options: TerminalOptions) -> ConsoleTerminal:
        terminal = ConsoleTerminal(options)
        cmd = [options.shell_path, *options.shell_args]
        logger.debug(f"[Console] Starting terminal '{options.name}': {' '.join(cmd)}")

        terminal.process = subprocess.Popen(cmd)
        self.terminals.append(terminal)

        watcher = threading.Thread(
            target=self._watch,
            args=(terminal,),
            daemon=True,
            name=f"terminal-{terminal.pid}",
        )
        watcher.start()
        return terminal

    def _watch(self, terminal: ConsoleTerminal) -> None:
        returncode = terminal.process.wait()
        logger.debug(f"[Console] Terminal '{terminal.name}' exited with {returncode}")
        self._close_events.fire(terminal)

    def on_terminal_close(self, callback: TerminalCloseCallback) -> Disposable:
        return self._close_events.subscribe(callback)

    async def start_debug_session(self, workspace_folder: str, configuration_name: str) -> bool:
        logger.info(
            f"[Console] No editor attached; start '{configuration_name}' "
            f"from your editor in {workspace_folder}"
        )
        return False

    def list_installed_extension_ids(self) -> List[str]:
        return list(self.installed_extensions)

    def show_message(self, level: str, text: str) -> None:
        logger.log(level.upper(), f"CodeForge: {text}")
