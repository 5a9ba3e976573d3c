"""
Host Editor Module

- HostEditorSurface: protocol the launcher talks to
- ConsoleEditorSurface: command-line implementation
"""

from .surface import (
    Disposable,
    HostEditorSurface,
    Terminal,
    TerminalCloseEmitter,
    TerminalOptions,
)
from .console import ConsoleEditorSurface, ConsoleTerminal

__all__ = [
    "Disposable",
    "HostEditorSurface",
    "Terminal",
    "TerminalCloseEmitter",
    "TerminalOptions",
    "ConsoleEditorSurface",
    "ConsoleTerminal",
]
