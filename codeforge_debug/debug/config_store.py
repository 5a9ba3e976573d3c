"""
Debug Configuration Store

Reads and writes the workspace launch file that the host editor uses to
start debug sessions, and builds attach configurations for whichever
debugger extension is installed.

The launch file is shared with the user and may be hand edited. Reading
is tolerant: comments are accepted, and a missing or unparsable file is
treated as empty. Comments are not preserved when the file is rewritten.
"""

import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from loguru import logger

from ..core.exceptions import NotFoundError, PersistError
from ..core.models import DebugConfiguration, DebuggerBackend, PersistResult
from . import jsonc


LAUNCH_FILE_VERSION = "0.2.0"

# Lowercased extension ID -> backend it provides (editor IDs are case-insensitive)
EXTENSION_BACKENDS = {
    "vadimcn.vscode-lldb": DebuggerBackend.PATH_BASED_LAUNCH,
    "webfreak.debug": DebuggerBackend.REMOTE_ATTACH,
}

# One write lock per launch file, shared by every store instance in the process
_file_locks: Dict[str, threading.Lock] = {}
_file_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    key = str(path.resolve())
    with _file_locks_guard:
        lock = _file_locks.get(key)
        if lock is None:
            lock = threading.Lock()
            _file_locks[key] = lock
        return lock


def detect_backend(installed_ids: Iterable[str]) -> DebuggerBackend:
    """
    Pick the best debugger backend among installed extensions.

    PATH_BASED_LAUNCH outranks REMOTE_ATTACH. With neither installed the
    remote-attach shape is still used so the user gets an editable entry.
    """
    installed = {i.lower() for i in installed_ids}
    available = [DebuggerBackend.REMOTE_ATTACH_FALLBACK] + [
        backend for extension, backend in EXTENSION_BACKENDS.items()
        if extension in installed
    ]
    return min(available, key=lambda backend: backend.rank)


def build_configuration(
    backend: DebuggerBackend,
    name: str,
    host: str,
    port: int,
    executable: Optional[str] = None,
    options: Optional[Dict[str, Any]] = None,
) -> DebugConfiguration:
    """
    Build a debug configuration for the given backend.

    PATH_BASED_LAUNCH creates the process through `gdb-remote host:port`,
    with `executable` loaded for symbols. The remote-attach shapes attach
    over the network to `host:port`; `options` (valuesFormatting,
    printCalls, autorun, ...) are passed through verbatim.
    """
    return DebugConfiguration(
        name=name,
        backend=backend,
        host=host,
        port=port,
        executable=executable,
        options=dict(options or {}),
    )


def _empty_document() -> Dict[str, Any]:
    return {"version": LAUNCH_FILE_VERSION, "configurations": []}


class DebugConfigStore:
    """Launch configuration file of one workspace."""

    def __init__(self, workspace_path: str, relative_path: str = ".vscode/launch.json"):
        self.workspace_path = Path(workspace_path)
        self.path = self.workspace_path / relative_path

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def _read(self) -> Tuple[Dict[str, Any], bool]:
        """
        Load the document.

        Returns:
            (document, parsed) - parsed is False when the file was missing
            or unreadable and an empty document was substituted
        """
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return _empty_document(), False
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"[ConfigStore] Cannot read {self.path}, starting fresh: {e}")
            return _empty_document(), False

        try:
            document = jsonc.loads(text)
        except ValueError as e:
            logger.warning(f"[ConfigStore] Cannot parse {self.path}, starting fresh: {e}")
            return _empty_document(), False

        if not isinstance(document, dict):
            logger.warning(f"[ConfigStore] {self.path} is not a JSON object, starting fresh")
            return _empty_document(), False

        if not isinstance(document.get("configurations"), list):
            document["configurations"] = []
        document.setdefault("version", LAUNCH_FILE_VERSION)
        return document, True

    def _write(self, document: Dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistError(
                "Failed to create configuration directory",
                diagnostic=str(e),
                path=str(self.path.parent),
            ) from e

        try:
            self.path.write_text(jsonc.dumps(document), encoding="utf-8")
        except OSError as e:
            raise PersistError(
                "Failed to write launch configuration",
                diagnostic=str(e),
                path=str(self.path),
            ) from e

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def persist(self, configuration: DebugConfiguration) -> PersistResult:
        """
        Create or replace the entry named configuration.name.

        An existing entry keeps its position in the array; a new one is
        appended. Other entries are left as they are.

        Raises:
            PersistError: directory creation or file write failed
        """
        entry = configuration.to_entry()

        with _lock_for(self.path):
            document, parsed = self._read()
            configurations = document["configurations"]

            index = next(
                (
                    i for i, existing in enumerate(configurations)
                    if isinstance(existing, dict) and existing.get("name") == configuration.name
                ),
                None,
            )
            if index is not None:
                configurations[index] = entry
                action = "updated"
            else:
                configurations.append(entry)
                action = "created"

            self._write(document)

        logger.info(f"[ConfigStore] {action.capitalize()} '{configuration.name}' in {self.path}")
        return PersistResult(
            action=action,
            existed_before=parsed,
            path=str(self.path),
            name=configuration.name,
        )

    def remove(self, name: str) -> None:
        """
        Remove the entry with the given name.

        Raises:
            NotFoundError: no such entry (or no readable launch file)
            PersistError: writing the updated file failed
        """
        with _lock_for(self.path):
            document, parsed = self._read()
            if not parsed:
                raise NotFoundError(
                    f"Configuration '{name}' not found",
                    diagnostic=f"No readable launch file at {self.path}",
                )

            configurations = document["configurations"]
            remaining = [
                c for c in configurations
                if not (isinstance(c, dict) and c.get("name") == name)
            ]
            if len(remaining) == len(configurations):
                raise NotFoundError(f"Configuration '{name}' not found", path=str(self.path))

            document["configurations"] = remaining
            self._write(document)

        logger.info(f"[ConfigStore] Removed '{name}' from {self.path}")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_configurations(self) -> List[Dict[str, Any]]:
        document, _ = self._read()
        return [c for c in document["configurations"] if isinstance(c, dict)]

    def list_remote_attach(self) -> List[Dict[str, Any]]:
        """Entries with the gdb remote-attach shape."""
        return [
            c for c in self.list_configurations()
            if c.get("type") == "gdb" and c.get("request") == "attach"
        ]

    def get(self, name: str) -> Optional[Dict[str, Any]]:
        for entry in self.list_configurations():
            if entry.get("name") == name:
                return entry
        return None

    def exists(self, name: str) -> bool:
        return self.get(name) is not None
