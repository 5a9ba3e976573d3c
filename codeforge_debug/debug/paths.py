"""
Path Mapper

The workspace is bind-mounted into the container at the same absolute
path, so host and container paths coincide. Paths outside the workspace
are mapped unchanged as well; callers that care use is_within_workspace().
"""

import os
import posixpath
import re

_DRIVE_RE = re.compile(r"^[A-Za-z]:")


def _is_windows_path(*paths: str) -> bool:
    return any(_DRIVE_RE.match(p) for p in paths)


def _normalize(path: str, windows: bool) -> str:
    if windows:
        path = path.replace("\\", "/")
        return _DRIVE_RE.sub("", path) or "/"
    return os.path.normpath(os.path.abspath(path))


def map_host_to_container(host_path: str, workspace_root: str) -> str:
    """
    Map a host path to the path the container sees.

    Args:
        host_path: Absolute path on the host
        workspace_root: Workspace root on the host

    Returns:
        Container-side absolute path (POSIX separators)
    """
    if not host_path or not workspace_root:
        raise ValueError("Both host path and workspace path are required")

    windows = _is_windows_path(host_path, workspace_root)
    return posixpath.normpath(_normalize(host_path, windows))


def map_container_to_host(container_path: str, workspace_root: str) -> str:
    """Inverse of map_host_to_container (identity for the symmetric mount)."""
    if not container_path or not workspace_root:
        raise ValueError("Both container path and workspace path are required")
    return container_path


def is_within_workspace(host_path: str, workspace_root: str) -> bool:
    """True if host_path is the workspace root or below it."""
    if not host_path or not workspace_root:
        return False

    windows = _is_windows_path(host_path, workspace_root)
    path = posixpath.normpath(_normalize(host_path, windows))
    root = posixpath.normpath(_normalize(workspace_root, windows))
    if windows:
        path, root = path.lower(), root.lower()
    return path == root or path.startswith(root.rstrip("/") + "/")
