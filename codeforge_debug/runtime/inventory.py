"""
Container Inventory

Process-wide registry of containers launched by debug sessions, so that
container views and shutdown hooks can find them.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from loguru import logger


@dataclass
class TrackedContainer:
    name: str
    container_id: str = ""
    image: str = ""
    workspace_path: str = ""
    kind: str = "terminal"
    started_at: datetime = field(default_factory=datetime.now)


_containers: Dict[str, TrackedContainer] = {}
_containers_lock = threading.Lock()


def track_container(
    name: str,
    container_id: str = "",
    image: str = "",
    workspace_path: str = "",
    kind: str = "terminal",
) -> TrackedContainer:
    """Register a container by name."""
    record = TrackedContainer(
        name=name,
        container_id=container_id,
        image=image,
        workspace_path=workspace_path,
        kind=kind,
    )
    with _containers_lock:
        _containers[name] = record
    logger.debug(f"[Inventory] Tracking {name} ({kind})")
    return record


def untrack_container(name: str) -> None:
    """Forget a container. Unknown names are ignored."""
    with _containers_lock:
        if name in _containers:
            del _containers[name]
            logger.debug(f"[Inventory] Untracked {name}")


def get_container(name: str) -> Optional[TrackedContainer]:
    with _containers_lock:
        return _containers.get(name)


def get_active_containers(workspace_path: Optional[str] = None) -> List[TrackedContainer]:
    """All tracked containers, optionally limited to one workspace."""
    with _containers_lock:
        records = list(_containers.values())
    if workspace_path is not None:
        records = [r for r in records if r.workspace_path == workspace_path]
    return records


def clear() -> None:
    with _containers_lock:
        _containers.clear()
