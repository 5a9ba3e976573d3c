"""
Environment Prerequisites

Checks that must pass before a debug container is started. All issues
are collected so the user can fix them in one go.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from loguru import logger

from .paths import is_within_workspace


@dataclass
class PrerequisiteReport:
    issues: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.issues


def is_initialized(workspace_path: str) -> bool:
    """A workspace is initialized once .codeforge/Dockerfile exists."""
    return (Path(workspace_path) / ".codeforge" / "Dockerfile").is_file()


async def check_prerequisites(
    workspace_path: str,
    image: str,
    crash_file: str,
    runtime,
) -> PrerequisiteReport:
    """
    Check the workspace, image and crash file.

    Args:
        workspace_path: Host workspace root
        image: Project image the debug container runs
        crash_file: Host path of the crash artifact
        runtime: Container runtime client (image_exists)

    Returns:
        PrerequisiteReport; issues are fatal, warnings are not
    """
    report = PrerequisiteReport()

    if not is_initialized(workspace_path):
        report.issues.append(
            f"Project is not initialized (missing {Path(workspace_path) / '.codeforge' / 'Dockerfile'})"
        )

    try:
        if not await runtime.image_exists(image):
            report.issues.append(f"Container image '{image}' not found; build the project image first")
    except Exception as e:
        report.issues.append(f"Could not inspect container image '{image}': {e}")

    if not Path(crash_file).is_file():
        report.issues.append(f"Crash file not accessible: {crash_file}")
    elif not is_within_workspace(crash_file, workspace_path):
        # The container only sees the workspace mount
        report.warnings.append(f"Crash file is outside the workspace: {crash_file}")

    for warning in report.warnings:
        logger.warning(f"[Prereqs] {warning}")

    return report
