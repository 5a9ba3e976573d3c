"""
CodeForge Debug Logging Framework

Centralized logging configuration using loguru.
Each debug session run from the CLI gets a dedicated log directory.
"""

import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Any

from loguru import logger


# Global exception handler to ensure all errors are logged
def _global_exception_handler(exc_type, exc_value, exc_tb):
    """Handle uncaught exceptions globally."""
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_tb)
        return

    error_msg = ''.join(traceback.format_exception(exc_type, exc_value, exc_tb))
    logger.error(f"Uncaught exception:\n{error_msg}")

sys.excepthook = _global_exception_handler


# Global log directory for current session
_current_log_dir: Optional[Path] = None

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"


def _create_session_header(metadata: Dict[str, Any]) -> str:
    """Create a formatted session metadata header"""
    max_key_len = max(len(str(k)) for k in metadata.keys() if metadata[k] is not None)

    content_lines = []
    for key, value in metadata.items():
        if value is not None:
            key_padded = f"{key}:".ljust(max_key_len + 2)
            content_lines.append(f"  {key_padded} {value}")

    width = max(len(line) for line in content_lines) + 2
    width = max(width, 80)

    lines = []
    lines.append("┌" + "─" * width + "┐")
    lines.append("│" + " CODEFORGE DEBUG SESSION ".center(width) + "│")
    lines.append("├" + "─" * width + "┤")

    for content in content_lines:
        lines.append("│" + content.ljust(width) + "│")

    lines.append("└" + "─" * width + "┘")
    lines.append("")

    return "\n".join(lines)


def get_log_dir() -> Optional[Path]:
    """Get current session's log directory"""
    return _current_log_dir


def setup_logging(
    workspace_name: str,
    session_id: str,
    base_dir: Optional[Path] = None,
    console_level: str = "INFO",
    file_level: str = "DEBUG",
    metadata: Optional[Dict[str, Any]] = None,
) -> Path:
    """
    Setup logging for a debug session run.

    Creates a log directory: {base_dir}/{workspace_name}_{session_id}_{timestamp}/

    Args:
        workspace_name: Workspace folder name
        session_id: Session identifier (usually fuzzer name + crash id)
        base_dir: Base directory for logs (default: ./logs)
        console_level: Log level for console output
        file_level: Log level for file output
        metadata: Optional session metadata to include in log header

    Returns:
        Path to the log directory
    """
    global _current_log_dir

    logger.remove()

    if base_dir is None:
        base_dir = Path.cwd() / "logs"

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_dir = Path(base_dir) / f"{workspace_name}_{session_id}_{timestamp}"
    log_dir.mkdir(parents=True, exist_ok=True)

    _current_log_dir = log_dir

    log_file = log_dir / "codeforge.log"
    with open(log_file, "w", encoding="utf-8") as f:
        default_metadata = {
            "Session": session_id,
            "Workspace": workspace_name,
            "Start Time": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            "Log Directory": str(log_dir),
        }
        full_metadata = {**default_metadata, **(metadata or {})}
        f.write(_create_session_header(full_metadata))
        f.write("\n")

    # Console handler - colored, concise
    logger.add(
        sys.stderr,
        level=console_level,
        format=CONSOLE_FORMAT,
        colorize=True,
    )

    # Main log file - append to existing (with header)
    logger.add(
        log_file,
        level=file_level,
        format=FILE_FORMAT,
        rotation="10 MB",
        retention="7 days",
        encoding="utf-8",
        mode="a",
    )

    # Error log file - only errors and above
    logger.add(
        log_dir / "error.log",
        level="ERROR",
        format=FILE_FORMAT,
        rotation="10 MB",
        encoding="utf-8",
    )

    logger.info(f"Logging initialized: {log_dir}")

    return log_dir


def setup_console_only(level: str = "INFO"):
    """
    Setup console-only logging (for quick CLI commands).

    Args:
        level: Log level
    """
    logger.remove()

    logger.add(
        sys.stderr,
        level=level,
        format=CONSOLE_FORMAT,
        colorize=True,
    )


def get_session_logger(name: str):
    """
    Get a logger bound to a specific debug session.

    Args:
        name: Session name (e.g. the container name)

    Returns:
        Bound logger instance
    """
    return logger.bind(session=name)


__all__ = [
    "logger",
    "setup_logging",
    "setup_console_only",
    "get_log_dir",
    "get_session_logger",
]
