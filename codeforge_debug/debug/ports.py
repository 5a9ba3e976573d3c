"""
Port Allocator

Asks the OS for a free TCP port. The port is released before it is
returned, so another process could grab it before the container does;
the container claims it again almost immediately, which keeps the
window small.
"""

import socket

from loguru import logger

from ..core.exceptions import PortAllocationError


def find_available_port(host: str = "127.0.0.1") -> int:
    """
    Find a free TCP port on the host.

    Args:
        host: Interface to probe

    Returns:
        Port number assigned by the OS

    Raises:
        PortAllocationError: If no socket could be bound
    """
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind((host, 0))
            port = sock.getsockname()[1]
    except OSError as e:
        raise PortAllocationError(
            "Failed to find available port", diagnostic=str(e), host=host
        ) from e

    logger.debug(f"[Ports] Allocated host port {port}")
    return port
