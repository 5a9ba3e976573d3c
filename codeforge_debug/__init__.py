"""
CodeForge Debug - Containerized Remote-Debug Sessions

Replays a fuzzer crash under gdbserver inside an ephemeral container,
writes a matching debugger attach configuration, and wires the host
editor to it. The container lives exactly as long as its terminal.
"""

__version__ = "0.4.0"
__author__ = "CodeForge Team"
