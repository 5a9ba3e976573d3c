"""
CodeForge Debug Exceptions

Custom exceptions for debug session orchestration.

Errors raised before a container is launched are fatal for the session.
Errors at or after launch degrade the session instead, because the user
still has a terminal and a manual connect path.
"""


class CodeForgeError(Exception):
    """Base exception for debug session errors"""

    fatal: bool = True

    def __init__(self, message: str, diagnostic: str = None, **context):
        self.message = message
        self.diagnostic = diagnostic
        self.context = {k: v for k, v in context.items() if v is not None}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = [self.message]
        if self.diagnostic:
            parts.append(self.diagnostic.strip())
        for key, value in self.context.items():
            parts.append(f"{key}={value}")
        return " | ".join(parts)


class ValidationError(CodeForgeError):
    """Missing input or unmet environment prerequisite"""

    def __init__(self, message: str, issues: list = None, **kwargs):
        self.issues = issues or []
        super().__init__(message, **kwargs)

    def _format_message(self) -> str:
        msg = super()._format_message()
        if self.issues:
            msg += f" | issues: {'; '.join(self.issues)}"
        return msg


class ResolutionError(CodeForgeError):
    """Fuzzer executable or path resolution failed"""

    def __init__(self, message: str, returncode: int = None, **kwargs):
        self.returncode = returncode
        super().__init__(message, **kwargs)


class PortAllocationError(CodeForgeError):
    """No free host port could be bound"""
    pass


class LaunchError(CodeForgeError):
    """Container or terminal creation failed"""
    pass


class TrackingError(CodeForgeError):
    """Container could not be registered for tracking"""

    fatal = False


class PersistError(CodeForgeError):
    """Debug configuration could not be written"""

    fatal = False

    def __init__(self, message: str, path: str = None, **kwargs):
        self.path = path
        super().__init__(message, path=path, **kwargs)


class AttachError(CodeForgeError):
    """Host editor failed to start the debug session"""

    fatal = False


class CleanupError(CodeForgeError):
    """Killing a guarded container failed (logged only)"""

    fatal = False


class NotFoundError(CodeForgeError):
    """Requested debug configuration does not exist"""
    pass


class InvalidTransitionError(CodeForgeError):
    """Illegal debug session state change"""

    def __init__(self, message: str, current: str = None, requested: str = None):
        self.current = current
        self.requested = requested
        super().__init__(message, current=current, requested=requested)
