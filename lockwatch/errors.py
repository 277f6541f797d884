"""Custom error types for lockwatch."""


class LockwatchError(Exception):
    """Base error for all lockwatch errors."""
    pass


class ArtifactReadError(LockwatchError):
    """Raised when a tracked artifact exists but cannot be read."""

    def __init__(self, path: str, reason: str = None):
        msg = f"Cannot read artifact '{path}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.path = path


class ToolError(LockwatchError):
    """Raised when the external dependency tool fails or returns garbage."""

    def __init__(self, command: str, reason: str, exit_status: int = None):
        msg = f"Dependency tool call '{command}' failed: {reason}"
        if exit_status is not None:
            msg += f" (exit status {exit_status})"
        super().__init__(msg)
        self.command = command
        self.exit_status = exit_status


class ConfigError(LockwatchError):
    """Raised when lockwatch configuration is invalid."""
    pass
