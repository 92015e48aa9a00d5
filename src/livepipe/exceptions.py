"""Custom exception hierarchy for livepipe."""


class LivepipeError(Exception):
    """Base exception for all livepipe errors."""


class ConfigError(LivepipeError):
    """Raised when settings loading or validation fails."""


class UsageError(LivepipeError):
    """Raised when livepipe is started without data piped on stdin."""


class CaptureError(LivepipeError):
    """Raised when reading from a capture source fails."""

    def __init__(self, message: str, captured: int = 0) -> None:
        self.captured = captured
        super().__init__(message)
