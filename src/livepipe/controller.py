"""Re-execution controller: keeps the preview bound to the latest command."""

import enum
import logging

from livepipe.buffer import CaptureBuffer
from livepipe.executor import Executor, Invocation

logger = logging.getLogger(__name__)


class ControllerState(enum.Enum):
    """Which source the preview is showing."""

    IDLE = "idle"
    RUNNING = "running"


class PreviewController:
    """Restarts the command on every change of the command text.

    While idle the raw input buffer is active; otherwise the output buffer of
    the most recently started invocation is. There is no debounce: every
    distinct text cancels the previous run and starts a new one.
    """

    def __init__(self, input_buffer: CaptureBuffer, executor: Executor) -> None:
        self._input = input_buffer
        self._executor = executor
        self._command = ""
        self._invocation: Invocation | None = None

    @property
    def state(self) -> ControllerState:
        if self._invocation is None:
            return ControllerState.IDLE
        return ControllerState.RUNNING

    @property
    def command(self) -> str:
        """The command text of the last transition."""
        return self._command

    @property
    def invocation(self) -> Invocation | None:
        return self._invocation

    @property
    def input_buffer(self) -> CaptureBuffer:
        return self._input

    @property
    def active_buffer(self) -> CaptureBuffer:
        if self._invocation is None:
            return self._input
        return self._invocation.buffer

    def sync(self, command: str) -> CaptureBuffer:
        """Apply the current command text and return the buffer to render."""
        if command == self._command:
            return self.active_buffer

        self._command = command
        self._cancel()
        if command:
            self._invocation = self._executor.start(self._input.new_reader(), command)
        else:
            logger.debug("command cleared, showing input")
        return self.active_buffer

    def shutdown(self) -> None:
        """Cancel the outstanding invocation, if any."""
        self._cancel()

    def _cancel(self) -> None:
        if self._invocation is not None:
            self._invocation.cancel()
            self._invocation = None
