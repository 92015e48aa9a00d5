"""Full-screen preview loop with prompt_toolkit integration."""

import logging
import threading
from pathlib import Path

from prompt_toolkit.application import Application
from prompt_toolkit.buffer import Buffer
from prompt_toolkit.input import Input
from prompt_toolkit.key_binding import KeyBindings, KeyPressEvent
from prompt_toolkit.layout import HSplit, Layout, Window
from prompt_toolkit.layout.controls import BufferControl, FormattedTextControl
from prompt_toolkit.layout.processors import BeforeInput
from prompt_toolkit.output import Output
from prompt_toolkit.styles import Style

from livepipe.buffer import CaptureBuffer, Notifier
from livepipe.cli import save_script
from livepipe.config import Settings
from livepipe.controller import PreviewController
from livepipe.executor import Executor
from livepipe.render import render_lines, status_line

logger = logging.getLogger(__name__)

# Rows taken by the command line and the status line.
HEADER_ROWS = 2
# Upper bound on how long the wake-up thread sleeps before re-checking shutdown.
WAKEUP_POLL_INTERVAL = 0.5

STYLE = Style.from_dict(
    {
        "command": "bg:ansiblue fg:ansiwhite",
        "prompt": "bold",
        "status": "reverse",
    }
)


class PreviewApp:
    """Main preview application.

    Every render first syncs the controller with the command text, then draws
    the active buffer. Collector threads post to the notifier; a watcher
    thread turns those posts into ``Application.invalidate()`` calls.
    """

    def __init__(
        self,
        settings: Settings,
        input_buffer: CaptureBuffer,
        notifier: Notifier,
        input: Input | None = None,
        output: Output | None = None,
    ) -> None:
        self._settings = settings
        self._notifier = notifier
        self._controller = PreviewController(
            input_buffer,
            Executor(shell=settings.shell, capacity=settings.buffer_size, notifier=notifier),
        )
        self._editor = Buffer(name="command", multiline=False)
        self._active = input_buffer
        self._scroll = 0
        self._saved_script: Path | None = None
        self._notice: str | None = None
        self._stopping = threading.Event()
        self._app = self._build_application(input, output)

    @property
    def application(self) -> Application[int]:
        return self._app

    @property
    def controller(self) -> PreviewController:
        return self._controller

    @property
    def editor(self) -> Buffer:
        return self._editor

    @property
    def scroll(self) -> int:
        return self._scroll

    @property
    def saved_script(self) -> Path | None:
        """Script written by the save-and-quit key, if any."""
        return self._saved_script

    def _build_application(self, input: Input | None, output: Output | None) -> Application[int]:
        """Build the prompt_toolkit application."""
        kb = KeyBindings()

        @kb.add("escape", eager=True)
        @kb.add("c-c")
        def _quit(event: KeyPressEvent) -> None:
            event.app.exit(result=0)

        @kb.add("c-x", eager=True)
        def _save(event: KeyPressEvent) -> None:
            self.save_and_quit()

        @kb.add("pageup")
        def _page_up(event: KeyPressEvent) -> None:
            self.scroll_by(-self.page_size())

        @kb.add("pagedown")
        def _page_down(event: KeyPressEvent) -> None:
            self.scroll_by(self.page_size())

        command_window = Window(
            BufferControl(
                buffer=self._editor,
                input_processors=[BeforeInput(self._settings.prompt, style="class:prompt")],
            ),
            height=1,
            style="class:command",
        )
        status_window = Window(
            FormattedTextControl(self._status_text),
            height=1,
            style="class:status",
        )
        preview_window = Window(FormattedTextControl(self._preview_text), wrap_lines=False)

        return Application(
            layout=Layout(
                HSplit([command_window, status_window, preview_window]),
                focused_element=command_window,
            ),
            key_bindings=kb,
            style=STYLE,
            full_screen=True,
            before_render=self._before_render,
            input=input,
            output=output,
        )

    def page_size(self) -> int:
        return max(1, self._app.output.get_size().rows - HEADER_ROWS)

    def scroll_by(self, delta: int) -> None:
        """Move the preview by ``delta`` lines, staying within the content."""
        limit = max(0, self._active.line_count - self.page_size() + 1)
        self._scroll = min(max(0, self._scroll + delta), limit)

    def save_and_quit(self) -> None:
        """Write the command line to an executable script and leave the UI.

        If the script cannot be written the UI stays up and the status line
        shows why until the command changes.
        """
        command = self._editor.text
        if not command.strip():
            return
        try:
            self._saved_script = save_script(
                command, Path.cwd(), prefix=self._settings.script_prefix
            )
        except OSError as e:
            logger.warning("could not save %r: %s", command, e)
            self._notice = f"cannot save script: {e}"
            return
        self._app.exit(result=0)

    def _before_render(self, app: Application[int]) -> None:
        error = self._controller.input_buffer.error
        if error is not None:
            if not app.is_done:
                app.exit(exception=error)
            return

        buffer = self._controller.sync(self._editor.text)
        if buffer is not self._active:
            self._active = buffer
            self._scroll = 0
            self._notice = None

    def _status_text(self) -> str:
        if self._notice is not None:
            return self._notice
        return status_line(self._active, self._controller.invocation)

    def _preview_text(self) -> str:
        size = self._app.output.get_size()
        rows = render_lines(
            self._active.snapshot(),
            width=size.columns,
            height=max(0, size.rows - HEADER_ROWS),
            skip=self._scroll,
        )
        return "\n".join(rows)

    def _watch(self) -> None:
        """Turn buffer notifications into redraws until the app stops."""
        while not self._stopping.is_set():
            if self._notifier.wait(timeout=WAKEUP_POLL_INTERVAL):
                self._app.invalidate()

    def run(self) -> int:
        """Run the preview until a quit key. Returns the exit status."""
        watcher = threading.Thread(target=self._watch, name="livepipe-wakeup", daemon=True)
        watcher.start()
        try:
            result = self._app.run()
        finally:
            self._stopping.set()
            self._controller.shutdown()
        return result if result is not None else 0
