"""Spinner shown while the first reply fragment is on its way."""
from __future__ import annotations

from rich.console import Console
from yaspin import yaspin  # type: ignore


class Spinner:
    """Display a small spinner on *console* until :meth:`stop` is called.

    Nothing is drawn when the console is not a terminal, so piped output
    and captured test output stay clean.
    """

    def __init__(self, console: Console, text: str = ""):
        self._console = console
        self._text = text
        self._started = False
        self._spinner = yaspin(text=text, side="right")

    @property
    def enabled(self) -> bool:
        return self._console.is_terminal

    def start(self) -> None:
        if self._started or not self.enabled:
            return
        self._spinner.start()
        self._started = True

    def stop(self) -> None:
        if not self._started:
            return
        self._spinner.stop()
        self._console.file.flush()
        self._started = False

    def __enter__(self) -> "Spinner":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()
