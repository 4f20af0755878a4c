"""Prints a reply as it streams in and assembles the full text."""

from __future__ import annotations

from typing import Iterable, List

from rich.console import Console

from ..errors import TransportError
from ..utils import Ansi, Spinner
from .models import Model
from .transport import DONE_MARKER, StreamChunk


class StreamRenderer:
    """Writes reply text to *console* and status lines to *status_console*."""

    def __init__(self, console: Console, status_console: Console) -> None:
        self.console = console
        self.status_console = status_console

    def announce(self, model: Model) -> None:
        self.status_console.print(
            f'Using model: {model.key} ("{model.backend_id}")',
            style=Ansi.STATUS,
            markup=False,
        )

    def render(self, chunks: Iterable[StreamChunk]) -> str:
        """Print each fragment as it arrives and return the whole reply.

        Raises :class:`TransportError` if the stream runs out before the
        end-of-reply sentinel; whatever was printed stays printed, but no
        text is returned for it. Ctrl-C lands in the blocking read of the
        next chunk and the resulting ``KeyboardInterrupt`` propagates.
        """
        parts: List[str] = []
        spinner = Spinner(self.console)
        spinner.start()
        try:
            for chunk in chunks:
                if chunk.done:
                    break
                spinner.stop()
                self.console.out(chunk.text, end="", highlight=False)
                self.console.file.flush()
                parts.append(chunk.text)
            else:
                raise TransportError("reply stream ended before the end-of-reply marker")
        finally:
            spinner.stop()
            # Terminate the reply line, complete or not.
            if parts:
                self.console.out("")

        self.status_console.print(DONE_MARKER, style=Ansi.STATUS, markup=False)
        return "".join(parts)
