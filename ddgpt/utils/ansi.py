"""Colour and styling helpers built on :mod:`rich`."""

import os
from rich.console import Console

# Replies go to stdout so they can be piped; everything else goes to stderr.
console = Console(highlight=False)
err_console = Console(stderr=True, highlight=False)


class Ansi:
    """Rich style names, keyed by what they mark on screen."""

    STATUS = "dim"
    HINT = "yellow"
    ACTIVE = "green"
    LISTED = "cyan"
    FAILURE = "red"

    @staticmethod
    def style(text: str, *codes: str) -> str:
        """Wrap *text* in rich markup, or leave it bare when ``NO_COLOR`` is set."""
        if os.getenv("NO_COLOR") is not None:
            return text
        return f"[{' '.join(codes)}]{text}[/]"


USER_LABEL = Ansi.style("you", "bold", Ansi.LISTED)
ERROR_LABEL = Ansi.style("error", "bold", Ansi.FAILURE)
