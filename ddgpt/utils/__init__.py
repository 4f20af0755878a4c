from .ansi import (
    Ansi,
    USER_LABEL,
    ERROR_LABEL,
    console,
    err_console,
)
from .spinner import Spinner

__all__ = [
    "Ansi",
    "USER_LABEL",
    "ERROR_LABEL",
    "console",
    "err_console",
    "Spinner",
]
