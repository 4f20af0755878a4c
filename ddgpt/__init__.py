"""Command-line client for DuckDuckGo's AI chat.

Features
--------
1. Streaming replies: text is printed as the backend produces it.
2. Sessions: `-s NAME -c` keeps a conversation (model, token, history) on disk so the
   next invocation can carry on from where the last one stopped. `-c` alone continues
   the most recently used session.
3. Model choice: `-m gpt4o-mini|claude3|llama3|mistral` (aliases such as `claude` work).
4. Interactive mode: `-i` reads one query per line until EOF or `/exit`.

Run `ddgpt --help` or `python -m ddgpt --help` for the full option list.
"""
# Re-export useful symbols for convenience
from .core import (
    DEFAULT_MODEL,
    SUPPORTED_MODELS,
    Invocation,
    Model,
    Session,
    SessionController,
    SessionStore,
)
from .config import Settings, load_settings
from .cli import ChatREPL, main, run_cli

__all__ = [
    "DEFAULT_MODEL",
    "SUPPORTED_MODELS",
    "Invocation",
    "Model",
    "Session",
    "SessionController",
    "SessionStore",
    "Settings",
    "load_settings",
    "ChatREPL",
    "main",
    "run_cli",
]
