"""Supported backend models and the per-invocation request record."""

from __future__ import annotations

import difflib
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from ..errors import UsageError


class Model(str, Enum):
    """Chat models offered by the backend, keyed by their short CLI name."""

    GPT4O_MINI = "gpt4o-mini"
    CLAUDE3 = "claude3"
    LLAMA3 = "llama3"
    MIXTRAL = "mistral"

    @property
    def key(self) -> str:
        return self.value

    @property
    def backend_id(self) -> str:
        return BACKEND_IDS[self]

    @property
    def label(self) -> str:
        return DISPLAY_LABELS[self]

    @classmethod
    def from_name(cls, name: str) -> "Model":
        """Resolve a key or alias (case-insensitive) to a model.

        Raises :class:`UsageError` naming the closest key when nothing matches.
        """
        wanted = name.strip().lower()
        model = _NAMES.get(wanted)
        if model is not None:
            return model

        msg = f"unknown model '{name}' (choose from: {', '.join(SUPPORTED_MODELS)})"
        close = difflib.get_close_matches(wanted, list(_NAMES), n=1)
        if close:
            msg += f"; did you mean '{_NAMES[close[0]].key}'?"
        raise UsageError(msg)


# Add an entry to each table when the backend gains a model.
BACKEND_IDS: Dict[Model, str] = {
    Model.GPT4O_MINI: "gpt-4o-mini",
    Model.CLAUDE3: "claude-3-haiku-20240307",
    Model.LLAMA3: "meta-llama/Meta-Llama-3.1-70B-Instruct-Turbo",
    Model.MIXTRAL: "mistralai/Mixtral-8x7B-Instruct-v0.1",
}

DISPLAY_LABELS: Dict[Model, str] = {
    Model.GPT4O_MINI: "GPT-4o mini",
    Model.CLAUDE3: "Claude 3 Haiku",
    Model.LLAMA3: "Llama 3.1 70B",
    Model.MIXTRAL: "Mixtral 8x7B",
}

ALIASES: Dict[Model, Tuple[str, ...]] = {
    Model.GPT4O_MINI: ("gpt4o", "gpt4"),
    Model.CLAUDE3: ("claude",),
    Model.LLAMA3: ("llama",),
    Model.MIXTRAL: ("mixtral",),
}

SUPPORTED_MODELS: List[str] = [m.key for m in Model]

DEFAULT_MODEL = Model.GPT4O_MINI

_NAMES: Dict[str, Model] = {m.key: m for m in Model}
for _model, _aliases in ALIASES.items():
    _NAMES.update(dict.fromkeys(_aliases, _model))


@dataclass
class Invocation:
    """Everything a single run (or a single REPL turn) asks for."""

    query: str = ""
    model: Optional[Model] = None
    session_name: Optional[str] = None
    continue_flag: bool = False
    interactive_flag: bool = False
