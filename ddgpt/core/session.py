"""Session state and its on-disk store.

A session is one conversation lineage: the model it talks to, the
backend's conversation token, and the message history that gets replayed
on every request. Sessions are stored one JSON file per name.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..errors import StorageError, UsageError
from .models import Model

logger = logging.getLogger(__name__)

DEFAULT_SESSION_NAME = "default"


def validate_session_name(name: str) -> str:
    """Return *name* if it can be used as a file name, else raise UsageError."""
    if not name or not name.strip():
        raise UsageError("session name must not be empty")
    if any(ch in name for ch in ("/", "\\", ".")):
        raise UsageError(f"invalid session name '{name}': '/', '\\' and '.' are not allowed")
    return name


class Session:
    """In-memory view of one conversation."""

    def __init__(
        self,
        name: Optional[str],
        model: Model,
        token: Optional[str] = None,
        token_issued_at: Optional[float] = None,
        history: Optional[List[Dict[str, str]]] = None,
    ) -> None:
        self.name = name
        self.model = model
        self.token = token
        self.token_issued_at = token_issued_at
        self.history: List[Dict[str, str]] = history or []

    def __repr__(self) -> str:
        return (
            f"Session(name={self.name!r}, model={self.model.key!r}, "
            f"token={'set' if self.token else None}, turns={len(self.history) // 2})"
        )

    def switch_model(self, model: Model) -> None:
        """Change model; the token belongs to the old model so it is dropped."""
        if model is self.model:
            return
        self.model = model
        self.clear_token()

    def set_token(self, token: str, issued_at: float) -> None:
        self.token = token
        self.token_issued_at = issued_at

    def clear_token(self) -> None:
        self.token = None
        self.token_issued_at = None

    def clear(self) -> None:
        """Forget the whole conversation, keeping only the model."""
        self.history.clear()
        self.clear_token()

    def record_exchange(self, query: str, reply: str) -> None:
        self.history.append({"role": "user", "content": query})
        self.history.append({"role": "assistant", "content": reply})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": self.model.key,
            "token": self.token,
            "token_issued_at": self.token_issued_at,
            "history": self.history,
        }

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "Session":
        model = Model(data["model"])
        history = data.get("history") or []
        for entry in history:
            if entry.get("role") not in ("user", "assistant") or not isinstance(
                entry.get("content"), str
            ):
                raise ValueError(f"malformed history entry: {entry!r}")
        return cls(
            name=name,
            model=model,
            token=data.get("token"),
            token_issued_at=data.get("token_issued_at"),
            history=[{"role": e["role"], "content": e["content"]} for e in history],
        )


class SessionStore:
    """Reads and writes sessions as ``<directory>/<name>.json``."""

    FILENAME_SUFFIX = ".json"

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    def path_for(self, name: str) -> Path:
        return self.directory / f"{validate_session_name(name)}{self.FILENAME_SUFFIX}"

    def load(self, name: str) -> Optional[Session]:
        """Return the stored session, or None if there is none by that name."""
        path = self.path_for(name)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug("no stored session at %s", path)
            return None
        except OSError as exc:
            raise StorageError(f"cannot read session '{name}': {exc}", path) from exc

        try:
            session = Session.from_dict(name, json.loads(raw))
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            raise StorageError(f"session file for '{name}' is corrupt: {exc}", path) from exc

        logger.debug("loaded %r from %s", session, path)
        return session

    def save(self, session: Session) -> Path:
        """Replace the stored copy of *session* with its current state."""
        if not session.name:
            raise StorageError("cannot save a session without a name")
        path = self.path_for(session.name)
        data = session.to_dict()
        data["updated_at"] = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        tmp_path = path.with_suffix(".tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
            tmp_path.replace(path)
        except OSError as exc:
            raise StorageError(f"cannot write session '{session.name}': {exc}", path) from exc

        logger.debug("saved %r to %s", session, path)
        return path

    def _session_files(self) -> List[Path]:
        """Files in the store whose stem is a usable session name."""
        if not self.directory.is_dir():
            return []
        files = []
        for path in self.directory.glob(f"*{self.FILENAME_SUFFIX}"):
            try:
                validate_session_name(path.stem)
            except UsageError:
                logger.debug("ignoring stray file %s", path)
                continue
            files.append(path)
        return files

    def names(self) -> List[str]:
        return sorted(p.stem for p in self._session_files())

    def latest_name(self) -> Optional[str]:
        """Name of the most recently written session, if any."""
        files = self._session_files()
        if not files:
            return None
        return max(files, key=lambda p: p.stat().st_mtime).stem
