"""HTTP exchange with the chat endpoint and event-stream parsing."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional

import httpx

from ..errors import ProtocolError, TransportError
from .models import Model
from .negotiator import TOKEN_HEADER

if TYPE_CHECKING:  # pragma: no cover
    from ..config import Settings

logger = logging.getLogger(__name__)

DONE_MARKER = "[DONE]"
# Fields a server-sent event may carry that hold no reply text.
_IGNORED_FIELDS = ("event", "id", "retry")


@dataclass(frozen=True)
class StreamChunk:
    """One fragment of the reply, or the end-of-reply sentinel."""

    text: str = ""
    done: bool = False


SENTINEL = StreamChunk(done=True)


def parse_event_line(line: str) -> Optional[StreamChunk]:
    """Turn one line of the event stream into a chunk.

    Returns None for lines that carry nothing to show (blank separators,
    comments, metadata-only events).
    """
    line = line.rstrip("\r")
    if not line or line.startswith(":"):
        return None

    field_name, _, value = line.partition(":")
    if field_name in _IGNORED_FIELDS:
        return None
    if field_name != "data":
        raise ProtocolError(f"unexpected line in event stream: {line[:80]!r}")

    payload = value[1:] if value.startswith(" ") else value
    if payload.strip() == DONE_MARKER:
        return SENTINEL

    try:
        event = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise ProtocolError(f"event is not valid JSON: {payload[:80]!r}") from exc
    if not isinstance(event, dict):
        raise ProtocolError(f"event is not a JSON object: {payload[:80]!r}")

    if event.get("action") == "error":
        reason = event.get("type") or event.get("message") or "unknown error"
        status = event.get("status")
        raise ProtocolError(f"backend reported {reason}" + (f" (status {status})" if status else ""))

    message = event.get("message")
    if message is None or message == "":
        return None
    if not isinstance(message, str):
        raise ProtocolError(f"event message is not text: {message!r}")
    return StreamChunk(text=message)


class ChatStream:
    """Lazy, single-use sequence of :class:`StreamChunk` from one response.

    Use it as a context manager so the HTTP response is closed even when the
    consumer stops early or is interrupted.
    """

    def __init__(self, response: httpx.Response) -> None:
        self._response = response
        # The token for the next turn arrives with the headers.
        self.next_token: Optional[str] = response.headers.get(TOKEN_HEADER)
        self._chunks = self._iter_chunks()

    def __iter__(self) -> "ChatStream":
        return self

    def __next__(self) -> StreamChunk:
        return next(self._chunks)

    def __enter__(self) -> "ChatStream":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._chunks.close()
        self._response.close()

    def _iter_chunks(self) -> Iterator[StreamChunk]:
        try:
            for line in self._response.iter_lines():
                chunk = parse_event_line(line)
                if chunk is None:
                    continue
                yield chunk
                if chunk.done:
                    return
        except httpx.HTTPError as exc:
            raise TransportError(f"connection lost while streaming: {exc}") from exc


class ChatTransport:
    """Sends one chat request and hands back its reply stream."""

    def __init__(self, client: httpx.Client, settings: "Settings") -> None:
        self.client = client
        self.settings = settings

    @staticmethod
    def build_payload(model: Model, history: List[Dict[str, str]], query: str) -> Dict[str, Any]:
        # The backend keeps no state between requests, so the whole
        # conversation goes out every time.
        messages = [{"role": m["role"], "content": m["content"]} for m in history]
        messages.append({"role": "user", "content": query})
        return {"model": model.backend_id, "messages": messages}

    def send(
        self,
        token: str,
        model: Model,
        history: List[Dict[str, str]],
        query: str,
    ) -> ChatStream:
        payload = self.build_payload(model, history, query)
        request = self.client.build_request(
            "POST",
            self.settings.chat_url,
            json=payload,
            headers={
                "Accept": "text/event-stream",
                TOKEN_HEADER: token,
            },
        )
        logger.debug(
            "POST %s model=%s messages=%d", request.url, model.backend_id, len(payload["messages"])
        )

        try:
            response = self.client.send(request, stream=True)
        except httpx.HTTPError as exc:
            raise TransportError(f"chat request failed: {exc}") from exc

        if response.is_error:
            try:
                detail = response.read().decode("utf-8", errors="replace").strip()[:200]
            except httpx.HTTPError:
                detail = ""
            finally:
                response.close()
            msg = f"chat request rejected with HTTP {response.status_code}"
            raise TransportError(f"{msg}: {detail}" if detail else msg)

        return ChatStream(response)
