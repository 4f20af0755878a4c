import io
import json
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

import httpx
from rich.console import Console

from ddgpt.config import Settings
from ddgpt.core import (
    ChatTransport,
    SessionController,
    SessionStore,
    StreamRenderer,
    TokenNegotiator,
)


def sse_body(*fragments, done=True):
    """Encode reply fragments the way the chat endpoint streams them."""
    frames = []
    for text in fragments:
        event = {
            "role": "assistant",
            "message": text,
            "created": 1727000000,
            "id": "chatcmpl-test",
            "action": "success",
            "model": "gpt-4o-mini",
        }
        frames.append("data: " + json.dumps(event))
    if done:
        frames.append("data: [DONE]")
    return ("\n\n".join(frames) + "\n\n").encode()


def broken_body(*fragments):
    """A body that delivers *fragments* and then loses the connection."""

    def chunks():
        yield sse_body(*fragments, done=False)
        raise httpx.ReadError("connection reset by peer")

    return chunks()


def make_console(buffer):
    return Console(
        file=buffer,
        width=200,
        force_terminal=False,
        color_system=None,
        highlight=False,
    )


class FakeBackend:
    """Stands in for the status and chat endpoints via httpx.MockTransport."""

    def __init__(self):
        self.requests = []
        self.replies = []
        self.issued = 0
        self.chats = 0
        self.status_code = 200
        self.issue_token = True

    @property
    def status_requests(self):
        return [r for r in self.requests if r.url.path.endswith("/status")]

    @property
    def chat_requests(self):
        return [r for r in self.requests if r.url.path.endswith("/chat")]

    @property
    def chat_payloads(self):
        return [json.loads(r.content) for r in self.chat_requests]

    def __call__(self, request):
        request.read()
        self.requests.append(request)

        if request.url.path.endswith("/status"):
            headers = {}
            if self.issue_token and request.headers.get("x-vqd-accept") == "1":
                self.issued += 1
                headers["x-vqd-4"] = f"token-{self.issued}"
            return httpx.Response(self.status_code, headers=headers, json={"status": "0"})

        if request.url.path.endswith("/chat"):
            self.chats += 1
            body = self.replies.pop(0) if self.replies else sse_body("ok")
            return httpx.Response(
                200,
                headers={"x-vqd-4": f"next-{self.chats}", "content-type": "text/event-stream"},
                content=body,
            )

        return httpx.Response(404)


class BaseDdgptTest(unittest.TestCase):
    def setUp(self):
        # Sessions live in a throwaway directory
        self.tmp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp_dir.cleanup)
        self.settings = Settings(data_dir=Path(self.tmp_dir.name), base_url="https://chat.test")

        self.backend = FakeBackend()
        self.client = httpx.Client(transport=httpx.MockTransport(self.backend))
        self.addCleanup(self.client.close)

        self.now = 1_000_000.0
        self.out = io.StringIO()
        self.err = io.StringIO()
        self.console = make_console(self.out)
        self.err_console = make_console(self.err)

        self.store = SessionStore(self.settings.sessions_dir)
        self.controller = self.make_controller()

    def make_controller(self):
        """A fresh controller, as a new process would build one."""
        return SessionController(
            settings=self.settings,
            store=self.store,
            negotiator=TokenNegotiator(self.client, self.settings, clock=lambda: self.now),
            transport=ChatTransport(self.client, self.settings),
            renderer=StreamRenderer(self.console, self.err_console),
        )

    def patch_cli_consoles(self):
        """Route the CLI's module-level consoles into the test buffers."""
        for name, target in (("console", self.console), ("err_console", self.err_console)):
            patcher = patch(f"ddgpt.cli.{name}", target)
            patcher.start()
            self.addCleanup(patcher.stop)
        patcher = patch("ddgpt.cli.configure_logging")
        patcher.start()
        self.addCleanup(patcher.stop)

    def session_files(self):
        if not self.settings.sessions_dir.exists():
            return []
        return sorted(p.name for p in self.settings.sessions_dir.iterdir())
