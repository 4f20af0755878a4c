"""Conversation token handling.

The backend will not accept a chat request without an ``x-vqd-4`` token.
A fresh one is handed out by the status endpoint when the request asks for
it with ``x-vqd-accept: 1``; after that, every chat response carries the
token to use for the next turn.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Callable

import httpx

from ..errors import NegotiationError
from .models import Model
from .session import Session

if TYPE_CHECKING:  # pragma: no cover
    from ..config import Settings

logger = logging.getLogger(__name__)

TOKEN_HEADER = "x-vqd-4"
TOKEN_REQUEST_HEADER = "x-vqd-accept"


class TokenNegotiator:
    """Makes sure a session holds a usable token before a chat request."""

    def __init__(
        self,
        client: httpx.Client,
        settings: "Settings",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.client = client
        self.settings = settings
        self.clock = clock

    def is_expired(self, session: Session) -> bool:
        ttl = self.settings.token_ttl
        if not ttl or session.token_issued_at is None:
            return False
        return self.clock() - session.token_issued_at > ttl

    def needs_token(self, session: Session) -> bool:
        return not session.token or self.is_expired(session)

    def ensure(self, session: Session, model: Model) -> bool:
        """Give *session* a valid token for *model*.

        Switching the session to another model drops its token. Returns True
        when a new token had to be negotiated. The session is only changed in
        memory; persisting it is up to the caller.
        """
        if session.model is not model:
            logger.info("model changed from %s to %s, dropping token", session.model.key, model.key)
            session.switch_model(model)

        if not self.needs_token(session):
            return False

        session.set_token(self.negotiate(), self.clock())
        return True

    def negotiate(self) -> str:
        """Ask the status endpoint for a new conversation token."""
        logger.debug("requesting conversation token from %s", self.settings.status_url)
        try:
            response = self.client.get(
                self.settings.status_url,
                headers={TOKEN_REQUEST_HEADER: "1", "Cache-Control": "no-store"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise NegotiationError(
                f"token request rejected with HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise NegotiationError(f"token request failed: {exc}") from exc

        token = response.headers.get(TOKEN_HEADER)
        if not token:
            raise NegotiationError(f"backend response carried no {TOKEN_HEADER} token")
        logger.debug("received new conversation token")
        return token
