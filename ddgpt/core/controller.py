"""Drives one conversation turn from stored state to streamed reply.

The controller walks a small state machine for every turn::

    START -> LOADED -> TOKEN_READY -> STREAMING -> COMPLETED
                 \\___________\\____________\\______-> FAILED

Any failure, including a keyboard interrupt while streaming, leaves the
session as it was before the turn started and is re-raised to the caller.
Writing the session back to disk happens only in :meth:`finish`, and only
when the user asked to continue the session.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Optional

from ..errors import StorageError
from .models import Invocation, Model
from .negotiator import TokenNegotiator
from .renderer import StreamRenderer
from .session import DEFAULT_SESSION_NAME, Session, SessionStore
from .transport import ChatTransport

if TYPE_CHECKING:  # pragma: no cover
    from ..config import Settings

logger = logging.getLogger(__name__)


class ControllerState(Enum):
    START = "start"
    LOADED = "loaded"
    TOKEN_READY = "token_ready"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


class SessionController:
    """Orchestrates store, negotiator, transport and renderer."""

    def __init__(
        self,
        settings: "Settings",
        store: SessionStore,
        negotiator: TokenNegotiator,
        transport: ChatTransport,
        renderer: StreamRenderer,
    ) -> None:
        self.settings = settings
        self.store = store
        self.negotiator = negotiator
        self.transport = transport
        self.renderer = renderer
        self.state = ControllerState.START

    def _transition(self, state: ControllerState) -> None:
        logger.debug("state %s -> %s", self.state.value, state.value)
        self.state = state

    def resolve_session_name(self, invocation: Invocation) -> Optional[str]:
        if invocation.session_name:
            return invocation.session_name
        if invocation.continue_flag:
            # Continuing without a name picks up the last conversation.
            return self.store.latest_name() or DEFAULT_SESSION_NAME
        return None

    def open_session(self, invocation: Invocation) -> Session:
        """Load the session the invocation refers to, or start an empty one."""
        self.state = ControllerState.START
        try:
            name = self.resolve_session_name(invocation)
            session = self.store.load(name) if name else None
        except Exception:
            self._transition(ControllerState.FAILED)
            raise

        if session is None:
            session = Session(name=name, model=invocation.model or self.settings.default_model)
            logger.debug("starting new session %r", session)
        self._transition(ControllerState.LOADED)
        return session

    def requested_model(self, invocation: Invocation, session: Session) -> Model:
        return invocation.model or session.model

    def ask(self, session: Session, query: str, model: Optional[Model] = None) -> str:
        """Run one turn: token, request, streamed reply, history update.

        On success the query and reply are appended to ``session.history``
        and the token the backend rotated in is adopted; an empty reply
        changes neither. On failure the session is restored to its state
        before the call.
        """
        model = model or session.model
        saved_model = session.model
        saved_token = (session.token, session.token_issued_at)
        self._transition(ControllerState.LOADED)

        try:
            self.negotiator.ensure(session, model)
            self._transition(ControllerState.TOKEN_READY)

            with self.transport.send(session.token, session.model, session.history, query) as stream:
                self._transition(ControllerState.STREAMING)
                reply = self.renderer.render(stream)
        except BaseException:
            self._transition(ControllerState.FAILED)
            session.model = saved_model
            session.token, session.token_issued_at = saved_token
            raise

        if not reply:
            logger.warning("backend sent an empty reply; the turn is not recorded")
        else:
            session.record_exchange(query, reply)
            if stream.next_token:
                session.set_token(stream.next_token, self.negotiator.clock())
        self._transition(ControllerState.COMPLETED)
        return reply

    def finish(self, session: Session, invocation: Invocation) -> bool:
        """Persist the session if the invocation asked to continue it."""
        if not (invocation.continue_flag and session.name):
            logger.debug("one-shot invocation, not saving %r", session)
            return False
        try:
            self.store.save(session)
        except StorageError as exc:
            self._transition(ControllerState.FAILED)
            raise StorageError(
                f"the reply was received but session '{session.name}' was not saved: {exc}",
                exc.path,
            ) from exc
        return True

    def run(self, invocation: Invocation) -> str:
        """One-shot flow: load, announce, ask once, persist if continuing."""
        session = self.open_session(invocation)
        model = self.requested_model(invocation, session)
        self.renderer.announce(model)
        reply = self.ask(session, invocation.query, model)
        self.finish(session, invocation)
        return reply
