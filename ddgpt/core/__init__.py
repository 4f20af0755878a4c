from .models import DEFAULT_MODEL, SUPPORTED_MODELS, Invocation, Model
from .session import Session, SessionStore
from .negotiator import TokenNegotiator
from .transport import ChatStream, ChatTransport, StreamChunk, SENTINEL
from .renderer import StreamRenderer
from .controller import ControllerState, SessionController

__all__ = [
    "DEFAULT_MODEL",
    "SUPPORTED_MODELS",
    "Invocation",
    "Model",
    "Session",
    "SessionStore",
    "TokenNegotiator",
    "ChatStream",
    "ChatTransport",
    "StreamChunk",
    "SENTINEL",
    "StreamRenderer",
    "ControllerState",
    "SessionController",
]
