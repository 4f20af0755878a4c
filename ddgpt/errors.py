"""Error taxonomy shared by every ddgpt component.

Each error carries the process exit code the CLI should use when it
terminates an invocation. Nothing in ddgpt retries: an error is reported
once and ends the current invocation (or the current REPL turn).

A Ctrl-C is not wrapped in any of these: ``KeyboardInterrupt`` travels up
to the CLI, which exits with :data:`INTERRUPTED_EXIT_CODE`.
"""

INTERRUPTED_EXIT_CODE = 130


class DdgptError(Exception):
    """Base class for all errors surfaced to the user."""

    exit_code = 1


class UsageError(DdgptError):
    """Bad command-line input: unknown model, missing query, bad session name."""

    exit_code = 2


class ConfigError(DdgptError):
    """The configuration file could not be read or holds invalid values."""


class NegotiationError(DdgptError):
    """The backend did not hand out a conversation token."""


class TransportError(DdgptError):
    """Network failure, HTTP error status, or a stream that ended early."""


class ProtocolError(DdgptError):
    """The backend sent a frame that could not be understood."""


class StorageError(DdgptError):
    """A session file could not be read, decoded or written."""

    def __init__(self, message, path=None):
        self.path = path
        super().__init__(message)
