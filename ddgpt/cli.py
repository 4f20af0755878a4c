"""Command-line entry point and interactive REPL for ddgpt."""
from __future__ import annotations

import argparse
import readline  # noqa: F401 – side-effect: history & line editing
import sys
from typing import List, Optional, Sequence, Tuple

import httpx
import questionary  # type: ignore
from rich.markup import escape

from .config import Settings, configure_logging, load_settings
from .core import (
    SUPPORTED_MODELS,
    ChatTransport,
    Invocation,
    Model,
    Session,
    SessionController,
    SessionStore,
    StreamRenderer,
    TokenNegotiator,
)
from .errors import INTERRUPTED_EXIT_CODE, DdgptError, UsageError
from .utils import (
    Ansi,
    ERROR_LABEL,
    USER_LABEL,
    console,
    err_console,
)

REPL_HELP = """\
Type a message and press Enter. Commands start with '/':

    /help              show this help
    /exit              leave (the session is saved when --continue was given)
    /model [MODEL]     switch model; without a name, pick from a list
    /models            list supported models
    /sessions          list saved sessions
    /clear             forget the conversation so far
"""


class ChatREPL:
    """Read-eval-print loop running many turns on one in-memory session."""

    def __init__(self, controller: SessionController, session: Session, model: Model):
        self.controller = controller
        self.session = session
        self.model = model

    # ---------------- Command handling ---------------

    def _pick_model(self) -> Optional[Model]:
        try:
            choice = questionary.select(
                "Select a model:",
                choices=SUPPORTED_MODELS,
                default=self.model.key,
            ).ask()
        except (KeyboardInterrupt, EOFError):
            err_console.print()
            return None
        return Model(choice) if choice else None

    def _set_model(self, model: Model) -> None:
        self.model = model
        err_console.print(f'[model switched to {model.key} ("{model.backend_id}")]', markup=False)

    def handle_command(self, line: str) -> bool:
        """Handle slash commands. Return False to exit REPL."""

        parts = line.strip().split()
        if not parts:
            return True

        cmd = parts[0].lower()

        if cmd == "/help":
            err_console.print(REPL_HELP, markup=False)

        elif cmd == "/exit":
            return False

        elif cmd == "/model":
            if len(parts) == 1:
                selection = self._pick_model()
                if selection is not None:
                    self._set_model(selection)
            elif len(parts) != 2:
                err_console.print("Usage: /model <model_name>")
            else:
                try:
                    self._set_model(Model.from_name(parts[1]))
                except UsageError as exc:
                    err_console.print(Ansi.style(escape(str(exc)), Ansi.FAILURE))

        elif cmd == "/models":
            err_console.print("Supported models:")
            for m in Model:
                marker = " <- current" if m is self.model else ""
                err_console.print(f"  {m.key:<12} {m.label}{marker}", markup=False)

        elif cmd == "/sessions":
            names = self.controller.store.names()
            if not names:
                err_console.print("(no saved sessions)")
            for name in names:
                colour = Ansi.ACTIVE if name == self.session.name else Ansi.LISTED
                err_console.print(f"  {Ansi.style(escape(name), colour)}")

        elif cmd == "/clear":
            self.session.clear()
            err_console.print("[conversation cleared]", markup=False)

        else:
            err_console.print(Ansi.style(f"Unknown command: {escape(cmd)} (see /help)", Ansi.FAILURE))

        return True

    # ---------------- Interaction loop ---------------

    def send(self, query: str) -> bool:
        """Run one turn. A failed turn is reported and the loop carries on."""
        try:
            self.controller.ask(self.session, query, self.model)
        except KeyboardInterrupt:
            err_console.print("\n[interrupted]", markup=False)
            return False
        except DdgptError as exc:
            report_error(exc)
            return False
        return True

    def repl(self, first_query: str = "") -> None:
        """Run the interactive read–eval–print-loop."""
        err_console.print(
            Ansi.style("Type your message and press Enter. Commands start with '/'.", Ansi.HINT),
            Ansi.style("Type /help for help, /exit or Ctrl-D to leave.", Ansi.HINT),
            sep="\n",
        )

        if first_query:
            self.send(first_query)

        while True:
            try:
                line = err_console.input(f"{USER_LABEL}> ").strip()
            except (EOFError, KeyboardInterrupt):
                err_console.print()
                break

            if not line:
                continue

            if line.startswith("/"):
                if not self.handle_command(line):
                    break
                continue

            self.send(line)


# ---------------------------------------------------------------------------
# Entrypoint helpers
# ---------------------------------------------------------------------------


def _model_arg(value: str) -> Model:
    try:
        return Model.from_name(value)
    except UsageError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ddgpt",
        description="A CLI interface to DuckDuckGo's chatbots.",
    )
    parser.add_argument(
        "-m",
        "--model",
        type=_model_arg,
        help=f"model to use ({', '.join(SUPPORTED_MODELS)}); aliases like 'claude' work too",
    )
    parser.add_argument("-s", "--session", dest="session_name", help="session name to load context from")
    parser.add_argument(
        "-c",
        "--continue",
        dest="continue_session",
        action="store_true",
        help="save the conversation after this query (latest session if -s is not given)",
    )
    parser.add_argument(
        "-i",
        "--interactive",
        dest="interactive_session",
        action="store_true",
        help="keep asking for queries on standard input until EOF or /exit",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="log debug output to stderr")
    # Everything from the first query word on is query text, dashes included.
    parser.add_argument("query", nargs=argparse.REMAINDER, help="the question to ask")
    return parser


def parse_invocation(argv: Optional[Sequence[str]] = None) -> Tuple[Invocation, argparse.Namespace]:
    parser = build_parser()
    args = parser.parse_args(argv)
    query = " ".join(args.query).strip()
    if not query and not args.interactive_session:
        parser.error("a query is required unless --interactive is given")

    invocation = Invocation(
        query=query,
        model=args.model,
        session_name=args.session_name,
        continue_flag=args.continue_session,
        interactive_flag=args.interactive_session,
    )
    return invocation, args


def build_controller(settings: Settings, client: httpx.Client) -> SessionController:
    return SessionController(
        settings=settings,
        store=SessionStore(settings.sessions_dir),
        negotiator=TokenNegotiator(client, settings),
        transport=ChatTransport(client, settings),
        renderer=StreamRenderer(console, err_console),
    )


def report_error(exc: BaseException) -> None:
    err_console.print(f"{ERROR_LABEL}: {escape(str(exc))}")


def run_interactive(controller: SessionController, invocation: Invocation) -> None:
    session = controller.open_session(invocation)
    model = controller.requested_model(invocation, session)
    controller.renderer.announce(model)
    ChatREPL(controller, session, model).repl(invocation.query)
    controller.finish(session, invocation)


def main(
    argv: Optional[List[str]] = None,
    settings: Optional[Settings] = None,
    http_transport: Optional[httpx.BaseTransport] = None,
) -> int:
    invocation, args = parse_invocation(argv)
    configure_logging(verbose=args.verbose)

    try:
        settings = settings or load_settings()
        with httpx.Client(
            headers={"User-Agent": settings.user_agent},
            timeout=settings.timeout,
            transport=http_transport,
        ) as client:
            controller = build_controller(settings, client)
            if invocation.interactive_flag:
                run_interactive(controller, invocation)
            else:
                controller.run(invocation)
    except KeyboardInterrupt:
        err_console.print("\n[interrupted]", markup=False)
        return INTERRUPTED_EXIT_CODE
    except DdgptError as exc:
        report_error(exc)
        return exc.exit_code
    return 0


def run_cli() -> None:  # pragma: no cover
    sys.exit(main())


if __name__ == "__main__":  # pragma: no cover
    run_cli()
