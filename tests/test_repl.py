from unittest.mock import patch

import httpx

from ddgpt.cli import ChatREPL, main
from ddgpt.core import Invocation, Model

from .test_base import BaseDdgptTest, broken_body, sse_body


class TestREPL(BaseDdgptTest):
    def setUp(self):
        super().setUp()
        self.patch_cli_consoles()

    def run_main(self, *argv):
        return main(list(argv), settings=self.settings, http_transport=httpx.MockTransport(self.backend))

    def make_repl(self, model=Model.GPT4O_MINI):
        session = self.controller.open_session(Invocation(session_name="test_session"))
        return ChatREPL(self.controller, session, model)

    @patch("builtins.input")
    def test_repl_basic_interaction(self, mock_input):
        """Each line is one turn on the same in-memory session"""
        mock_input.side_effect = ["Hello", "How are you?", EOFError()]
        self.backend.replies.extend([sse_body("Hi there!"), sse_body("I'm doing well!")])

        self.assertEqual(self.run_main("-i", "-cs", "demo"), 0)

        self.assertEqual(self.out.getvalue(), "Hi there!\nI'm doing well!\n")
        history = self.store.load("demo").history
        self.assertEqual(
            [m["content"] for m in history],
            ["Hello", "Hi there!", "How are you?", "I'm doing well!"],
        )
        self.assertEqual(self.err.getvalue().count("Using model:"), 1)

    @patch("builtins.input")
    def test_repl_without_continue_saves_nothing(self, mock_input):
        mock_input.side_effect = ["Hello", "/exit"]
        self.assertEqual(self.run_main("-i", "-s", "demo"), 0)
        self.assertEqual(len(self.backend.chat_requests), 1)
        self.assertEqual(self.session_files(), [])

    @patch("builtins.input")
    def test_query_argument_is_first_turn(self, mock_input):
        mock_input.side_effect = ["/exit"]
        self.assertEqual(self.run_main("-i", "opening", "question"), 0)
        self.assertEqual(self.backend.chat_payloads[0]["messages"][0]["content"], "opening question")

    @patch("builtins.input")
    def test_failed_turn_is_reported_and_skipped(self, mock_input):
        mock_input.side_effect = ["first", "second", "/exit"]
        self.backend.replies.extend([broken_body("fir"), sse_body("fine")])

        self.assertEqual(self.run_main("-i", "-cs", "demo"), 0)

        self.assertIn("error:", self.err.getvalue())
        history = self.store.load("demo").history
        self.assertEqual([m["content"] for m in history], ["second", "fine"])

    @patch("builtins.input")
    def test_repl_with_model_switch(self, mock_input):
        """Switching model mid-conversation fetches a token for the new model"""
        mock_input.side_effect = ["Hello", "/model claude", "Still there?", "/exit"]

        repl = self.make_repl()
        repl.repl()

        self.assertIs(repl.session.model, Model.CLAUDE3)
        self.assertEqual(len(self.backend.status_requests), 2)
        self.assertEqual(self.backend.chat_payloads[1]["model"], "claude-3-haiku-20240307")
        self.assertEqual(len(self.backend.chat_payloads[1]["messages"]), 3)
        self.assertIn('[model switched to claude3 ("claude-3-haiku-20240307")]', self.err.getvalue())

    @patch("ddgpt.cli.questionary.select")
    def test_model_interactive(self, mock_select):
        """Interactive model selection uses questionary"""
        mock_select.return_value.ask.return_value = "llama3"
        repl = self.make_repl()

        repl.handle_command("/model")

        mock_select.assert_called_once()
        self.assertIs(repl.model, Model.LLAMA3)

    def test_invalid_model_is_ignored(self):
        repl = self.make_repl()
        repl.handle_command("/model gpt5")
        self.assertIs(repl.model, Model.GPT4O_MINI)
        self.assertIn("unknown model", self.err.getvalue())

    @patch("builtins.input")
    def test_clear_command(self, mock_input):
        mock_input.side_effect = ["Hello", "/clear", "Fresh start", "/exit"]

        repl = self.make_repl()
        repl.repl()

        self.assertEqual(len(self.backend.chat_payloads[1]["messages"]), 1)
        self.assertEqual(len(repl.session.history), 2)
        # /clear drops the token too
        self.assertEqual(len(self.backend.status_requests), 2)

    def test_exit_command(self):
        repl = self.make_repl()
        self.assertFalse(repl.handle_command("/exit"))
        self.assertTrue(repl.handle_command("/help"))
        self.assertIn("/model", self.err.getvalue())

    def test_models_and_sessions_listing(self):
        self.run_main("-cs", "saved", "hi")
        repl = self.make_repl(Model.MIXTRAL)

        repl.handle_command("/models")
        repl.handle_command("/sessions")

        err = self.err.getvalue()
        self.assertIn("mistral      Mixtral 8x7B <- current", err)
        self.assertIn("  saved", err)

    def test_unknown_command(self):
        repl = self.make_repl()
        self.assertTrue(repl.handle_command("/frobnicate"))
        self.assertIn("Unknown command: /frobnicate", self.err.getvalue())
