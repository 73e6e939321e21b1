import io
import os
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from unittest import mock

import run_cli
from cli.cli_app import CLIApp
from gemchat.config import ChatConfig, HistoryConfig, ModelConfig
from gemchat.models import ModelClient
from gemchat.response import ModelReply


class EchoClient(ModelClient):
    def __init__(self):
        super().__init__(ModelConfig(api_key="test"))
        self.prompts: list[str] = []

    async def generate(self, conversation_text, tools=None, force_tool_use=False):
        self.prompts.append(conversation_text)
        return ModelReply(text="echo")


class TestCLIApp(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.root = Path(self._tmp.name)
        self._cwd = os.getcwd()
        os.chdir(self.root)
        self.addCleanup(os.chdir, self._cwd)
        self.config = ChatConfig(
            history=HistoryConfig(
                directory=str(self.root / "history"),
                fallback_directory=str(self.root / "fallback"),
            ),
            log_dir=str(self.root / "logs"),
        )

    async def _run(self, lines: list, client: ModelClient) -> tuple[int, str]:
        out = io.StringIO()
        with mock.patch("builtins.input", side_effect=lines), redirect_stdout(out):
            code = await CLIApp(self.config, client=client).run()
        return code, out.getvalue()

    async def test_chat_then_quit_saves_history(self):
        client = EchoClient()

        code, output = await self._run(["", "help", "hello", "quit"], client)

        self.assertEqual(code, 0)
        self.assertEqual(len(client.prompts), 1)
        self.assertIn("Welcome to GemChat", output)
        self.assertIn("Commands:", output)
        self.assertIn("AI:", output)
        self.assertIn("Chat history saved to", output)
        self.assertTrue(output.rstrip().endswith("Exiting GemChat. Goodbye!"))
        saved = list((self.root / "history").glob("gemchat-*.txt"))
        self.assertEqual(len(saved), 1)
        self.assertIn("USER: hello", saved[0].read_text(encoding="utf-8"))

    async def test_eof_exits_cleanly(self):
        self.config.history.enabled = False

        code, output = await self._run([EOFError()], EchoClient())

        self.assertEqual(code, 0)
        self.assertNotIn("Saving chat history", output)
        self.assertIn("Goodbye", output)
        self.assertFalse((self.root / "history").exists())

    async def test_interrupt_during_turn_still_saves_history(self):
        class InterruptedClient(EchoClient):
            async def generate(self, conversation_text, tools=None, force_tool_use=False):
                raise KeyboardInterrupt()

        code, output = await self._run(["hello", "quit"], InterruptedClient())

        self.assertEqual(code, 0)
        self.assertIn("Chat history saved to", output)
        self.assertIn("Goodbye", output)
        saved = list((self.root / "history").glob("gemchat-*.txt"))
        self.assertEqual(len(saved), 1)
        self.assertIn("USER: hello", saved[0].read_text(encoding="utf-8"))


class TestMain(unittest.TestCase):
    def setUp(self):
        patcher = mock.patch.dict(os.environ, {}, clear=False)
        patcher.start()
        self.addCleanup(patcher.stop)
        for key in ("GEMINI_API_KEY", "GEMINI_MODEL", "LANGSMITH_API_KEY"):
            os.environ.pop(key, None)
        dotenv_patcher = mock.patch("run_cli.load_dotenv")
        dotenv_patcher.start()
        self.addCleanup(dotenv_patcher.stop)
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.config_path = str(Path(self._tmp.name) / "missing.json")

    def test_missing_api_key_exits_with_error(self):
        err = io.StringIO()
        with redirect_stderr(err):
            code = run_cli.main(["-c", self.config_path])

        self.assertEqual(code, 1)
        self.assertIn("GEMINI_API_KEY", err.getvalue())

    def test_flags_reach_the_app(self):
        app = mock.Mock()
        app.run = mock.AsyncMock(return_value=0)
        err = io.StringIO()
        with mock.patch("run_cli.CLIApp", return_value=app) as app_cls, redirect_stderr(err):
            code = run_cli.main(["-c", self.config_path, "-k", "abc", "-n", "-t", "--no-tools"])

        self.assertEqual(code, 0)
        config = app_cls.call_args.args[0]
        self.assertEqual(config.model.api_key, "abc")
        self.assertFalse(config.history.enabled)
        self.assertFalse(config.tools.enabled)
        self.assertFalse(config.telemetry.tracing)
        self.assertIn("Tracing will be disabled", err.getvalue())


if __name__ == "__main__":
    unittest.main()
