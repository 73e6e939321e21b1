import os
import tempfile
import unittest
from pathlib import Path

from gemchat.chat import ChatSession, SessionState
from gemchat.config import ChatConfig, HistoryConfig, ModelConfig, ToolsConfig
from gemchat.exceptions import RemoteCallError
from gemchat.models import GeminiClient, ModelClient
from gemchat.response import ModelReply, ToolCall
from extensions.base_extension import Extension
from extensions.extension_manager import ExtensionManager


class ScriptedClient(ModelClient):
    """Returns queued replies (or raises queued errors) in order."""

    def __init__(self, *script):
        super().__init__(ModelConfig(api_key="test"))
        self.script = list(script)
        self.requests: list[dict] = []

    async def generate(self, conversation_text, tools=None, force_tool_use=False):
        self.requests.append({
            "text": conversation_text,
            "tools": tools,
            "force_tool_use": force_tool_use,
        })
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class RawPayloadClient(GeminiClient):
    """Real Gemini parsing over canned response bodies."""

    def __init__(self, *payloads: dict):
        super().__init__(ModelConfig(api_key="test"))
        self.payloads = list(payloads)
        self.sent = 0

    async def _post_json(self, url, payload, headers, params=None):
        self.sent += 1
        return self.payloads.pop(0)


def calls(*tool_calls: ToolCall, text: str = "") -> ModelReply:
    return ModelReply(text=text, function_calls=list(tool_calls))


class RecordingExtension(Extension):
    name = "recorder"

    def __init__(self, config):
        super().__init__(config)
        self.events: list[str] = []

    async def on_turn_start(self, session, user_input, **kwargs):
        self.events.append("turn_start")

    async def on_tool_execute_before(self, session, tool_call, **kwargs):
        self.events.append(f"before:{tool_call.name}")

    async def on_tool_execute_after(self, session, tool_call, result, **kwargs):
        self.events.append(f"after:{tool_call.name}:{result.success}")

    async def on_turn_error(self, session, error, **kwargs):
        self.events.append("turn_error")

    async def on_turn_end(self, session, replies, **kwargs):
        self.events.append("turn_end")


class ChatSessionTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self._cwd = os.getcwd()
        self.root = Path(self._tmp.name)
        self.workdir = self.root / "work"
        self.workdir.mkdir()
        os.chdir(self.workdir)
        self.config = ChatConfig(
            history=HistoryConfig(
                directory=str(self.root / "history"),
                fallback_directory=str(self.root / "fallback"),
            ),
            log_dir=str(self.root / "logs"),
        )
        self.replies: list[str] = []
        self.errors: list[str] = []
        self.sessions: list[ChatSession] = []

    def tearDown(self):
        for session in self.sessions:
            session.close()
        os.chdir(self._cwd)
        self._tmp.cleanup()

    def make_session(self, client: ModelClient, **kwargs) -> ChatSession:
        session = ChatSession(self.config, client, **kwargs)
        session.on_reply = self.replies.append
        session.on_error = self.errors.append
        self.sessions.append(session)
        return session


class TestToolTurns(ChatSessionTestCase):
    async def test_create_file_end_to_end(self):
        client = ScriptedClient(
            calls(ToolCall("createFile", {"fileName": "hello.txt", "content": "Hello World"})),
            ModelReply(text="I created hello.txt for you."),
        )
        session = self.make_session(client)

        shown = await session.process_input("create hello.txt containing Hello World")

        self.assertEqual((self.workdir / "hello.txt").read_text(), "Hello World")
        self.assertEqual(shown, ["I created hello.txt for you."])
        self.assertEqual(self.replies, shown)
        self.assertEqual(self.errors, [])
        self.assertEqual(session.state, SessionState.IDLE)

        roles = [m.role for m in session.conversation.messages]
        self.assertEqual(roles, ["system", "user", "tool", "system", "assistant"])
        tool_message = session.conversation.messages[2]
        self.assertEqual(tool_message.name, "createFile")
        self.assertIn('"success": true', tool_message.content)

        first, follow_up = client.requests
        self.assertTrue(first["force_tool_use"])
        self.assertEqual(len(first["tools"]), 10)
        self.assertFalse(follow_up["force_tool_use"])
        self.assertIsNone(follow_up["tools"])
        self.assertIn("tool: ", follow_up["text"])

    async def test_reply_without_calls_is_shown_directly(self):
        client = ScriptedClient(ModelReply(text="Hi there!"))
        session = self.make_session(client)

        shown = await session.process_input("hello")

        self.assertEqual(shown, ["Hi there!"])
        self.assertEqual(len(client.requests), 1)
        self.assertEqual(session.conversation.messages[-1].content, "Hi there!")

    async def test_multiple_calls_run_in_order(self):
        client = ScriptedClient(
            calls(
                ToolCall("createFolder", {"folderPath": "docs"}),
                ToolCall("createFile", {"fileName": "docs/a.txt", "content": "A"}),
                text="On it.",
            ),
            ModelReply(text="Folder ready."),
            ModelReply(text="File written."),
        )
        session = self.make_session(client)

        shown = await session.process_input("make docs/a.txt")

        self.assertEqual(shown, ["On it.", "Folder ready.", "File written."])
        self.assertEqual((self.workdir / "docs" / "a.txt").read_text(), "A")
        tool_names = [m.name for m in session.conversation.messages if m.role == "tool"]
        self.assertEqual(tool_names, ["createFolder", "createFile"])

    async def test_prompt_sees_earlier_turns(self):
        client = ScriptedClient(ModelReply(text="one"), ModelReply(text="two"))
        session = self.make_session(client)

        await session.process_input("first question")
        await session.process_input("second question")

        second_prompt = client.requests[1]["text"]
        self.assertIn("user: first question", second_prompt)
        self.assertIn("assistant: one", second_prompt)
        self.assertTrue(second_prompt.endswith("user: second question"))


class TestTurnErrors(ChatSessionTestCase):
    async def test_validation_error_is_narrated(self):
        client = ScriptedClient(
            calls(ToolCall("createFile", {"fileName": "x.txt", "content": "  "})),
            ModelReply(text="I could not create an empty file."),
        )
        session = self.make_session(client)

        shown = await session.process_input("create an empty file")

        self.assertFalse((self.workdir / "x.txt").exists())
        self.assertEqual(
            self.errors,
            ["Error processing request: Empty content provided for createFile operation"],
        )
        self.assertEqual(shown, ["I could not create an empty file."])
        error_message = session.conversation.messages[-2]
        self.assertEqual(error_message.role, "assistant")
        self.assertTrue(error_message.content.endswith("Empty content provided for createFile operation"))
        self.assertFalse(client.requests[1]["force_tool_use"])

    async def test_unknown_function_is_rejected(self):
        client = ScriptedClient(
            calls(ToolCall("formatDisk", {})),
            ModelReply(text="That tool does not exist."),
        )
        session = self.make_session(client)

        await session.process_input("format my disk")

        self.assertEqual(self.errors, ["Error processing request: Unknown function call: formatDisk"])

    async def test_failed_tool_aborts_remaining_calls(self):
        client = ScriptedClient(
            calls(
                ToolCall("readFile", {"fileName": "missing.txt"}),
                ToolCall("createFile", {"fileName": "after.txt", "content": "x"}),
            ),
            ModelReply(text="The file is not there."),
        )
        session = self.make_session(client)

        shown = await session.process_input("read missing.txt")

        self.assertEqual(len(self.errors), 1)
        self.assertTrue(self.errors[0].startswith(
            "Error processing request: Tool execution failed: File 'missing.txt' not found."
        ))
        self.assertFalse((self.workdir / "after.txt").exists())
        self.assertEqual(shown, ["The file is not there."])

    async def test_remote_error_is_narrated(self):
        client = ScriptedClient(
            RemoteCallError("service unavailable"),
            ModelReply(text="The model service had a hiccup."),
        )
        session = self.make_session(client)

        shown = await session.process_input("hi")

        self.assertEqual(self.errors, ["Error processing request: service unavailable"])
        self.assertEqual(shown, ["The model service had a hiccup."])

    async def test_malformed_model_payload_is_narrated(self):
        narration = {"candidates": [{"content": {"parts": [{"text": "The reply was garbled."}]}}]}
        for bad in (
            {"candidates": ["oops"]},
            {"candidates": [{"content": {"parts": [{"functionCall": "x"}]}}]},
            {"candidates": [{"content": {"parts": [{"text": 5}]}}]},
        ):
            with self.subTest(payload=bad):
                self.errors.clear()
                client = RawPayloadClient(bad, narration)
                session = self.make_session(client)

                shown = await session.process_input("hi")

                self.assertEqual(
                    self.errors,
                    ["Error processing request: Invalid response content structure"],
                )
                self.assertEqual(client.sent, 2)
                self.assertEqual(shown, ["The reply was garbled."])
                roles = [m.role for m in session.conversation.messages]
                self.assertEqual(roles, ["system", "user", "assistant", "assistant"])
                self.assertTrue(session.conversation.messages[2].content.endswith(
                    "Invalid response content structure"
                ))
                self.assertEqual(session.state, SessionState.IDLE)

    async def test_narration_failure_keeps_session_usable(self):
        client = ScriptedClient(
            RemoteCallError("down"),
            RemoteCallError("still down"),
            ModelReply(text="Back again."),
        )
        session = self.make_session(client)

        shown = await session.process_input("hi")
        self.assertEqual(shown, [])
        self.assertEqual(len(self.errors), 2)
        self.assertEqual(session.state, SessionState.IDLE)

        self.assertEqual(await session.process_input("hi again"), ["Back again."])

    async def test_hooks_fire_around_tools_and_errors(self):
        manager = ExtensionManager(self.config)
        recorder = RecordingExtension(self.config)
        manager.register(recorder)
        client = ScriptedClient(
            calls(ToolCall("createFolder", {"folderPath": "d"})),
            ModelReply(text="done"),
            calls(ToolCall("moveFile", {})),
            ModelReply(text="missing paths"),
        )
        session = self.make_session(client, extension_manager=manager)

        await session.process_input("make d")
        await session.process_input("move something")

        self.assertEqual(recorder.events, [
            "turn_start", "before:createFolder", "after:createFolder:True", "turn_end",
            "turn_start", "turn_error", "turn_end",
        ])


class TestPlainChatAndClose(ChatSessionTestCase):
    async def test_plain_mode_never_sends_tools(self):
        self.config.tools = ToolsConfig(enabled=False)
        client = ScriptedClient(ModelReply(text="Paris."))
        session = self.make_session(client)

        shown = await session.process_input("capital of France?")

        self.assertEqual(shown, ["Paris."])
        self.assertFalse(client.requests[0]["force_tool_use"])
        self.assertIsNone(client.requests[0]["tools"])
        self.assertNotIn("readFile", session.conversation.messages[0].content)

    async def test_close_writes_history_once(self):
        session = self.make_session(ScriptedClient(ModelReply(text="Hi there!")))
        await session.process_input("hello")

        path = session.close()

        self.assertIsNotNone(path)
        self.assertEqual(Path(path).parent, self.root / "history")
        text = Path(path).read_text(encoding="utf-8")
        self.assertIn("USER: hello", text)
        self.assertIn("ASSISTANT: Hi there!", text)
        self.assertNotIn("SYSTEM:", text)
        self.assertEqual(session.state, SessionState.CLOSED)
        self.assertEqual(session.close(), path)

        with self.assertRaises(RuntimeError):
            await session.process_input("anyone there?")

    async def test_close_without_history(self):
        self.config.history.enabled = False
        session = self.make_session(ScriptedClient())

        self.assertIsNone(session.close())
        self.assertFalse((self.root / "history").exists())
        self.assertEqual(self.errors, [])

    async def test_unusable_log_dir_does_not_block_session(self):
        blocker = self.root / "blocker"
        blocker.write_text("not a directory")
        self.config.log_dir = str(blocker / "logs")

        session = self.make_session(ScriptedClient(ModelReply(text="still here")))

        self.assertEqual(await session.process_input("hi"), ["still here"])
        self.assertIsNotNone(session.close())

    async def test_session_log_written(self):
        session = self.make_session(ScriptedClient(ModelReply(text="ok")))
        await session.process_input("hi")
        session.close()

        log_text = (self.root / "logs" / "gemchat.log").read_text(encoding="utf-8")
        self.assertIn("Turn 1 started", log_text)


if __name__ == "__main__":
    unittest.main()
