"""ChatSession: the turn loop that drives model calls and tool dispatch."""

from __future__ import annotations

import logging
import os
import time
import uuid
from datetime import datetime
from enum import Enum
from typing import Callable

from gemchat.config import ChatConfig
from gemchat.conversation import Conversation
from gemchat.exceptions import RemoteCallError, ToolExecutionError, ValidationError
from gemchat.history import save_chat_history
from gemchat.models import ModelClient
from gemchat.response import ModelReply, ToolCall
from gemchat.telemetry import Telemetry
from prompts.template_engine import (
    CHAT_TEMPLATE,
    ERROR_TEMPLATE,
    FOLLOW_UP_TEMPLATE,
    SYSTEM_TEMPLATE,
    PromptTemplateEngine,
)
from tools.tool_registry import ToolRegistry
from tools.validator import validate_tool_call

TURN_ERRORS = (ValidationError, ToolExecutionError, RemoteCallError)


class SessionState(str, Enum):
    IDLE = "idle"
    AWAITING_MODEL = "awaiting_model"
    DISPATCHING_TOOLS = "dispatching_tools"
    AWAITING_FOLLOW_UP = "awaiting_follow_up"
    CLOSED = "closed"


class ChatSession:
    """
    One interactive conversation.

    Each user turn is processed to completion before the next one starts:
    a tool-forced model call, then every requested function call in the
    order returned (validate, execute, append result, follow-up call).
    Any failure aborts the rest of the turn and the model is asked once
    more to explain what went wrong.
    """

    def __init__(
        self,
        config: ChatConfig,
        client: ModelClient,
        registry: ToolRegistry | None = None,
        extension_manager=None,
        telemetry: Telemetry | None = None,
        session_id: str | None = None,
    ):
        self.id: str = session_id or uuid.uuid4().hex[:12]
        self.config = config
        self.client = client
        self.registry = registry or ToolRegistry(config).register_defaults()
        self.extension_manager = extension_manager
        self.telemetry = telemetry or Telemetry(config.telemetry, self.id)
        self.state = SessionState.IDLE
        self.on_reply: Callable[[str], None] | None = None
        self.on_error: Callable[[str], None] | None = None
        self.history_path: str | None = None
        self._turns = 0
        self._logger = self._build_logger(config.log_dir)

        self._prompts = PromptTemplateEngine(profile=config.prompt_profile)
        self._follow_up_prompt = self._prompts.render(FOLLOW_UP_TEMPLATE)
        self._error_prompt = self._prompts.render(ERROR_TEMPLATE)
        self.conversation = Conversation(self._build_system_prompt())

    @property
    def tools_enabled(self) -> bool:
        return self.config.tools.enabled

    # ── Turn processing ──────────────────────────────────────────────

    async def process_input(self, user_input: str) -> list[str]:
        """Run one full turn. Returns the assistant texts shown, in order."""
        if self.state == SessionState.CLOSED:
            raise RuntimeError("Session is closed")

        self._turns += 1
        start = time.monotonic()
        replies: list[str] = []
        outcome = "answer"

        self.conversation.append("user", user_input)
        self._logger.info("Turn %d started", self._turns)
        await self._dispatch_hook("turn_start", session=self, user_input=user_input)

        try:
            reply = await self._generate(force_tool_use=self.tools_enabled)
            if not reply.function_calls:
                self._emit(reply.text, replies)
            else:
                outcome = "tools"
                if reply.text:
                    self._emit(reply.text, replies)
                self.state = SessionState.DISPATCHING_TOOLS
                for call in reply.function_calls:
                    await self._run_tool_call(call, replies)
        except TURN_ERRORS as e:
            outcome = "error"
            await self._handle_turn_error(e, replies)
        finally:
            self.state = SessionState.IDLE

        duration_ms = (time.monotonic() - start) * 1000
        self.telemetry.record_turn(self._turns, outcome, duration_ms)
        self._logger.info("Turn %d finished (%s) in %.0f ms", self._turns, outcome, duration_ms)
        await self._dispatch_hook("turn_end", session=self, replies=replies)
        return replies

    async def _run_tool_call(self, call: ToolCall, replies: list[str]) -> None:
        """Validate, execute and narrate a single function call."""
        declaration = self.registry.get_declaration(call.name)
        validate_tool_call(call, declaration).raise_for_error()

        self._logger.debug("Executing %s with %s", call.name, call.args)
        await self._dispatch_hook("tool_execute_before", session=self, tool_call=call)

        start = time.monotonic()
        with self.telemetry.span("tool_call", tool=call.name) as span:
            result = await self.registry.execute(call.name, call.args)
            span.set("success", result.success)
        self.telemetry.record_tool_call(
            tool_name=call.name,
            args=call.args,
            duration_ms=(time.monotonic() - start) * 1000,
            success=result.success,
            error=result.error,
        )
        await self._dispatch_hook(
            "tool_execute_after", session=self, tool_call=call, result=result
        )

        if not result.success:
            raise ToolExecutionError(f"Tool execution failed: {result.error}")

        self.conversation.append("tool", result.to_json(), name=call.name)
        self.conversation.append("system", self._follow_up_prompt)

        self.state = SessionState.AWAITING_FOLLOW_UP
        follow_up = await self._generate(force_tool_use=False)
        if follow_up.text:
            self._emit(follow_up.text, replies)
        self.state = SessionState.DISPATCHING_TOOLS

    async def _handle_turn_error(self, error: Exception, replies: list[str]) -> None:
        """Record the failure in the conversation and let the model narrate it."""
        message = str(error)
        self._logger.error("Error processing request: %s", message)
        self._report_error(f"Error processing request: {message}")
        await self._dispatch_hook("turn_error", session=self, error=error)

        self.conversation.append("assistant", f"{self._error_prompt}\n{message}")
        self.state = SessionState.AWAITING_FOLLOW_UP
        try:
            narration = await self._generate(force_tool_use=False)
        except RemoteCallError as e:
            self._logger.error("Error narration failed: %s", e)
            self._report_error(f"Error processing request: {e}")
            return
        if narration.text:
            self._emit(narration.text, replies)

    async def _generate(self, force_tool_use: bool) -> ModelReply:
        """Send the whole conversation; tools are attached only when forced."""
        if force_tool_use:
            self.state = SessionState.AWAITING_MODEL
        tools = self.registry.list_declarations() if force_tool_use else None
        await self._dispatch_hook(
            "before_model_call", session=self, force_tool_use=force_tool_use
        )
        reply = await self.client.generate(
            self.conversation.render(),
            tools=tools,
            force_tool_use=force_tool_use,
        )
        self._logger.debug(
            "Model replied with %d chars and %d function call(s)",
            len(reply.text), len(reply.function_calls),
        )
        await self._dispatch_hook("after_model_call", session=self, reply=reply)
        return reply

    # ── Closing ──────────────────────────────────────────────────────

    def close(self) -> str | None:
        """Enter CLOSED and flush the transcript. Safe to call twice."""
        if self.state == SessionState.CLOSED:
            return self.history_path
        self.state = SessionState.CLOSED

        if self.config.history.enabled:
            self.history_path = save_chat_history(
                self.conversation.transcript(),
                self.conversation.started_at,
                self.config.history.directory,
                self.config.history.fallback_directory,
            )
            if self.history_path is None:
                self._report_error("Chat history could not be saved.")

        self.telemetry.finalize()
        self._logger.info("Session %s closed after %d turn(s)", self.id, self._turns)
        for handler in list(self._logger.handlers):
            handler.close()
            self._logger.removeHandler(handler)
        return self.history_path

    # ── Helpers ──────────────────────────────────────────────────────

    def _build_system_prompt(self) -> str:
        variables = {
            "current_time": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            "working_directory": os.getcwd(),
            "tool_descriptions": self.registry.get_tool_descriptions(),
        }
        template = SYSTEM_TEMPLATE if self.tools_enabled else CHAT_TEMPLATE
        return self._prompts.render(template, variables)

    def _emit(self, text: str, replies: list[str]) -> None:
        self.conversation.append("assistant", text)
        replies.append(text)
        if self.on_reply:
            self.on_reply(text)

    def _report_error(self, message: str) -> None:
        if self.on_error:
            self.on_error(message)

    async def _dispatch_hook(self, hook_name: str, **kwargs) -> None:
        if self.extension_manager:
            await self.extension_manager.dispatch(hook_name, **kwargs)

    def _build_logger(self, log_dir: str) -> logging.Logger:
        logger = logging.getLogger(f"gemchat.session.{self.id}")
        if logger.handlers:
            return logger

        logger.setLevel(logging.DEBUG if self.config.debug else logging.INFO)
        logger.propagate = False
        try:
            os.makedirs(log_dir, exist_ok=True)
            handler = logging.FileHandler(os.path.join(log_dir, "gemchat.log"), encoding="utf-8")
        except OSError as e:
            logging.getLogger("gemchat.session").warning(
                "Session log disabled, cannot write to %s: %s", log_dir, e
            )
            logger.addHandler(logging.NullHandler())
            return logger

        formatter = logging.Formatter(
            fmt="%(asctime)s %(levelname)s [%(name)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        return logger
