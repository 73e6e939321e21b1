"""Output logger extension: writes a JSONL debug trace of every turn."""

import json
import os
from datetime import datetime, timezone

from extensions.base_extension import Extension


class OutputLoggerExtension(Extension):
    name = "output_logger"
    enabled_by_default = False

    @property
    def enabled(self) -> bool:
        return self.config.debug or super().enabled

    def _log_path(self, session) -> str:
        log_dir = self.config.log_dir
        os.makedirs(log_dir, exist_ok=True)
        return os.path.join(log_dir, f"session_{session.id}.jsonl")

    def _write_entry(self, session, event: str, data: dict):
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "state": session.state.value,
            "event": event,
            **data,
        }
        with open(self._log_path(session), "a", encoding="utf-8") as f:
            f.write(json.dumps(entry, default=str) + "\n")

    async def on_turn_start(self, session, user_input, **kwargs):
        self._write_entry(session, "turn_start", {"input": user_input})

    async def on_before_model_call(self, session, force_tool_use, **kwargs):
        self._write_entry(session, "model_request", {
            "force_tool_use": force_tool_use,
            "message_count": len(session.conversation),
        })

    async def on_after_model_call(self, session, reply, **kwargs):
        self._write_entry(session, "model_response", {
            "text_preview": reply.text[:500],
            "function_calls": [
                {"name": c.name, "args": c.args} for c in reply.function_calls
            ],
        })

    async def on_tool_execute_after(self, session, tool_call, result, **kwargs):
        self._write_entry(session, "tool_result", {
            "tool": tool_call.name,
            "args": tool_call.args,
            "result_preview": result.to_json()[:500],
            "success": result.success,
        })

    async def on_turn_error(self, session, error, **kwargs):
        self._write_entry(session, "turn_error", {
            "error_type": type(error).__name__,
            "error": str(error),
        })

    async def on_turn_end(self, session, replies, **kwargs):
        self._write_entry(session, "turn_end", {"reply_count": len(replies)})
