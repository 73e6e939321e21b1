"""ToolCall, ModelReply and ToolResult dataclasses."""

import json
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ToolCall:
    """Function call requested by the model."""
    name: str
    args: dict = field(default_factory=dict)


@dataclass
class ModelReply:
    """Text and function calls returned by one model request."""
    text: str = ""
    function_calls: list[ToolCall] = field(default_factory=list)


@dataclass
class ToolResult:
    """
    Uniform result of a tool execution.
    Either a success payload or an error message, never both.
    """
    success: bool
    payload: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    def __post_init__(self):
        if self.success and self.error is not None:
            raise ValueError("A successful ToolResult cannot carry an error")
        if not self.success:
            if not self.error:
                raise ValueError("A failed ToolResult needs an error message")
            if self.payload:
                raise ValueError("A failed ToolResult cannot carry a payload")

    @classmethod
    def ok(cls, **payload) -> "ToolResult":
        return cls(success=True, payload=payload)

    @classmethod
    def fail(cls, error: str) -> "ToolResult":
        return cls(success=False, error=error or "Unknown error")

    def to_dict(self) -> dict[str, Any]:
        if self.success:
            return {"success": True, **self.payload}
        return {"success": False, "error": self.error}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)
