"""Argument validation for model-requested tool calls."""

from dataclasses import dataclass, field

from gemchat.exceptions import ValidationError
from gemchat.response import ToolCall
from tools.base_tool import ToolDeclaration

CONTENT_TOOLS = ("createFile", "updateFile")


@dataclass
class ValidationResult:
    """Outcome of validating one tool call."""
    ok: bool
    kind: str | None = None
    message: str = ""
    missing: list[str] = field(default_factory=list)

    def raise_for_error(self) -> None:
        if not self.ok:
            raise ValidationError(self.message, kind=self.kind or "invalid")


def missing_parameters(declaration: ToolDeclaration, args: dict) -> list[str]:
    """Required parameters that are absent or falsy, in declaration order."""
    return [name for name in declaration.required if not args.get(name)]


def validate_tool_call(
    call: ToolCall,
    declaration: ToolDeclaration | None,
) -> ValidationResult:
    """
    Check a tool call against its declaration before execution.
    Order: known tool, required parameters (all reported together),
    then non-blank content for file writes.
    """
    if declaration is None:
        return ValidationResult(
            ok=False,
            kind="unknown_tool",
            message=f"Unknown function call: {call.name}",
        )

    args = call.args or {}
    missing = missing_parameters(declaration, args)
    if missing:
        return ValidationResult(
            ok=False,
            kind="missing_parameters",
            message=f"Missing required parameters for {call.name}: {', '.join(missing)}",
            missing=missing,
        )

    if call.name in CONTENT_TOOLS:
        content = args.get("content")
        if not content or (isinstance(content, str) and not content.strip()):
            return ValidationResult(
                ok=False,
                kind="empty_content",
                message=f"Empty content provided for {call.name} operation",
            )

    return ValidationResult(ok=True)
