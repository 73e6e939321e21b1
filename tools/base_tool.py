"""Abstract base class and declaration types for all tools."""

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from gemchat.config import ChatConfig
from gemchat.exceptions import ToolExecutionError
from gemchat.response import ToolResult


_JSON_TYPES = {str: "string", bool: "boolean"}


@dataclass(frozen=True)
class ToolParameter:
    """Type and description of a single tool argument."""
    type: type
    description: str

    @property
    def json_type(self) -> str:
        return _JSON_TYPES.get(self.type, "string")


@dataclass(frozen=True)
class ToolDeclaration:
    """Static, schema-described declaration of a callable tool."""
    name: str
    description: str
    parameters: dict[str, ToolParameter] = field(default_factory=dict)
    required: tuple[str, ...] = ()


class Tool(ABC):
    """Base class for all GemChat tools. Subclass this to create new tools."""

    name: str = ""
    description: str = ""
    parameters: dict[str, ToolParameter] = {}
    required_args: list[str] = []

    def __init__(self, config: ChatConfig):
        self.config = config

    @classmethod
    def declaration(cls) -> ToolDeclaration:
        return ToolDeclaration(
            name=cls.name,
            description=cls.description,
            parameters=dict(cls.parameters),
            required=tuple(cls.required_args),
        )

    def parse_args(self, args: dict) -> dict:
        """Cast a raw argument bag to the declared parameter types."""
        parsed: dict = {}
        for key, param in self.parameters.items():
            if key not in args or args[key] is None:
                continue
            value = args[key]
            if param.type is bool:
                parsed[key] = _to_bool(key, value)
            elif isinstance(value, (dict, list)):
                raise ToolExecutionError(f"Parameter '{key}' must be a {param.json_type}")
            else:
                parsed[key] = str(value)
        return parsed

    def resolve_path(self, path: str) -> str:
        """Resolve a tool path against the current working directory."""
        cwd = os.getcwd()
        full_path = os.path.join(cwd, path)
        if self.config.tools.restrict_to_cwd:
            real_cwd = os.path.realpath(cwd)
            real_path = os.path.realpath(full_path)
            if os.path.commonpath([real_cwd, real_path]) != real_cwd:
                raise ToolExecutionError(f"Path '{path}' is outside the working directory.")
        return full_path

    @abstractmethod
    async def execute(self, **kwargs) -> ToolResult:
        """Execute the tool. Must be implemented by subclasses."""
        ...

    def get_prompt_description(self) -> str:
        """Markdown description of this tool for the system prompt."""
        lines = [f"### {self.name}", self.description]
        for key, param in self.parameters.items():
            marker = " (required)" if key in self.required_args else ""
            lines.append(f"- `{key}` ({param.json_type}){marker}: {param.description}")
        return "\n".join(lines) + "\n"


def _to_bool(key: str, value: object) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ToolExecutionError(f"Parameter '{key}' must be a boolean")
