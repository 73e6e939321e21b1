"""Tool catalog and dispatch registry."""

from gemchat.config import ChatConfig
from gemchat.response import ToolResult
from tools.base_tool import Tool, ToolDeclaration
from tools.file_tools import FILE_TOOLS
from tools.validator import missing_parameters


class ToolRegistry:
    """Holds the ordered tool catalog and executes tools by name."""

    def __init__(self, config: ChatConfig):
        self.config = config
        self._tool_classes: dict[str, type[Tool]] = {}

    def register_defaults(self) -> "ToolRegistry":
        """Register the built-in filesystem tools in catalog order."""
        for tool_cls in FILE_TOOLS:
            self.register(tool_cls)
        return self

    def register(self, tool_cls: type[Tool]) -> None:
        if not tool_cls.name:
            raise ValueError(f"Tool class {tool_cls.__name__} has no name")
        if tool_cls.name in self._tool_classes:
            raise ValueError(f"Tool '{tool_cls.name}' is already registered")
        self._tool_classes[tool_cls.name] = tool_cls

    def list_declarations(self) -> list[ToolDeclaration]:
        """Declarations of all registered tools, in registration order."""
        return [cls.declaration() for cls in self._tool_classes.values()]

    def get_declaration(self, name: str) -> ToolDeclaration | None:
        cls = self._tool_classes.get(name)
        return cls.declaration() if cls else None

    def get_tool(self, name: str) -> Tool | None:
        """Instantiate and return a tool by name."""
        cls = self._tool_classes.get(name)
        if cls:
            return cls(self.config)
        return None

    def get_tool_descriptions(self) -> str:
        """Generate markdown listing of all tools for the system prompt."""
        return "\n".join(
            cls(self.config).get_prompt_description() for cls in self._tool_classes.values()
        )

    @property
    def tool_names(self) -> list[str]:
        """Registered tool names in catalog order."""
        return list(self._tool_classes.keys())

    async def execute(self, name: str, args: dict | None = None) -> ToolResult:
        """
        Run a tool and return its result. Never raises: unknown tools,
        bad arguments and I/O failures all come back as failed results.
        """
        tool = self.get_tool(name)
        if tool is None:
            return ToolResult.fail(f"Unknown function call: {name}")

        try:
            parsed = tool.parse_args(args or {})
            missing = missing_parameters(tool.declaration(), parsed)
            if missing:
                return ToolResult.fail(
                    f"Missing required parameters for {name}: {', '.join(missing)}"
                )
            return await tool.execute(**parsed)
        except Exception as e:
            return ToolResult.fail(str(e) or e.__class__.__name__)
