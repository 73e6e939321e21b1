"""Markdown prompt templates for GemChat.

Templates live in ``prompts/<profile>/`` and support two directives:
``{{name}}`` is replaced by the matching variable and
``{{include:other.md}}`` splices in another template from the same profile.
"""

import os
import re
from gemchat.exceptions import PromptTemplateError

PROMPTS_DIR = os.path.dirname(os.path.abspath(__file__))

SYSTEM_TEMPLATE = "gemchat.system.md"
CHAT_TEMPLATE = "gemchat.chat.md"
FOLLOW_UP_TEMPLATE = "gemchat.follow_up.md"
ERROR_TEMPLATE = "gemchat.error.md"

MAX_INCLUDE_DEPTH = 10

_INCLUDE = re.compile(r"\{\{include:([^}]+)\}\}")
_VARIABLE = re.compile(r"\{\{(\w+)\}\}")


class PromptTemplateEngine:
    """Loads templates from one profile directory and renders them."""

    def __init__(self, prompts_dir: str = PROMPTS_DIR, profile: str = "default"):
        self.profile = profile
        self.base_dir = os.path.join(prompts_dir, profile)
        if not os.path.isdir(self.base_dir):
            raise PromptTemplateError(
                f"Prompt profile '{profile}' not found in {prompts_dir}"
            )

    def render(self, template_name: str, variables: dict | None = None) -> str:
        """Expand includes, then fill in variables. Unknown placeholders stay as-is."""
        template = self._read(template_name)
        if template is None:
            raise PromptTemplateError(
                f"Template '{template_name}' not found in profile '{self.profile}'"
            )
        expanded = self._expand(template, depth=0)
        values = variables or {}

        def substitute(match: re.Match) -> str:
            key = match.group(1)
            return str(values[key]) if key in values else match.group(0)

        return _VARIABLE.sub(substitute, expanded).strip()

    def _expand(self, template: str, depth: int) -> str:
        if depth > MAX_INCLUDE_DEPTH:
            raise PromptTemplateError(
                f"Includes nested deeper than {MAX_INCLUDE_DEPTH} levels, check for a cycle"
            )

        def include(match: re.Match) -> str:
            name = match.group(1).strip()
            content = self._read(name)
            if content is None:
                return f"[Missing template: {name}]"
            return self._expand(content, depth + 1)

        return _INCLUDE.sub(include, template)

    def _read(self, name: str) -> str | None:
        path = os.path.join(self.base_dir, name)
        if not os.path.isfile(path):
            return None
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
