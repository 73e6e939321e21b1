"""Conversation store: the ordered, append-only message list sent to the model."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime

ROLES = ("system", "user", "assistant", "tool")


@dataclass(frozen=True)
class Message:
    """A single role-tagged message."""
    role: str
    content: str
    name: str | None = None
    timestamp: float = field(default_factory=time.time)


class Conversation:
    """
    The full prompt context of one chat session.
    Only the owning ChatSession appends; nothing is ever removed or edited.
    """

    def __init__(self, system_prompt: str = ""):
        self.started_at: datetime = datetime.now()
        self._messages: list[Message] = []
        if system_prompt:
            self.append("system", system_prompt)

    def append(self, role: str, content: str, name: str | None = None) -> Message:
        """Add a message to the end of the conversation."""
        if role not in ROLES:
            raise ValueError(f"Unknown message role '{role}'")
        message = Message(role=role, content=content, name=name)
        self._messages.append(message)
        return message

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def render(self) -> str:
        """Format the whole conversation as the single request text."""
        return "\n".join(f"{m.role}: {m.content}" for m in self._messages)

    def transcript(self) -> list[Message]:
        """Messages worth persisting (everything except system instructions)."""
        return [m for m in self._messages if m.role != "system"]

    def __len__(self) -> int:
        return len(self._messages)
