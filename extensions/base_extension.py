"""Abstract base class for all extensions (lifecycle hooks)."""

from abc import ABC


class Extension(ABC):
    """
    Base class for extensions. Override the hook methods you need.
    Extensions are called in registration order at each lifecycle point.
    """

    name: str = ""
    enabled_by_default: bool = True

    def __init__(self, config):
        self.config = config

    @property
    def enabled(self) -> bool:
        return self.config.extensions.enabled_map.get(self.name, self.enabled_by_default)

    async def on_turn_start(self, session, user_input, **kwargs):
        pass

    async def on_before_model_call(self, session, force_tool_use, **kwargs):
        pass

    async def on_after_model_call(self, session, reply, **kwargs):
        pass

    async def on_tool_execute_before(self, session, tool_call, **kwargs):
        pass

    async def on_tool_execute_after(self, session, tool_call, result, **kwargs):
        pass

    async def on_turn_error(self, session, error, **kwargs):
        pass

    async def on_turn_end(self, session, replies, **kwargs):
        pass
