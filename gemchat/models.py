"""Model clients - direct HTTP communication with hosted chat model APIs."""

from __future__ import annotations

import asyncio
import json
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Sequence

import aiohttp

from gemchat.config import ChatConfig, ClientSettings, ModelConfig
from gemchat.exceptions import RemoteCallError
from gemchat.response import ModelReply, ToolCall

if TYPE_CHECKING:
    from gemchat.telemetry import Telemetry
    from tools.base_tool import ToolDeclaration


class ModelClient(ABC):
    """
    Boundary to the remote model service.
    One request per call; failures raise RemoteCallError and are never retried.
    """

    def __init__(self, model: ModelConfig, settings: ClientSettings | None = None):
        self.model = model
        self.settings = settings or ClientSettings()

    @property
    def model_name(self) -> str:
        return self.model.model_name

    @abstractmethod
    async def generate(
        self,
        conversation_text: str,
        tools: Sequence["ToolDeclaration"] | None = None,
        force_tool_use: bool = False,
    ) -> ModelReply:
        """Send the rendered conversation and return text and function calls."""
        ...

    async def _post_json(
        self,
        url: str,
        payload: dict,
        headers: dict[str, str],
        params: dict[str, str] | None = None,
    ) -> dict:
        """POST a JSON payload and return the decoded JSON body."""
        try:
            async with aiohttp.ClientSession(timeout=self._timeout()) as session:
                async with session.post(url, json=payload, headers=headers, params=params) as resp:
                    if resp.status != 200:
                        body = await resp.text()
                        raise RemoteCallError(
                            f"{self.model.provider} request failed (HTTP {resp.status}): {body}"
                        )
                    return await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise RemoteCallError(self._connection_error_message(e)) from e
        except json.JSONDecodeError as e:
            raise RemoteCallError(f"Invalid JSON from {self.model.provider}: {e}") from e

    def _timeout(self) -> aiohttp.ClientTimeout:
        """Build a client timeout configuration from settings."""
        return aiohttp.ClientTimeout(
            total=None,
            connect=self.settings.connect_timeout,
            sock_connect=self.settings.connect_timeout,
            sock_read=self.settings.read_timeout,
        )

    def _connection_error_message(self, error: Exception | None) -> str:
        """Create a user-friendly connection error message."""
        details = f"{error}" if error else "unknown error"
        if isinstance(error, asyncio.TimeoutError):
            details = "request timed out"
        return f"Cannot reach {self.model.provider} at {self.model.base_url}: {details}"


class GeminiClient(ModelClient):
    """Google Gemini generateContent client."""

    async def generate(
        self,
        conversation_text: str,
        tools: Sequence["ToolDeclaration"] | None = None,
        force_tool_use: bool = False,
    ) -> ModelReply:
        payload = self.build_payload(conversation_text, tools, force_tool_use)
        url = f"{self.model.base_url}/v1beta/models/{self.model.model_name}:generateContent"
        data = await self._post_json(
            url,
            payload,
            headers={"x-goog-api-key": self.model.api_key},
        )
        return self.parse_response(data)

    def build_payload(
        self,
        conversation_text: str,
        tools: Sequence["ToolDeclaration"] | None = None,
        force_tool_use: bool = False,
    ) -> dict:
        """Build the generateContent request body."""
        payload: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": conversation_text}]}],
            "generationConfig": {
                "temperature": self.model.temperature,
                "maxOutputTokens": self.model.max_output_tokens,
            },
        }
        if tools:
            payload["tools"] = [
                {"functionDeclarations": [self._function_declaration(t) for t in tools]}
            ]
            if force_tool_use:
                payload["toolConfig"] = {
                    "functionCallingConfig": {
                        "mode": "ANY",
                        "allowedFunctionNames": [t.name for t in tools],
                    }
                }
        return payload

    @staticmethod
    def parse_response(data: dict) -> ModelReply:
        """Collect text parts and function calls from the first candidate."""
        candidates = data.get("candidates") if isinstance(data, dict) else None
        if not candidates or not isinstance(candidates, list):
            raise RemoteCallError("No response candidates received")

        try:
            parts = (candidates[0].get("content") or {})["parts"]
            if not isinstance(parts, list):
                raise TypeError("parts is not a list")
            reply = ModelReply()
            for part in parts:
                text = part.get("text")
                if text:
                    reply.text += text
                call = part.get("functionCall")
                if call:
                    reply.function_calls.append(_tool_call(call.get("name"), call.get("args")))
        except (AttributeError, TypeError, KeyError) as e:
            raise RemoteCallError("Invalid response content structure") from e
        return reply

    @staticmethod
    def _function_declaration(decl: "ToolDeclaration") -> dict:
        schema: dict[str, Any] = {
            "type": "OBJECT",
            "description": decl.description,
            "properties": {
                key: {"type": param.json_type.upper(), "description": param.description}
                for key, param in decl.parameters.items()
            },
        }
        if decl.required:
            schema["required"] = list(decl.required)
        return {"name": decl.name, "description": decl.description, "parameters": schema}


class OpenAIClient(ModelClient):
    """OpenAI / Azure OpenAI chat completions client."""

    async def generate(
        self,
        conversation_text: str,
        tools: Sequence["ToolDeclaration"] | None = None,
        force_tool_use: bool = False,
    ) -> ModelReply:
        payload = self.build_payload(conversation_text, tools, force_tool_use)
        if self.model.provider == "azure":
            headers = {"api-key": self.model.api_key}
            params = {"api-version": self.model.api_version}
        else:
            headers = {"Authorization": f"Bearer {self.model.api_key}"}
            params = None
        data = await self._post_json(
            f"{self.model.base_url}/chat/completions",
            payload,
            headers=headers,
            params=params,
        )
        return self.parse_response(data)

    def build_payload(
        self,
        conversation_text: str,
        tools: Sequence["ToolDeclaration"] | None = None,
        force_tool_use: bool = False,
    ) -> dict:
        """Build the chat completions request body."""
        payload: dict[str, Any] = {
            "model": self.model.model_name,
            "messages": [{"role": "user", "content": conversation_text}],
            "temperature": self.model.temperature,
            "max_tokens": self.model.max_output_tokens,
        }
        if tools:
            payload["tools"] = [self._function_tool(t) for t in tools]
            payload["tool_choice"] = "required" if force_tool_use else "auto"
        return payload

    @staticmethod
    def parse_response(data: dict) -> ModelReply:
        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices or not isinstance(choices, list):
            raise RemoteCallError("No response candidates received")

        try:
            message = choices[0]["message"]
            content = message.get("content") or ""
            if not isinstance(content, str):
                raise TypeError("content is not a string")
            reply = ModelReply(text=content)
            for tool_call in message.get("tool_calls") or []:
                function = tool_call["function"]
                name = function.get("name")
                raw_args = function.get("arguments") or "{}"
                if isinstance(raw_args, str):
                    try:
                        raw_args = json.loads(raw_args)
                    except json.JSONDecodeError as e:
                        raise RemoteCallError(
                            f"Invalid arguments for function call '{name}': {e}"
                        ) from e
                reply.function_calls.append(_tool_call(name, raw_args))
        except (AttributeError, TypeError, KeyError) as e:
            raise RemoteCallError("Invalid response content structure") from e
        return reply

    @staticmethod
    def _function_tool(decl: "ToolDeclaration") -> dict:
        return {
            "type": "function",
            "function": {
                "name": decl.name,
                "description": decl.description,
                "parameters": {
                    "type": "object",
                    "properties": {
                        key: {"type": param.json_type, "description": param.description}
                        for key, param in decl.parameters.items()
                    },
                    "required": list(decl.required),
                },
            },
        }


class TracedModelClient(ModelClient):
    """Wraps another client and records every call with telemetry."""

    def __init__(self, inner: ModelClient, telemetry: "Telemetry"):
        super().__init__(inner.model, inner.settings)
        self.inner = inner
        self.telemetry = telemetry

    async def generate(
        self,
        conversation_text: str,
        tools: Sequence["ToolDeclaration"] | None = None,
        force_tool_use: bool = False,
    ) -> ModelReply:
        start = time.monotonic()
        with self.telemetry.span(
            "model_call",
            model=self.model_name,
            provider=self.model.provider,
            force_tool_use=force_tool_use,
            tool_count=len(tools or []),
        ) as span:
            try:
                reply = await self.inner.generate(conversation_text, tools, force_tool_use)
            except RemoteCallError as e:
                self.telemetry.record_llm_call(
                    model=self.model_name,
                    prompt_chars=len(conversation_text),
                    completion_chars=0,
                    function_calls=0,
                    latency_ms=(time.monotonic() - start) * 1000,
                    error=str(e),
                )
                raise
            span.set("function_calls", len(reply.function_calls))
            span.set("completion_chars", len(reply.text))

        self.telemetry.record_llm_call(
            model=self.model_name,
            prompt_chars=len(conversation_text),
            completion_chars=len(reply.text),
            function_calls=len(reply.function_calls),
            latency_ms=(time.monotonic() - start) * 1000,
        )
        return reply


def create_model_client(config: ChatConfig) -> ModelClient:
    """Build the client for the configured provider."""
    if config.model.provider == "gemini":
        return GeminiClient(config.model, config.client)
    return OpenAIClient(config.model, config.client)


def _tool_call(name: object, args: object) -> ToolCall:
    """Build a ToolCall from provider fields; malformed fields raise TypeError."""
    if not isinstance(name, str) or not name:
        raise TypeError("function call without a name")
    if args is None:
        args = {}
    if not isinstance(args, dict):
        raise TypeError(f"arguments for '{name}' are not an object")
    return ToolCall(name=name, args=args)
