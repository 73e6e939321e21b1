"""LangSmith tracing and local JSONL metrics for a chat session."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
import json
import logging
import os
import threading
import time
from typing import Any, Iterator

from gemchat.config import TelemetryConfig


@dataclass
class LLMCallMetric:
    """One request to the model service."""
    model: str
    prompt_chars: int
    completion_chars: int
    function_calls: int
    latency_ms: float
    error: str | None = None


@dataclass
class ToolCallMetric:
    """One executed tool call."""
    tool_name: str
    args: dict
    duration_ms: float
    success: bool
    error: str | None = None


@dataclass
class TurnMetric:
    """One user turn and how it ended (answer, tools or error)."""
    turn: int
    outcome: str
    duration_ms: float


@dataclass
class SessionMetrics:
    session_id: str
    total_turns: int
    total_duration_ms: float
    errors: int
    tool_calls: list[ToolCallMetric] = field(default_factory=list)
    llm_calls: list[LLMCallMetric] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class SpanHandle:
    """Attribute setter for an open span; does nothing when tracing is off."""

    def __init__(self, span=None):
        self._span = span

    def set(self, key: str, value: Any) -> None:
        if self._span is not None and value is not None:
            self._span.set_attribute(key, value)


class Telemetry:
    """
    Session telemetry.

    Metrics are always kept in memory and, with ``metrics`` enabled, appended
    to ``<log_dir>/<session_id>.jsonl``. Spans are exported to LangSmith over
    OTLP/HTTP only when tracing is on and an API key is configured.
    """

    def __init__(self, config: TelemetryConfig, session_id: str):
        self.config = config
        self.session_id = session_id
        self._started = time.monotonic()
        self._write_lock = threading.Lock()
        self._llm_calls: list[LLMCallMetric] = []
        self._tool_calls: list[ToolCallMetric] = []
        self._turns: list[TurnMetric] = []
        self._provider = None
        self._tracer = None
        self._logger = logging.getLogger("gemchat.telemetry")

        self._metrics_path: str | None = None
        if config.metrics:
            try:
                os.makedirs(config.log_dir, exist_ok=True)
                self._metrics_path = os.path.join(config.log_dir, f"{session_id}.jsonl")
            except OSError as e:
                self._logger.warning("Metrics disabled, cannot write to %s: %s", config.log_dir, e)

        if config.tracing and config.langsmith_api_key:
            self._start_tracing()

    @property
    def tracing_active(self) -> bool:
        return self._tracer is not None

    @contextmanager
    def span(self, name: str, **attributes) -> Iterator[SpanHandle]:
        if self._tracer is None:
            yield SpanHandle()
            return
        with self._tracer.start_as_current_span(name) as span:
            handle = SpanHandle(span)
            handle.set("gemchat.session_id", self.session_id)
            for key, value in attributes.items():
                handle.set(key, value)
            yield handle

    def record_llm_call(self, model: str, prompt_chars: int, completion_chars: int,
                        function_calls: int, latency_ms: float, error: str | None = None) -> None:
        metric = LLMCallMetric(model, prompt_chars, completion_chars, function_calls, latency_ms, error)
        self._llm_calls.append(metric)
        self._write("llm_call", asdict(metric))

    def record_tool_call(self, tool_name: str, args: dict, duration_ms: float,
                         success: bool, error: str | None = None) -> None:
        metric = ToolCallMetric(tool_name, dict(args), duration_ms, success, error)
        self._tool_calls.append(metric)
        self._write("tool_call", asdict(metric))

    def record_turn(self, turn: int, outcome: str, duration_ms: float) -> None:
        metric = TurnMetric(turn, outcome, duration_ms)
        self._turns.append(metric)
        self._write("turn", asdict(metric))

    def summary(self) -> SessionMetrics:
        return SessionMetrics(
            session_id=self.session_id,
            total_turns=len(self._turns),
            total_duration_ms=(time.monotonic() - self._started) * 1000,
            errors=sum(1 for t in self._turns if t.outcome == "error"),
            tool_calls=list(self._tool_calls),
            llm_calls=list(self._llm_calls),
        )

    def finalize(self) -> None:
        """Write the session summary and flush any pending spans."""
        self._write("session_summary", self.summary().to_dict())
        if self._provider is not None:
            self._provider.shutdown()
        self._provider = None
        self._tracer = None

    def _write(self, event: str, payload: dict[str, Any]) -> None:
        if self._metrics_path is None:
            return
        record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "session_id": self.session_id,
            "event": event,
            **payload,
        }
        with self._write_lock, open(self._metrics_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(record, default=str) + "\n")

    def _start_tracing(self) -> None:
        try:
            from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
            from opentelemetry.sdk.resources import Resource
            from opentelemetry.sdk.trace import TracerProvider
            from opentelemetry.sdk.trace.export import BatchSpanProcessor

            provider = TracerProvider(
                resource=Resource.create({"service.name": self.config.service_name})
            )
            provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(
                endpoint=self.config.endpoint,
                headers={
                    "x-api-key": self.config.langsmith_api_key,
                    "Langsmith-Project": self.config.project,
                },
            )))
        except Exception as e:
            self._logger.warning("LangSmith tracing disabled: %s", e)
            self._write("telemetry_warning", {"message": f"OpenTelemetry setup failed: {e}"})
            return
        self._provider = provider
        self._tracer = provider.get_tracer("gemchat")
