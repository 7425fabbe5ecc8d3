"""
Telemetry sinks for runner observability.

The runner reports one span per run, turn and tool call, counters for turns,
tool calls, hand-offs and guardrail tripwires, duration histograms, and one
`agent.run.event` per run item or agent switch published to a stream.

`NullTelemetrySink` is the default, `InMemoryTelemetrySink` records every
measurement for tests, and `OpenTelemetrySink` forwards to the global
OpenTelemetry providers when `opentelemetry-api` is installed.
"""

from __future__ import annotations

import os
import time
from dataclasses import dataclass, field
from typing import Any, Protocol

from ..agents.errors import AgentConfigurationError
from ..models.types import JSONValue

SpanStatus = str  # "ok", "error", "interrupted", "cancelled"


@dataclass(frozen=True, slots=True)
class TelemetryEvent:
    """
    Point-in-time telemetry event.

    Attributes:
        name: Event name.
        timestamp_ms: Epoch milliseconds at emission time.
        attributes: JSON-safe event attributes.
    """

    name: str
    timestamp_ms: int
    attributes: dict[str, JSONValue] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class TelemetrySpan:
    """Open span handed back to the runner; `native_span` is backend-owned."""

    name: str
    started_at_ms: int
    attributes: dict[str, JSONValue] = field(default_factory=dict)
    native_span: Any = None


@dataclass(frozen=True, slots=True)
class ClosedSpan:
    name: str
    started_at_ms: int
    ended_at_ms: int
    status: SpanStatus
    error: str | None
    attributes: dict[str, JSONValue]


@dataclass(frozen=True, slots=True)
class MetricPoint:
    name: str
    value: float
    attributes: dict[str, JSONValue]


class TelemetrySink(Protocol):
    """
    Protocol implemented by telemetry backends.

    The runner calls every method through guarded helpers, so a failing sink
    never breaks a run.
    """

    def record_event(self, event: TelemetryEvent) -> None: ...

    def start_span(self, name: str, *, attributes: dict[str, JSONValue] | None = None) -> TelemetrySpan | None:
        """Start a span, or return `None` when spans are unsupported."""
        ...

    def end_span(
        self,
        span: TelemetrySpan | None,
        *,
        status: SpanStatus,
        error: str | None = None,
        attributes: dict[str, JSONValue] | None = None,
    ) -> None: ...

    def increment_counter(
        self,
        name: str,
        value: int = 1,
        *,
        attributes: dict[str, JSONValue] | None = None,
    ) -> None: ...

    def record_histogram(
        self,
        name: str,
        value: float,
        *,
        attributes: dict[str, JSONValue] | None = None,
    ) -> None: ...


class NullTelemetrySink:
    """Drops everything. Spans are unsupported, so `start_span` returns `None`."""

    def record_event(self, event: TelemetryEvent) -> None:
        return None

    def start_span(self, name: str, *, attributes: dict[str, JSONValue] | None = None) -> TelemetrySpan | None:
        return None

    def end_span(self, span: TelemetrySpan | None, *, status: SpanStatus, **_: Any) -> None:
        return None

    def increment_counter(self, name: str, value: int = 1, **_: Any) -> None:
        return None

    def record_histogram(self, name: str, value: float, **_: Any) -> None:
        return None


@dataclass(slots=True)
class InMemoryTelemetrySink:
    """Keeps every measurement in memory, for tests and debugging."""

    _events: list[TelemetryEvent] = field(default_factory=list)
    _spans: list[ClosedSpan] = field(default_factory=list)
    _counters: list[MetricPoint] = field(default_factory=list)
    _histograms: list[MetricPoint] = field(default_factory=list)

    def record_event(self, event: TelemetryEvent) -> None:
        self._events.append(event)

    def start_span(self, name: str, *, attributes: dict[str, JSONValue] | None = None) -> TelemetrySpan:
        return TelemetrySpan(name=name, started_at_ms=now_ms(), attributes=dict(attributes or {}))

    def end_span(
        self,
        span: TelemetrySpan | None,
        *,
        status: SpanStatus,
        error: str | None = None,
        attributes: dict[str, JSONValue] | None = None,
    ) -> None:
        if span is None:
            return
        self._spans.append(
            ClosedSpan(
                name=span.name,
                started_at_ms=span.started_at_ms,
                ended_at_ms=now_ms(),
                status=status,
                error=error,
                attributes={**span.attributes, **(attributes or {})},
            )
        )

    def increment_counter(
        self,
        name: str,
        value: int = 1,
        *,
        attributes: dict[str, JSONValue] | None = None,
    ) -> None:
        self._counters.append(MetricPoint(name=name, value=int(value), attributes=dict(attributes or {})))

    def record_histogram(
        self,
        name: str,
        value: float,
        *,
        attributes: dict[str, JSONValue] | None = None,
    ) -> None:
        self._histograms.append(MetricPoint(name=name, value=float(value), attributes=dict(attributes or {})))

    def events(self) -> list[TelemetryEvent]:
        return list(self._events)

    def spans(self) -> list[ClosedSpan]:
        """Closed spans, in closing order."""
        return list(self._spans)

    def counter_total(self, name: str) -> int:
        return int(sum(p.value for p in self._counters if p.name == name))

    def histograms(self, name: str | None = None) -> list[MetricPoint]:
        return [p for p in self._histograms if name is None or p.name == name]


@dataclass(slots=True)
class OpenTelemetrySink:
    """
    Sink backed by the global OpenTelemetry tracer and meter providers.

    `opentelemetry` is imported lazily, so it stays an optional dependency.
    When the import fails every call becomes a no-op.
    """

    tracer_name: str = "baton.core.runner"
    meter_name: str = "baton.core.runner"

    _tracer: Any = field(default=None, init=False, repr=False)
    _meter: Any = field(default=None, init=False, repr=False)
    _instruments: dict[tuple[str, str], Any] = field(default_factory=dict, init=False, repr=False)

    def _ensure_clients(self) -> None:
        if self._tracer is not None and self._meter is not None:
            return
        try:
            from opentelemetry import metrics, trace
        except Exception as e:
            raise AgentConfigurationError("OpenTelemetrySink requires 'opentelemetry-api'") from e

        self._tracer = trace.get_tracer(self.tracer_name)
        self._meter = metrics.get_meter(self.meter_name)

    def _instrument(self, kind: str, name: str) -> Any:
        key = (kind, name)
        inst = self._instruments.get(key)
        if inst is None:
            factory = self._meter.create_counter if kind == "counter" else self._meter.create_histogram
            inst = self._instruments[key] = factory(name)
        return inst

    def record_event(self, event: TelemetryEvent) -> None:
        # Run events are counted per event type; OTel has no standalone events.
        self.increment_counter(
            "agent.run.events",
            attributes={"event_name": event.name, **event.attributes},
        )

    def start_span(self, name: str, *, attributes: dict[str, JSONValue] | None = None) -> TelemetrySpan | None:
        try:
            self._ensure_clients()
            native = self._tracer.start_span(name=name)
        except Exception:
            return None
        attr = _attrs(attributes)
        if attr:
            native.set_attributes(attr)
        return TelemetrySpan(
            name=name,
            started_at_ms=now_ms(),
            attributes=dict(attributes or {}),
            native_span=native,
        )

    def end_span(
        self,
        span: TelemetrySpan | None,
        *,
        status: SpanStatus,
        error: str | None = None,
        attributes: dict[str, JSONValue] | None = None,
    ) -> None:
        if span is None or span.native_span is None:
            return
        from opentelemetry.trace import Status, StatusCode

        native = span.native_span
        attr = _attrs({**span.attributes, **(attributes or {})})
        if attr:
            native.set_attributes(attr)
        if error:
            native.record_exception(Exception(error))
        # A suspended run is a normal outcome.
        if status in ("ok", "interrupted"):
            native.set_status(Status(StatusCode.OK))
        else:
            native.set_status(Status(StatusCode.ERROR, error or status))
        native.end()

    def increment_counter(
        self,
        name: str,
        value: int = 1,
        *,
        attributes: dict[str, JSONValue] | None = None,
    ) -> None:
        try:
            self._ensure_clients()
        except AgentConfigurationError:
            return
        self._instrument("counter", name).add(int(value), attributes=_attrs(attributes))

    def record_histogram(
        self,
        name: str,
        value: float,
        *,
        attributes: dict[str, JSONValue] | None = None,
    ) -> None:
        try:
            self._ensure_clients()
        except AgentConfigurationError:
            return
        self._instrument("histogram", name).record(float(value), attributes=_attrs(attributes))


def create_telemetry_sink_from_env() -> TelemetrySink:
    """
    Select a sink from `BATON_TELEMETRY` (`none`, `memory`, `otel`).

    Raises:
        AgentConfigurationError: If the value is not recognized.
    """
    kind = os.getenv("BATON_TELEMETRY", "none").strip().lower()
    if kind in ("", "none", "null"):
        return NullTelemetrySink()
    if kind in ("memory", "inmemory"):
        return InMemoryTelemetrySink()
    if kind in ("otel", "opentelemetry"):
        return OpenTelemetrySink()
    raise AgentConfigurationError(f"Unknown BATON_TELEMETRY value: {kind!r}")


def now_ms() -> int:
    return int(time.time() * 1000)


def _attrs(value: dict[str, JSONValue] | None) -> dict[str, Any]:
    return {str(k): _to_attr(v) for k, v in (value or {}).items() if v is not None}


def _to_attr(value: JSONValue) -> Any:
    """OpenTelemetry attributes accept primitives and homogeneous sequences only."""
    if isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, list):
        return tuple(str(item) for item in value)
    return str(value)
