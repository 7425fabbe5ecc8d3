"""
Core runtime exports.
"""

from .context import ApprovalRecord, RunContext
from .events import AgentUpdatedStreamEvent, RawModelStreamEvent, RunItemStreamEvent, StreamEvent
from .result import RunResult, RunResultStreaming
from .runner import Runner, RunnerConfig
from .state import CURRENT_SCHEMA_VERSION, RunState
from .telemetry import (
    ClosedSpan,
    InMemoryTelemetrySink,
    MetricPoint,
    NullTelemetrySink,
    OpenTelemetrySink,
    TelemetryEvent,
    TelemetrySink,
    TelemetrySpan,
    create_telemetry_sink_from_env,
)

__all__ = [
    "Runner",
    "RunnerConfig",
    "RunContext",
    "ApprovalRecord",
    "RunState",
    "CURRENT_SCHEMA_VERSION",
    "RunResult",
    "RunResultStreaming",
    "StreamEvent",
    "RawModelStreamEvent",
    "RunItemStreamEvent",
    "AgentUpdatedStreamEvent",
    "TelemetrySink",
    "TelemetryEvent",
    "TelemetrySpan",
    "NullTelemetrySink",
    "InMemoryTelemetrySink",
    "OpenTelemetrySink",
    "ClosedSpan",
    "MetricPoint",
    "create_telemetry_sink_from_env",
]
