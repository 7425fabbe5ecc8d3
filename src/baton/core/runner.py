"""
Canonical baton runner assembled from focused mixins.
"""

from __future__ import annotations

from .runner_api import RunnerAPIMixin
from .runner_execution import RunnerExecutionMixin
from .runner_guardrails import RunnerGuardrailsMixin
from .runner_handoffs import RunnerHandoffsMixin
from .runner_internals import RunnerInternalsMixin
from .runner_tools import RunnerToolsMixin
from .runner_types import RunnerConfig


class Runner(
    RunnerExecutionMixin,
    RunnerToolsMixin,
    RunnerHandoffsMixin,
    RunnerGuardrailsMixin,
    RunnerInternalsMixin,
    RunnerAPIMixin,
):
    """
    Turn-loop runtime for baton agents.

    Composition:
        - `RunnerAPIMixin`: public API (`run`, `run_streamed`, `run_sync`)
        - `RunnerExecutionMixin`: turn loop, resume flow, final output
        - `RunnerToolsMixin`: approval gating and concurrent tool calls
        - `RunnerHandoffsMixin`: hand-off dispatch and history filters
        - `RunnerGuardrailsMixin`: input/output guardrail evaluation
        - `RunnerInternalsMixin`: request building, events, telemetry helpers
    """


__all__ = ["Runner", "RunnerConfig"]
