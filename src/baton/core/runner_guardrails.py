"""
Guardrail orchestration for the runner.
"""

from __future__ import annotations

import asyncio
from typing import Any

from ..agents.base import Agent
from ..agents.errors import (
    GuardrailExecutionError,
    InputGuardrailTripwireTriggered,
    OutputGuardrailTripwireTriggered,
)
from ..agents.guardrails import InputGuardrailResult, OutputGuardrailResult
from .state import RunState


class RunnerGuardrailsMixin:
    """
    Runs input and output guardrails concurrently, then inspects outcomes
    in declaration order: the first failing check or the first tripwire wins.
    """

    async def _run_input_guardrails(
        self,
        state: RunState[Any],
        agent: Agent[Any],
    ) -> list[InputGuardrailResult]:
        guardrails = [*self.config.input_guardrails, *agent.input_guardrails]
        state.input_guardrail_results = []
        if not guardrails:
            return []

        settled = await asyncio.gather(
            *(g.run(agent, list(state.input_items), state.context) for g in guardrails),
            return_exceptions=True,
        )
        for guardrail, outcome in zip(guardrails, settled):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                raise GuardrailExecutionError(
                    f"Input guardrail '{guardrail.name}' failed: {outcome}",
                    guardrail_name=guardrail.name,
                    state=state,
                ) from outcome
            state.input_guardrail_results.append(outcome)
            if outcome.output.tripwire_triggered:
                self._telemetry_counter(
                    "agent.guardrail.tripwires.total",
                    attributes={"guardrail_name": guardrail.name, "kind": "input"},
                )
                raise InputGuardrailTripwireTriggered(
                    f"Input guardrail '{guardrail.name}' triggered tripwire",
                    result=outcome,
                    state=state,
                )
        return list(state.input_guardrail_results)

    async def _run_output_guardrails(
        self,
        state: RunState[Any],
        agent: Agent[Any],
        output: Any,
        *,
        record: bool = True,
    ) -> list[OutputGuardrailResult]:
        """
        Check a candidate final output.

        With `record=False` (partial streamed text) results are not stored
        on the state; a tripwire still stops the run.
        """
        guardrails = [*self.config.output_guardrails, *agent.output_guardrails]
        if not guardrails:
            return []

        settled = await asyncio.gather(
            *(g.run(agent, output, state.context) for g in guardrails),
            return_exceptions=True,
        )
        results: list[OutputGuardrailResult] = []
        for guardrail, outcome in zip(guardrails, settled):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                raise GuardrailExecutionError(
                    f"Output guardrail '{guardrail.name}' failed: {outcome}",
                    guardrail_name=guardrail.name,
                    state=state,
                ) from outcome
            results.append(outcome)
            if outcome.output.tripwire_triggered:
                if record:
                    state.output_guardrail_results.extend(results)
                self._telemetry_counter(
                    "agent.guardrail.tripwires.total",
                    attributes={"guardrail_name": guardrail.name, "kind": "output"},
                )
                raise OutputGuardrailTripwireTriggered(
                    f"Output guardrail '{guardrail.name}' triggered tripwire",
                    result=outcome,
                    state=state,
                )
        if record:
            state.output_guardrail_results.extend(results)
        return results
