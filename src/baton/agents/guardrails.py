"""
Guardrail definitions.

A guardrail is a named predicate over the run input or the candidate final
output. It reports a tripwire flag plus an arbitrary diagnostic payload.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Generic, TypeVar, Union, overload

from ..items import RunItem
from ..tools.base import call_maybe_async

if TYPE_CHECKING:
    from ..core.context import RunContext
    from .base import Agent

TContext = TypeVar("TContext")


@dataclass(frozen=True, slots=True)
class GuardrailFunctionOutput:
    """
    Outcome reported by a guardrail function.

    Attributes:
        tripwire_triggered: When `True`, the run stops.
        output_info: Diagnostic payload surfaced to the caller.
    """

    tripwire_triggered: bool
    output_info: Any = None


@dataclass(frozen=True, slots=True)
class InputGuardrailResult:
    guardrail_name: str
    output: GuardrailFunctionOutput


@dataclass(frozen=True, slots=True)
class OutputGuardrailResult:
    guardrail_name: str
    output: GuardrailFunctionOutput
    agent_name: str | None = None


InputGuardrailFunction = Callable[
    ..., Union[GuardrailFunctionOutput, Awaitable[GuardrailFunctionOutput]]
]
OutputGuardrailFunction = Callable[
    ..., Union[GuardrailFunctionOutput, Awaitable[GuardrailFunctionOutput]]
]


def _check_output(name: str, value: Any) -> GuardrailFunctionOutput:
    if not isinstance(value, GuardrailFunctionOutput):
        raise TypeError(
            f"Guardrail '{name}' must return GuardrailFunctionOutput, got {type(value).__name__}"
        )
    return value


class InputGuardrail(Generic[TContext]):
    """Check over the run input; `fn(run_context, agent, input_items)`."""

    def __init__(self, guardrail_function: InputGuardrailFunction, *, name: str | None = None) -> None:
        self.guardrail_function = guardrail_function
        self.name = name or getattr(guardrail_function, "__name__", "input_guardrail")

    async def run(
        self,
        agent: "Agent[TContext]",
        input_items: list[RunItem],
        context: "RunContext[TContext]",
    ) -> InputGuardrailResult:
        out = await call_maybe_async(self.guardrail_function, context, agent, list(input_items))
        return InputGuardrailResult(guardrail_name=self.name, output=_check_output(self.name, out))


class OutputGuardrail(Generic[TContext]):
    """Check over a candidate final output; `fn(run_context, agent, output)`."""

    def __init__(self, guardrail_function: OutputGuardrailFunction, *, name: str | None = None) -> None:
        self.guardrail_function = guardrail_function
        self.name = name or getattr(guardrail_function, "__name__", "output_guardrail")

    async def run(
        self,
        agent: "Agent[TContext]",
        agent_output: Any,
        context: "RunContext[TContext]",
    ) -> OutputGuardrailResult:
        out = await call_maybe_async(self.guardrail_function, context, agent, agent_output)
        return OutputGuardrailResult(
            guardrail_name=self.name,
            output=_check_output(self.name, out),
            agent_name=agent.name,
        )


@overload
def input_guardrail(fn: InputGuardrailFunction) -> InputGuardrail[Any]: ...


@overload
def input_guardrail(
    *, name: str | None = None
) -> Callable[[InputGuardrailFunction], InputGuardrail[Any]]: ...


def input_guardrail(fn: InputGuardrailFunction | None = None, *, name: str | None = None):
    """Decorator form, usable bare (`@input_guardrail`) or called (`@input_guardrail(name=...)`)."""

    def decorator(f: InputGuardrailFunction) -> InputGuardrail[Any]:
        return InputGuardrail(f, name=name)

    if fn is not None:
        return decorator(fn)
    return decorator


@overload
def output_guardrail(fn: OutputGuardrailFunction) -> OutputGuardrail[Any]: ...


@overload
def output_guardrail(
    *, name: str | None = None
) -> Callable[[OutputGuardrailFunction], OutputGuardrail[Any]]: ...


def output_guardrail(fn: OutputGuardrailFunction | None = None, *, name: str | None = None):
    def decorator(f: OutputGuardrailFunction) -> OutputGuardrail[Any]:
        return OutputGuardrail(f, name=name)

    if fn is not None:
        return decorator(fn)
    return decorator
