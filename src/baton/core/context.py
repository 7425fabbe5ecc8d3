"""
Run context threaded through guardrails, tools, instructions, and hooks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from ..agents.errors import RunStateCorruptionError
from ..items import ApprovalRequestItem
from ..models.types import Usage

TContext = TypeVar("TContext")


@dataclass(slots=True)
class ApprovalRecord:
    """
    Approval decisions for one tool name.

    Each side is either `True` (every call) or the list of decided call ids.
    """

    approved: bool | list[str] = field(default_factory=list)
    rejected: bool | list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "approved": self.approved if isinstance(self.approved, bool) else list(self.approved),
            "rejected": self.rejected if isinstance(self.rejected, bool) else list(self.rejected),
        }


def _decision_side(value: Any) -> bool | list[str]:
    if isinstance(value, bool):
        return value
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return list(value)
    raise RunStateCorruptionError(f"Invalid approval record value: {value!r}")


class RunContext(Generic[TContext]):
    """
    Mutable per-run wrapper around the caller's context payload.

    Attributes:
        context: Caller payload, passed by reference and never inspected.
        usage: Usage accumulated across every model call of the run.
    """

    def __init__(self, context: TContext = None, *, usage: Usage | None = None) -> None:  # type: ignore[assignment]
        self.context = context
        self.usage = usage or Usage()
        self._approvals: dict[str, ApprovalRecord] = {}

    def add_usage(self, usage: Usage) -> None:
        self.usage = self.usage.add(usage)

    def is_tool_approved(self, tool_name: str, call_id: str) -> bool | None:
        """
        Look up the decision for one call.

        Returns:
            `True` if approved, `False` if rejected, `None` when undecided.
            A call that is both approved and rejected counts as approved.
        """
        record = self._approvals.get(tool_name)
        if record is None:
            return None

        approved = record.approved is True or (
            isinstance(record.approved, list) and call_id in record.approved
        )
        if approved:
            return True

        rejected = record.rejected is True or (
            isinstance(record.rejected, list) and call_id in record.rejected
        )
        if rejected:
            return False
        return None

    def approve_tool(self, item: ApprovalRequestItem, *, always: bool = False) -> None:
        """Approve one call, or with `always=True` every call of that tool."""
        record = self._approvals.setdefault(item.name, ApprovalRecord())
        if always:
            record.approved = True
            record.rejected = []
            return
        if isinstance(record.approved, list) and item.call_id not in record.approved:
            record.approved.append(item.call_id)

    def reject_tool(self, item: ApprovalRequestItem, *, always: bool = False) -> None:
        """Reject one call, or with `always=True` every call of that tool."""
        record = self._approvals.setdefault(item.name, ApprovalRecord())
        if always:
            record.rejected = True
            record.approved = []
            return
        if isinstance(record.rejected, list) and item.call_id not in record.rejected:
            record.rejected.append(item.call_id)

    def approvals_to_dict(self) -> dict[str, dict[str, Any]]:
        return {name: rec.to_dict() for name, rec in self._approvals.items()}

    def load_approvals(self, value: Any) -> None:
        """
        Replace the ledger with a serialized one.

        Raises:
            RunStateCorruptionError: If the ledger is malformed.
        """
        if not isinstance(value, dict):
            raise RunStateCorruptionError("Approvals ledger must be an object")
        approvals: dict[str, ApprovalRecord] = {}
        for name, row in value.items():
            if not isinstance(row, dict):
                raise RunStateCorruptionError(f"Approval record for '{name}' must be an object")
            approvals[str(name)] = ApprovalRecord(
                approved=_decision_side(row.get("approved", [])),
                rejected=_decision_side(row.get("rejected", [])),
            )
        self._approvals = approvals
