"""Tagged result returned by every mutating operation."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Any


class OutcomeKind(str, Enum):
    """Kind of outcome: ``SUCCESS``, ``CONFLICT``, ``INVALID``, or ``FAILURE``."""
    SUCCESS = "success"
    CONFLICT = "conflict"
    INVALID = "invalid"
    FAILURE = "failure"

    def __str__(self) -> str:          # noqa: D105
        return self.value


@dataclass(frozen=True)
class Outcome:
    """Result of a remote mutation or reconciliation attempt.

    Callers branch on :attr:`kind`.  Conflict (refresh and reapply),
    invalid (fix the input) and failure (retry) are never merged.

    Attributes:
        kind: The :class:`OutcomeKind` tag.
        value: Payload on success (a revision, a path, a :class:`CommitRef`).
        reason: Human-readable description for non-success outcomes.
        step: Name of the step that failed, for multi-step operations.
        warning: Non-fatal note attached to a success.
    """

    kind: OutcomeKind
    value: Any = None
    reason: str | None = None
    step: str | None = None
    warning: str | None = None

    @classmethod
    def success(cls, value: Any = None, *, warning: str | None = None) -> Outcome:
        return cls(OutcomeKind.SUCCESS, value=value, warning=warning)

    @classmethod
    def conflict(cls, reason: str, *, step: str | None = None) -> Outcome:
        return cls(OutcomeKind.CONFLICT, reason=reason, step=step)

    @classmethod
    def invalid(cls, reason: str) -> Outcome:
        return cls(OutcomeKind.INVALID, reason=reason)

    @classmethod
    def failure(cls, reason: str, *, step: str | None = None) -> Outcome:
        return cls(OutcomeKind.FAILURE, reason=reason, step=step)

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS

    @property
    def is_conflict(self) -> bool:
        return self.kind is OutcomeKind.CONFLICT

    @property
    def is_invalid(self) -> bool:
        return self.kind is OutcomeKind.INVALID

    @property
    def is_failure(self) -> bool:
        return self.kind is OutcomeKind.FAILURE

    def at_step(self, step: str) -> Outcome:
        """Return a copy of this outcome tagged with *step*."""
        return dataclasses.replace(self, step=step)
