"""
Progress of a work item, derived from its direct children only.

Recomputed on every read — never stored. Percentage uses exact Decimal
arithmetic with ROUND_HALF_UP so 1/8 → 13 and 1/3 → 33.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from taskflow.domain.enums import WorkItemStatus

_HUNDRED = Decimal(100)


@dataclass(frozen=True, slots=True)
class Progress:
    completed: int
    total: int
    percentage: int


NO_PROGRESS = Progress(completed=0, total=0, percentage=0)


def calculate_progress(child_statuses: Iterable[WorkItemStatus]) -> Progress:
    """
    Aggregate the statuses of a node's direct children.

    A leaf (no children) yields 0/0/0; the client renders that as an
    indeterminate indicator rather than "0% done".
    """
    statuses = list(child_statuses)
    if not statuses:
        return NO_PROGRESS

    completed = sum(1 for status in statuses if status == WorkItemStatus.DONE)
    total = len(statuses)
    percentage = (Decimal(completed) / Decimal(total) * _HUNDRED).quantize(
        Decimal("1"), rounding=ROUND_HALF_UP,
    )
    return Progress(completed=completed, total=total, percentage=int(percentage))
