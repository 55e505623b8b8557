"""
Plan and input validation.
"""

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List

from .distributions import Plan

HIGH_VOLUME_THRESHOLD = 10_000

_EMAIL_RE = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@"
    r"[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)+$"
)
_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f-\x9f]")


@dataclass
class ValidationResult:
    """Outcome of a validation pass; only errors make it invalid."""

    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


def _is_calendar_day(value: object) -> bool:
    return isinstance(value, date) and not isinstance(value, datetime)


def _is_count(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_plan(plan: Plan, max_per_day: int) -> ValidationResult:
    """Check a populated plan before it is executed."""
    result = ValidationResult()

    if not plan:
        result.errors.append("Commit plan is empty")
        return result

    for i, day in enumerate(plan):
        day_date = getattr(day, "date", None)
        count = getattr(day, "count", None)
        messages = getattr(day, "messages", None) or []

        if not _is_calendar_day(day_date):
            result.errors.append(f"Plan at index {i} has invalid date")

        if not _is_count(count) or count < 0:
            result.errors.append(f"Plan at index {i} has invalid commit count")
            continue

        if count > 0 and not messages:
            result.warnings.append(f"Plan at index {i} has commits but no messages")

        if count > max_per_day:
            result.warnings.append(
                f"Plan at index {i} exceeds max_per_day limit ({count} > {max_per_day})"
            )

    for i in range(1, len(plan)):
        prev = getattr(plan[i - 1], "date", None)
        curr = getattr(plan[i], "date", None)
        if _is_calendar_day(prev) and _is_calendar_day(curr) and curr <= prev:
            result.errors.append("Commit plan dates are not in chronological order")
            break

    counts = [getattr(day, "count", None) for day in plan]
    total = sum(c for c in counts if _is_count(c) and c > 0)
    if total > HIGH_VOLUME_THRESHOLD:
        result.warnings.append(
            f"Large number of commits planned ({total}). "
            "This may take a long time to execute."
        )

    return result


def is_valid_email(email: str) -> bool:
    trimmed = email.strip()
    return bool(_EMAIL_RE.match(trimmed)) and ".." not in trimmed


def is_valid_author_name(name: str) -> bool:
    """1-100 characters, no control characters, no surrounding whitespace."""
    trimmed = name.strip()
    return (
        0 < len(trimmed) <= 100
        and not _CONTROL_RE.search(trimmed)
        and trimmed == name
    )
