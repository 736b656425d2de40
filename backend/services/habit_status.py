from __future__ import annotations

from enum import Enum

from utils.errors import ValidationError


class HabitStatus(str, Enum):
    INCOMPLETE = "incomplete"
    PARTIAL = "partial"
    COMPLETE = "complete"
    NOT_APPLICABLE = "not_applicable"


VALID_STATUSES = {s.value for s in HabitStatus}
DEFAULT_STATUS = HabitStatus.INCOMPLETE


def parse_status(raw: str | HabitStatus | None) -> HabitStatus:
    if isinstance(raw, HabitStatus):
        return raw
    value = str(raw or "").strip().lower()
    if value not in VALID_STATUSES:
        raise ValidationError(f"Unknown habit status '{raw}'")
    return HabitStatus(value)


def next_status(current: str | HabitStatus | None) -> HabitStatus:
    """Toggle cycle: complete -> incomplete, anything else -> complete."""
    if current is None:
        return HabitStatus.COMPLETE
    if parse_status(current) == HabitStatus.COMPLETE:
        return HabitStatus.INCOMPLETE
    return HabitStatus.COMPLETE


def resolve_status(
    current: str | HabitStatus | None,
    requested: str | HabitStatus | None = None,
) -> HabitStatus:
    if requested is not None:
        return parse_status(requested)
    return next_status(current)


def counts_toward_rate(status: str | HabitStatus) -> bool:
    return parse_status(status) != HabitStatus.NOT_APPLICABLE
