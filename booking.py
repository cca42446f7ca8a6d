"""Conflict check that runs before a consultation is written.

The check is a pre-check only: two concurrent creates for the same slot can
both pass it. The unique constraint on ``consultations`` catches that case.
"""
import re
from datetime import date, datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from logging_config import get_logger

logger = get_logger(__name__)

BOOKING_CONFLICT_MESSAGE = (
    "This time is already booked for the selected date. Please choose another time."
)

_SEPARATORS = re.compile(r"[:.\s]+")
# hour, optional ":00" minutes, AM/PM
_HOUR_AMPM = re.compile(r"^(\d{1,2}?)(?:00)?(AM|PM)$")

# finder(select_date, preferred_time, limit) -> matching rows
ConsultationFinder = Callable[[str, str, int], Awaitable[Sequence[Any]]]


class ConsultationValidationError(Exception):
    """The write was rejected; ``messages`` are safe to show to the user."""

    def __init__(self, messages: List[str]):
        super().__init__("; ".join(messages))
        self.messages = list(messages)


class ValidationErrors:
    """Collects rejection messages for a single write without raising."""

    def __init__(self):
        self.messages: List[str] = []

    def add(self, message: str):
        self.messages.append(message)

    def __bool__(self):
        return bool(self.messages)

    def raise_if_any(self):
        if self.messages:
            raise ConsultationValidationError(self.messages)


def normalize_preferred_time(value: Any) -> Optional[str]:
    """Turn "09:00am", "9am", "9.AM" and friends into "9 AM".

    Values that don't look like an hour + AM/PM come back trimmed but
    otherwise untouched.
    """
    if value is None:
        return None
    text = str(value).upper().strip()
    compact = _SEPARATORS.sub("", text).lstrip("0")
    match = _HOUR_AMPM.match(compact)
    if match:
        return f"{int(match.group(1))} {match.group(2)}"
    return str(value).strip()


def normalize_select_date(value: Any) -> Any:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return value


def needs_conflict_check(operation: str, resolved_data: Dict[str, Any], item: Any = None) -> bool:
    if operation == "create":
        return True
    if operation != "update":
        return False

    new_date = resolved_data.get("select_date")
    new_time = resolved_data.get("preferred_time")
    old_date = getattr(item, "select_date", None)
    old_time = getattr(item, "preferred_time", None)
    return bool(
        (new_date and new_date != old_date) or (new_time and new_time != old_time)
    )


async def validate_consultation_input(
    finder: ConsultationFinder,
    operation: str,
    resolved_data: Dict[str, Any],
    errors: ValidationErrors,
    item: Any = None,
):
    """Normalize date/time in ``resolved_data`` and flag slot conflicts.

    Updates whose normalized date and time match the stored ones are not
    re-checked. An empty time is stored as NULL so it never collides on the
    unique slot constraint.
    """
    if "preferred_time" in resolved_data:
        resolved_data["preferred_time"] = (
            normalize_preferred_time(resolved_data["preferred_time"]) or None
        )
    if "select_date" in resolved_data:
        resolved_data["select_date"] = normalize_select_date(resolved_data["select_date"])

    if not needs_conflict_check(operation, resolved_data, item):
        return

    time = resolved_data.get("preferred_time")
    select_date = resolved_data.get("select_date")
    if not (select_date and time):
        return

    try:
        existing = await finder(select_date, time, 1)
    except Exception:
        logger.exception(
            "consultation_conflict_check_failed",
            select_date=select_date,
            preferred_time=time,
        )
        raise

    if existing:
        logger.info("consultation_slot_taken", select_date=select_date, preferred_time=time)
        errors.add(BOOKING_CONFLICT_MESSAGE)
