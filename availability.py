"""Read-only summaries of booked consultation slots."""
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from dateutil import parser as date_parser
from sqlmodel import select
from sqlalchemy.ext.asyncio import AsyncSession

from logging_config import get_logger
from models import Consultation

logger = get_logger(__name__)

_ISO_DAY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class DateShape(Enum):
    NUMERIC = "numeric"
    ISO_STRING = "iso_string"
    FREE_STRING = "free_string"
    DATE_VALUE = "date_value"


@dataclass
class DayAvailability:
    date: str
    booked_count: int = 0
    booked_times: List[str] = field(default_factory=list)


def classify_date(value: Any) -> Optional[DateShape]:
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return DateShape.NUMERIC
    if isinstance(value, str):
        if value.isdigit():
            return DateShape.NUMERIC
        if _ISO_DAY.match(value):
            return DateShape.ISO_STRING
        return DateShape.FREE_STRING
    if isinstance(value, (date, datetime)):
        return DateShape.DATE_VALUE
    return DateShape.FREE_STRING


def _utc_day(moment: datetime) -> str:
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.date().isoformat()


def _from_epoch_ms(value: Any) -> str:
    # Stored timestamps are epoch milliseconds
    try:
        return _utc_day(datetime.fromtimestamp(float(value) / 1000, tz=timezone.utc))
    except (ValueError, OverflowError, OSError):
        return str(value)


def _from_free_string(value: Any) -> str:
    text = str(value)
    try:
        return _utc_day(date_parser.parse(text))
    except (ValueError, OverflowError):
        return text


def _from_date_value(value: Any) -> str:
    if isinstance(value, datetime):
        return _utc_day(value)
    return value.isoformat()


_CONVERTERS = {
    DateShape.NUMERIC: _from_epoch_ms,
    DateShape.ISO_STRING: str,
    DateShape.FREE_STRING: _from_free_string,
    DateShape.DATE_VALUE: _from_date_value,
}


def date_key(value: Any) -> Optional[str]:
    """Canonical YYYY-MM-DD key for a stored date, or None to skip the row.

    Strings that can't be parsed are used as-is.
    """
    shape = classify_date(value)
    if shape is None:
        return None
    return _CONVERTERS[shape](value)


def summarize_bookings(rows: Iterable[Any]) -> List[DayAvailability]:
    """Group rows by day, keeping distinct times in first-seen order.

    Days come out in the order they first appear in ``rows``.
    """
    days: Dict[str, Dict[str, None]] = {}
    for row in rows:
        key = date_key(getattr(row, "select_date", None))
        if key is None:
            continue
        times = days.setdefault(key, {})
        preferred_time = getattr(row, "preferred_time", None)
        if preferred_time:
            times.setdefault(preferred_time, None)

    return [
        DayAvailability(date=key, booked_count=len(times), booked_times=list(times))
        for key, times in days.items()
    ]


async def consultations_availability(
    session: AsyncSession, start: str, end: str
) -> List[DayAvailability]:
    # Step 1: All bookings in the inclusive range (single query)
    statement = select(Consultation).where(
        Consultation.select_date >= start,
        Consultation.select_date <= end,
    ).order_by(Consultation.id)
    try:
        result = await session.execute(statement)
        rows = result.scalars().all()
    except Exception:
        logger.exception("consultations_availability_failed", start=start, end=end)
        raise

    # Step 2: Group by day
    return summarize_bookings(rows)


async def booked_times_for_date(session: AsyncSession, select_date: str) -> List[str]:
    statement = select(Consultation.preferred_time).where(
        Consultation.select_date == select_date
    ).order_by(Consultation.id)
    try:
        result = await session.execute(statement)
        times = result.scalars().all()
    except Exception:
        logger.exception("booked_times_for_date_failed", date=select_date)
        raise

    return [time for time in times if time]
