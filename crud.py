from typing import Any, Dict, List, Optional, Sequence

from sqlmodel import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError

from booking import (
    BOOKING_CONFLICT_MESSAGE,
    ConsultationValidationError,
    ValidationErrors,
    validate_consultation_input,
)
from logging_config import get_logger
from models import Consultation

logger = get_logger(__name__)


class ConsultationNotFound(LookupError):
    pass


def consultation_finder(session: AsyncSession):
    """Bind the equality lookup used by the conflict check to a session."""

    async def finder(select_date: str, preferred_time: str, limit: int) -> Sequence[Consultation]:
        return await find_consultations(session, select_date, preferred_time, limit=limit)

    return finder


async def find_consultations(
    session: AsyncSession,
    select_date: str,
    preferred_time: Optional[str] = None,
    limit: Optional[int] = None,
) -> Sequence[Consultation]:
    statement = select(Consultation).where(Consultation.select_date == select_date)
    if preferred_time is not None:
        statement = statement.where(Consultation.preferred_time == preferred_time)
    if limit is not None:
        statement = statement.limit(limit)
    result = await session.execute(statement)
    return result.scalars().all()


async def get_consultation(session: AsyncSession, consultation_id: int) -> Consultation:
    consultation = await session.get(Consultation, consultation_id)
    if consultation is None:
        raise ConsultationNotFound(consultation_id)
    return consultation


async def list_consultations(session: AsyncSession) -> List[Consultation]:
    result = await session.execute(select(Consultation).order_by(Consultation.id))
    return list(result.scalars().all())


async def _commit(session: AsyncSession, consultation: Consultation) -> Consultation:
    # Read before commit; rollback expires the instance
    slot = {
        "select_date": consultation.select_date,
        "preferred_time": consultation.preferred_time,
    }
    try:
        session.add(consultation)
        await session.commit()
        await session.refresh(consultation)
        return consultation
    except IntegrityError:
        # The unique constraint lost a race against another write
        await session.rollback()
        logger.info("consultation_slot_conflict_on_commit", **slot)
        raise ConsultationValidationError([BOOKING_CONFLICT_MESSAGE])


async def create_consultation(session: AsyncSession, data: Dict[str, Any]) -> Consultation:
    resolved_data = dict(data)
    errors = ValidationErrors()
    await validate_consultation_input(
        consultation_finder(session), "create", resolved_data, errors
    )
    errors.raise_if_any()

    consultation = await _commit(session, Consultation(**resolved_data))
    logger.info("consultation_created", consultation_id=consultation.id)
    return consultation


async def update_consultation(
    session: AsyncSession, consultation_id: int, data: Dict[str, Any]
) -> Consultation:
    consultation = await get_consultation(session, consultation_id)

    # Only fields the caller actually sent take part in the update
    resolved_data = {key: value for key, value in data.items() if value is not None}
    errors = ValidationErrors()
    await validate_consultation_input(
        consultation_finder(session), "update", resolved_data, errors, item=consultation
    )
    errors.raise_if_any()

    for key, value in resolved_data.items():
        setattr(consultation, key, value)

    consultation = await _commit(session, consultation)
    logger.info("consultation_updated", consultation_id=consultation_id)
    return consultation
