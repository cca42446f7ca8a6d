import datetime
from dataclasses import asdict
from typing import List, Optional

import strawberry
from strawberry.fastapi import BaseContext, GraphQLRouter
from strawberry.types import Info

import availability
import crud
from database import async_session
from models import Consultation


class Context(BaseContext):
    # Root fields resolve concurrently, so each resolver opens its own session
    def __init__(self, session_factory=async_session):
        super().__init__()
        self.session_factory = session_factory


async def get_context() -> Context:
    return Context()


@strawberry.type
class ConsultationAvailability:
    date: str
    booked_count: int
    booked_times: List[str]


@strawberry.type(name="Consultation")
class ConsultationType:
    id: int
    schedule_a_consultation: str
    select_date: str
    preferred_time: Optional[str]
    full_name: str
    email: str

    @classmethod
    def from_model(cls, consultation: Consultation) -> "ConsultationType":
        return cls(
            id=consultation.id,
            schedule_a_consultation=consultation.schedule_a_consultation,
            select_date=consultation.select_date,
            preferred_time=consultation.preferred_time,
            full_name=consultation.full_name,
            email=consultation.email,
        )


@strawberry.input
class ConsultationCreateInput:
    select_date: datetime.date
    full_name: str
    email: str
    preferred_time: Optional[str] = None
    schedule_a_consultation: Optional[str] = None


@strawberry.input
class ConsultationUpdateInput:
    select_date: Optional[datetime.date] = None
    preferred_time: Optional[str] = None
    full_name: Optional[str] = None
    email: Optional[str] = None


def _present(data) -> dict:
    return {key: value for key, value in asdict(data).items() if value is not None}


@strawberry.type
class Query:
    @strawberry.field
    async def consultations_availability(
        self, info: Info[Context, None], start: str, end: str
    ) -> List[ConsultationAvailability]:
        async with info.context.session_factory() as session:
            days = await availability.consultations_availability(session, start, end)
        return [
            ConsultationAvailability(
                date=day.date, booked_count=day.booked_count, booked_times=day.booked_times
            )
            for day in days
        ]

    @strawberry.field
    async def booked_times_for_date(self, info: Info[Context, None], date: str) -> List[str]:
        async with info.context.session_factory() as session:
            return await availability.booked_times_for_date(session, date)

    @strawberry.field
    async def consultation(self, info: Info[Context, None], id: int) -> Optional[ConsultationType]:
        async with info.context.session_factory() as session:
            try:
                consultation = await crud.get_consultation(session, id)
            except crud.ConsultationNotFound:
                return None
        return ConsultationType.from_model(consultation)

    @strawberry.field
    async def consultations(self, info: Info[Context, None]) -> List[ConsultationType]:
        async with info.context.session_factory() as session:
            rows = await crud.list_consultations(session)
        return [ConsultationType.from_model(row) for row in rows]


@strawberry.type
class Mutation:
    # Validation rejections surface as GraphQL errors carrying the message text
    @strawberry.mutation
    async def create_consultation(
        self, info: Info[Context, None], data: ConsultationCreateInput
    ) -> ConsultationType:
        async with info.context.session_factory() as session:
            consultation = await crud.create_consultation(session, _present(data))
        return ConsultationType.from_model(consultation)

    @strawberry.mutation
    async def update_consultation(
        self, info: Info[Context, None], id: int, data: ConsultationUpdateInput
    ) -> ConsultationType:
        async with info.context.session_factory() as session:
            consultation = await crud.update_consultation(session, id, _present(data))
        return ConsultationType.from_model(consultation)


schema = strawberry.Schema(query=Query, mutation=Mutation)

graphql_app = GraphQLRouter(schema, context_getter=get_context)
