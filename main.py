from fastapi import FastAPI, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from datetime import date

import availability
import crud
from booking import ConsultationValidationError
from config import CORS_ORIGINS, LOG_LEVEL
from database import init_db, get_session
from graphql_schema import graphql_app
from logging_config import get_logger, setup_logging
from models import CONSULTATION_DESCRIPTION
from pydantic import BaseModel
from fastapi.middleware.cors import CORSMiddleware

setup_logging(LOG_LEVEL)
logger = get_logger(__name__)

app = FastAPI(title="Consultation Booking Backend")

# Pydantic Schemas for Request/Response
class ConsultationCreate(BaseModel):
    select_date: date
    preferred_time: Optional[str] = None
    full_name: str
    email: str
    schedule_a_consultation: str = CONSULTATION_DESCRIPTION

class ConsultationUpdate(BaseModel):
    select_date: Optional[date] = None
    preferred_time: Optional[str] = None
    full_name: Optional[str] = None
    email: Optional[str] = None

class ConsultationRead(BaseModel):
    id: int
    schedule_a_consultation: str
    select_date: str
    preferred_time: Optional[str]
    full_name: str
    email: str

class ConsultationAvailability(BaseModel):
    date: str
    booked_count: int
    booked_times: List[str]

@app.on_event("startup")
async def on_startup():
    await init_db()
    logger.info("startup_complete")

def _conflict(error: ConsultationValidationError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=error.messages)

def _to_read(consultation) -> ConsultationRead:
    return ConsultationRead(
        id=consultation.id,
        schedule_a_consultation=consultation.schedule_a_consultation,
        select_date=consultation.select_date,
        preferred_time=consultation.preferred_time,
        full_name=consultation.full_name,
        email=consultation.email,
    )

# --- Endpoint 1: GET /availability ---
@app.get("/availability", response_model=List[ConsultationAvailability])
async def get_availability(
    start: str,
    end: str,
    session: AsyncSession = Depends(get_session)
):
    days = await availability.consultations_availability(session, start, end)
    return [
        ConsultationAvailability(
            date=day.date, booked_count=day.booked_count, booked_times=day.booked_times
        )
        for day in days
    ]

# --- Endpoint 2: GET /booked-times ---
@app.get("/booked-times", response_model=List[str])
async def get_booked_times(
    date: str,
    session: AsyncSession = Depends(get_session)
):
    return await availability.booked_times_for_date(session, date)

# --- Endpoint 3: POST /consultations ---
@app.post("/consultations", status_code=status.HTTP_201_CREATED)
async def create_consultation(
    consultation_data: ConsultationCreate,
    session: AsyncSession = Depends(get_session)
):
    try:
        consultation = await crud.create_consultation(session, consultation_data.model_dump())
    except ConsultationValidationError as error:
        raise _conflict(error)

    return {
        "message": "Consultation booked",
        "id": consultation.id,
        "preferred_time": consultation.preferred_time,
    }

# --- Endpoint 4: PATCH /consultations/{consultation_id} ---
@app.patch("/consultations/{consultation_id}", response_model=ConsultationRead)
async def update_consultation(
    consultation_id: int,
    consultation_data: ConsultationUpdate,
    session: AsyncSession = Depends(get_session)
):
    try:
        consultation = await crud.update_consultation(
            session, consultation_id, consultation_data.model_dump(exclude_unset=True)
        )
    except crud.ConsultationNotFound:
        raise HTTPException(status_code=404, detail="Consultation not found")
    except ConsultationValidationError as error:
        raise _conflict(error)

    return _to_read(consultation)

# --- Endpoint 5: GET /consultations/{consultation_id} ---
@app.get("/consultations/{consultation_id}", response_model=ConsultationRead)
async def get_consultation(
    consultation_id: int,
    session: AsyncSession = Depends(get_session)
):
    try:
        consultation = await crud.get_consultation(session, consultation_id)
    except crud.ConsultationNotFound:
        raise HTTPException(status_code=404, detail="Consultation not found")

    return _to_read(consultation)

app.include_router(graphql_app, prefix="/api/graphql")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
