# airodental/deps.py
"""
FastAPI dependencies. Routes get their session, repository, policy and clock
from here, so tests swap any of them through ``app.dependency_overrides``.
"""
from __future__ import annotations
from datetime import datetime
from functools import lru_cache
from typing import Callable

from fastapi import Depends
from sqlalchemy.orm import Session

from .config import settings
from .database import get_db
from .services.availability import AvailabilityService
from .services.booking import BookingService
from .services.calendar_policy import CalendarPolicy, build_policy
from .services.repository import AppointmentRepository, SqlAlchemyAppointmentRepository
from .services.timeutils import utcnow


@lru_cache(maxsize=1)
def get_policy() -> CalendarPolicy:
    return build_policy(settings)


def get_clock() -> Callable[[], datetime]:
    return utcnow


def get_repository(db: Session = Depends(get_db)) -> AppointmentRepository:
    return SqlAlchemyAppointmentRepository(db)


def get_availability_service(
    repo: AppointmentRepository = Depends(get_repository),
    policy: CalendarPolicy = Depends(get_policy),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> AvailabilityService:
    return AvailabilityService(repo, policy, clock=clock)


def get_booking_service(
    repo: AppointmentRepository = Depends(get_repository),
    policy: CalendarPolicy = Depends(get_policy),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> BookingService:
    return BookingService(repo, policy, owner_role=settings.DEFAULT_OWNER_ROLE, clock=clock)
