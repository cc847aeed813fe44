"""Appointment and slot schemas."""

import datetime
from typing import List, Optional

from pydantic import Field

from ..models.appointment import Appointment, AppointmentStatus
from ..utils.time_ranges import TimeRange, format_hhmm
from ._strict_base import StrictModel, StrictRequestModel
from .common import HHMM

DateType = datetime.date
DateTimeType = datetime.datetime


class SlotResponse(StrictModel):
    start_time: str
    end_time: str

    @classmethod
    def from_domain(cls, slot: TimeRange) -> "SlotResponse":
        return cls(start_time=format_hhmm(slot.start), end_time=format_hhmm(slot.end))


class SlotCheckResponse(StrictModel):
    is_available: bool
    start_time: str
    end_time: Optional[str] = None


class AppointmentCreate(StrictRequestModel):
    provider_id: str = Field(min_length=1, max_length=64)
    service_id: str = Field(min_length=1, max_length=26)
    client_id: str = Field(min_length=1, max_length=64)
    date: DateType
    start_time: HHMM


class AppointmentReschedule(StrictRequestModel):
    date: DateType
    start_time: HHMM


class AppointmentStatusUpdate(StrictRequestModel):
    status: AppointmentStatus
    reason: Optional[str] = Field(default=None, max_length=1000)
    completion_code: Optional[str] = Field(default=None, max_length=12)


class AppointmentResponse(StrictModel):
    id: str
    provider_id: str
    service_id: str
    client_id: str
    date: DateType
    start_time: str
    end_time: str
    duration_minutes: int
    status: AppointmentStatus
    cancellation_reason: Optional[str] = None
    cancellation_date: Optional[DateTimeType] = None
    cancellation_by: Optional[str] = None
    confirmed_at: Optional[DateTimeType] = None
    completed_at: Optional[DateTimeType] = None
    created_at: Optional[DateTimeType] = None
    updated_at: Optional[DateTimeType] = None

    @classmethod
    def from_orm_model(cls, appointment: Appointment) -> "AppointmentResponse":
        return cls(
            id=appointment.id,
            provider_id=appointment.provider_id,
            service_id=appointment.service_id,
            client_id=appointment.client_id,
            date=appointment.appointment_date,
            start_time=appointment.start_time.strftime("%H:%M"),
            end_time=appointment.end_time.strftime("%H:%M"),
            duration_minutes=appointment.duration_minutes,
            status=appointment.status_enum,
            cancellation_reason=appointment.cancellation_reason,
            cancellation_date=appointment.cancellation_date,
            cancellation_by=appointment.cancellation_by,
            confirmed_at=appointment.confirmed_at,
            completed_at=appointment.completed_at,
            created_at=appointment.created_at,
            updated_at=appointment.updated_at,
        )


class BookingCreateResponse(StrictModel):
    appointment: AppointmentResponse
    blocked_adjacent_slots: List[SlotResponse]
    completion_code: Optional[str] = Field(
        default=None, description="Shown once; the client hands it to the provider at completion"
    )
