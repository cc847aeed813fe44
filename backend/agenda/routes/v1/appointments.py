# backend/agenda/routes/v1/appointments.py
"""
Appointment routes - API v1

Endpoints:
    POST /appointments - Book a slot
    GET /appointments/{appointment_id} - Appointment details
    PUT /appointments/{appointment_id}/status - Lifecycle transition
    PUT /appointments/{appointment_id}/reschedule - Move to another slot
"""

import asyncio
import logging

from fastapi import APIRouter, Body, Depends, Path, status

from ...api.dependencies import (
    CurrentUser,
    get_appointment_lifecycle,
    get_booking_committer,
    get_current_user,
)
from ...api.dependencies.auth import (
    ensure_appointment_party,
    ensure_booking_client,
)
from ...core.exceptions import DomainException
from ...schemas.appointment import (
    AppointmentCreate,
    AppointmentReschedule,
    AppointmentResponse,
    AppointmentStatusUpdate,
    BookingCreateResponse,
    SlotResponse,
)
from ...services.appointment_lifecycle import AppointmentLifecycle
from ...services.booking_committer import BookingCommitter, BookingResult
from ...utils.time_ranges import parse_hhmm
from .common import ULID_PATH_PATTERN, handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["appointments-v1"])


def _booking_response(result: BookingResult) -> BookingCreateResponse:
    return BookingCreateResponse(
        appointment=AppointmentResponse.from_orm_model(result.appointment),
        blocked_adjacent_slots=[SlotResponse.from_domain(s) for s in result.blocked_adjacent_slots],
        completion_code=result.completion_code,
    )


@router.post(
    "",
    response_model=BookingCreateResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        403: {"description": "Caller is not the booking client"},
        404: {"description": "Service not found"},
        409: {"description": "Slot no longer available"},
    },
)
async def create_appointment(
    payload: AppointmentCreate = Body(...),
    current_user: CurrentUser = Depends(get_current_user),
    committer: BookingCommitter = Depends(get_booking_committer),
) -> BookingCreateResponse:
    """
    Book a slot.

    The slot is re-checked against current data under the provider-date
    lock; a stale pick answers 409 and the client should refresh its list.
    """
    try:
        ensure_booking_client(current_user, payload.client_id)

        def _commit() -> BookingCreateResponse:
            result = committer.commit(
                provider_id=payload.provider_id,
                service_id=payload.service_id,
                client_id=payload.client_id,
                day=payload.date,
                start_minute=parse_hhmm(payload.start_time),
            )
            return _booking_response(result)

        return await asyncio.to_thread(_commit)
    except DomainException as e:
        handle_domain_exception(e)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    responses={404: {"description": "Appointment not found"}},
)
async def get_appointment(
    appointment_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    current_user: CurrentUser = Depends(get_current_user),
    lifecycle: AppointmentLifecycle = Depends(get_appointment_lifecycle),
) -> AppointmentResponse:
    try:

        def _load() -> AppointmentResponse:
            appointment = lifecycle.get_appointment(appointment_id)
            ensure_appointment_party(current_user, appointment.provider_id, appointment.client_id)
            return AppointmentResponse.from_orm_model(appointment)

        return await asyncio.to_thread(_load)
    except DomainException as e:
        handle_domain_exception(e)


@router.put(
    "/{appointment_id}/status",
    response_model=AppointmentResponse,
    responses={
        404: {"description": "Appointment not found"},
        422: {"description": "Transition not allowed or completion code rejected"},
    },
)
async def update_appointment_status(
    appointment_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    payload: AppointmentStatusUpdate = Body(...),
    current_user: CurrentUser = Depends(get_current_user),
    lifecycle: AppointmentLifecycle = Depends(get_appointment_lifecycle),
) -> AppointmentResponse:
    """Move an appointment along its lifecycle."""
    try:

        def _transition() -> AppointmentResponse:
            appointment = lifecycle.get_appointment(appointment_id)
            ensure_appointment_party(current_user, appointment.provider_id, appointment.client_id)
            updated = lifecycle.transition(
                appointment_id,
                payload.status,
                actor_id=current_user.id,
                reason=payload.reason,
                completion_code=payload.completion_code,
            )
            return AppointmentResponse.from_orm_model(updated)

        return await asyncio.to_thread(_transition)
    except DomainException as e:
        handle_domain_exception(e)


@router.put(
    "/{appointment_id}/reschedule",
    response_model=BookingCreateResponse,
    responses={
        404: {"description": "Appointment not found"},
        409: {"description": "Target slot not available"},
    },
)
async def reschedule_appointment(
    appointment_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    payload: AppointmentReschedule = Body(...),
    current_user: CurrentUser = Depends(get_current_user),
    lifecycle: AppointmentLifecycle = Depends(get_appointment_lifecycle),
    committer: BookingCommitter = Depends(get_booking_committer),
) -> BookingCreateResponse:
    """Move a pending or confirmed appointment to another slot."""
    try:

        def _reschedule() -> BookingCreateResponse:
            appointment = lifecycle.get_appointment(appointment_id)
            ensure_appointment_party(current_user, appointment.provider_id, appointment.client_id)
            result = committer.reschedule(
                appointment_id, payload.date, parse_hhmm(payload.start_time)
            )
            return _booking_response(result)

        return await asyncio.to_thread(_reschedule)
    except DomainException as e:
        handle_domain_exception(e)
