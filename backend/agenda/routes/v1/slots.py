# backend/agenda/routes/v1/slots.py
"""
Slot routes - API v1

Endpoints:
    GET /providers/{provider_id}/services/{service_id}/slots - Ranked bookable slots
    GET /providers/{provider_id}/services/{service_id}/slots/check - Check one start time
"""

import asyncio
from datetime import date
import logging
from typing import List

from fastapi import APIRouter, Depends, Query

from ...api.dependencies import CurrentUser, get_current_user, get_slot_generator
from ...core.exceptions import DomainException
from ...schemas.appointment import SlotCheckResponse, SlotResponse
from ...schemas.common import HHMM_PATTERN
from ...services.slot_generator import SlotGenerator
from ...utils.time_ranges import format_hhmm, parse_hhmm
from .common import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["slots-v1"])


@router.get(
    "/providers/{provider_id}/services/{service_id}/slots",
    response_model=List[SlotResponse],
    responses={404: {"description": "Service not found"}},
)
async def list_slots(
    provider_id: str,
    service_id: str,
    on_date: date = Query(..., alias="date", description="YYYY-MM-DD"),
    current_user: CurrentUser = Depends(get_current_user),
    slot_generator: SlotGenerator = Depends(get_slot_generator),
) -> List[SlotResponse]:
    """Bookable slots for a date, in presentation order."""
    try:
        slots = await asyncio.to_thread(slot_generator.generate, provider_id, service_id, on_date)
    except DomainException as e:
        handle_domain_exception(e)
    return [SlotResponse.from_domain(slot) for slot in slots]


@router.get(
    "/providers/{provider_id}/services/{service_id}/slots/check",
    response_model=SlotCheckResponse,
    responses={404: {"description": "Service not found"}},
)
async def check_slot(
    provider_id: str,
    service_id: str,
    on_date: date = Query(..., alias="date"),
    start_time: str = Query(..., alias="startTime", pattern=HHMM_PATTERN),
    current_user: CurrentUser = Depends(get_current_user),
    slot_generator: SlotGenerator = Depends(get_slot_generator),
) -> SlotCheckResponse:
    """Whether ``startTime`` is still bookable for this service."""
    try:
        result = await asyncio.to_thread(
            slot_generator.check, provider_id, service_id, on_date, parse_hhmm(start_time)
        )
    except DomainException as e:
        handle_domain_exception(e)
    return SlotCheckResponse(
        is_available=result.is_available,
        start_time=format_hhmm(result.start),
        end_time=format_hhmm(result.end) if result.end is not None else None,
    )
