# backend/agenda/routes/v1/providers.py
"""
Provider scheduling routes - API v1

All business logic delegated to ScheduleService. Writes require the owning
provider or an admin.

Endpoints:
    GET /providers/{provider_id}/schedule - Weekly schedule
    PUT /providers/{provider_id}/schedule - Replace weekly schedule
    POST /providers/{provider_id}/schedule/defaults - Create the onboarding schedule
    GET /providers/{provider_id}/services/{service_id}/schedule-config - Service rules
    PUT /providers/{provider_id}/services/{service_id}/schedule-config - Replace service rules
    GET /providers/{provider_id}/services/{service_id}/execution-time - Execution time
    PUT /providers/{provider_id}/services/{service_id}/execution-time - Customize execution time
    DELETE /providers/{provider_id}/services/{service_id}/execution-time - Restore default
    GET /providers/{provider_id}/blocked-times - Blocked time (optionally for one date)
    POST /providers/{provider_id}/blocked-times - Block time on a date
    DELETE /providers/{provider_id}/blocked-times/{block_id} - Remove a block
"""

import asyncio
from datetime import date
import logging
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Path, Query, Response, status

from ...api.dependencies import CurrentUser, get_current_user, get_schedule_service
from ...api.dependencies.auth import ensure_provider_access
from ...core.exceptions import DomainException
from ...schemas.blocked_time import BlockedTimeCreate, BlockedTimeResponse
from ...schemas.schedule import (
    DefaultScheduleResponse,
    ExecutionTimeResponse,
    ExecutionTimeUpdate,
    ServiceScheduleConfigSchema,
    ServiceScheduleConfigUpdate,
    WeeklyScheduleResponse,
    WeeklyScheduleUpdate,
)
from ...services.schedule_service import ExecutionTimeView, ScheduleService
from .common import ULID_PATH_PATTERN, handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/providers/{provider_id}", tags=["providers-v1"])


def _execution_response(view: ExecutionTimeView) -> ExecutionTimeResponse:
    return ExecutionTimeResponse(
        service_id=view.service_id,
        reference_duration_minutes=view.reference_duration_minutes,
        custom_minutes=view.custom_minutes,
        is_active=view.is_active,
        effective_minutes=view.effective_minutes,
    )


# Weekly schedule


@router.get("/schedule", response_model=WeeklyScheduleResponse)
async def get_weekly_schedule(
    provider_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    schedule_service: ScheduleService = Depends(get_schedule_service),
) -> WeeklyScheduleResponse:
    try:
        schedule = await asyncio.to_thread(schedule_service.get_weekly_schedule, provider_id)
    except DomainException as e:
        handle_domain_exception(e)
    return WeeklyScheduleResponse.from_domain(provider_id, schedule)


@router.put(
    "/schedule",
    response_model=WeeklyScheduleResponse,
    responses={400: {"description": "Schedule violates its invariants"}},
)
async def replace_weekly_schedule(
    provider_id: str,
    payload: WeeklyScheduleUpdate = Body(...),
    current_user: CurrentUser = Depends(get_current_user),
    schedule_service: ScheduleService = Depends(get_schedule_service),
) -> WeeklyScheduleResponse:
    """Replace all seven days. Each day is validated before anything is written."""
    try:
        ensure_provider_access(current_user, provider_id)
        schedule = await asyncio.to_thread(
            schedule_service.replace_weekly_schedule, provider_id, payload.to_domain()
        )
    except DomainException as e:
        handle_domain_exception(e)
    return WeeklyScheduleResponse.from_domain(provider_id, schedule)


@router.post("/schedule/defaults", response_model=DefaultScheduleResponse)
async def create_default_schedule(
    provider_id: str,
    response: Response,
    current_user: CurrentUser = Depends(get_current_user),
    schedule_service: ScheduleService = Depends(get_schedule_service),
) -> DefaultScheduleResponse:
    """Idempotent: 201 when created, 200 when the provider already had a schedule."""
    try:
        ensure_provider_access(current_user, provider_id)
        schedule, created = await asyncio.to_thread(
            schedule_service.create_default_schedule, provider_id
        )
    except DomainException as e:
        handle_domain_exception(e)
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    base = WeeklyScheduleResponse.from_domain(provider_id, schedule)
    return DefaultScheduleResponse(provider_id=base.provider_id, days=base.days, created=created)


# Per-service rules


@router.get(
    "/services/{service_id}/schedule-config",
    response_model=ServiceScheduleConfigSchema,
    responses={404: {"description": "Service not found"}},
)
async def get_service_schedule_config(
    provider_id: str,
    service_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    schedule_service: ScheduleService = Depends(get_schedule_service),
) -> ServiceScheduleConfigSchema:
    try:
        rules = await asyncio.to_thread(
            schedule_service.get_service_rules, provider_id, service_id
        )
    except DomainException as e:
        handle_domain_exception(e)
    return ServiceScheduleConfigSchema.from_domain(rules)


@router.put(
    "/services/{service_id}/schedule-config",
    response_model=ServiceScheduleConfigSchema,
    responses={400: {"description": "Invalid rules"}, 404: {"description": "Service not found"}},
)
async def update_service_schedule_config(
    provider_id: str,
    service_id: str,
    payload: ServiceScheduleConfigUpdate = Body(...),
    current_user: CurrentUser = Depends(get_current_user),
    schedule_service: ScheduleService = Depends(get_schedule_service),
) -> ServiceScheduleConfigSchema:
    try:
        ensure_provider_access(current_user, provider_id)
        rules = await asyncio.to_thread(
            schedule_service.update_service_rules, provider_id, service_id, payload.to_domain()
        )
    except DomainException as e:
        handle_domain_exception(e)
    return ServiceScheduleConfigSchema.from_domain(rules)


# Execution time


@router.get(
    "/services/{service_id}/execution-time",
    response_model=ExecutionTimeResponse,
    responses={404: {"description": "Service not found"}},
)
async def get_execution_time(
    provider_id: str,
    service_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    schedule_service: ScheduleService = Depends(get_schedule_service),
) -> ExecutionTimeResponse:
    try:
        view = await asyncio.to_thread(
            schedule_service.get_execution_time, provider_id, service_id
        )
    except DomainException as e:
        handle_domain_exception(e)
    return _execution_response(view)


@router.put(
    "/services/{service_id}/execution-time",
    response_model=ExecutionTimeResponse,
    responses={404: {"description": "Service not found"}},
)
async def set_execution_time(
    provider_id: str,
    service_id: str,
    payload: ExecutionTimeUpdate = Body(...),
    current_user: CurrentUser = Depends(get_current_user),
    schedule_service: ScheduleService = Depends(get_schedule_service),
) -> ExecutionTimeResponse:
    """Customize the execution time; the stored value is snapped to 15 minutes."""
    try:
        ensure_provider_access(current_user, provider_id)
        view = await asyncio.to_thread(
            schedule_service.set_execution_time,
            provider_id,
            service_id,
            payload.execution_time_minutes,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return _execution_response(view)


@router.delete(
    "/services/{service_id}/execution-time",
    response_model=ExecutionTimeResponse,
    responses={404: {"description": "Service not found"}},
)
async def restore_default_execution_time(
    provider_id: str,
    service_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    schedule_service: ScheduleService = Depends(get_schedule_service),
) -> ExecutionTimeResponse:
    """Deactivate the customization so the reference duration applies again."""
    try:
        ensure_provider_access(current_user, provider_id)
        view = await asyncio.to_thread(
            schedule_service.restore_default_execution_time, provider_id, service_id
        )
    except DomainException as e:
        handle_domain_exception(e)
    return _execution_response(view)


# Blocked time


@router.get("/blocked-times", response_model=List[BlockedTimeResponse])
async def list_blocked_times(
    provider_id: str,
    on_date: Optional[date] = Query(None, alias="date"),
    current_user: CurrentUser = Depends(get_current_user),
    schedule_service: ScheduleService = Depends(get_schedule_service),
) -> List[BlockedTimeResponse]:
    try:
        ensure_provider_access(current_user, provider_id)
        blocks = await asyncio.to_thread(
            schedule_service.list_blocked_times, provider_id, on_date
        )
    except DomainException as e:
        handle_domain_exception(e)
    return [BlockedTimeResponse.from_orm_model(block) for block in blocks]


@router.post(
    "/blocked-times",
    response_model=BlockedTimeResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_blocked_time(
    provider_id: str,
    payload: BlockedTimeCreate = Body(...),
    current_user: CurrentUser = Depends(get_current_user),
    schedule_service: ScheduleService = Depends(get_schedule_service),
) -> BlockedTimeResponse:
    try:
        ensure_provider_access(current_user, provider_id)
        block = await asyncio.to_thread(
            schedule_service.add_blocked_time,
            provider_id,
            payload.date,
            payload.time_range(),
            payload.reason,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BlockedTimeResponse.from_orm_model(block)


@router.delete(
    "/blocked-times/{block_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"description": "Blocked time not found"}},
)
async def remove_blocked_time(
    provider_id: str,
    block_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    current_user: CurrentUser = Depends(get_current_user),
    schedule_service: ScheduleService = Depends(get_schedule_service),
) -> Response:
    try:
        ensure_provider_access(current_user, provider_id)
        await asyncio.to_thread(schedule_service.remove_blocked_time, provider_id, block_id)
    except DomainException as e:
        handle_domain_exception(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
