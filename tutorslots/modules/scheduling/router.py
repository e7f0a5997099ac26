"""Scheduling API router."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from tutorslots.core.enums import BookingStatusEnum
from tutorslots.modules.booking.repository import BookingFilter
from tutorslots.modules.booking.schemas import BookingRead
from tutorslots.modules.booking.service import BookingService, get_booking_service
from tutorslots.modules.identity.schemas import Actor
from tutorslots.modules.identity.service import get_current_actor
from tutorslots.modules.scheduling.schemas import (
    SlotCreate,
    SlotDeactivateRead,
    SlotListRead,
    SlotRead,
    SlotUpdate,
    WeekAvailabilityRead,
)
from tutorslots.modules.scheduling.service import SchedulingService, get_scheduling_service
from tutorslots.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(prefix="/scheduling", tags=["scheduling"])


@router.post("/batches/{batch_id}/slots", response_model=SlotRead, status_code=status.HTTP_201_CREATED)
async def create_slot(
    batch_id: UUID,
    payload: SlotCreate,
    service: SchedulingService = Depends(get_scheduling_service),
    current_actor: Actor = Depends(get_current_actor),
) -> SlotRead:
    """Create recurring slot."""
    slot = await service.create_slot(batch_id, payload, current_actor)
    return SlotRead.model_validate(slot)


@router.get("/batches/{batch_id}/slots", response_model=SlotListRead)
async def list_slots(
    batch_id: UUID,
    is_active: bool = Query(default=True),
    service: SchedulingService = Depends(get_scheduling_service),
    _: Actor = Depends(get_current_actor),
) -> SlotListRead:
    """List slot definitions of a batch."""
    slots, grouped = await service.list_slots(batch_id, is_active)
    return SlotListRead(
        slots=[SlotRead.model_validate(slot) for slot in slots],
        slots_by_day={
            day: [SlotRead.model_validate(slot) for slot in day_slots] for day, day_slots in grouped.items()
        },
    )


@router.get("/batches/{batch_id}/availability", response_model=WeekAvailabilityRead)
async def get_week_availability(
    batch_id: UUID,
    week: date | None = Query(default=None, description="Any day of the requested week"),
    timezone: str | None = Query(default=None, description="IANA timezone to view the week in"),
    service: SchedulingService = Depends(get_scheduling_service),
    _: Actor = Depends(get_current_actor),
) -> WeekAvailabilityRead:
    """Weekly occurrences of a batch with live capacity."""
    view = await service.get_week_availability(batch_id, week, timezone)
    return WeekAvailabilityRead.from_view(view)


@router.put("/slots/{slot_id}", response_model=SlotRead)
async def update_slot(
    slot_id: UUID,
    payload: SlotUpdate,
    service: SchedulingService = Depends(get_scheduling_service),
    current_actor: Actor = Depends(get_current_actor),
) -> SlotRead:
    """Update slot definition."""
    slot = await service.update_slot(slot_id, payload, current_actor)
    return SlotRead.model_validate(slot)


@router.delete("/slots/{slot_id}", response_model=SlotDeactivateRead)
async def deactivate_slot(
    slot_id: UUID,
    force: bool = Query(default=False),
    service: BookingService = Depends(get_booking_service),
    current_actor: Actor = Depends(get_current_actor),
) -> SlotDeactivateRead:
    """Deactivate slot; with force, cancel its future bookings first."""
    result = await service.deactivate_slot(slot_id, force, current_actor)
    return SlotDeactivateRead(
        slot=SlotRead.model_validate(result.slot),
        cancelled_bookings=len(result.cancelled_bookings),
    )


@router.get("/slots/{slot_id}/bookings", response_model=Page[BookingRead])
async def list_slot_bookings(
    slot_id: UUID,
    status_filter: BookingStatusEnum | None = Query(default=None, alias="status"),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    pagination=Depends(get_pagination_params),
    service: BookingService = Depends(get_booking_service),
    current_actor: Actor = Depends(get_current_actor),
) -> Page[BookingRead]:
    """List bookings of a slot."""
    booking_filter = BookingFilter(status=status_filter, date_from=date_from, date_to=date_to, oldest_first=True)
    items, total = await service.list_slot_bookings(
        slot_id,
        booking_filter,
        current_actor,
        pagination.limit,
        pagination.offset,
    )
    serialized = [BookingRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)
