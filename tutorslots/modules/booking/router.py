"""Booking API router."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from tutorslots.core.enums import BookingStatusEnum, BookingTypeEnum
from tutorslots.modules.booking.repository import BookingFilter
from tutorslots.modules.booking.schemas import (
    BookingCancelRequest,
    BookingCompleteRequest,
    BookingCreateRead,
    BookingCreateRequest,
    BookingRead,
    WeeklyBookingFailure,
    WeeklyBookingRead,
)
from tutorslots.modules.booking.service import BookingService, WeeklyBookingOutcome, get_booking_service
from tutorslots.modules.identity.schemas import Actor
from tutorslots.modules.identity.service import get_current_actor
from tutorslots.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(prefix="/booking", tags=["booking"])


def _weekly_read(outcome: WeeklyBookingOutcome) -> WeeklyBookingRead:
    return WeeklyBookingRead(
        booked=[BookingRead.model_validate(item) for item in outcome.booked],
        skipped=outcome.skipped,
        failed=[WeeklyBookingFailure(session_date=day, reason=reason) for day, reason in outcome.failed],
        clamped_end_date=outcome.clamped_end_date,
        clamp_note=outcome.clamp_note,
        warning=outcome.warning,
        message=outcome.message,
    )


@router.post("", response_model=BookingCreateRead, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreateRequest,
    response: Response,
    service: BookingService = Depends(get_booking_service),
    current_actor: Actor = Depends(get_current_actor),
) -> BookingCreateRead:
    """Book a single occurrence or a weekly package."""
    result = await service.book(payload, current_actor)
    if isinstance(result, WeeklyBookingOutcome):
        if result.warning:
            response.status_code = status.HTTP_200_OK
        return BookingCreateRead(
            booking_type=BookingTypeEnum.WEEKLY,
            weekly=_weekly_read(result),
            message=result.message,
        )
    return BookingCreateRead(
        booking_type=BookingTypeEnum.SINGLE,
        booking=BookingRead.model_validate(result),
        message="Session booked successfully",
    )


@router.post("/{booking_id}/cancel", response_model=BookingRead)
async def cancel_booking(
    booking_id: UUID,
    payload: BookingCancelRequest,
    service: BookingService = Depends(get_booking_service),
    current_actor: Actor = Depends(get_current_actor),
) -> BookingRead:
    """Cancel booking; students must cancel before the notice window."""
    booking = await service.cancel_booking(booking_id, payload, current_actor)
    return BookingRead.model_validate(booking)


@router.post("/{booking_id}/complete", response_model=BookingRead)
async def complete_booking(
    booking_id: UUID,
    payload: BookingCompleteRequest,
    service: BookingService = Depends(get_booking_service),
    current_actor: Actor = Depends(get_current_actor),
) -> BookingRead:
    """Mark session as completed."""
    booking = await service.complete_booking(booking_id, payload, current_actor)
    return BookingRead.model_validate(booking)


@router.post("/{booking_id}/no-show", response_model=BookingRead)
async def mark_no_show(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    current_actor: Actor = Depends(get_current_actor),
) -> BookingRead:
    """Mark session as missed."""
    booking = await service.mark_no_show(booking_id, current_actor)
    return BookingRead.model_validate(booking)


@router.get("/my", response_model=Page[BookingRead])
async def list_my_bookings(
    status_filter: BookingStatusEnum | None = Query(default=None, alias="status"),
    upcoming: bool = Query(default=False),
    pagination=Depends(get_pagination_params),
    service: BookingService = Depends(get_booking_service),
    current_actor: Actor = Depends(get_current_actor),
) -> Page[BookingRead]:
    """List bookings for current caller."""
    items, total = await service.list_my_bookings(
        current_actor,
        status_filter,
        upcoming,
        pagination.limit,
        pagination.offset,
    )
    serialized = [BookingRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)


@router.get("/enrollments/{enrollment_id}", response_model=Page[BookingRead])
async def list_enrollment_bookings(
    enrollment_id: UUID,
    pagination=Depends(get_pagination_params),
    service: BookingService = Depends(get_booking_service),
    current_actor: Actor = Depends(get_current_actor),
) -> Page[BookingRead]:
    """List bookings of an enrollment."""
    items, total = await service.list_enrollment_bookings(
        enrollment_id,
        current_actor,
        pagination.limit,
        pagination.offset,
    )
    serialized = [BookingRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)


@router.get("/batches/{batch_id}", response_model=Page[BookingRead])
async def list_batch_bookings(
    batch_id: UUID,
    status_filter: BookingStatusEnum | None = Query(default=None, alias="status"),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    pagination=Depends(get_pagination_params),
    service: BookingService = Depends(get_booking_service),
    current_actor: Actor = Depends(get_current_actor),
) -> Page[BookingRead]:
    """List bookings across a batch (admin)."""
    booking_filter = BookingFilter(status=status_filter, date_from=date_from, date_to=date_to)
    items, total = await service.list_batch_bookings(
        batch_id,
        booking_filter,
        current_actor,
        pagination.limit,
        pagination.offset,
    )
    serialized = [BookingRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)
