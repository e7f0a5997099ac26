"""Booking business logic layer."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tutorslots.core.database import get_db_session
from tutorslots.core.enums import (
    BookingStatusEnum,
    BookingTypeEnum,
    DayOfWeekEnum,
    EnrollmentStatusEnum,
    RoleEnum,
)
from tutorslots.core.metrics import SLOT_CASCADE_CANCELLATIONS_TOTAL, record_booking_attempt
from tutorslots.modules.booking.models import Booking
from tutorslots.modules.booking.repository import (
    BookingFilter,
    BookingInsertOutcome,
    BookingRepository,
)
from tutorslots.modules.booking.schemas import (
    BookingCancelRequest,
    BookingCompleteRequest,
    BookingCreateRequest,
)
from tutorslots.modules.enrollments.models import Enrollment
from tutorslots.modules.enrollments.repository import EnrollmentRepository
from tutorslots.modules.identity.schemas import Actor
from tutorslots.modules.outbox.repository import OutboxRepository
from tutorslots.modules.scheduling.calendar import resolve_occurrence, weekly_occurrence_dates
from tutorslots.modules.scheduling.eligibility import BookingPolicy, can_self_cancel, is_bookable
from tutorslots.modules.scheduling.models import RecurringSlot
from tutorslots.modules.scheduling.repository import SchedulingRepository
from tutorslots.shared.exceptions import (
    AlreadyBookedException,
    AppException,
    CapacityExceededException,
    ConflictException,
    ForbiddenException,
    NotEligibleException,
    NotFoundException,
    SlotHasFutureBookingsException,
    ValidationException,
)
from tutorslots.shared.utils import utc_now

logger = logging.getLogger(__name__)

SLOT_REMOVED_REASON = "slot removed"

ALREADY_BOOKED_MESSAGE = "You have already booked this session for the selected date"
FULLY_BOOKED_MESSAGE = "This slot is fully booked for the selected date"
NO_SESSIONS_LEFT_MESSAGE = "No sessions left in your enrollment"
NOTHING_BOOKED_MESSAGE = (
    "No new sessions were booked. You may already have sessions booked "
    "for this week or all available slots are full."
)

# Status each state transition moves a booked session into.
ACTION_STATUSES = {
    "cancel": BookingStatusEnum.CANCELLED,
    "complete": BookingStatusEnum.COMPLETED,
    "mark": BookingStatusEnum.NO_SHOW,
}


@dataclass(slots=True)
class WeeklyBookingOutcome:
    """Partial result of a weekly package: each date is attempted independently."""

    clamped_end_date: date
    clamp_note: str | None = None
    booked: list[Booking] = field(default_factory=list)
    skipped: list[date] = field(default_factory=list)
    failed: list[tuple[date, str]] = field(default_factory=list)

    @property
    def warning(self) -> bool:
        return not self.booked

    @property
    def message(self) -> str:
        if not self.booked:
            return NOTHING_BOOKED_MESSAGE
        count = len(self.booked)
        return f"{count} weekly session{'s' if count > 1 else ''} booked successfully"


@dataclass(slots=True)
class SlotDeactivation:
    slot: RecurringSlot
    cancelled_bookings: list[Booking]


def _booking_event_payload(booking: Booking, **extra) -> dict:
    payload = {
        "booking_id": str(booking.id),
        "slot_id": str(booking.slot_id),
        "enrollment_id": str(booking.enrollment_id),
        "session_date": booking.session_date.isoformat(),
        "starts_at": booking.starts_at.isoformat(),
    }
    payload.update(extra)
    return payload


class BookingService:
    """Booking domain service: create, weekly packages, cancel, attendance, cascade."""

    def __init__(
        self,
        booking_repository: BookingRepository,
        scheduling_repository: SchedulingRepository,
        enrollment_repository: EnrollmentRepository,
        outbox_repository: OutboxRepository,
        policy: BookingPolicy | None = None,
    ) -> None:
        self.booking_repository = booking_repository
        self.scheduling_repository = scheduling_repository
        self.enrollment_repository = enrollment_repository
        self.outbox_repository = outbox_repository
        self.policy = policy or BookingPolicy.from_settings()

    async def _load_for_booking(
        self,
        slot_id: UUID,
        enrollment_id: UUID,
        actor: Actor,
    ) -> tuple[RecurringSlot, Enrollment]:
        if actor.role not in (RoleEnum.STUDENT, RoleEnum.ADMIN):
            raise ForbiddenException("Only students and admins can book sessions")

        slot = await self.scheduling_repository.get_slot_by_id(slot_id)
        if slot is None or not slot.is_active:
            raise NotFoundException("Slot not found or inactive")

        enrollment = await self.enrollment_repository.get_enrollment_by_id(enrollment_id)
        if enrollment is None:
            raise NotFoundException("Enrollment not found")
        if not actor.is_admin and enrollment.student_id != actor.id:
            raise ForbiddenException("You can only book with your own enrollment")
        if enrollment.batch_id != slot.batch_id:
            raise ForbiddenException("You are not enrolled in this batch")

        return slot, enrollment

    @staticmethod
    def _check_enrollment(enrollment: Enrollment, session_date: date) -> None:
        if enrollment.status != EnrollmentStatusEnum.ACTIVE:
            raise NotEligibleException("Your enrollment is not active")
        if enrollment.expiry_date < session_date:
            raise NotEligibleException("Your enrollment expires before the selected date")
        if enrollment.sessions_allowed is not None and enrollment.sessions_used >= enrollment.sessions_allowed:
            raise NotEligibleException(NO_SESSIONS_LEFT_MESSAGE)

    async def _create_booking(
        self,
        slot: RecurringSlot,
        enrollment: Enrollment,
        session_date: date,
        booking_type: BookingTypeEnum,
        weekly_end_date: date | None = None,
    ) -> Booking:
        """Book one occurrence. Raises on every outcome except success."""
        if DayOfWeekEnum.from_date(session_date) != slot.day_of_week:
            raise ValidationException(f"This slot is only available on {slot.day_of_week}s")

        now = utc_now()
        occurrence = resolve_occurrence(slot, session_date, now=now)
        eligibility = is_bookable(slot, occurrence, self.policy, now=now)
        if not eligibility.ok:
            record_booking_attempt(booking_type, "not_eligible")
            raise NotEligibleException(eligibility.reason or "Slot is not bookable")

        try:
            self._check_enrollment(enrollment, session_date)
        except NotEligibleException:
            record_booking_attempt(booking_type, "not_eligible")
            raise

        # The allowance is consumed in the same savepoint as the insert, after
        # the slot lock, so a refused increment also removes the new row.
        try:
            async with self.booking_repository.savepoint():
                result = await self.booking_repository.insert_booking_if_absent(
                    slot_id=slot.id,
                    session_date=occurrence.local_date,
                    enrollment_id=enrollment.id,
                    starts_at=occurrence.starts_at,
                    booking_type=booking_type,
                    weekly_end_date=weekly_end_date,
                )
                if result.booking is not None and not await self.enrollment_repository.increment_sessions_used(
                    enrollment,
                ):
                    raise NotEligibleException(NO_SESSIONS_LEFT_MESSAGE)
        except NotEligibleException:
            record_booking_attempt(booking_type, "not_eligible")
            raise
        record_booking_attempt(booking_type, result.outcome)

        if result.outcome == BookingInsertOutcome.ALREADY_BOOKED:
            raise AlreadyBookedException(ALREADY_BOOKED_MESSAGE)
        if result.outcome == BookingInsertOutcome.CAPACITY_EXCEEDED:
            raise CapacityExceededException(FULLY_BOOKED_MESSAGE)
        if result.outcome == BookingInsertOutcome.SLOT_UNAVAILABLE or result.booking is None:
            raise NotFoundException("Slot not found or inactive")

        booking = result.booking
        await self.outbox_repository.create_outbox_event(
            aggregate_type="booking",
            aggregate_id=str(booking.id),
            event_type="booking.created",
            payload=_booking_event_payload(booking, booking_type=str(booking_type)),
        )
        logger.info(
            "Booked slot %s on %s for enrollment %s (%s)",
            slot.id,
            occurrence.local_date,
            enrollment.id,
            booking_type,
        )
        return booking

    async def book_single(
        self,
        slot_id: UUID,
        enrollment_id: UUID,
        session_date: date,
        actor: Actor,
    ) -> Booking:
        """Book one occurrence of a slot for an enrollment."""
        slot, enrollment = await self._load_for_booking(slot_id, enrollment_id, actor)
        return await self._create_booking(slot, enrollment, session_date, BookingTypeEnum.SINGLE)

    async def book_weekly(
        self,
        slot_id: UUID,
        enrollment_id: UUID,
        start_date: date,
        end_date: date,
        actor: Actor,
    ) -> WeeklyBookingOutcome:
        """Book every weekly occurrence in [start_date, end_date], best effort.

        The end date is clamped to the enrollment expiry. Each date is booked
        in its own savepoint, so one failed date never undoes another.
        """
        slot, enrollment = await self._load_for_booking(slot_id, enrollment_id, actor)

        clamped_end_date = min(end_date, enrollment.expiry_date)
        outcome = WeeklyBookingOutcome(clamped_end_date=clamped_end_date)
        if clamped_end_date < end_date:
            outcome.clamp_note = (
                f"End date moved from {end_date.isoformat()} to {clamped_end_date.isoformat()} "
                "to match your enrollment expiry"
            )

        for session_date in weekly_occurrence_dates(start_date, clamped_end_date, slot.day_of_week):
            try:
                booking = await self._create_booking(
                    slot,
                    enrollment,
                    session_date,
                    BookingTypeEnum.WEEKLY,
                    weekly_end_date=clamped_end_date,
                )
            except AlreadyBookedException:
                outcome.skipped.append(session_date)
            except AppException as exc:
                logger.warning("Weekly booking of slot %s on %s failed: %s", slot.id, session_date, exc.message)
                outcome.failed.append((session_date, exc.message))
            else:
                outcome.booked.append(booking)

        if outcome.warning:
            logger.warning("Weekly package for enrollment %s on slot %s booked nothing", enrollment.id, slot.id)
        return outcome

    async def book(self, payload: BookingCreateRequest, actor: Actor) -> Booking | WeeklyBookingOutcome:
        """Dispatch booking request by type."""
        if payload.booking_type == BookingTypeEnum.WEEKLY:
            if payload.weekly_end_date is None:
                raise ValidationException("Weekly booking end date is required for weekly bookings")
            return await self.book_weekly(
                payload.slot_id,
                payload.enrollment_id,
                payload.session_date,
                payload.weekly_end_date,
                actor,
            )
        return await self.book_single(payload.slot_id, payload.enrollment_id, payload.session_date, actor)

    async def _get_booking(self, booking_id: UUID) -> Booking:
        booking = await self.booking_repository.get_booking_by_id(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found")
        return booking

    @staticmethod
    def _ensure_booked(booking: Booking, action: str) -> None:
        if booking.status == BookingStatusEnum.BOOKED:
            return
        if booking.status == ACTION_STATUSES.get(action):
            raise ConflictException(f"Booking is already {booking.status}")
        raise ConflictException(f"Cannot {action} a booking that is {booking.status}")

    def _ensure_tutor_or_admin(self, booking: Booking, actor: Actor, action: str) -> None:
        if actor.is_admin:
            return
        if actor.role == RoleEnum.TUTOR and booking.slot.tutor_id == actor.id:
            return
        raise ForbiddenException(f"You can only {action} your own sessions")

    async def _apply_status(self, booking: Booking, status: BookingStatusEnum, **values) -> None:
        if not await self.booking_repository.update_booking_status(booking, status, **values):
            raise ConflictException("Booking was changed by another request")

    async def cancel_booking(
        self,
        booking_id: UUID,
        payload: BookingCancelRequest,
        actor: Actor,
    ) -> Booking:
        """Cancel a booked occurrence. Owners must respect the notice window."""
        booking = await self._get_booking(booking_id)
        now = utc_now()

        if not actor.is_admin:
            enrollment = await self.enrollment_repository.get_enrollment_by_id(booking.enrollment_id)
            if actor.role != RoleEnum.STUDENT or enrollment is None or enrollment.student_id != actor.id:
                raise ForbiddenException("You can only cancel your own bookings")

        self._ensure_booked(booking, "cancel")

        if not actor.is_admin:
            notice = can_self_cancel(booking.starts_at, self.policy, now=now)
            if not notice.ok:
                raise ForbiddenException(notice.reason or "Cancellation window has passed")

        await self._apply_status(
            booking,
            BookingStatusEnum.CANCELLED,
            cancelled_by=actor.id,
            cancellation_reason=payload.reason,
            cancelled_at=now,
        )
        await self.enrollment_repository.decrement_sessions_used(booking.enrollment_id)
        await self.outbox_repository.create_outbox_event(
            aggregate_type="booking",
            aggregate_id=str(booking.id),
            event_type="booking.cancelled",
            payload=_booking_event_payload(booking, reason=payload.reason, cancelled_by=str(actor.id)),
        )
        logger.info("Booking %s cancelled by %s %s", booking.id, actor.role, actor.id)
        return booking

    async def complete_booking(
        self,
        booking_id: UUID,
        payload: BookingCompleteRequest,
        actor: Actor,
    ) -> Booking:
        """Mark a booked session as completed with attendance and notes."""
        booking = await self._get_booking(booking_id)
        self._ensure_tutor_or_admin(booking, actor, "complete")
        self._ensure_booked(booking, "complete")

        values: dict = {"attendance_marked": payload.attendance_marked}
        if payload.notes:
            values["notes"] = payload.notes
        await self._apply_status(booking, BookingStatusEnum.COMPLETED, **values)

        await self.outbox_repository.create_outbox_event(
            aggregate_type="booking",
            aggregate_id=str(booking.id),
            event_type="booking.completed",
            payload=_booking_event_payload(booking, attendance_marked=payload.attendance_marked),
        )
        return booking

    async def mark_no_show(self, booking_id: UUID, actor: Actor) -> Booking:
        """Mark a booked session as missed by the student."""
        booking = await self._get_booking(booking_id)
        self._ensure_tutor_or_admin(booking, actor, "mark")
        self._ensure_booked(booking, "mark")

        await self._apply_status(booking, BookingStatusEnum.NO_SHOW, attendance_marked=False)
        await self.outbox_repository.create_outbox_event(
            aggregate_type="booking",
            aggregate_id=str(booking.id),
            event_type="booking.no_show",
            payload=_booking_event_payload(booking),
        )
        return booking

    async def deactivate_slot(self, slot_id: UUID, force: bool, actor: Actor) -> SlotDeactivation:
        """Deactivate a slot, cancelling its future bookings first when forced."""
        if not actor.is_admin:
            raise ForbiddenException("Only admin can deactivate slots")

        slot = await self.scheduling_repository.lock_slot(slot_id)
        if slot is None:
            raise NotFoundException("Slot not found")
        if not slot.is_active:
            return SlotDeactivation(slot=slot, cancelled_bookings=[])

        now = utc_now()
        future_bookings = await self.booking_repository.count_future_bookings(slot.id, now)
        if future_bookings and not force:
            raise SlotHasFutureBookingsException(future_bookings)

        cancelled: list[Booking] = []
        if future_bookings:
            cancelled = await self.booking_repository.cancel_future_bookings(
                slot.id,
                now,
                cancelled_by=actor.id,
                reason=SLOT_REMOVED_REASON,
            )
            for booking in cancelled:
                await self.enrollment_repository.decrement_sessions_used(booking.enrollment_id)
                await self.outbox_repository.create_outbox_event(
                    aggregate_type="booking",
                    aggregate_id=str(booking.id),
                    event_type="booking.cancelled",
                    payload=_booking_event_payload(
                        booking,
                        reason=SLOT_REMOVED_REASON,
                        cancelled_by=str(actor.id),
                    ),
                )
            SLOT_CASCADE_CANCELLATIONS_TOTAL.inc(len(cancelled))

        await self.scheduling_repository.set_slot_active(slot, False)
        await self.outbox_repository.create_outbox_event(
            aggregate_type="slot",
            aggregate_id=str(slot.id),
            event_type="slot.deactivated",
            payload={
                "slot_id": str(slot.id),
                "batch_id": str(slot.batch_id),
                "cancelled_bookings": len(cancelled),
            },
        )
        logger.info("Slot %s deactivated, %s future booking(s) cancelled", slot.id, len(cancelled))
        return SlotDeactivation(slot=slot, cancelled_bookings=cancelled)

    async def list_bookings(
        self,
        booking_filter: BookingFilter,
        actor: Actor,
        limit: int,
        offset: int,
    ) -> tuple[list[Booking], int]:
        """List bookings matching filter, narrowed to what actor may see."""
        if actor.role == RoleEnum.TUTOR:
            booking_filter.tutor_id = actor.id
        elif actor.role == RoleEnum.STUDENT:
            booking_filter.enrollment_ids = await self.enrollment_repository.list_enrollment_ids_for_student(actor.id)
        return await self.booking_repository.list_bookings(booking_filter, limit, offset)

    async def list_my_bookings(
        self,
        actor: Actor,
        status: BookingStatusEnum | None,
        upcoming: bool,
        limit: int,
        offset: int,
    ) -> tuple[list[Booking], int]:
        """List bookings of the caller, soonest first when only upcoming ones are asked."""
        booking_filter = BookingFilter(
            status=status,
            starts_after=utc_now() if upcoming else None,
            oldest_first=upcoming,
        )
        return await self.list_bookings(booking_filter, actor, limit, offset)

    async def list_slot_bookings(
        self,
        slot_id: UUID,
        booking_filter: BookingFilter,
        actor: Actor,
        limit: int,
        offset: int,
    ) -> tuple[list[Booking], int]:
        """List bookings of one slot (its tutor or admin)."""
        slot = await self.scheduling_repository.get_slot_by_id(slot_id)
        if slot is None:
            raise NotFoundException("Slot not found")
        if not actor.is_admin and not (actor.role == RoleEnum.TUTOR and slot.tutor_id == actor.id):
            raise ForbiddenException("You can only view bookings of your own slots")
        booking_filter.slot_id = slot.id
        return await self.list_bookings(booking_filter, actor, limit, offset)

    async def list_enrollment_bookings(
        self,
        enrollment_id: UUID,
        actor: Actor,
        limit: int,
        offset: int,
    ) -> tuple[list[Booking], int]:
        """List bookings of one enrollment (its student or admin)."""
        enrollment = await self.enrollment_repository.get_enrollment_by_id(enrollment_id)
        if enrollment is None:
            raise NotFoundException("Enrollment not found")
        if not actor.is_admin and enrollment.student_id != actor.id:
            raise ForbiddenException("You can only view your own bookings")
        booking_filter = BookingFilter(enrollment_id=enrollment.id, oldest_first=True)
        return await self.booking_repository.list_bookings(booking_filter, limit, offset)

    async def list_batch_bookings(
        self,
        batch_id: UUID,
        booking_filter: BookingFilter,
        actor: Actor,
        limit: int,
        offset: int,
    ) -> tuple[list[Booking], int]:
        """List bookings across every slot of a batch (admin only)."""
        if not actor.is_admin:
            raise ForbiddenException("Only admin can view batch bookings")
        booking_filter.batch_id = batch_id
        return await self.booking_repository.list_bookings(booking_filter, limit, offset)


async def get_booking_service(session: AsyncSession = Depends(get_db_session)) -> BookingService:
    """Dependency provider for booking service."""
    return BookingService(
        booking_repository=BookingRepository(session),
        scheduling_repository=SchedulingRepository(session),
        enrollment_repository=EnrollmentRepository(session),
        outbox_repository=OutboxRepository(session),
    )
