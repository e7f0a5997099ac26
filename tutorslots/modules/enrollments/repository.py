"""Enrollment repository layer."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from tutorslots.modules.enrollments.models import Enrollment


class EnrollmentRepository:
    """DB access for enrollments. Enrollment CRUD lives outside this service."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_enrollment_by_id(self, enrollment_id: UUID) -> Enrollment | None:
        stmt = select(Enrollment).where(Enrollment.id == enrollment_id)
        return await self.session.scalar(stmt)

    async def list_enrollment_ids_for_student(self, student_id: UUID) -> list[UUID]:
        stmt = select(Enrollment.id).where(Enrollment.student_id == student_id)
        return list((await self.session.scalars(stmt)).all())

    async def increment_sessions_used(self, enrollment: Enrollment) -> bool:
        """Consume one session unless the allowance is used up. Returns False when it is."""
        stmt = (
            update(Enrollment)
            .where(
                Enrollment.id == enrollment.id,
                or_(
                    Enrollment.sessions_allowed.is_(None),
                    Enrollment.sessions_used < Enrollment.sessions_allowed,
                ),
            )
            .values(sessions_used=Enrollment.sessions_used + 1)
            .returning(Enrollment.sessions_used)
            .execution_options(synchronize_session=False)
        )
        sessions_used = await self.session.scalar(stmt)
        if sessions_used is None:
            return False
        set_committed_value(enrollment, "sessions_used", int(sessions_used))
        return True

    async def decrement_sessions_used(self, enrollment_id: UUID) -> None:
        stmt = (
            update(Enrollment)
            .where(Enrollment.id == enrollment_id)
            .values(sessions_used=func.greatest(Enrollment.sessions_used - 1, 0))
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)
