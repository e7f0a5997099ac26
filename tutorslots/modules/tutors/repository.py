"""Tutor directory repository layer."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tutorslots.modules.tutors.models import TutorProfile


class TutorRepository:
    """Read access to tutor profiles."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_tutor_by_user_id(self, user_id: UUID) -> TutorProfile | None:
        stmt = select(TutorProfile).where(TutorProfile.user_id == user_id)
        return await self.session.scalar(stmt)
