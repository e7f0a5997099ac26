"""Outbox repository layer."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from tutorslots.core.enums import OutboxStatusEnum
from tutorslots.modules.outbox.models import OutboxEvent


class OutboxRepository:
    """Writes integration events in the caller's transaction."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_outbox_event(
        self,
        aggregate_type: str,
        aggregate_id: str,
        event_type: str,
        payload: dict,
    ) -> OutboxEvent:
        event = OutboxEvent(
            aggregate_type=aggregate_type,
            aggregate_id=aggregate_id,
            event_type=event_type,
            payload=payload,
            status=OutboxStatusEnum.PENDING,
        )
        self.session.add(event)
        await self.session.flush()
        return event
