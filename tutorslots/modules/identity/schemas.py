"""Identity schemas."""

from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, ConfigDict

from tutorslots.core.enums import RoleEnum


class Actor(BaseModel):
    """Already-authenticated caller of an operation."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    role: RoleEnum

    @property
    def is_admin(self) -> bool:
        return self.role == RoleEnum.ADMIN
