"""Caller identity resolution.

Users, roles and token issuance belong to the identity provider. This module
only turns a verified bearer token into an ``Actor``.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import Depends, HTTPException, status

from tutorslots.core.enums import RoleEnum
from tutorslots.core.security import decode_token, oauth2_scheme
from tutorslots.modules.identity.schemas import Actor


def actor_from_claims(claims: dict) -> Actor:
    """Build actor from decoded token claims."""
    if claims.get("type") != "access":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid access token")

    subject = claims.get("sub")
    role = claims.get("role")
    if not subject or not role:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token claims are incomplete")

    try:
        return Actor(id=UUID(subject), role=RoleEnum(str(role).lower()))
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token claims are invalid",
        ) from exc


async def get_current_actor(token: str = Depends(oauth2_scheme)) -> Actor:
    """Resolve currently authenticated caller from bearer token."""
    return actor_from_claims(decode_token(token))
