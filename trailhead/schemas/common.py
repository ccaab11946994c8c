"""Shared Pydantic schemas."""

from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class ActorRole(str, Enum):
    CUSTOMER = "customer"
    GUIDE = "guide"
    ADMIN = "admin"


class Actor(BaseModel):
    """Identity and role of whoever performs an operation."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    role: ActorRole

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN


class ActorRequest(BaseModel):
    """Request body carrying only the actor."""

    actor: Actor
