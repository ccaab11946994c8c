"""API dependencies for actors, sessions and the payment processor."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, Query

from trailhead.core.exceptions import AuthorizationError
from trailhead.database import get_db
from trailhead.gateways.base import PaymentProcessor
from trailhead.schemas.common import Actor, ActorRole
from trailhead.services.gateway_service import gateway_service

__all__ = ["get_db", "get_payment_processor", "get_query_actor", "get_query_admin"]


def get_payment_processor() -> PaymentProcessor:
    """Processor for the configured gateway."""
    return gateway_service.get_processor()


async def get_query_actor(
    actor_id: Annotated[UUID, Query(description="Acting user ID")],
    actor_role: Annotated[ActorRole, Query(description="Acting user role")],
) -> Actor:
    """Actor for read endpoints, passed as query parameters."""
    return Actor(id=actor_id, role=actor_role)


async def get_query_admin(
    actor: Annotated[Actor, Depends(get_query_actor)],
) -> Actor:
    """Actor that must be an admin."""
    if not actor.is_admin:
        raise AuthorizationError("Admin access required")
    return actor
