"""Request Dependencies — caller identity from the upstream gateway.

Invariants:
    - X-Actor-Id must be a UUID and X-Actor-Role a known ActorRole, else 401
    - Authentication itself happens upstream; these headers are trusted as given

Design Decisions:
    - HTTPException for missing identity: it precedes every domain rule, so it is not a
      CfpError kind
"""

from uuid import UUID

from fastapi import Header, HTTPException, status

from cfp.core.domain_types import Actor, ActorRole


class HeaderIdentity:
    """IdentityContext backed by gateway headers."""

    def __init__(self, actor: Actor):
        self._actor = actor

    def current_actor(self) -> Actor:
        return self._actor


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status.HTTP_401_UNAUTHORIZED,
        detail={"error": {"code": "UNAUTHENTICATED", "message": message}},
    )


async def get_identity(
    x_actor_id: str | None = Header(None),
    x_actor_role: str | None = Header(None),
) -> HeaderIdentity:
    if not x_actor_id or not x_actor_role:
        raise _unauthorized("Missing caller identity")
    try:
        actor_id = UUID(x_actor_id)
        role = ActorRole(x_actor_role.lower())
    except ValueError:
        raise _unauthorized("Malformed caller identity")
    return HeaderIdentity(Actor(id=actor_id, role=role))


async def get_actor(
    x_actor_id: str | None = Header(None),
    x_actor_role: str | None = Header(None),
) -> Actor:
    """FastAPI dependency for the calling actor."""
    identity = await get_identity(x_actor_id, x_actor_role)
    return identity.current_actor()
