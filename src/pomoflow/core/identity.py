"""Identity gate: turns a request context into the caller's identity."""

from pydantic import BaseModel

from pomoflow.errors import Unauthenticated

Identity = str


class RequestContext(BaseModel):
    """What a front end knows about the caller of one operation."""

    user_id: str | None = None


def resolve_identity(context: RequestContext | None) -> Identity | None:
    """Return the caller's identity, or None when there is none."""
    if context is None or context.user_id is None:
        return None
    user_id = context.user_id.strip()
    return user_id or None


def require_identity(identity: Identity | None) -> Identity:
    """Identity for a write; raises Unauthenticated when absent."""
    if identity is None or not identity.strip():
        raise Unauthenticated("Not authenticated")
    return identity
