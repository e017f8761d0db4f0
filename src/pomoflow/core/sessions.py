"""Session manager: create, list, search and end sessions."""

import logging

from pomoflow.core.identity import Identity, require_identity
from pomoflow.errors import InvalidTransition, NotFound, PermissionDenied, validating
from pomoflow.storage.models import Session, utcnow
from pomoflow.storage.store import FocusStore

logger = logging.getLogger(__name__)


class SessionManager:
    """Sessions scoped to the calling identity."""

    def __init__(self, store: FocusStore):
        self.store = store

    def create_session(self, identity: Identity | None, name: str) -> Session:
        owner_id = require_identity(identity)
        with validating():
            session = Session(owner_id=owner_id, name=name)
        self.store.insert_session(session)
        logger.info("Created session %s for %s", session.id, owner_id)
        return session

    def list_sessions(self, identity: Identity | None, limit: int | None = None) -> list[Session]:
        """The caller's sessions, newest first. Empty without an identity."""
        if not identity:
            return []
        return self.store.sessions_by_owner(identity, limit=limit)

    def get_session(self, identity: Identity | None, session_id: str) -> Session | None:
        # Reads by id are not ownership-scoped.
        if not identity:
            return None
        return self.store.get_session(session_id)

    def search_sessions(
        self, identity: Identity | None, query: str, limit: int | None = None
    ) -> list[Session]:
        """Search the caller's sessions by name."""
        if not identity:
            return []
        return self.store.search_sessions(identity, query, limit=limit)

    def owned_session(self, identity: Identity, session_id: str) -> Session:
        """Load a session the caller owns, or raise."""
        session = self.store.get_session(session_id)
        if session is None:
            raise NotFound(f"Session {session_id} not found")
        if session.owner_id != identity:
            logger.warning("%s denied access to session %s", identity, session_id)
            raise PermissionDenied(f"Session {session_id} belongs to another user")
        return session

    def end_session(self, identity: Identity | None, session_id: str) -> Session:
        """Stamp the session's end time."""
        owner_id = require_identity(identity)
        session = self.owned_session(owner_id, session_id)
        if session.is_ended:
            raise InvalidTransition(f"Session {session_id} already ended")

        end_time = max(utcnow(), session.start_time)
        if not self.store.end_session(session_id, end_time):
            raise InvalidTransition(f"Session {session_id} already ended")
        logger.info("Ended session %s", session_id)
        return session.model_copy(update={"end_time": end_time})
