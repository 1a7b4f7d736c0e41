"""Process-local session store for production state"""

import logging
import threading
from typing import Callable, Dict, List, Optional, Set

from .errors import SessionNotFoundError
from .state import ProductionState, create_production_state

logger = logging.getLogger(__name__)

StateMirror = Callable[[str, Optional[ProductionState]], None]


class SessionStore:
    """
    Maps session id to production state.

    Single writer per session is the caller's discipline; the lock only keeps
    the mapping itself consistent across threads. Deleted ids are retired and
    can never be created again.
    """

    def __init__(self, mirror: Optional[StateMirror] = None):
        self._sessions: Dict[str, ProductionState] = {}
        self._retired: Set[str] = set()
        self._lock = threading.RLock()
        self._mirror = mirror

    def create(self, session_id: str, initial: Optional[ProductionState] = None) -> ProductionState:
        """Register a new session

        Raises:
            ValueError: If the id is live or was used before
        """
        with self._lock:
            if session_id in self._sessions or session_id in self._retired:
                raise ValueError(f"Session id already used: {session_id}")
            state = initial if initial is not None else create_production_state(session_id)
            state["session_id"] = session_id
            self._sessions[session_id] = state
        logger.info(f"[SessionStore] Created session {session_id}")
        self._notify(session_id, state)
        return state

    def get(self, session_id: str) -> Optional[ProductionState]:
        return self._sessions.get(session_id)

    def require(self, session_id: str) -> ProductionState:
        state = self._sessions.get(session_id)
        if state is None:
            raise SessionNotFoundError(session_id)
        return state

    def has(self, session_id: str) -> bool:
        return session_id in self._sessions

    def update(self, session_id: str, mutator: Callable[[ProductionState], None]) -> ProductionState:
        """Apply ``mutator`` to the session state in place and return the state"""
        with self._lock:
            state = self.require(session_id)
            mutator(state)
        self._notify(session_id, state)
        return state

    def delete(self, session_id: str) -> bool:
        with self._lock:
            existed = self._sessions.pop(session_id, None) is not None
            self._retired.add(session_id)
        if existed:
            logger.info(f"[SessionStore] Deleted session {session_id}")
            self._notify(session_id, None)
        return existed

    def clear(self):
        """Drop every session; the ids stay retired"""
        with self._lock:
            ids = list(self._sessions)
            self._retired.update(ids)
            self._sessions.clear()
        for session_id in ids:
            self._notify(session_id, None)

    def ids(self) -> List[str]:
        return list(self._sessions)

    def _notify(self, session_id: str, state: Optional[ProductionState]):
        if self._mirror is None:
            return
        try:
            self._mirror(session_id, state)
        except Exception as e:
            # Mirror is best-effort; the in-process state stays authoritative
            logger.warning(f"[SessionStore] Mirror update failed for {session_id}: {e}")
