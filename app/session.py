"""
Wizard session storage (in-memory).

Each allocation run is a :class:`~app.schemas.wizard.WizardSession`
keyed by a generated id. The store lives in process memory; in a
multi-worker deployment sessions are not shared across workers, so
the service must run with a single worker or behind sticky sessions.
"""

from __future__ import annotations

import threading
import uuid
from typing import Dict

from app.core.errors import NotFoundError
from app.schemas.wizard import WizardSession, ahora


class SessionStore:
    def __init__(self) -> None:
        self._sessions: Dict[str, WizardSession] = {}
        self._lock = threading.Lock()

    def create(self, usuario: str, company_id: str | None = None) -> WizardSession:
        session = WizardSession(id=uuid.uuid4().hex, usuario=usuario, company_id=company_id)
        with self._lock:
            self._sessions[session.id] = session
        return session

    def get(self, session_id: str) -> WizardSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError(f"La sesión {session_id} no existe", paso="sesion")
        return session

    def save(self, session: WizardSession) -> WizardSession:
        session.actualizado_en = ahora()
        with self._lock:
            self._sessions[session.id] = session
        return session

    def discard(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)


sessions = SessionStore()
