"""
Shared dependencies and state for the API routers.

Import sessions live in process memory only. Closing an import drops it,
and sessions left idle longer than ``import_session_ttl_seconds`` are
evicted the next time the registry is used.
"""
import logging
import threading
import time
from typing import Dict, Optional

from fastapi import HTTPException

from livestock_import.core.config import settings
from livestock_import.domain.imports.orchestrator import ImportSession, ImportState
from livestock_import.domain.imports.semantic_mapper import (
    ColumnClassifier,
    LLMColumnClassifier,
    get_default_classifier,
)
from livestock_import.domain.imports.sinks import RecordSink, SqlAlchemyAnimalSink

logger = logging.getLogger(__name__)

# Global session storage (one process, one user flow per session)
import_sessions: Dict[str, ImportSession] = {}
_sessions_lock = threading.Lock()


def prune_expired_sessions(now: Optional[float] = None) -> int:
    """Drop idle sessions past their TTL. Sessions mid-commit are kept."""
    current_time = time.time() if now is None else now
    with _sessions_lock:
        expired = [
            import_id
            for import_id, session in import_sessions.items()
            if session.state != ImportState.COMMITTING
            and current_time - session.last_active > settings.import_session_ttl_seconds
        ]
        evicted = [import_sessions.pop(import_id) for import_id in expired]

    for session in evicted:
        session.reset()
    if evicted:
        logger.info("Evicted %d idle import session(s)", len(evicted))
    return len(evicted)


def register_session(session: ImportSession) -> ImportSession:
    prune_expired_sessions()
    with _sessions_lock:
        import_sessions[session.import_id] = session
    return session


def get_import_session(import_id: str) -> ImportSession:
    prune_expired_sessions()
    session = import_sessions.get(import_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Import '{import_id}' not found")
    session.touch()
    return session


def drop_session(import_id: str) -> Optional[ImportSession]:
    with _sessions_lock:
        return import_sessions.pop(import_id, None)


def get_record_sink() -> RecordSink:
    return SqlAlchemyAnimalSink()


def get_column_classifier() -> Optional[ColumnClassifier]:
    return get_default_classifier()


def get_llm_classifier() -> ColumnClassifier:
    """The classifier that backs the /map-csv-columns service endpoint itself."""
    return LLMColumnClassifier()
