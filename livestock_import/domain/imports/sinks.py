"""
Record sinks: where committed chunks of animals end up.

A sink accepts one chunk per call and either stores all of it or raises.
"""
import logging
from typing import Any, Dict, List, Optional, Protocol

from sqlalchemy import insert
from sqlalchemy.engine import Engine

from livestock_import.db.models import Animal
from livestock_import.db.session import get_engine

logger = logging.getLogger(__name__)


class RecordSink(Protocol):
    def insert_many(self, records: List[Dict[str, Any]]) -> None:
        ...


class SqlAlchemyAnimalSink:
    """Bulk-inserts tenant-scoped animal records, one transaction per chunk."""

    def __init__(self, engine: Optional[Engine] = None):
        self._engine = engine

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = get_engine()
        return self._engine

    def insert_many(self, records: List[Dict[str, Any]]) -> None:
        if not records:
            return
        with self.engine.begin() as conn:
            conn.execute(insert(Animal.__table__), records)
        logger.debug("Inserted %d animals", len(records))
