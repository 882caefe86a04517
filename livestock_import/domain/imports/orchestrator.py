"""
Import session orchestration.

One ImportSession drives a single uploaded file through

    EMPTY -> UPLOADED -> MAPPED -> COMMITTING -> DONE

A commit that imports nothing returns the session to MAPPED so the user
can fix the mapping and try again. A finished import keeps only its
outcome; the parsed rows and mappings are released. ``reset`` clears everything at any
point; a commit in flight stops after its current chunk, and chunks
already stored stay stored.
"""
import logging
import threading
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from livestock_import.api.schemas.shared import (
    ColumnMapping,
    ImportOutcome,
    MappingMethod,
)
from livestock_import.core.config import settings
from livestock_import.domain.imports.committer import BatchCommitter, CommitProgress
from livestock_import.domain.imports.fields import TargetField
from livestock_import.domain.imports.mapping_editor import MappingEditor
from livestock_import.domain.imports.normalizer import TagGenerator, build_record
from livestock_import.domain.imports.processors.csv_parser import ParsedTable, parse_csv_upload
from livestock_import.domain.imports.semantic_mapper import ColumnClassifier, suggest_mappings
from livestock_import.domain.imports.sinks import RecordSink

logger = logging.getLogger(__name__)


class ImportState(str, Enum):
    EMPTY = "empty"
    UPLOADED = "uploaded"
    MAPPED = "mapped"
    COMMITTING = "committing"
    DONE = "done"


class InvalidImportStateError(Exception):
    def __init__(self, operation: str, state: ImportState):
        self.operation = operation
        self.state = state
        super().__init__(f"Cannot {operation} while import is {state.value}")


@dataclass(frozen=True)
class SessionSnapshot:
    """A consistent read of one session, taken under its lock."""
    state: ImportState
    file_name: Optional[str]
    headers: Tuple[str, ...]
    row_count: int
    mappings: List[Tuple[ColumnMapping, Optional[str]]]
    mapping_method: Optional[MappingMethod]
    mapped_fields_count: int
    ready: bool
    duplicate_targets: List[TargetField]
    progress_percent: int
    outcome: Optional[ImportOutcome]


class ImportSession:
    def __init__(self, import_id: Optional[str] = None):
        self.import_id = import_id or str(uuid.uuid4())
        self._lock = threading.RLock()
        self._cancel_event = threading.Event()
        # Bumped on every reset so late results from a cleared run are dropped.
        self._generation = 0
        self._clear()
        self.touch()

    def _clear(self) -> None:
        self.state = ImportState.EMPTY
        self.file_name: Optional[str] = None
        self.table: Optional[ParsedTable] = None
        self.editor: Optional[MappingEditor] = None
        self.mapping_method: Optional[MappingMethod] = None
        self.progress_percent = 0
        self.outcome: Optional[ImportOutcome] = None

    def touch(self) -> None:
        self.last_active = time.time()

    def _require(self, operation: str, *states: ImportState) -> None:
        if self.state not in states:
            raise InvalidImportStateError(operation, self.state)

    def load(self, file_content: bytes, file_name: Optional[str]) -> ParsedTable:
        """Parse an upload. Parse errors leave the session untouched."""
        table = parse_csv_upload(file_content, file_name, settings.upload_allowed_extensions)
        with self._lock:
            self._require("upload a file", ImportState.EMPTY, ImportState.UPLOADED, ImportState.MAPPED)
            self._clear()
            self.file_name = file_name
            self.table = table
            self.state = ImportState.UPLOADED
            self.touch()
        logger.info("Import %s: loaded '%s' (%d rows)", self.import_id, file_name, len(table.rows))
        return table

    def suggest(self, classifier: Optional[ColumnClassifier] = None) -> List[ColumnMapping]:
        """Run the mapping tiers; the only slow step before commit."""
        with self._lock:
            self._require("suggest mappings", ImportState.UPLOADED, ImportState.MAPPED)
            table = self.table
            generation = self._generation

        suggestion = suggest_mappings(
            table.headers,
            table.sample_rows(settings.mapping_sample_rows),
            classifier,
        )

        with self._lock:
            if generation != self._generation:
                logger.info("Import %s was reset while mapping; discarding suggestions", self.import_id)
                raise InvalidImportStateError("suggest mappings", self.state)
            self.editor = MappingEditor(suggestion.mappings)
            self.mapping_method = suggestion.method
            self.state = ImportState.MAPPED
            self.touch()
            return self.editor.mappings

    def update_mapping(self, source_column: str, target_field: Optional[TargetField]) -> ColumnMapping:
        with self._lock:
            self._require("edit mappings", ImportState.MAPPED)
            self.touch()
            return self.editor.update(source_column, target_field)

    @property
    def ready(self) -> bool:
        with self._lock:
            editor = self.editor
        return editor is not None and editor.is_ready()

    def sample_value(self, source_column: str) -> Optional[str]:
        with self._lock:
            table = self.table
        if table is None or not table.rows:
            return None
        return table.cell(table.rows[0], table.column_index(source_column)) or None

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            table = self.table
            editor = self.editor
            if table is not None:
                row_count = len(table.rows)
            else:
                row_count = self.outcome.total_rows if self.outcome else 0
            mappings = []
            if editor is not None:
                mappings = [(mapping, self.sample_value(mapping.source_column)) for mapping in editor.mappings]
            return SessionSnapshot(
                state=self.state,
                file_name=self.file_name,
                headers=table.headers if table else (),
                row_count=row_count,
                mappings=mappings,
                mapping_method=self.mapping_method,
                mapped_fields_count=editor.mapped_fields_count if editor else 0,
                ready=editor is not None and editor.is_ready(),
                duplicate_targets=editor.duplicate_targets() if editor else [],
                progress_percent=self.progress_percent,
                outcome=self.outcome,
            )

    def normalized_records(self) -> List[Dict[str, Any]]:
        """One normalized record per parsed row, using the current mappings."""
        with self._lock:
            self._require("normalize rows", ImportState.MAPPED, ImportState.COMMITTING)
            table = self.table
            field_columns = {
                field: table.column_index(column)
                for field, column in self.editor.field_to_column().items()
            }
        tags = TagGenerator()
        return [build_record(row, field_columns, tags) for row in table.rows]

    def commit(self, sink: RecordSink, farm_id: str, chunk_size: Optional[int] = None) -> ImportOutcome:
        with self._lock:
            self._require("commit", ImportState.MAPPED)
            self.editor.freeze()
            self.state = ImportState.COMMITTING
            self.progress_percent = 0
            self._cancel_event.clear()
            generation = self._generation

        records = self.normalized_records()

        def on_progress(progress: CommitProgress) -> None:
            with self._lock:
                if generation == self._generation:
                    self.progress_percent = progress.progress_percent

        committer = BatchCommitter(sink, chunk_size=chunk_size)
        outcome = committer.commit(records, farm_id, on_progress=on_progress, cancel_event=self._cancel_event)

        with self._lock:
            if generation != self._generation:
                return outcome
            self.outcome = outcome
            self.touch()
            if outcome.usable:
                self.state = ImportState.DONE
                self.table = None
                self.editor = None
            else:
                # Back to the mapping step so the user can adjust and retry
                self.editor.thaw()
                self.state = ImportState.MAPPED
        return outcome

    def reset(self) -> None:
        """Close the import: drop all in-memory state and stop any commit after its current chunk."""
        with self._lock:
            self._cancel_event.set()
            self._generation += 1
            self._clear()
        logger.info("Import %s reset", self.import_id)
