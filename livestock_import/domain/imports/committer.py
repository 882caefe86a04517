"""
Chunked, best-effort commit of normalized animal records.

Chunks go to the sink strictly one after another. A failing chunk is
counted as failed in full and the run moves on; nothing is retried and
nothing already stored is rolled back.
"""
import logging
import math
import threading
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

from livestock_import.api.schemas.shared import ImportOutcome
from livestock_import.core.config import settings
from livestock_import.domain.imports.sinks import RecordSink

logger = logging.getLogger(__name__)

ProgressCallback = Callable[["CommitProgress"], None]


@dataclass(frozen=True)
class CommitProgress:
    """Committing(chunk_index, success_count, error_count) snapshot."""
    chunk_index: int
    total_chunks: int
    rows_attempted: int
    total_rows: int
    success_count: int = 0
    error_count: int = 0
    chunk_failed: bool = False

    @property
    def progress_percent(self) -> int:
        if self.total_rows == 0:
            return 100
        # Half-up rounding, so 12.5% reads as 13
        return math.floor(self.rows_attempted / self.total_rows * 100 + 0.5)

    @property
    def done(self) -> bool:
        return self.rows_attempted >= self.total_rows


def partition(records: Sequence[Dict[str, Any]], chunk_size: int) -> List[Sequence[Dict[str, Any]]]:
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    return [records[start:start + chunk_size] for start in range(0, len(records), chunk_size)]


class BatchCommitter:
    def __init__(self, sink: RecordSink, chunk_size: Optional[int] = None):
        self.sink = sink
        self.chunk_size = chunk_size or settings.import_chunk_size

    def iter_commit(
        self,
        records: Sequence[Dict[str, Any]],
        farm_id: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> Iterator[CommitProgress]:
        """
        Submit chunks in order, yielding a progress snapshot after each one.

        Cancellation is checked only between chunks, so a chunk that has been
        handed to the sink always finishes.
        """
        chunks = partition(records, self.chunk_size)
        state = CommitProgress(
            chunk_index=0,
            total_chunks=len(chunks),
            rows_attempted=0,
            total_rows=len(records),
        )

        for index, chunk in enumerate(chunks, start=1):
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Import cancelled before chunk %d/%d", index, len(chunks))
                return

            scoped = [{**record, "farm_id": farm_id} for record in chunk]
            try:
                self.sink.insert_many(scoped)
                state = replace(
                    state,
                    chunk_index=index,
                    rows_attempted=state.rows_attempted + len(chunk),
                    success_count=state.success_count + len(chunk),
                    chunk_failed=False,
                )
            except Exception as e:
                logger.error("Import chunk %d/%d failed (%d rows): %s", index, len(chunks), len(chunk), e)
                state = replace(
                    state,
                    chunk_index=index,
                    rows_attempted=state.rows_attempted + len(chunk),
                    error_count=state.error_count + len(chunk),
                    chunk_failed=True,
                )
            yield state

    def commit(
        self,
        records: Sequence[Dict[str, Any]],
        farm_id: str,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ImportOutcome:
        last: Optional[CommitProgress] = None
        for progress in self.iter_commit(records, farm_id, cancel_event=cancel_event):
            last = progress
            if on_progress is not None:
                on_progress(progress)

        if last is None:
            cancelled = bool(records) and cancel_event is not None and cancel_event.is_set()
            outcome = ImportOutcome(
                total_rows=0,
                progress_percent=0 if cancelled else 100,
                cancelled=cancelled,
            )
        else:
            outcome = ImportOutcome(
                success_count=last.success_count,
                error_count=last.error_count,
                total_rows=last.rows_attempted,
                progress_percent=last.progress_percent,
                cancelled=not last.done,
            )

        log = logger.info if outcome.usable else logger.warning
        log(
            "Import for farm %s finished: %d imported, %d failed%s",
            farm_id,
            outcome.success_count,
            outcome.error_count,
            " (cancelled)" if outcome.cancelled else "",
        )
        return outcome
