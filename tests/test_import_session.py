import threading

import pytest

from livestock_import.api.schemas.shared import ColumnMapping, MappingMethod
from livestock_import.domain.imports.fields import TargetField
from livestock_import.domain.imports.orchestrator import (
    ImportSession,
    ImportState,
    InvalidImportStateError,
)
from livestock_import.domain.imports.processors.csv_parser import EmptyInputError, UnsupportedFileTypeError


def _mapped_session(content: bytes) -> ImportSession:
    session = ImportSession()
    session.load(content, "herd.csv")
    session.suggest(classifier=None)
    return session


def test_full_flow_from_upload_to_done(sample_csv, recording_sink):
    session = ImportSession()
    session.load(sample_csv, "herd.csv")
    assert session.state == ImportState.UPLOADED

    mappings = session.suggest(classifier=None)
    assert session.state == ImportState.MAPPED
    assert [(m.source_column, m.target_field) for m in mappings] == [
        ("Tag", TargetField.TAG),
        ("Animal", TargetField.TYPE),
        ("Weight", TargetField.WEIGHT),
    ]
    assert session.ready

    outcome = session.commit(recording_sink, "farm-1")

    assert session.state == ImportState.DONE
    assert outcome.success_count == 2
    assert session.progress_percent == 100
    assert [(r["tag"], r["type"], r["weight"]) for r in recording_sink.stored] == [
        ("A1", "Cattle", "500"),
        ("A2", "Goat", "45"),
    ]


def test_parse_errors_leave_session_untouched(sample_csv):
    session = ImportSession()
    with pytest.raises(UnsupportedFileTypeError):
        session.load(sample_csv, "herd.txt")
    with pytest.raises(EmptyInputError):
        session.load(b"\n \n", "herd.csv")
    assert session.state == ImportState.EMPTY
    assert session.table is None


def test_user_edits_drive_extraction(recording_sink):
    session = _mapped_session(b"Tag,Owner,Cost\nA1,Jan,R 300\nA2,Piet,n/a")

    session.update_mapping("Owner", TargetField.NAME)
    session.update_mapping("Cost", None)
    records = session.normalized_records()

    assert [r["name"] for r in records] == ["Jan", "Piet"]
    assert all(r["purchase_cost"] is None for r in records)


def test_duplicate_targets_use_rightmost_column():
    session = _mapped_session(b"Tag,Ear Tag\nA1,E1")

    records = session.normalized_records()

    assert records[0]["tag"] == "E1"


def test_commit_does_not_require_readiness(recording_sink):
    session = _mapped_session(b"Breed,Paddock\nNguni,North\nAngus,South")
    assert not session.ready

    outcome = session.commit(recording_sink, "farm-1")

    assert outcome.success_count == 2
    tags = [r["tag"] for r in recording_sink.stored]
    assert len(set(tags)) == 2
    assert all(r["name"] == f"Animal {r['tag']}" for r in recording_sink.stored)


def test_total_failure_returns_to_mapping_step(make_sink):
    session = _mapped_session(b"Tag\nA1\nA2")

    outcome = session.commit(make_sink(failing_chunks={1}), "farm-1")

    assert not outcome.usable
    assert session.state == ImportState.MAPPED
    # Mappings are editable again for a retry
    session.update_mapping("Tag", TargetField.NAME)
    assert session.commit(make_sink(), "farm-1").success_count == 2


def test_operations_out_of_order_are_rejected(sample_csv, recording_sink):
    session = ImportSession()
    with pytest.raises(InvalidImportStateError):
        session.commit(recording_sink, "farm-1")
    session.load(sample_csv, "herd.csv")
    with pytest.raises(InvalidImportStateError):
        session.update_mapping("Tag", TargetField.NAME)


def test_reset_clears_everything(sample_csv, recording_sink):
    session = _mapped_session(sample_csv)
    session.commit(recording_sink, "farm-1")

    session.reset()

    assert session.state == ImportState.EMPTY
    assert session.table is None
    assert session.editor is None
    assert session.progress_percent == 0
    assert session.outcome is None


def test_reset_during_commit_lets_current_chunk_finish():
    rows = "\n".join(f"A{i}" for i in range(120))
    session = _mapped_session(f"Tag\n{rows}".encode())
    entered = threading.Event()
    release = threading.Event()

    class SlowSink:
        def __init__(self):
            self.chunks = []

        def insert_many(self, records):
            entered.set()
            release.wait(timeout=5)
            self.chunks.append(len(records))

    sink = SlowSink()
    result = {}
    worker = threading.Thread(target=lambda: result.setdefault("outcome", session.commit(sink, "farm-1", chunk_size=50)))
    worker.start()
    assert entered.wait(timeout=5)

    session.reset()
    release.set()
    worker.join(timeout=5)

    assert sink.chunks == [50]
    assert result["outcome"].cancelled
    assert result["outcome"].success_count == 50
    assert session.state == ImportState.EMPTY
    assert session.outcome is None


def test_finished_import_releases_rows_and_mappings(sample_csv, recording_sink):
    session = _mapped_session(sample_csv)

    outcome = session.commit(recording_sink, "farm-1")

    assert session.state == ImportState.DONE
    assert session.table is None
    assert session.editor is None
    assert session.outcome == outcome
    snapshot = session.snapshot()
    assert snapshot.row_count == 2
    assert snapshot.mappings == []
    assert not snapshot.ready


def test_reset_during_suggest_discards_late_suggestions():
    session = ImportSession()
    session.load(b"Tag,Animal\nA1,cow", "herd.csv")
    entered = threading.Event()
    release = threading.Event()

    class BlockingClassifier:
        def classify(self, request):
            entered.set()
            release.wait(timeout=5)
            return [
                ColumnMapping(source_column="Tag", target_field=TargetField.TAG, confidence=0.9),
                ColumnMapping(source_column="Animal", target_field=TargetField.TYPE, confidence=0.9),
            ]

    result = {}

    def run():
        try:
            session.suggest(BlockingClassifier())
        except InvalidImportStateError as exc:
            result["error"] = exc

    worker = threading.Thread(target=run)
    worker.start()
    assert entered.wait(timeout=5)

    session.reset()
    release.set()
    worker.join(timeout=5)

    assert isinstance(result.get("error"), InvalidImportStateError)
    assert session.state == ImportState.EMPTY
    assert session.editor is None
    assert session.mapping_method is None


def test_suggest_reports_classifier_method():
    session = ImportSession()
    session.load(b"Tag,Animal\nA1,cow", "herd.csv")

    class StubClassifier:
        def classify(self, request):
            return [
                ColumnMapping(source_column="Tag", target_field=TargetField.TAG, confidence=0.9),
                ColumnMapping(source_column="Animal", target_field=TargetField.TYPE, confidence=0.7),
            ]

    session.suggest(StubClassifier())

    assert session.mapping_method == MappingMethod.AI


def test_snapshot_stays_consistent_while_session_is_reset(sample_csv):
    session = _mapped_session(sample_csv)
    stop = threading.Event()
    errors = []

    def churn():
        while not stop.is_set():
            session.reset()
            session.load(sample_csv, "herd.csv")
            session.suggest(classifier=None)

    worker = threading.Thread(target=churn)
    worker.start()
    try:
        for _ in range(300):
            try:
                snapshot = session.snapshot()
                session.ready
            except Exception as exc:
                errors.append(exc)
                break
            if snapshot.state == ImportState.MAPPED:
                assert len(snapshot.mappings) == len(snapshot.headers) == 3
            else:
                assert snapshot.mappings == []
    finally:
        stop.set()
        worker.join(timeout=5)

    assert errors == []
