import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from livestock_import.db.models import Animal
from livestock_import.domain.imports.committer import BatchCommitter
from livestock_import.domain.imports.sinks import SqlAlchemyAnimalSink


def _record(tag, **overrides):
    record = {
        "tag": tag,
        "name": f"Animal {tag}",
        "type": "Cattle",
        "status": "Healthy",
        "purchase_cost": None,
        "farm_id": "farm-1",
    }
    record.update(overrides)
    return record


def _count(engine):
    with engine.connect() as conn:
        return conn.execute(select(func.count()).select_from(Animal.__table__)).scalar()


def test_insert_many_stores_chunk(sqlite_engine):
    SqlAlchemyAnimalSink(sqlite_engine).insert_many([_record("A1", purchase_cost=1250.5), _record("A2")])

    with sqlite_engine.connect() as conn:
        rows = conn.execute(select(Animal.tag, Animal.purchase_cost, Animal.id).order_by(Animal.tag)).all()
    assert [(r.tag, r.purchase_cost) for r in rows] == [("A1", 1250.5), ("A2", None)]
    assert all(r.id for r in rows)


def test_chunk_is_atomic(sqlite_engine):
    sink = SqlAlchemyAnimalSink(sqlite_engine)
    with pytest.raises(IntegrityError):
        sink.insert_many([_record("A1"), _record("A2", name=None)])
    assert _count(sqlite_engine) == 0


def test_failed_chunk_does_not_undo_earlier_chunks(sqlite_engine):
    records = [
        {k: v for k, v in _record(f"A{i}").items() if k != "farm_id"}
        for i in range(5)
    ]
    records[3]["name"] = None

    outcome = BatchCommitter(SqlAlchemyAnimalSink(sqlite_engine), chunk_size=2).commit(records, "farm-9")

    assert (outcome.success_count, outcome.error_count) == (3, 2)
    assert _count(sqlite_engine) == 3


def test_empty_chunk_is_a_no_op(sqlite_engine):
    SqlAlchemyAnimalSink(sqlite_engine).insert_many([])
    assert _count(sqlite_engine) == 0
