"""
Animal CSV import endpoints: upload, review mappings, commit, close.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool

from livestock_import.api.dependencies import (
    drop_session,
    get_column_classifier,
    get_import_session,
    get_record_sink,
    register_session,
)
from livestock_import.api.schemas.shared import (
    CommitImportRequest,
    ImportOutcome,
    ImportSessionResponse,
    MappingView,
    TargetFieldInfo,
    UpdateMappingRequest,
)
from livestock_import.domain.imports.fields import field_catalogue
from livestock_import.domain.imports.mapping_editor import UnknownColumnError, confidence_tier
from livestock_import.domain.imports.orchestrator import ImportSession, InvalidImportStateError
from livestock_import.domain.imports.processors.csv_parser import CsvImportError
from livestock_import.domain.imports.semantic_mapper import ColumnClassifier
from livestock_import.domain.imports.sinks import RecordSink

router = APIRouter(prefix="/imports", tags=["imports"])

logger = logging.getLogger(__name__)


def _session_response(session: ImportSession) -> ImportSessionResponse:
    snapshot = session.snapshot()
    mappings: List[MappingView] = [
        MappingView(
            source_column=mapping.source_column,
            target_field=mapping.target_field,
            confidence=mapping.confidence,
            confidence_tier=confidence_tier(mapping.confidence) if mapping.target_field else None,
            sample_value=sample_value,
        )
        for mapping, sample_value in snapshot.mappings
    ]
    return ImportSessionResponse(
        import_id=session.import_id,
        state=snapshot.state.value,
        file_name=snapshot.file_name,
        headers=list(snapshot.headers),
        row_count=snapshot.row_count,
        mappings=mappings,
        mapping_method=snapshot.mapping_method,
        mapped_fields_count=snapshot.mapped_fields_count,
        ready=snapshot.ready,
        duplicate_targets=snapshot.duplicate_targets,
        progress_percent=snapshot.progress_percent,
        outcome=snapshot.outcome,
    )


@router.get("/fields", response_model=List[TargetFieldInfo])
async def list_target_fields():
    """List the animal fields a column can be mapped to, in display order."""
    return field_catalogue()


@router.post("", response_model=ImportSessionResponse)
async def create_import(
    file: UploadFile = File(...),
    classifier: Optional[ColumnClassifier] = Depends(get_column_classifier),
):
    """
    Upload a CSV export and get suggested column mappings.

    The file is parsed in full, then every header is mapped: semantically
    when a classifier is configured, otherwise by name patterns. Returns
    the new import session for review.
    """
    session = ImportSession()
    file_content = await file.read()
    try:
        session.load(file_content, file.filename)
    except CsvImportError as e:
        logger.warning("Rejected upload '%s': %s", file.filename, e)
        raise HTTPException(status_code=400, detail=str(e))

    await run_in_threadpool(session.suggest, classifier)
    register_session(session)
    return _session_response(session)


@router.get("/{import_id}", response_model=ImportSessionResponse)
async def get_import(import_id: str):
    return _session_response(get_import_session(import_id))


@router.put("/{import_id}/mappings", response_model=ImportSessionResponse)
async def update_mapping(import_id: str, request: UpdateMappingRequest):
    """Confirm, change or skip (targetField null) the mapping for one column."""
    session = get_import_session(import_id)
    try:
        session.update_mapping(request.source_column, request.target_field)
    except UnknownColumnError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except InvalidImportStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _session_response(session)


@router.post("/{import_id}/commit", response_model=ImportOutcome)
def commit_import(
    import_id: str,
    request: CommitImportRequest,
    sink: RecordSink = Depends(get_record_sink),
):
    """
    Normalize every row and store it in chunks for the given farm.

    Chunk failures are counted rather than raised. When nothing at all was
    stored the session goes back to the mapping step; check ``usable``.
    """
    session = get_import_session(import_id)
    try:
        return session.commit(sink, request.farm_id)
    except InvalidImportStateError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.delete("/{import_id}")
async def close_import(import_id: str):
    """Close an import. Clears its state; chunks already stored are kept."""
    session = get_import_session(import_id)
    session.reset()
    drop_session(import_id)
    return {"success": True, "import_id": import_id}
