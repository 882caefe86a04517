"""
Column classification service endpoint.

Remote deployments point ``SEMANTIC_MAPPING_URL`` at this route; it speaks
the same ``{headers, sampleRows}`` -> ``{mappings}`` format that
HttpColumnClassifier consumes.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool

from livestock_import.api.dependencies import get_llm_classifier
from livestock_import.api.schemas.shared import (
    MappingMethod,
    SemanticMappingRequest,
    SemanticMappingResponse,
)
from livestock_import.domain.imports.heuristic_mapper import heuristic_mapping
from livestock_import.domain.imports.semantic_mapper import ColumnClassifier, SemanticMappingError

router = APIRouter(tags=["mapping"])

logger = logging.getLogger(__name__)


@router.post("/map-csv-columns", response_model=SemanticMappingResponse)
async def map_csv_columns(
    request: SemanticMappingRequest,
    classifier: ColumnClassifier = Depends(get_llm_classifier),
):
    """
    Map CSV headers to animal fields with the LLM.

    Falls back to the pattern-based mapping (keeping its confidences) when
    the LLM fails or answers with something unparseable.
    """
    if not request.headers:
        raise HTTPException(status_code=400, detail="No headers provided")

    try:
        result = await run_in_threadpool(classifier.classify, request)
    except SemanticMappingError as e:
        logger.warning("LLM column mapping failed, using heuristics: %s", e)
        return SemanticMappingResponse(mappings=heuristic_mapping(request.headers), method=MappingMethod.HEURISTIC)

    if isinstance(result, SemanticMappingResponse):
        return result
    return SemanticMappingResponse(mappings=result, method=MappingMethod.AI)
