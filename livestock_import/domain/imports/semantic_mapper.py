"""
Semantic column mapping via an external classifier.

The classifier is a black box reached over a request/response boundary:
either a remote HTTP endpoint speaking ``{headers, sampleRows}`` ->
``{mappings}``, or Claude called in-process through LangChain. Whatever the
transport, ``suggest_mappings`` never lets a classifier failure reach the
caller; it degrades to heuristic fields with zero confidence instead.
"""
import json
import logging
import re
from collections import Counter
from typing import List, Optional, Protocol, Sequence, Union

import requests
from langchain_anthropic import ChatAnthropic
from langchain_core.messages import HumanMessage
from pydantic import ValidationError

from livestock_import.api.schemas.shared import (
    ColumnMapping,
    MappingMethod,
    SemanticMappingRequest,
    SemanticMappingResponse,
)
from livestock_import.core.config import settings
from livestock_import.domain.imports.fields import FIELD_DESCRIPTIONS
from livestock_import.domain.imports.heuristic_mapper import heuristic_mapping

logger = logging.getLogger(__name__)

_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")

# Only the first few sample rows go into the prompt; they are enough to
# disambiguate columns and keep the prompt small.
PROMPT_SAMPLE_ROWS = 3


class SemanticMappingError(Exception):
    """The classifier could not produce a usable mapping."""


class ColumnClassifier(Protocol):
    """
    Classifies headers into target fields.

    A bare list of mappings counts as an AI answer. Transports that report
    how they produced the mappings return the full response instead.
    """

    def classify(self, request: SemanticMappingRequest) -> Union[List[ColumnMapping], SemanticMappingResponse]:
        ...


def build_mapping_prompt(headers: Sequence[str], sample_rows: Sequence[Sequence[str]]) -> str:
    fields_description = "\n".join(
        f"- {field.value}: {description}" for field, description in FIELD_DESCRIPTIONS.items()
    )

    sample_description = ""
    if sample_rows:
        sample_lines = "\n".join(" | ".join(row) for row in sample_rows[:PROMPT_SAMPLE_ROWS])
        sample_description = f"\n\nSample data from the CSV:\n{' | '.join(headers)}\n{sample_lines}"

    return f"""You are a data mapping expert. Given the following CSV column headers from a livestock/animal data file, map each column to the most appropriate livestock database field.

Available database fields:
{fields_description}

CSV headers to map: {', '.join(headers)}
{sample_description}

For each CSV header, determine:
1. The best matching livestock field (or null if no good match)
2. A confidence score from 0 to 1

Respond ONLY with a valid JSON array in this exact format, no other text:
[{{"sourceColumn": "header1", "targetField": "field_name_or_null", "confidence": 0.95}}, ...]

Important rules:
- "tag" field should match columns like: tag, id, animal_id, ear_tag, tag_number, identification
- "type" field should match: type, species, animal_type, kind, category
- "name" field should match: name, animal_name, nickname
- If a column clearly doesn't match any field, set targetField to null
- Be generous with matching - prefer a reasonable match over null"""


def parse_classifier_reply(content: str) -> List[ColumnMapping]:
    """Pull the first JSON array out of a free-text reply and validate it."""
    match = _JSON_ARRAY.search(content or "")
    if not match:
        raise SemanticMappingError("No JSON array found in classifier response")

    try:
        payload = json.loads(match.group(0))
        mappings = []
        for item in payload:
            if isinstance(item, dict) and item.get("targetField") in ("null", "", "skip"):
                item = {**item, "targetField": None}
            mappings.append(ColumnMapping.model_validate(item))
        return mappings
    except (json.JSONDecodeError, ValidationError, TypeError) as exc:
        raise SemanticMappingError(f"Malformed classifier response: {exc}") from exc


def _message_text(content) -> str:
    if isinstance(content, str):
        return content
    parts = []
    for block in content or []:
        if isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
        elif isinstance(block, str):
            parts.append(block)
    return "".join(parts)


class LLMColumnClassifier:
    """Ask Claude to classify columns with a single prompt."""

    def __init__(self, model: Optional[str] = None, api_key: Optional[str] = None, timeout: Optional[int] = None):
        self.model = model or settings.llm_model
        self.api_key = api_key or settings.anthropic_api_key
        self.timeout = timeout or settings.llm_api_timeout
        self._llm = None

    def _get_llm(self) -> ChatAnthropic:
        if self._llm is None:
            self._llm = ChatAnthropic(
                model=self.model,
                api_key=self.api_key,
                temperature=0.1,
                max_tokens=2048,
                timeout=self.timeout,
                max_retries=settings.llm_max_retries,
            )
        return self._llm

    def classify(self, request: SemanticMappingRequest) -> List[ColumnMapping]:
        prompt = build_mapping_prompt(request.headers, request.sample_rows)
        try:
            response = self._get_llm().invoke([HumanMessage(content=prompt)])
        except Exception as exc:
            raise SemanticMappingError(f"LLM call failed: {exc}") from exc
        return parse_classifier_reply(_message_text(response.content))


class HttpColumnClassifier:
    """Call a remote classifier endpoint that speaks the mapping wire format."""

    def __init__(self, url: str, timeout: Optional[int] = None, session: Optional[requests.Session] = None):
        self.url = url
        self.timeout = timeout or settings.semantic_http_timeout
        self.session = session or requests.Session()

    def classify(self, request: SemanticMappingRequest) -> SemanticMappingResponse:
        try:
            response = self.session.post(
                self.url,
                json=request.model_dump(by_alias=True),
                timeout=self.timeout,
            )
            response.raise_for_status()
            body = SemanticMappingResponse.model_validate(response.json())
        except requests.RequestException as exc:
            raise SemanticMappingError(f"Classifier request failed: {exc}") from exc
        except (ValueError, ValidationError) as exc:
            raise SemanticMappingError(f"Malformed classifier response: {exc}") from exc
        return body


def get_default_classifier() -> Optional[ColumnClassifier]:
    """Pick the configured classifier transport, or None when none is configured."""
    if not settings.semantic_mapping_enabled:
        return None
    if settings.semantic_mapping_url:
        return HttpColumnClassifier(settings.semantic_mapping_url)
    if settings.anthropic_api_key:
        return LLMColumnClassifier()
    return None


def _align_to_headers(headers: Sequence[str], mappings: List[ColumnMapping]) -> List[ColumnMapping]:
    """Require one mapping per header and return them in header order."""
    if Counter(m.source_column for m in mappings) != Counter(headers):
        raise SemanticMappingError("Classifier mappings do not cover the uploaded headers exactly")

    remaining = list(mappings)
    ordered = []
    for header in headers:
        index = next(i for i, m in enumerate(remaining) if m.source_column == header)
        ordered.append(remaining.pop(index))
    return ordered


def fallback_mapping(headers: Sequence[str]) -> List[ColumnMapping]:
    """Heuristic fields with confidence forced to zero."""
    return [mapping.model_copy(update={"confidence": 0.0}) for mapping in heuristic_mapping(headers)]


def suggest_mappings(
    headers: Sequence[str],
    sample_rows: Sequence[Sequence[str]],
    classifier: Optional[ColumnClassifier] = None,
) -> SemanticMappingResponse:
    """
    Suggest a mapping for every header.

    Without a classifier the heuristic mapping is returned as-is. With one,
    its mappings are used verbatim on success; on any failure the heuristic
    fields are used for every column with zero confidence, never blended
    with partial classifier output.
    """
    if classifier is None:
        return SemanticMappingResponse(mappings=heuristic_mapping(headers), method=MappingMethod.HEURISTIC)

    request = SemanticMappingRequest(
        headers=list(headers),
        sample_rows=[list(row) for row in sample_rows[: settings.mapping_sample_rows]],
    )
    try:
        result = classifier.classify(request)
        if isinstance(result, SemanticMappingResponse):
            mappings, method = result.mappings, result.method or MappingMethod.AI
        else:
            mappings, method = result, MappingMethod.AI
        mappings = _align_to_headers(headers, mappings)
    except SemanticMappingError as exc:
        logger.warning("Semantic mapping unavailable, falling back to heuristics: %s", exc)
        return SemanticMappingResponse(mappings=fallback_mapping(headers), method=MappingMethod.FALLBACK)
    except Exception as exc:
        logger.exception("Unexpected classifier failure, falling back to heuristics: %s", exc)
        return SemanticMappingResponse(mappings=fallback_mapping(headers), method=MappingMethod.FALLBACK)

    logger.info("Semantic mapping produced %d column mappings (%s)", len(mappings), method.value)
    return SemanticMappingResponse(mappings=mappings, method=method)
