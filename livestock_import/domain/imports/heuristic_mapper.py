"""
Pattern-based column mapping that needs no external service.

This is the tier that is always available, and the one the import falls
back to whenever semantic mapping is unavailable or misbehaves.
"""
import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple

from livestock_import.api.schemas.shared import ColumnMapping
from livestock_import.domain.imports.fields import FIELD_LABELS, TargetField

logger = logging.getLogger(__name__)

PATTERN_CONFIDENCE = 0.8
LOOSE_MATCH_CONFIDENCE = 0.6


def _compile(*patterns: str) -> List[re.Pattern]:
    return [re.compile(pattern, re.IGNORECASE) for pattern in patterns]


# Ordered: the first field with a matching pattern wins.
FIELD_PATTERNS: Dict[TargetField, List[re.Pattern]] = {
    TargetField.NAME: _compile(r"^name$", r"animal.?name", r"^nickname$"),
    TargetField.TAG: _compile(
        r"^tag$", r"tag.?num", r"ear.?tag", r"^id$", r"animal.?id", r"identification"
    ),
    TargetField.TYPE: _compile(r"^type$", r"species", r"animal.?type", r"^kind$", r"category"),
    TargetField.BREED: _compile(r"^breed$", r"^variety$"),
    TargetField.AGE: _compile(r"^age$", r"^years?$", r"^months?$"),
    TargetField.WEIGHT: _compile(r"^weight$", r"^mass$", r"^kg$", r"^lbs?$"),
    TargetField.STATUS: _compile(r"^status$", r"health.?status", r"condition"),
    TargetField.SEX: _compile(r"^sex$", r"^gender$", r"^(male|female)$"),
    TargetField.DATE_OF_BIRTH: _compile(r"dob", r"birth.?date", r"date.?of.?birth", r"born"),
    TargetField.PURCHASE_COST: _compile(r"cost", r"price", r"purchase", r"paid", r"value"),
    TargetField.FEED_TYPE: _compile(r"feed", r"diet", r"food"),
    TargetField.NOTES: _compile(r"notes?", r"comment", r"remark", r"description"),
    TargetField.MICROCHIP_NUMBER: _compile(r"microchip", r"chip", r"rfid"),
    TargetField.BRAND_MARK: _compile(r"brand", r"^mark$"),
    TargetField.COLOR_MARKINGS: _compile(r"color", r"colour", r"marking", r"coat", r"appearance"),
}


def normalize_header(header: str) -> str:
    return header.strip().lower()


def _loose_names(field: TargetField) -> Tuple[str, ...]:
    # "date_of_birth" should also be found in "date of birth"
    return (field.value, field.value.replace("_", " "), FIELD_LABELS[field].lower())


def match_header(header: str) -> Tuple[Optional[TargetField], float]:
    """
    Find the target field for a single header.

    Returns:
        (field, confidence); (None, 0.0) when nothing matches.
    """
    normalized = normalize_header(header)
    if not normalized:
        return None, 0.0

    for field, patterns in FIELD_PATTERNS.items():
        for pattern in patterns:
            if pattern.search(normalized):
                return field, PATTERN_CONFIDENCE

    # Loose fallback: either side contained in the other
    for field in FIELD_PATTERNS:
        for name in _loose_names(field):
            if name in normalized or normalized in name:
                return field, LOOSE_MATCH_CONFIDENCE

    return None, 0.0


def heuristic_mapping(headers: Sequence[str]) -> List[ColumnMapping]:
    """Produce exactly one ColumnMapping per header, in header order."""
    mappings = []
    for header in headers:
        field, confidence = match_header(header)
        mappings.append(ColumnMapping(source_column=header, target_field=field, confidence=confidence))

    matched = sum(1 for mapping in mappings if mapping.target_field is not None)
    logger.debug("Heuristic mapping matched %d of %d columns", matched, len(mappings))
    return mappings
