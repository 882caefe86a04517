"""
Human-in-the-loop editing of suggested column mappings.
"""
import logging
from typing import Dict, Iterable, List, Optional

from livestock_import.api.schemas.shared import ColumnMapping
from livestock_import.domain.imports.fields import IDENTITY_FIELDS, TargetField

logger = logging.getLogger(__name__)

HUMAN_CONFIRMED_CONFIDENCE = 1.0
HIGH_CONFIDENCE = 0.8
MEDIUM_CONFIDENCE = 0.5


class UnknownColumnError(KeyError):
    def __init__(self, source_column: str):
        self.source_column = source_column
        super().__init__(source_column)

    def __str__(self) -> str:
        return f"Column '{self.source_column}' is not part of this import"


def confidence_tier(confidence: float) -> str:
    if confidence >= HIGH_CONFIDENCE:
        return "High"
    if confidence >= MEDIUM_CONFIDENCE:
        return "Medium"
    return "Low"


class MappingEditor:
    """
    Holds the current column -> field assignments for one import.

    Two columns may point at the same field. When that happens the column
    further right wins at extraction time; ``duplicate_targets`` lets the
    UI warn about it.
    """

    def __init__(self, mappings: Iterable[ColumnMapping]):
        self._mappings: List[ColumnMapping] = []
        seen = set()
        for mapping in mappings:
            if mapping.source_column in seen:
                continue
            seen.add(mapping.source_column)
            self._mappings.append(mapping.model_copy())
        self._frozen = False

    @property
    def mappings(self) -> List[ColumnMapping]:
        return [mapping.model_copy() for mapping in self._mappings]

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def thaw(self) -> None:
        self._frozen = False

    def _find(self, source_column: str) -> int:
        for index, mapping in enumerate(self._mappings):
            if mapping.source_column == source_column:
                return index
        raise UnknownColumnError(source_column)

    def update(self, source_column: str, target_field: Optional[TargetField]) -> ColumnMapping:
        """Assign (or with None, skip) a column. Marks it as human-confirmed."""
        if self._frozen:
            raise RuntimeError("Mappings are frozen once the commit has started")
        index = self._find(source_column)
        updated = ColumnMapping(
            source_column=source_column,
            target_field=target_field,
            confidence=HUMAN_CONFIRMED_CONFIDENCE,
        )
        self._mappings[index] = updated
        logger.debug("Column '%s' mapped to %s by user", source_column, target_field)
        return updated.model_copy()

    def skip(self, source_column: str) -> ColumnMapping:
        return self.update(source_column, None)

    @property
    def mapped_fields_count(self) -> int:
        return sum(1 for mapping in self._mappings if mapping.target_field is not None)

    def is_ready(self) -> bool:
        """Advisory: at least one column feeds the tag or name field."""
        return any(mapping.target_field in IDENTITY_FIELDS for mapping in self._mappings)

    def duplicate_targets(self) -> List[TargetField]:
        counts: Dict[TargetField, int] = {}
        for mapping in self._mappings:
            if mapping.target_field is not None:
                counts[mapping.target_field] = counts.get(mapping.target_field, 0) + 1
        return [field for field in TargetField if counts.get(field, 0) > 1]

    def field_to_column(self) -> Dict[TargetField, str]:
        """Target field -> source column; later columns override earlier ones."""
        resolved: Dict[TargetField, str] = {}
        for mapping in self._mappings:
            if mapping.target_field is not None:
                resolved[mapping.target_field] = mapping.source_column
        return resolved
