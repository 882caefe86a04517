"""
Normalization of free-text cell values into canonical animal fields.

Keyword tables are matched as substrings of the lower-cased value, in
table order, so "Boer goat" lands in Goat and "heifer" in Cattle.
"""
import logging
import re
import secrets
import string
import time
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Set, Tuple

from livestock_import.domain.imports.fields import TargetField

logger = logging.getLogger(__name__)

DEFAULT_SPECIES = "Other"
DEFAULT_STATUS = "Healthy"

SPECIES_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("Cattle", ("cattle", "cow", "bull", "heifer")),
    ("Sheep", ("sheep", "lamb", "ewe", "ram")),
    ("Goat", ("goat", "kid")),
    ("Pig", ("pig", "swine", "hog", "sow", "boar")),
    ("Chicken", ("chicken", "hen", "rooster", "poultry")),
    ("Duck", ("duck",)),
    ("Horse", ("horse", "mare", "stallion", "foal")),
)

STATUS_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("Sick", ("sick", "ill")),
    ("Pregnant", ("pregnant", "expecting")),
    ("Under Observation", ("observation", "watch", "monitor")),
)

_NON_NUMERIC = re.compile(r"[^0-9.\-]")
_LEADING_NUMBER = re.compile(r"^-?(\d+\.?\d*|\.\d+)")

_TAG_ALPHABET = string.ascii_lowercase + string.digits


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _match_keywords(value: str, table) -> Optional[str]:
    lowered = value.lower()
    for canonical, keywords in table:
        if any(keyword in lowered for keyword in keywords):
            return canonical
    return None


def normalize_type(value: Optional[str]) -> str:
    value = _clean(value)
    if value is None:
        return DEFAULT_SPECIES
    species = _match_keywords(value, SPECIES_KEYWORDS)
    if species:
        return species
    # Unknown species are kept as a custom category
    return value.capitalize()


def normalize_status(value: Optional[str]) -> str:
    value = _clean(value)
    if value is None:
        return DEFAULT_STATUS
    return _match_keywords(value, STATUS_KEYWORDS) or DEFAULT_STATUS


def parse_cost(value: Optional[str]) -> Optional[float]:
    """
    Parse a currency-ish string ("R 1,250.50", "$80") into a float.

    Everything except digits, '.' and '-' is stripped first; the longest
    leading number is then taken. Returns None (not 0) when nothing parses.
    """
    value = _clean(value)
    if value is None:
        return None
    cleaned = _NON_NUMERIC.sub("", value)
    match = _LEADING_NUMBER.match(cleaned)
    if not match:
        return None
    return float(match.group(0))


FIELD_NORMALIZERS: Dict[TargetField, Callable[[Optional[str]], Any]] = {
    TargetField.TYPE: normalize_type,
    TargetField.STATUS: normalize_status,
    TargetField.PURCHASE_COST: parse_cost,
}


def normalize_value(field: TargetField, raw: Optional[str]) -> Any:
    normalizer = FIELD_NORMALIZERS.get(field)
    if normalizer is not None:
        return normalizer(raw)
    return _clean(raw)


class TagGenerator:
    """Issues fallback tags that never repeat within one import run."""

    def __init__(self, prefix: str = "IMP"):
        self.prefix = prefix
        self._issued: Set[str] = set()

    def __call__(self) -> str:
        while True:
            suffix = "".join(secrets.choice(_TAG_ALPHABET) for _ in range(5))
            tag = f"{self.prefix}-{int(time.time() * 1000)}-{suffix}"
            if tag not in self._issued:
                self._issued.add(tag)
                return tag


def build_record(
    row: Sequence[str],
    field_columns: Mapping[TargetField, int],
    tag_generator: Callable[[], str],
) -> Dict[str, Any]:
    """
    Turn one parsed row into a NormalizedAnimalRecord.

    Args:
        row: parsed cells
        field_columns: target field -> column index in the row
        tag_generator: source of fallback tags for rows without one

    Every target field is present in the result; unmapped fields go
    through their normalizer with no value (so type/status get defaults).
    """
    def raw(field: TargetField) -> Optional[str]:
        index = field_columns.get(field, -1)
        if index < 0 or index >= len(row):
            return None
        return row[index]

    record: Dict[str, Any] = {field.value: normalize_value(field, raw(field)) for field in TargetField}

    if not record[TargetField.TAG.value]:
        record[TargetField.TAG.value] = tag_generator()
    if not record[TargetField.NAME.value]:
        record[TargetField.NAME.value] = f"Animal {record[TargetField.TAG.value]}"
    return record
