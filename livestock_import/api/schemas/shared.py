from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from livestock_import.domain.imports.fields import TargetField


class ColumnMapping(BaseModel):
    """
    Assignment of one source column to a target field.

    ``target_field`` of None means the column is skipped. Confidence is
    informational and only drives the display tier.
    """
    model_config = ConfigDict(populate_by_name=True)

    source_column: str = Field(alias="sourceColumn")
    target_field: Optional[TargetField] = Field(default=None, alias="targetField")
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class MappingMethod(str, Enum):
    """Which tier produced a set of suggested mappings"""
    AI = "ai"
    HEURISTIC = "heuristic"
    FALLBACK = "fallback"  # Semantic tier failed; heuristic fields with zero confidence


class SemanticMappingRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    headers: List[str]
    sample_rows: List[List[str]] = Field(default_factory=list, alias="sampleRows")


class SemanticMappingResponse(BaseModel):
    mappings: List[ColumnMapping]
    method: Optional[MappingMethod] = None


class TargetFieldInfo(BaseModel):
    value: TargetField
    label: str
    description: str


class UpdateMappingRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source_column: str = Field(alias="sourceColumn")
    target_field: Optional[TargetField] = Field(default=None, alias="targetField")


class CommitImportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    farm_id: str = Field(alias="farmId", min_length=1)


class ImportOutcome(BaseModel):
    """Caller-facing summary of a commit run."""
    success_count: int = 0
    error_count: int = 0
    total_rows: int = 0
    progress_percent: int = 0
    cancelled: bool = False

    @computed_field
    @property
    def usable(self) -> bool:
        return self.success_count > 0

    @computed_field
    @property
    def message(self) -> str:
        if not self.usable:
            return "No animals were imported. Please check your CSV format."
        summary = f"Successfully imported {self.success_count} animals."
        if self.error_count > 0:
            summary += f" {self.error_count} failed."
        return summary


class MappingView(BaseModel):
    """A column mapping decorated with what the review table needs to show."""
    model_config = ConfigDict(populate_by_name=True)

    source_column: str = Field(alias="sourceColumn")
    target_field: Optional[TargetField] = Field(default=None, alias="targetField")
    confidence: float
    confidence_tier: Optional[str] = Field(default=None, alias="confidenceTier")
    sample_value: Optional[str] = Field(default=None, alias="sampleValue")


class ImportSessionResponse(BaseModel):
    import_id: str
    state: str
    file_name: Optional[str] = None
    headers: List[str] = Field(default_factory=list)
    row_count: int = 0
    mappings: List[MappingView] = Field(default_factory=list)
    mapping_method: Optional[MappingMethod] = None
    mapped_fields_count: int = 0
    ready: bool = False
    duplicate_targets: List[TargetField] = Field(default_factory=list)
    progress_percent: int = 0
    outcome: Optional[ImportOutcome] = None
