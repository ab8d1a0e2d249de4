# models.py
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional
import uuid

from pydantic import BaseModel, ConfigDict, Field

from thresholds import Severity

Provenance = Literal["user", "ai-predicted", "fallback"]
ProcessingMode = Literal["Linear", "Circular"]

USER = "user"
AI_PREDICTED = "ai-predicted"
FALLBACK = "fallback"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class FieldValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: float
    provenance: Provenance
    confidence_percent: float = Field(ge=0.0, le=100.0)


class Project(BaseModel):
    project_identifier: str = Field(default_factory=lambda: uuid.uuid4().hex)
    project_name: str
    metal_type: str = "Copper"
    processing_mode: ProcessingMode = "Linear"
    functional_unit_mass_tonnes: float = Field(default=1.0, gt=0.0)
    created_at_utc: datetime = Field(default_factory=utc_now)

    def prediction_context(self) -> Dict[str, Any]:
        """Context block sent to the prediction service."""
        return {
            "MetalType": self.metal_type,
            "ProcessingMode": self.processing_mode,
            "FunctionalUnitMassTonnes": self.functional_unit_mass_tonnes,
            "ProjectName": self.project_name,
        }


class PredictionMetadata(BaseModel):
    predicted_fields: List[str] = Field(default_factory=list)
    fallback_fields: List[str] = Field(default_factory=list)
    prediction_model: Optional[str] = None
    prediction_timestamp: Optional[datetime] = None
    prediction_error: Optional[str] = None


class ComputationMetadata(BaseModel):
    functional_unit_used: float
    derived_helper_variables: Dict[str, float] = Field(default_factory=dict)
    prediction_metadata: PredictionMetadata = Field(default_factory=PredictionMetadata)
    computed_at_utc: datetime = Field(default_factory=utc_now)
    log: str = ""


class StageRecord(BaseModel):
    project_identifier: str
    stage_name: str
    inputs: Dict[str, float]
    field_sources: Dict[str, Provenance]
    field_confidences: Dict[str, float]
    outputs: Dict[str, float]
    classification: Dict[str, Severity] = Field(default_factory=dict)
    computation_metadata: ComputationMetadata
    warnings: List[str] = Field(default_factory=list)


class Scenario(BaseModel):
    model_config = ConfigDict(frozen=True)

    scenario_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    project_identifier: str
    stage_name: str
    scenario_name: str
    inputs: Dict[str, FieldValue]
    outputs: Dict[str, float]
    classification: Dict[str, Severity] = Field(default_factory=dict)
    derived_helper_variables: Dict[str, float] = Field(default_factory=dict)
    warnings: List[str] = Field(default_factory=list)
    created_at_utc: datetime = Field(default_factory=utc_now)


class StageSnapshot(BaseModel):
    inputs: Dict[str, float] = Field(default_factory=dict)
    outputs: Dict[str, float] = Field(default_factory=dict)


class AggregateResult(BaseModel):
    carbon_footprint: float = 0.0
    energy_footprint: float = 0.0
    stages: Dict[str, StageSnapshot] = Field(default_factory=dict)
    warnings: List[str] = Field(default_factory=list)
