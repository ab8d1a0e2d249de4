# stage_pipeline.py
# validate -> resolve -> compute -> classify, shared by stage submissions and what-if scenarios.
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from emission_factors import EmissionFactorTable
from field_resolver import FieldResolver, ResolutionResult
from models import AI_PREDICTED, FALLBACK, USER, Project
from stage_calculators import compute_stage_outputs
from stage_definitions import StageDefinition, get_stage_definition, validate_user_inputs
from thresholds import Severity, ThresholdTable, classify_fields

logger = logging.getLogger(__name__)


@dataclass
class StageEvaluation:
    stage: StageDefinition
    resolution: ResolutionResult
    outputs: Dict[str, float]
    derived: Dict[str, float]
    classification: Dict[str, Severity]
    warnings: List[str]

    def summary(self) -> str:
        sources = list(self.resolution.field_sources.values())
        return (f"{self.stage.name}: {len(sources)} fields resolved "
                f"({sources.count(USER)} user, {sources.count(AI_PREDICTED)} ai-predicted, "
                f"{sources.count(FALLBACK)} fallback); {len(self.outputs)} outputs computed")


class StagePipeline:
    def __init__(self, resolver: FieldResolver, factors: EmissionFactorTable,
                 thresholds: ThresholdTable):
        self.resolver = resolver
        self.factors = factors
        self.thresholds = thresholds

    def run(self, stage_name: str, project: Project,
            user_inputs: Optional[Dict[str, Any]] = None) -> StageEvaluation:
        """
        Nothing here writes to a store. Raises InputValidationError before any
        prediction call is made, ConfigurationError if a factor is missing.

        Computation and classification both read only the resolved inputs (plus the
        outputs for classification) and do not depend on each other's side effects.
        """
        stage = get_stage_definition(stage_name)
        clean_inputs, warnings = validate_user_inputs(stage, user_inputs)

        resolution = self.resolver.resolve(stage, project, clean_inputs)
        warnings.extend(resolution.warnings)

        outputs, derived, compute_warnings = compute_stage_outputs(
            stage.name, resolution.inputs, self.factors,
            project.functional_unit_mass_tonnes)
        warnings.extend(compute_warnings)

        classification = classify_fields({**resolution.inputs, **outputs}, self.thresholds)

        evaluation = StageEvaluation(
            stage=stage, resolution=resolution, outputs=outputs, derived=derived,
            classification=classification, warnings=warnings)
        logger.info("%s (project %s)", evaluation.summary(), project.project_identifier)
        return evaluation
