# lca_service.py
import logging
from typing import Any, Dict, List, Optional

from ai_prediction_service import PredictionService, build_prediction_service
from data_aggregator import aggregate_stage_data
from emission_factors import EmissionFactorTable, load_emission_factors_csv
from exceptions import ProjectNotFoundError, StageRecordNotFoundError
from field_resolver import FieldResolver
from models import (
    AggregateResult, ComputationMetadata, Project, Scenario, StageRecord,
)
from scenario_engine import ScenarioEngine
from settings import Settings, get_settings
from stage_calculators import all_required_factors
from stage_definitions import STAGE_COUNT_BY_MODE, normalize_stage_name
from stage_pipeline import StagePipeline
from stores import ProjectStore, ScenarioStore, StageRecordStore
from thresholds import ThresholdTable, load_thresholds_csv

logger = logging.getLogger(__name__)


class LCAService:
    """Every operation the HTTP layer exposes. Stores are in-memory and injected."""

    def __init__(self, settings: Optional[Settings] = None,
                 prediction_service: Optional[PredictionService] = None,
                 factors: Optional[EmissionFactorTable] = None,
                 thresholds: Optional[ThresholdTable] = None,
                 resolver: Optional[FieldResolver] = None):
        self.settings = settings or get_settings()
        self.factors = factors or EmissionFactorTable()
        self.thresholds = thresholds or ThresholdTable()
        # fail at startup, not on the first submission
        self.factors.require(all_required_factors())

        if resolver is None:
            service = prediction_service or build_prediction_service(self.settings)
            resolver = FieldResolver.from_settings(service, self.settings)
        self.pipeline = StagePipeline(resolver, self.factors, self.thresholds)

        self.projects = ProjectStore()
        self.stage_records = StageRecordStore()
        self.scenarios = ScenarioEngine(self.pipeline, ScenarioStore())

    # -----------------------
    # Projects
    # -----------------------

    def create_project(self, project_name: str, metal_type: str = "Copper",
                       processing_mode: str = "Linear",
                       functional_unit_mass_tonnes: float = 1.0) -> Project:
        project = Project(project_name=project_name, metal_type=metal_type,
                          processing_mode=processing_mode,
                          functional_unit_mass_tonnes=functional_unit_mass_tonnes)
        self.projects.add(project)
        logger.info("Created project %s (%s, %s, %s t)", project.project_identifier,
                    project.metal_type, project.processing_mode,
                    project.functional_unit_mass_tonnes)
        return project

    def get_project(self, project_id: str) -> Project:
        project = self.projects.get(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    def delete_project(self, project_id: str) -> None:
        self.get_project(project_id)
        records = self.stage_records.delete_for_project(project_id)
        scenarios = self.scenarios.store.delete_for_project(project_id)
        self.projects.delete(project_id)
        logger.info("Deleted project %s (%d stage records, %d scenarios)",
                    project_id, records, scenarios)

    # -----------------------
    # Stages
    # -----------------------

    def compute_stage(self, stage_name: str, project_id: str,
                      user_inputs: Optional[Dict[str, Any]] = None) -> StageRecord:
        project = self.get_project(project_id)
        evaluation = self.pipeline.run(stage_name, project, user_inputs)
        resolution = evaluation.resolution

        record = StageRecord(
            project_identifier=project.project_identifier,
            stage_name=evaluation.stage.name,
            inputs=resolution.inputs,
            field_sources=resolution.field_sources,
            field_confidences=resolution.field_confidences,
            outputs=evaluation.outputs,
            classification=evaluation.classification,
            computation_metadata=ComputationMetadata(
                functional_unit_used=project.functional_unit_mass_tonnes,
                derived_helper_variables=evaluation.derived,
                prediction_metadata=resolution.prediction_metadata,
                log=evaluation.summary(),
            ),
            warnings=evaluation.warnings,
        )
        # single write once everything above succeeded
        self.stage_records.put(record)
        return record

    def get_stage(self, stage_name: str, project_id: str) -> StageRecord:
        self.get_project(project_id)
        stage = normalize_stage_name(stage_name)
        record = self.stage_records.get(project_id, stage)
        if record is None:
            raise StageRecordNotFoundError(stage, project_id)
        return record

    def aggregate(self, project_id: str) -> AggregateResult:
        project = self.get_project(project_id)
        return aggregate_stage_data(project_id,
                                    STAGE_COUNT_BY_MODE[project.processing_mode],
                                    self.stage_records)

    # -----------------------
    # What-if scenarios
    # -----------------------

    def create_scenario(self, project_id: str, stage_name: str, scenario_name: str,
                        hypothetical_inputs: Optional[Dict[str, Any]] = None) -> Scenario:
        project = self.get_project(project_id)
        return self.scenarios.create_scenario(project, stage_name, scenario_name,
                                              hypothetical_inputs)

    def list_scenarios(self, project_id: str, stage_name: Optional[str] = None) -> List[Scenario]:
        return self.scenarios.list_scenarios(self.get_project(project_id), stage_name)

    def get_scenario(self, project_id: str, scenario_id: str) -> Scenario:
        return self.scenarios.get_scenario(self.get_project(project_id), scenario_id)

    def delete_scenario(self, project_id: str, scenario_id: str) -> None:
        self.scenarios.delete_scenario(self.get_project(project_id), scenario_id)


def build_service(settings: Optional[Settings] = None) -> LCAService:
    """Wire the service from settings, loading CSV table overrides when configured."""
    settings = settings or get_settings()
    factors = EmissionFactorTable()
    if settings.emission_factors_csv:
        factors = load_emission_factors_csv(settings.emission_factors_csv)
        logger.info("Loaded emission factors from %s", settings.emission_factors_csv)
    thresholds = ThresholdTable()
    if settings.thresholds_csv:
        thresholds = load_thresholds_csv(settings.thresholds_csv)
        logger.info("Loaded %d thresholds from %s", len(thresholds), settings.thresholds_csv)
    return LCAService(settings=settings, factors=factors, thresholds=thresholds)
