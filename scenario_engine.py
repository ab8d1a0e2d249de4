# scenario_engine.py
"""
What-if scenarios.

A scenario replays one stage with hypothetical inputs through the same
validate/resolve/compute/classify chain as a normal submission, then stores the
result as a separate immutable Scenario. Stage records are never read or written.
"""
import logging
from typing import Any, Dict, List, Optional

from exceptions import InputValidationError, ScenarioNotFoundError
from models import Project, Scenario
from stage_definitions import normalize_stage_name
from stage_pipeline import StagePipeline
from stores import ScenarioStore

logger = logging.getLogger(__name__)


class ScenarioEngine:
    def __init__(self, pipeline: StagePipeline, store: ScenarioStore):
        self.pipeline = pipeline
        self.store = store

    def create_scenario(self, project: Project, stage_name: str, scenario_name: str,
                        hypothetical_inputs: Optional[Dict[str, Any]] = None) -> Scenario:
        if not isinstance(scenario_name, str) or not scenario_name.strip():
            raise InputValidationError({"scenario_name": "Scenario name is required"})

        evaluation = self.pipeline.run(stage_name, project, hypothetical_inputs)
        scenario = Scenario(
            project_identifier=project.project_identifier,
            stage_name=evaluation.stage.name,
            scenario_name=scenario_name.strip(),
            inputs=evaluation.resolution.values,
            outputs=evaluation.outputs,
            classification=evaluation.classification,
            derived_helper_variables=evaluation.derived,
            warnings=evaluation.warnings,
        )
        self.store.add(scenario)
        logger.info("Created scenario %s '%s' for %s (project %s)",
                    scenario.scenario_id, scenario.scenario_name,
                    scenario.stage_name, project.project_identifier)
        return scenario

    def list_scenarios(self, project: Project, stage_name: Optional[str] = None) -> List[Scenario]:
        stage = normalize_stage_name(stage_name) if stage_name else None
        return self.store.list(project.project_identifier, stage)

    def get_scenario(self, project: Project, scenario_id: str) -> Scenario:
        scenario = self.store.get(scenario_id)
        # a scenario id from another project is treated as unknown
        if scenario is None or scenario.project_identifier != project.project_identifier:
            raise ScenarioNotFoundError(scenario_id, project.project_identifier)
        return scenario

    def delete_scenario(self, project: Project, scenario_id: str) -> None:
        self.get_scenario(project, scenario_id)
        self.store.delete(scenario_id)
        logger.info("Deleted scenario %s (project %s)", scenario_id, project.project_identifier)
