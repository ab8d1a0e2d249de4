# exceptions.py
from typing import Dict, List, Optional


class LCAEngineError(Exception):
    """Base class for all errors raised by the LCA engine."""


class InputValidationError(LCAEngineError):
    """Caller-supplied data failed validation before resolution started."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        details = "; ".join(f"{field}: {msg}" for field, msg in self.errors.items())
        super().__init__(f"Invalid inputs: {details}")


class UnknownStageError(InputValidationError):
    def __init__(self, stage_name: str):
        self.stage_name = stage_name
        super().__init__({"stage": f"Unknown stage '{stage_name}'"})


class NotFoundError(LCAEngineError):
    pass


class ProjectNotFoundError(NotFoundError):
    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Project '{project_id}' not found")


class StageRecordNotFoundError(NotFoundError):
    def __init__(self, stage_name: str, project_id: str):
        self.stage_name = stage_name
        self.project_id = project_id
        super().__init__(
            f"{stage_name} stage data not found for project '{project_id}'")


class ScenarioNotFoundError(NotFoundError):
    def __init__(self, scenario_id: str, project_id: Optional[str] = None):
        self.scenario_id = scenario_id
        self.project_id = project_id
        super().__init__(f"Scenario '{scenario_id}' not found")


class ConfigurationError(LCAEngineError):
    """Static tables are inconsistent with what the calculators need.

    This is a deployment defect, never a data-quality issue, so it is always
    surfaced instead of being turned into a warning.
    """

    def __init__(self, message: str, missing: Optional[List[str]] = None):
        self.missing = list(missing or [])
        super().__init__(message)
