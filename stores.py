# stores.py
# In-memory persistence for projects, stage records and scenarios.
import threading
from typing import Dict, List, Optional, Tuple

from models import Project, Scenario, StageRecord


class ProjectStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._projects: Dict[str, Project] = {}

    def add(self, project: Project) -> Project:
        with self._lock:
            self._projects[project.project_identifier] = project.model_copy(deep=True)
        return project

    def get(self, project_id: str) -> Optional[Project]:
        with self._lock:
            project = self._projects.get(project_id)
        return project.model_copy(deep=True) if project is not None else None

    def delete(self, project_id: str) -> bool:
        with self._lock:
            return self._projects.pop(project_id, None) is not None

    def list(self) -> List[Project]:
        with self._lock:
            return [p.model_copy(deep=True) for p in self._projects.values()]


class StageRecordStore:
    """One record per (project, stage); put() replaces the whole record."""

    def __init__(self):
        self._lock = threading.Lock()
        self._records: Dict[Tuple[str, str], StageRecord] = {}

    def put(self, record: StageRecord) -> StageRecord:
        key = (record.project_identifier, record.stage_name)
        with self._lock:
            self._records[key] = record.model_copy(deep=True)
        return record

    def get(self, project_id: str, stage_name: str) -> Optional[StageRecord]:
        with self._lock:
            record = self._records.get((project_id, stage_name))
        return record.model_copy(deep=True) if record is not None else None

    def delete_for_project(self, project_id: str) -> int:
        with self._lock:
            keys = [k for k in self._records if k[0] == project_id]
            for key in keys:
                del self._records[key]
        return len(keys)


class ScenarioStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._scenarios: Dict[str, Scenario] = {}

    def add(self, scenario: Scenario) -> Scenario:
        # frozen only blocks attribute assignment, the nested dicts stay mutable
        with self._lock:
            self._scenarios[scenario.scenario_id] = scenario.model_copy(deep=True)
        return scenario

    def get(self, scenario_id: str) -> Optional[Scenario]:
        with self._lock:
            scenario = self._scenarios.get(scenario_id)
        return scenario.model_copy(deep=True) if scenario is not None else None

    def list(self, project_id: str, stage_name: Optional[str] = None) -> List[Scenario]:
        with self._lock:
            scenarios = [s.model_copy(deep=True) for s in self._scenarios.values()
                         if s.project_identifier == project_id
                         and (stage_name is None or s.stage_name == stage_name)]
        return sorted(scenarios, key=lambda s: s.created_at_utc)

    def delete(self, scenario_id: str) -> bool:
        with self._lock:
            return self._scenarios.pop(scenario_id, None) is not None

    def delete_for_project(self, project_id: str) -> int:
        with self._lock:
            ids = [sid for sid, s in self._scenarios.items()
                   if s.project_identifier == project_id]
            for sid in ids:
                del self._scenarios[sid]
        return len(ids)
