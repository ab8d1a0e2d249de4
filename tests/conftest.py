# tests/conftest.py
"""Shared fixtures: stub prediction services, settings, a wired service and a sample project."""
import time
from typing import Dict, Optional

import pytest

from ai_prediction_service import Prediction, PredictionResult, PredictionService
from lca_service import LCAService
from models import Project
from settings import Settings


class StubPredictionService(PredictionService):
    """Returns fixed values for whichever requested fields it knows about."""

    name = "stub"

    def __init__(self, values: Optional[Dict[str, float]] = None,
                 confidence: Optional[float] = 72.0):
        self.values = dict(values or {})
        self.confidence = confidence
        self.calls = []

    def _predict(self, stage_name, project_context, provided_fields, missing_fields):
        self.calls.append({
            "stage_name": stage_name,
            "project_context": dict(project_context),
            "provided_fields": dict(provided_fields),
            "missing_fields": list(missing_fields),
        })
        predictions = {
            name: Prediction(value=self.values[name], confidence_percent=self.confidence)
            for name in missing_fields if name in self.values
        }
        return PredictionResult(success=True, predictions=predictions, model="stub")


class FailingPredictionService(PredictionService):
    name = "failing"

    def __init__(self):
        self.calls = 0

    def _predict(self, stage_name, project_context, provided_fields, missing_fields):
        self.calls += 1
        raise RuntimeError("upstream unavailable")


class SlowPredictionService(PredictionService):
    name = "slow"

    def __init__(self, delay: float = 1.0):
        self.delay = delay

    def _predict(self, stage_name, project_context, provided_fields, missing_fields):
        time.sleep(self.delay)
        return PredictionResult(success=True, model="slow", predictions={
            name: Prediction(value=1.0) for name in missing_fields})


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, gemini_api_key="", ai_prediction_timeout=5.0)


@pytest.fixture
def sample_project() -> Project:
    return Project(project_name="Copper cathode line", metal_type="Copper",
                   processing_mode="Linear", functional_unit_mass_tonnes=1.0)


@pytest.fixture
def failing_service() -> FailingPredictionService:
    return FailingPredictionService()


@pytest.fixture
def service(settings, failing_service) -> LCAService:
    """LCAService whose prediction backend always fails, so omitted fields use fallbacks."""
    return LCAService(settings=settings, prediction_service=failing_service)


@pytest.fixture
def project(service) -> Project:
    return service.create_project("Copper cathode line", "Copper", "Linear", 1.0)
