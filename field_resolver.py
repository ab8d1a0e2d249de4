# field_resolver.py
"""
Three-tier field resolution.

Every required field of a stage ends up with a FieldValue. The resolver walks an
ordered list of strategies (user-supplied, AI-predicted, static fallback); each one
gets the fields still pending and returns the subset it could resolve. Whatever is
left after the last strategy gets the sentinel value and a warning, so resolution
never aborts a stage.
"""
import logging
import math
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from ai_prediction_service import PredictionResult, PredictionService
from fallback_values import get_fallback_value
from models import AI_PREDICTED, FALLBACK, USER, FieldValue, PredictionMetadata, Project
from settings import Settings
from stage_definitions import RequiredFieldSpec, StageDefinition, coerce_number

logger = logging.getLogger(__name__)

SENTINEL_VALUE = 0.0
SENTINEL_CONFIDENCE = 0.0


@dataclass
class ResolutionRequest:
    stage: StageDefinition
    project: Project
    user_inputs: Dict[str, float]
    resolved: Dict[str, FieldValue] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    metadata: PredictionMetadata = field(default_factory=PredictionMetadata)

    def user_provided(self) -> Dict[str, float]:
        return {name: fv.value for name, fv in self.resolved.items()
                if fv.provenance == USER}


@dataclass
class ResolutionResult:
    values: Dict[str, FieldValue]
    warnings: List[str]
    prediction_metadata: PredictionMetadata

    @property
    def inputs(self) -> Dict[str, float]:
        return {name: fv.value for name, fv in self.values.items()}

    @property
    def field_sources(self) -> Dict[str, str]:
        return {name: fv.provenance for name, fv in self.values.items()}

    @property
    def field_confidences(self) -> Dict[str, float]:
        return {name: fv.confidence_percent for name, fv in self.values.items()}


def _clamp_confidence(value: float) -> float:
    return max(0.0, min(100.0, float(value)))


class ResolutionStrategy:
    provenance = ""

    def resolve(self, pending: Sequence[RequiredFieldSpec],
                request: ResolutionRequest) -> Dict[str, FieldValue]:
        raise NotImplementedError


class UserSuppliedStrategy(ResolutionStrategy):
    provenance = USER

    def resolve(self, pending, request):
        resolved = {}
        for field_spec in pending:
            value = coerce_number(request.user_inputs.get(field_spec.name))
            if value is None or value != value:
                continue
            if not field_spec.valid_range.contains(value):
                request.warnings.append(
                    f"User value for '{field_spec.name}' ({value:g}) is outside the valid range; ignored.")
                continue
            resolved[field_spec.name] = FieldValue(
                value=value, provenance=USER, confidence_percent=100.0)
        return resolved


class AiPredictedStrategy(ResolutionStrategy):
    """Batch all pending fields into one prediction call, bounded by `timeout` seconds."""

    provenance = AI_PREDICTED

    def __init__(self, service: PredictionService, timeout: float = 30.0,
                 default_confidence: float = 60.0):
        self.service = service
        self.timeout = timeout
        self.default_confidence = default_confidence

    def _call_with_timeout(self, request: ResolutionRequest,
                           missing: List[str]) -> PredictionResult:
        executor = ThreadPoolExecutor(max_workers=1)
        future = executor.submit(
            self.service.predict_fields,
            request.stage.name,
            request.project.prediction_context(),
            request.user_provided(),
            missing,
        )
        try:
            return future.result(timeout=self.timeout)
        except FutureTimeoutError:
            return PredictionResult.failure(
                f"AI prediction timeout after {self.timeout:g}s")
        except Exception as e:
            return PredictionResult.failure(str(e))
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def resolve(self, pending, request):
        if not pending:
            return {}
        missing = [field_spec.name for field_spec in pending]
        result = self._call_with_timeout(request, missing)
        request.metadata.prediction_model = result.model
        request.metadata.prediction_timestamp = result.timestamp

        if not result.success:
            request.metadata.prediction_error = result.error
            request.warnings.append(
                f"AI prediction failed for {request.stage.name} stage: {result.error}")
            logger.warning("AI prediction failed for %s (%s); falling back",
                           request.stage.name, result.error)
            return {}

        resolved = {}
        for field_spec in pending:
            prediction = result.predictions.get(field_spec.name)
            if prediction is None:
                continue
            value = prediction.value
            if not math.isfinite(value):
                request.warnings.append(
                    f"AI prediction for '{field_spec.name}' ({value}) is not a finite number; ignored.")
                continue
            if not field_spec.valid_range.contains(value):
                request.warnings.append(
                    f"AI prediction for '{field_spec.name}' ({value:g}) is outside the valid range; ignored.")
                continue
            confidence = prediction.confidence_percent
            # a non-finite confidence counts as omitted
            if confidence is None or not math.isfinite(confidence):
                confidence = self.default_confidence
            resolved[field_spec.name] = FieldValue(
                value=value, provenance=AI_PREDICTED,
                confidence_percent=_clamp_confidence(confidence))

        request.metadata.predicted_fields = list(resolved)
        return resolved


class StaticFallbackStrategy(ResolutionStrategy):
    provenance = FALLBACK

    def __init__(self, confidence: float = 50.0,
                 metal_values: Optional[Dict[str, Dict[str, float]]] = None,
                 generic_values: Optional[Dict[str, float]] = None):
        self.confidence = confidence
        self.metal_values = metal_values
        self.generic_values = generic_values

    def resolve(self, pending, request):
        resolved = {}
        for field_spec in pending:
            value = get_fallback_value(field_spec.name, request.project.metal_type,
                                       self.metal_values, self.generic_values)
            if value is None:
                continue
            resolved[field_spec.name] = FieldValue(
                value=value, provenance=FALLBACK, confidence_percent=self.confidence)
            request.warnings.append(
                f"Field '{field_spec.name}' was not provided or predicted; "
                f"using static fallback value {value:g} (confidence {self.confidence:g}%).")
        request.metadata.fallback_fields.extend(resolved)
        return resolved


class FieldResolver:
    def __init__(self, strategies: Sequence[ResolutionStrategy]):
        self.strategies = list(strategies)

    @classmethod
    def from_settings(cls, prediction_service: PredictionService,
                      settings: Settings) -> "FieldResolver":
        return cls([
            UserSuppliedStrategy(),
            AiPredictedStrategy(prediction_service,
                                timeout=settings.ai_prediction_timeout,
                                default_confidence=settings.default_ai_confidence_percent),
            StaticFallbackStrategy(confidence=settings.fallback_confidence_percent),
        ])

    def resolve(self, stage: StageDefinition, project: Project,
                user_inputs: Optional[Dict[str, float]] = None) -> ResolutionResult:
        request = ResolutionRequest(stage=stage, project=project,
                                    user_inputs=dict(user_inputs or {}))
        pending = list(stage.fields)
        for strategy in self.strategies:
            if not pending:
                break
            request.resolved.update(strategy.resolve(pending, request))
            pending = [f for f in pending if f.name not in request.resolved]

        for field_spec in pending:
            request.resolved[field_spec.name] = FieldValue(
                value=SENTINEL_VALUE, provenance=FALLBACK,
                confidence_percent=SENTINEL_CONFIDENCE)
            request.metadata.fallback_fields.append(field_spec.name)
            request.warnings.append(
                f"No fallback value exists for '{field_spec.name}' (metal type "
                f"'{project.metal_type}'); using sentinel {SENTINEL_VALUE:g}.")

        # keep the stage's declared field order
        values = {f.name: request.resolved[f.name] for f in stage.fields}
        return ResolutionResult(values=values, warnings=request.warnings,
                                prediction_metadata=request.metadata)
