# ai_prediction_service.py
"""
Prediction collaborators for fields the user did not supply.

Every backend exposes predict_fields(stage_name, project_context, provided_fields,
missing_fields) and never raises: failures come back as PredictionResult(success=False).
"""
import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests
from pydantic import BaseModel, Field

from settings import Settings
from stage_definitions import STAGE_DEFINITIONS, coerce_number, normalize_stage_name

logger = logging.getLogger(__name__)


class Prediction(BaseModel):
    value: float
    confidence_percent: Optional[float] = None
    reasoning: Optional[str] = None


class PredictionResult(BaseModel):
    success: bool
    predictions: Dict[str, Prediction] = Field(default_factory=dict)
    error: Optional[str] = None
    model: Optional[str] = None
    reasoning: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def failure(cls, error: str, model: Optional[str] = None) -> "PredictionResult":
        return cls(success=False, error=error, model=model)


class PredictionService:
    """Base collaborator. Subclasses implement _predict and may raise freely."""

    name = "base"

    def predict_fields(self, stage_name: str, project_context: Dict[str, Any],
                       provided_fields: Dict[str, float],
                       missing_fields: List[str]) -> PredictionResult:
        try:
            return self._predict(stage_name, project_context, provided_fields, missing_fields)
        except Exception as e:
            logger.warning("%s prediction failed for %s: %s", self.name, stage_name, e)
            return PredictionResult.failure(str(e), model=self.name)

    def _predict(self, stage_name, project_context, provided_fields, missing_fields):
        raise NotImplementedError


class DisabledPredictionService(PredictionService):
    name = "disabled"

    def _predict(self, stage_name, project_context, provided_fields, missing_fields):
        return PredictionResult.failure("AI prediction disabled by configuration")


# -----------------------
# Prompt construction
# -----------------------

METAL_TYPE_CONTEXT = {
    "Aluminium": """ALUMINIUM CONTEXT:
- Typically extracted from bauxite ore with grades of 20-60% Al2O3
- Energy-intensive process requiring significant electricity for processing
- Water usage varies significantly based on processing method
- Reagents include caustic soda, lime, and various flotation chemicals""",
    "Copper": """COPPER CONTEXT:
- Ore grades typically range from 0.3% to 3% Cu
- Requires significant diesel for mining operations and electricity for processing
- Water usage is substantial for flotation and dust suppression
- Common reagents include xanthates, frothers, and lime""",
    "CriticalMinerals": """CRITICAL MINERALS CONTEXT:
- Ore grades vary widely depending on specific mineral
- Often requires specialized reagents and processing techniques
- Water and energy requirements depend on mineral type and processing method
- Transport distances can be significant due to remote locations""",
}

PROCESSING_MODE_CONTEXT = {
    "Circular": """CIRCULAR PROCESSING CONSIDERATIONS:
- Focus on resource efficiency and waste minimization
- May involve recycled content integration
- Optimized for reduced environmental impact
- Consider end-of-life recovery potential""",
    "Linear": """LINEAR PROCESSING CONSIDERATIONS:
- Traditional extraction and processing methods
- Standard industry practices and parameters
- Focus on primary production efficiency""",
}


def format_prediction_prompt(stage_name: str, project_context: Dict[str, Any],
                             provided_fields: Dict[str, float],
                             missing_fields: List[str]) -> str:
    stage = STAGE_DEFINITIONS[normalize_stage_name(stage_name)]
    metal = project_context.get("MetalType")
    mode = project_context.get("ProcessingMode")

    provided = "\n".join(f"- {k}: {v}" for k, v in provided_fields.items()) or "- (none)"
    constraints = []
    for name in missing_fields:
        field_spec = stage.field(name)
        if field_spec is not None:
            constraints.append(f"- {name} ({field_spec.unit}): must be {field_spec.valid_range.describe()}")
        else:
            constraints.append(f"- {name}")

    return "\n\n".join([
        "You are an expert metallurgist and LCA specialist. Based on the following "
        f"{stage.name} stage context, predict realistic values for the missing parameters.",
        "PROJECT CONTEXT:\n"
        f"- Metal Type: {metal}\n"
        f"- Processing Mode: {mode}\n"
        f"- Functional Unit: {project_context.get('FunctionalUnitMassTonnes')} tonnes\n"
        f"- Project Name: {project_context.get('ProjectName')}",
        METAL_TYPE_CONTEXT.get(metal, METAL_TYPE_CONTEXT["CriticalMinerals"]),
        PROCESSING_MODE_CONTEXT.get(mode, PROCESSING_MODE_CONTEXT["Linear"]),
        "PROVIDED PARAMETERS:\n" + provided,
        "MISSING PARAMETERS TO PREDICT:\n" + "\n".join(constraints),
        "Return ONLY valid JSON (no commentary) with the schema:\n"
        '{ "predictions": { "<fieldName>": { "value": <number>, "confidence": <0-100>, '
        '"reasoning": "<short explanation>" } } }',
    ])


_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")


def _to_number(value: Any) -> Optional[float]:
    number = coerce_number(value)
    if number is None and isinstance(value, str):
        # tolerate units, e.g. "12.5 kg/t"
        match = _NUMBER_RE.search(value.replace(",", ""))
        number = float(match.group(0)) if match else None
    return number


def parse_prediction_response(text: str, missing_fields: List[str]) -> Dict[str, Prediction]:
    """
    Extract {field: Prediction} from model text. Accepts both
    {"predictions": {field: {value, confidence}}} and the flat {field: value} form.
    Raises ValueError when no JSON object can be found.
    """
    fenced = _FENCE_RE.search(text)
    candidate = fenced.group(1) if fenced else text
    match = _OBJECT_RE.search(candidate)
    if not match:
        raise ValueError("AI response did not contain a JSON object")
    parsed = json.loads(match.group(0))
    if not isinstance(parsed, dict):
        raise ValueError("AI response JSON is not an object")

    body = parsed.get("predictions", parsed)
    if not isinstance(body, dict):
        raise ValueError("AI returned unexpected JSON structure for predictions")

    predictions: Dict[str, Prediction] = {}
    for field in missing_fields:
        entry = body.get(field)
        if entry is None:
            continue
        if isinstance(entry, dict):
            value = _to_number(entry.get("value"))
            confidence = _to_number(entry.get("confidence"))
            reasoning = entry.get("reasoning")
        else:
            value, confidence, reasoning = _to_number(entry), None, None
        if value is None:
            continue
        predictions[field] = Prediction(
            value=value, confidence_percent=confidence,
            reasoning=str(reasoning) if reasoning is not None else None)
    return predictions


# -----------------------
# Gemini backend
# -----------------------

class GeminiPredictionService(PredictionService):
    name = "gemini"

    def __init__(self, api_key: str, model: str, base_url: str, timeout: float = 30.0,
                 session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _predict(self, stage_name, project_context, provided_fields, missing_fields):
        if not self.api_key or not self.model:
            return PredictionResult.failure(
                "AI prediction disabled: GEMINI_API_KEY or GEMINI_MODEL not configured")

        prompt = format_prediction_prompt(
            stage_name, project_context, provided_fields, missing_fields)
        url = f"{self.base_url}/models/{self.model}:generateContent"
        response = self.session.post(
            url,
            params={"key": self.api_key},
            json={"contents": [{"parts": [{"text": prompt}]}]},
            timeout=self.timeout,
        )
        response.raise_for_status()
        text = _extract_text(response.json())
        predictions = parse_prediction_response(text, missing_fields)
        logger.info("Gemini predicted %d of %d %s fields",
                    len(predictions), len(missing_fields), stage_name)
        return PredictionResult(success=True, predictions=predictions,
                                model=self.model, reasoning=text)


def _extract_text(payload: Dict[str, Any]) -> str:
    try:
        parts = payload["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError):
        raise ValueError("Gemini response has no candidates") from None
    return "".join(part.get("text", "") for part in parts if isinstance(part, dict))


def build_prediction_service(settings: Settings) -> PredictionService:
    if not settings.ai_prediction_enabled or settings.prediction_backend == "none":
        return DisabledPredictionService()
    if settings.prediction_backend == "model":
        from ml_predictor import ModelPredictionService
        return ModelPredictionService(settings.ml_model_path)
    return GeminiPredictionService(
        api_key=settings.gemini_api_key,
        model=settings.gemini_model,
        base_url=settings.gemini_base_url,
        timeout=settings.ai_prediction_timeout,
    )
