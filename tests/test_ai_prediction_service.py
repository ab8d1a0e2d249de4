# tests/test_ai_prediction_service.py
"""Tests for ai_prediction_service.py: prompt, response parsing, Gemini client, backend selection."""
import json
from unittest.mock import MagicMock

import pytest
import requests

from ai_prediction_service import (
    DisabledPredictionService, GeminiPredictionService, build_prediction_service,
    format_prediction_prompt, parse_prediction_response,
)
from ml_predictor import ModelPredictionService
from settings import Settings

CONTEXT = {
    "MetalType": "Aluminium",
    "ProcessingMode": "Circular",
    "FunctionalUnitMassTonnes": 2.0,
    "ProjectName": "Smelter upgrade",
}
MISSING = ["CokeUseKilogramsPerTonneMetal", "SmeltRecoveryPercent"]


def _gemini_payload(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


class TestFormatPrompt:
    def test_contains_context_and_constraints(self):
        prompt = format_prediction_prompt(
            "Smelting", CONTEXT, {"SmeltEnergyKilowattHoursPerTonneMetal": 3500.0}, MISSING)
        assert "ALUMINIUM CONTEXT" in prompt
        assert "CIRCULAR PROCESSING" in prompt
        assert "SmeltEnergyKilowattHoursPerTonneMetal: 3500.0" in prompt
        assert "SmeltRecoveryPercent (%): must be a number greater than 0 and at most 100" in prompt
        assert '"predictions"' in prompt

    def test_unknown_metal_uses_generic_context(self):
        prompt = format_prediction_prompt("Mining", dict(CONTEXT, MetalType="Zinc"), {}, [])
        assert "CRITICAL MINERALS CONTEXT" in prompt


class TestParsePredictionResponse:
    def test_nested_schema_in_code_fence(self):
        text = "Here you go:\n```json\n" + json.dumps({"predictions": {
            "CokeUseKilogramsPerTonneMetal": {"value": 420, "confidence": 70, "reasoning": "typical"},
            "SmeltRecoveryPercent": {"value": "96.5 %", "confidence": "80"},
        }}) + "\n```"
        predictions = parse_prediction_response(text, MISSING)
        assert predictions["CokeUseKilogramsPerTonneMetal"].value == 420.0
        assert predictions["CokeUseKilogramsPerTonneMetal"].confidence_percent == 70.0
        assert predictions["SmeltRecoveryPercent"].value == 96.5
        assert predictions["SmeltRecoveryPercent"].confidence_percent == 80.0

    def test_flat_schema(self):
        predictions = parse_prediction_response(
            '{"CokeUseKilogramsPerTonneMetal": 380}', MISSING)
        assert predictions["CokeUseKilogramsPerTonneMetal"].value == 380.0
        assert predictions["CokeUseKilogramsPerTonneMetal"].confidence_percent is None
        assert "SmeltRecoveryPercent" not in predictions

    def test_unrequested_and_non_numeric_fields_dropped(self):
        predictions = parse_prediction_response(json.dumps({"predictions": {
            "CokeUseKilogramsPerTonneMetal": {"value": "unknown"},
            "SomethingElse": {"value": 1},
        }}), MISSING)
        assert predictions == {}

    def test_no_json(self):
        with pytest.raises(ValueError):
            parse_prediction_response("I cannot help with that.", MISSING)


class TestGeminiPredictionService:
    def _service(self, response=None, error=None):
        session = MagicMock(spec=requests.Session)
        if error is not None:
            session.post.side_effect = error
        else:
            session.post.return_value = response
        service = GeminiPredictionService(api_key="k", model="gemini-test",
                                          base_url="https://example.test/v1beta/",
                                          timeout=3.0, session=session)
        return service, session

    def test_success(self):
        response = MagicMock()
        response.json.return_value = _gemini_payload(json.dumps({"predictions": {
            "CokeUseKilogramsPerTonneMetal": {"value": 410, "confidence": 65}}}))
        service, session = self._service(response)

        result = service.predict_fields("Smelting", CONTEXT, {}, MISSING)

        assert result.success
        assert result.model == "gemini-test"
        assert result.predictions["CokeUseKilogramsPerTonneMetal"].value == 410.0
        args, kwargs = session.post.call_args
        assert args[0] == "https://example.test/v1beta/models/gemini-test:generateContent"
        assert kwargs["params"] == {"key": "k"}
        assert kwargs["timeout"] == 3.0
        response.raise_for_status.assert_called_once()

    def test_http_error_is_failure(self):
        response = MagicMock()
        response.raise_for_status.side_effect = requests.HTTPError("503 Server Error")
        service, _ = self._service(response)
        result = service.predict_fields("Smelting", CONTEXT, {}, MISSING)
        assert not result.success
        assert "503" in result.error

    def test_connection_error_is_failure(self):
        service, _ = self._service(error=requests.ConnectionError("refused"))
        result = service.predict_fields("Smelting", CONTEXT, {}, MISSING)
        assert not result.success

    def test_empty_candidates_is_failure(self):
        response = MagicMock()
        response.json.return_value = {"candidates": []}
        service, _ = self._service(response)
        result = service.predict_fields("Smelting", CONTEXT, {}, MISSING)
        assert not result.success
        assert "candidates" in result.error

    def test_missing_api_key(self):
        session = MagicMock(spec=requests.Session)
        service = GeminiPredictionService(api_key="", model="m", base_url="https://x",
                                          session=session)
        result = service.predict_fields("Smelting", CONTEXT, {}, MISSING)
        assert not result.success
        session.post.assert_not_called()


class TestBuildPredictionService:
    def test_disabled(self):
        s = Settings(_env_file=None, ai_prediction_enabled=False)
        assert isinstance(build_prediction_service(s), DisabledPredictionService)

    def test_none_backend(self):
        s = Settings(_env_file=None, prediction_backend="none")
        assert isinstance(build_prediction_service(s), DisabledPredictionService)

    def test_model_backend(self):
        s = Settings(_env_file=None, prediction_backend="model", ml_model_path="m.pkl")
        service = build_prediction_service(s)
        assert isinstance(service, ModelPredictionService)
        assert service.model_path == "m.pkl"

    def test_gemini_default(self):
        s = Settings(_env_file=None, gemini_api_key="abc", ai_prediction_timeout=7.0)
        service = build_prediction_service(s)
        assert isinstance(service, GeminiPredictionService)
        assert service.timeout == 7.0
