# ml_predictor.py
"""
Local model backend for field prediction.

The joblib bundle at ML_MODEL_PATH is a dict:
    {
        "feature_columns": [...],            # column order the estimators were trained on
        "models": {field_name: estimator},   # anything with .predict(X)
        "confidence": {field_name: 0-100},   # optional, per-field validation score
    }
Feature rows are built from the user-provided fields, FunctionalUnitMassTonnes and
one-hot MetalType_<name> / ProcessingMode_<name> indicators.
"""
import logging
import os
from typing import Any, Dict, List, Optional

import joblib
import numpy as np
import pandas as pd

from ai_prediction_service import Prediction, PredictionResult, PredictionService

logger = logging.getLogger(__name__)


class ModelPredictionService(PredictionService):
    name = "model"

    def __init__(self, model_path: str):
        self.model_path = model_path
        self._bundle: Optional[Dict[str, Any]] = None  # cached bundle

    def _load_model(self) -> Optional[Dict[str, Any]]:
        """Lazy-load the model bundle from disk."""
        if self._bundle is not None:
            return self._bundle

        if not os.path.exists(self.model_path):
            logger.warning("Model file not found at %s; skipping model prediction",
                           self.model_path)
            return None

        bundle = joblib.load(self.model_path)
        if not isinstance(bundle, dict) or "models" not in bundle:
            raise ValueError(f"{self.model_path} is not a field prediction bundle")
        self._bundle = bundle
        logger.info("Loaded field prediction models from %s (%d fields)",
                    self.model_path, len(bundle["models"]))
        return self._bundle

    @staticmethod
    def build_feature_frame(project_context: Dict[str, Any],
                            provided_fields: Dict[str, float],
                            feature_columns: List[str]) -> pd.DataFrame:
        row: Dict[str, float] = dict(provided_fields)
        row["FunctionalUnitMassTonnes"] = float(
            project_context.get("FunctionalUnitMassTonnes") or 1.0)
        for key in ("MetalType", "ProcessingMode"):
            if project_context.get(key):
                row[f"{key}_{project_context[key]}"] = 1.0

        df = pd.DataFrame([row]).reindex(columns=feature_columns)
        # indicator columns default to 0, measured features stay NaN when absent
        indicators = [c for c in feature_columns
                      if c.startswith(("MetalType_", "ProcessingMode_"))]
        df[indicators] = df[indicators].fillna(0.0)
        return df

    def _predict(self, stage_name, project_context, provided_fields, missing_fields):
        bundle = self._load_model()
        if bundle is None:
            return PredictionResult.failure(
                f"model file not found at {self.model_path}", model=self.name)

        feature_cols = list(bundle.get("feature_columns", []))
        models = bundle["models"]
        confidences = bundle.get("confidence", {})

        X = self.build_feature_frame(project_context, provided_fields, feature_cols)
        if X.isna().values.any():
            absent = [c for c in feature_cols if X[c].isna().any()]
            return PredictionResult.failure(
                "Feature columns missing: " + ", ".join(absent), model=self.name)

        predictions: Dict[str, Prediction] = {}
        for field in missing_fields:
            estimator = models.get(field)
            if estimator is None:
                continue
            y_pred = np.asarray(estimator.predict(X.values), dtype=float).ravel()
            if y_pred.size == 0 or not np.isfinite(y_pred[0]):
                continue
            predictions[field] = Prediction(
                value=float(y_pred[0]),
                confidence_percent=confidences.get(field),
                reasoning="model-predicted")

        logger.info("Model predicted %d of %d %s fields",
                    len(predictions), len(missing_fields), stage_name)
        return PredictionResult(success=True, predictions=predictions,
                                model=os.path.basename(self.model_path))
