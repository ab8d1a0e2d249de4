# thresholds.py
# Severity thresholds for classifying stage inputs and outputs.
from enum import Enum
from types import MappingProxyType
from typing import Dict, Mapping, NamedTuple, Optional

import pandas as pd

from exceptions import ConfigurationError


class Severity(str, Enum):
    SAFE = "Safe"
    MEDIUM = "Medium"
    HIGH = "High"
    VERY_HIGH = "Very High"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.SAFE: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.VERY_HIGH: 3,
}


class Polarity(str, Enum):
    NORMAL = "normal"    # higher is worse
    INVERSE = "inverse"  # lower is worse


class Threshold(NamedTuple):
    medium: float
    high: float
    very_high: float
    polarity: Polarity = Polarity.NORMAL


# Lower values are worse for these fields.
INVERSE_FIELDS = frozenset({
    "OreGradePercent",
    "RecoveryYieldPercent",
    "SmeltRecoveryPercent",
    "ScrapInputPercent",
    "CollectionRatePercent",
    "RecyclingEfficiencyPercent",
    "FabricationElectricityRenewableSharePercent",
})

# Cut points are kept exactly as calibrated, including the ordering of the
# inverse fields (OreGradePercent stores very_high < high < medium).
_RAW_THRESHOLDS = {
    # Mining
    "OreGradePercent": (2.0, 1.0, 0.5),
    "DieselUseLitersPerTonneOre": (15.0, 25.0, 40.0),
    "ElectricityUseKilowattHoursPerTonneOre": (50.0, 100.0, 200.0),
    "ReagentsKilogramsPerTonneOre": (10.0, 25.0, 50.0),
    "WaterWithdrawalCubicMetersPerTonneOre": (5.0, 15.0, 30.0),
    # Concentration
    "RecoveryYieldPercent": (80.0, 85.0, 90.0),
    "GrindingEnergyKilowattHoursPerTonneConcentrate": (30.0, 50.0, 80.0),
    "TailingsVolumeTonnesPerTonneConcentrate": (0.5, 1.0, 2.0),
    "ConcentrationReagentsKilogramsPerTonneConcentrate": (20.0, 40.0, 70.0),
    "ConcentrationWaterCubicMetersPerTonneConcentrate": (8.0, 15.0, 25.0),
    # Smelting
    "SmeltEnergyKilowattHoursPerTonneMetal": (800.0, 1200.0, 2000.0),
    "SmeltRecoveryPercent": (90.0, 95.0, 98.0),
    "CokeUseKilogramsPerTonneMetal": (300.0, 500.0, 800.0),
    "FuelSharePercent": (60.0, 80.0, 95.0),
    "FluxesKilogramsPerTonneMetal": (100.0, 200.0, 400.0),
    "EmissionControlEfficiencyPercent": (80.0, 90.0, 95.0),
    # Fabrication
    "FabricationEnergyKilowattHoursPerTonneProduct": (2000.0, 3500.0, 5000.0),
    "ScrapInputPercent": (30.0, 50.0, 70.0),
    "YieldLossPercent": (5.0, 10.0, 20.0),
    "FabricationElectricityRenewableSharePercent": (40.0, 60.0, 80.0),
    "AncillaryMaterialsKilogramsPerTonneProduct": (50.0, 100.0, 200.0),
    # Use phase
    "ProductLifetimeYears": (10.0, 5.0, 2.0),
    "OperationalEnergyKilowattHoursPerYearPerFunctionalUnit": (1000.0, 2500.0, 5000.0),
    "FailureRatePercent": (2.0, 5.0, 10.0),
    "MaintenanceEnergyKilowattHoursPerYearPerFunctionalUnit": (200.0, 500.0, 1000.0),
    # End of life
    "CollectionRatePercent": (70.0, 50.0, 30.0),
    "RecyclingEfficiencyPercent": (80.0, 60.0, 40.0),
    "RecyclingEnergyKilowattHoursPerTonneRecycled": (1000.0, 2000.0, 4000.0),
    "TransportDistanceKilometersToRecycler": (200.0, 500.0, 1000.0),
    "DowncyclingFractionPercent": (30.0, 50.0, 70.0),
    "LandfillSharePercent": (20.0, 40.0, 60.0),
}

DEFAULT_THRESHOLDS: Dict[str, Threshold] = {
    name: Threshold(medium, high, very_high,
                    Polarity.INVERSE if name in INVERSE_FIELDS else Polarity.NORMAL)
    for name, (medium, high, very_high) in _RAW_THRESHOLDS.items()
}


class ThresholdTable:
    def __init__(self, thresholds: Optional[Mapping[str, Threshold]] = None):
        self._thresholds = MappingProxyType(
            dict(DEFAULT_THRESHOLDS if thresholds is None else thresholds))

    def get(self, field_name: str) -> Optional[Threshold]:
        return self._thresholds.get(field_name)

    def __contains__(self, field_name: object) -> bool:
        return field_name in self._thresholds

    def __len__(self) -> int:
        return len(self._thresholds)

    def fields(self):
        return list(self._thresholds)


def classify_value(field_name: str, value: float,
                   table: Optional[ThresholdTable] = None) -> Severity:
    """Classify a value against its thresholds. Fields without thresholds are Safe."""
    threshold = (table or _DEFAULT_TABLE).get(field_name)
    if threshold is None:
        return Severity.SAFE

    if threshold.polarity is Polarity.INVERSE:
        if value <= threshold.very_high:
            return Severity.VERY_HIGH
        if value <= threshold.high:
            return Severity.HIGH
        if value <= threshold.medium:
            return Severity.MEDIUM
        return Severity.SAFE

    if value >= threshold.very_high:
        return Severity.VERY_HIGH
    if value >= threshold.high:
        return Severity.HIGH
    if value >= threshold.medium:
        return Severity.MEDIUM
    return Severity.SAFE


def classify_fields(values: Mapping[str, float],
                    table: Optional[ThresholdTable] = None) -> Dict[str, Severity]:
    return {name: classify_value(name, float(value), table)
            for name, value in values.items()}


def load_thresholds_csv(csv_path: str) -> ThresholdTable:
    """
    Build a ThresholdTable from a CSV with columns:
        field, medium, high, very_high[, polarity]
    Fields without a polarity column fall back to the built-in inverse list.
    """
    df = pd.read_csv(csv_path)
    required = {"field", "medium", "high", "very_high"}
    missing = required - set(df.columns)
    if missing:
        raise ConfigurationError(
            f"Missing required columns in {csv_path}: {sorted(missing)}")

    thresholds: Dict[str, Threshold] = {}
    for _, row in df.iterrows():
        name = str(row["field"]).strip()
        raw_polarity = row["polarity"] if "polarity" in df.columns else None
        try:
            if raw_polarity is None or pd.isna(raw_polarity):
                polarity = Polarity.INVERSE if name in INVERSE_FIELDS else Polarity.NORMAL
            else:
                polarity = Polarity(str(raw_polarity).strip().lower())
            thresholds[name] = Threshold(
                float(row["medium"]), float(row["high"]), float(row["very_high"]),
                polarity)
        except ValueError as e:
            raise ConfigurationError(f"Invalid threshold row for '{name}': {e}") from e
    return ThresholdTable(thresholds)


_DEFAULT_TABLE = ThresholdTable()
