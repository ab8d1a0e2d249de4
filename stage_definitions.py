# stage_definitions.py
# Static field declarations for each life-cycle stage and the pipeline order.
import re
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

from exceptions import InputValidationError, UnknownStageError

MINING = "Mining"
CONCENTRATION = "Concentration"
SMELTING = "Smelting"
FABRICATION = "Fabrication"
USE_PHASE = "UsePhase"
END_OF_LIFE = "EndOfLife"

PIPELINE_ORDER: Tuple[str, ...] = (
    MINING, CONCENTRATION, SMELTING, FABRICATION, USE_PHASE, END_OF_LIFE,
)

# number of stages aggregated per processing mode
STAGE_COUNT_BY_MODE = {
    "Linear": 5,
    "Circular": 6,
}


class ValidRange(NamedTuple):
    minimum: float = 0.0
    maximum: Optional[float] = None
    minimum_exclusive: bool = False

    def contains(self, value: float) -> bool:
        if self.minimum_exclusive:
            if value <= self.minimum:
                return False
        elif value < self.minimum:
            return False
        return self.maximum is None or value <= self.maximum

    def describe(self) -> str:
        low = f"greater than {self.minimum:g}" if self.minimum_exclusive \
            else f"at least {self.minimum:g}"
        if self.maximum is None:
            return f"a number {low}"
        return f"a number {low} and at most {self.maximum:g}"


NON_NEGATIVE = ValidRange()
PERCENT = ValidRange(0.0, 100.0)
POSITIVE_PERCENT = ValidRange(0.0, 100.0, minimum_exclusive=True)
POSITIVE = ValidRange(0.0, None, minimum_exclusive=True)


class RequiredFieldSpec(NamedTuple):
    name: str
    unit: str
    valid_range: ValidRange = NON_NEGATIVE


class StageDefinition(NamedTuple):
    name: str
    fields: Tuple[RequiredFieldSpec, ...]
    output_fields: Tuple[str, ...]

    @property
    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    def field(self, name: str) -> Optional[RequiredFieldSpec]:
        for field_spec in self.fields:
            if field_spec.name == name:
                return field_spec
        return None


STAGE_DEFINITIONS: Dict[str, StageDefinition] = {
    MINING: StageDefinition(
        MINING,
        (
            RequiredFieldSpec("OreGradePercent", "%", POSITIVE_PERCENT),
            RequiredFieldSpec("DieselUseLitersPerTonneOre", "L/t ore"),
            RequiredFieldSpec("ElectricityUseKilowattHoursPerTonneOre", "kWh/t ore"),
            RequiredFieldSpec("ReagentsKilogramsPerTonneOre", "kg/t ore",
                              ValidRange(0.0, 100.0)),
            RequiredFieldSpec("WaterWithdrawalCubicMetersPerTonneOre", "m3/t ore",
                              ValidRange(0.0, 50.0)),
            RequiredFieldSpec("TransportDistanceKilometersToConcentrator", "km",
                              ValidRange(0.0, 1000.0)),
        ),
        (
            "CarbonFootprintKilogramsCarbonDioxideEquivalentPerFunctionalUnitForMining",
            "EnergyFootprintMegajoulesPerFunctionalUnitForMining",
            "WaterFootprintCubicMetersPerFunctionalUnitForMining",
            "SulfurDioxideKilogramsPerFunctionalUnitForMining",
            "NitrogenOxidesKilogramsPerFunctionalUnitForMining",
            "ParticulateMatterKilogramsPerFunctionalUnitForMining",
        ),
    ),
    CONCENTRATION: StageDefinition(
        CONCENTRATION,
        (
            RequiredFieldSpec("RecoveryYieldPercent", "%", POSITIVE_PERCENT),
            RequiredFieldSpec("GrindingEnergyKilowattHoursPerTonneConcentrate", "kWh/t"),
            RequiredFieldSpec("TailingsVolumeTonnesPerTonneConcentrate", "t/t"),
            RequiredFieldSpec("ConcentrationReagentsKilogramsPerTonneConcentrate", "kg/t"),
            RequiredFieldSpec("ConcentrationWaterCubicMetersPerTonneConcentrate", "m3/t"),
            RequiredFieldSpec("WaterRecycleRatePercent", "%", PERCENT),
        ),
        (
            "CarbonFootprintKilogramsCarbonDioxideEquivalentPerFunctionalUnitForConcentration",
            "EnergyFootprintMegajoulesPerFunctionalUnitForConcentration",
            "WaterFootprintCubicMetersPerFunctionalUnitForConcentration",
            "TailingsMassTonnesPerFunctionalUnit",
            "StageRecoveryFractionFromOreToConcentrate",
        ),
    ),
    SMELTING: StageDefinition(
        SMELTING,
        (
            RequiredFieldSpec("SmeltEnergyKilowattHoursPerTonneMetal", "kWh/t"),
            RequiredFieldSpec("SmeltRecoveryPercent", "%", POSITIVE_PERCENT),
            RequiredFieldSpec("CokeUseKilogramsPerTonneMetal", "kg/t"),
            RequiredFieldSpec("FuelSharePercent", "%", PERCENT),
            RequiredFieldSpec("FluxesKilogramsPerTonneMetal", "kg/t"),
            RequiredFieldSpec("EmissionControlEfficiencyPercent", "%", PERCENT),
        ),
        (
            "CarbonFootprintKilogramsCarbonDioxideEquivalentPerFunctionalUnitForSmelting",
            "EnergyFootprintMegajoulesPerFunctionalUnitForSmelting",
            "StageRecoveryFractionForSmelting",
            "SulfurDioxideKilogramsPerFunctionalUnitForSmelting",
            "NitrogenOxidesKilogramsPerFunctionalUnitForSmelting",
            "ParticulateMatterKilogramsPerFunctionalUnitForSmelting",
        ),
    ),
    FABRICATION: StageDefinition(
        FABRICATION,
        (
            RequiredFieldSpec("FabricationEnergyKilowattHoursPerTonneProduct", "kWh/t"),
            RequiredFieldSpec("ScrapInputPercent", "%", PERCENT),
            RequiredFieldSpec("YieldLossPercent", "%", PERCENT),
            RequiredFieldSpec("FabricationElectricityRenewableSharePercent", "%", PERCENT),
            RequiredFieldSpec("AncillaryMaterialsKilogramsPerTonneProduct", "kg/t"),
            RequiredFieldSpec("FabricationWaterCubicMetersPerTonneProduct", "m3/t"),
        ),
        (
            "CarbonFootprintKilogramsCarbonDioxideEquivalentPerFunctionalUnitForFabrication",
            "EnergyFootprintMegajoulesPerFunctionalUnitForFabrication",
            "WaterFootprintCubicMetersPerFunctionalUnitForFabrication",
            "RecycledContentPercent",
            "YieldEfficiencyPercent",
        ),
    ),
    USE_PHASE: StageDefinition(
        USE_PHASE,
        (
            RequiredFieldSpec("ProductLifetimeYears", "yr", POSITIVE),
            RequiredFieldSpec("OperationalEnergyKilowattHoursPerYearPerFunctionalUnit",
                              "kWh/yr"),
            RequiredFieldSpec("FailureRatePercent", "%", PERCENT),
            RequiredFieldSpec("MaintenanceEnergyKilowattHoursPerYearPerFunctionalUnit",
                              "kWh/yr"),
            RequiredFieldSpec("MaintenanceMaterialsKilogramsPerYearPerFunctionalUnit",
                              "kg/yr"),
            RequiredFieldSpec("ReusePotentialPercent", "%", PERCENT),
        ),
        (
            "CarbonFootprintKilogramsCarbonDioxideEquivalentPerFunctionalUnitOverLifetime",
            "EnergyFootprintMegajoulesPerFunctionalUnitOverLifetime",
            "OperationalCarbonFootprintKilogramsCarbonDioxideEquivalentPerFunctionalUnitOverLifetime",
            "MaintenanceCarbonFootprintKilogramsCarbonDioxideEquivalentPerFunctionalUnitOverLifetime",
            "LifetimeEfficiencyYearsPerFunctionalUnit",
            "ReuseFactorPercent",
        ),
    ),
    END_OF_LIFE: StageDefinition(
        END_OF_LIFE,
        (
            RequiredFieldSpec("CollectionRatePercent", "%", PERCENT),
            RequiredFieldSpec("RecyclingEfficiencyPercent", "%", PERCENT),
            RequiredFieldSpec("RecyclingEnergyKilowattHoursPerTonneRecycled", "kWh/t"),
            RequiredFieldSpec("TransportDistanceKilometersToRecycler", "km"),
            RequiredFieldSpec("DowncyclingFractionPercent", "%", PERCENT),
            RequiredFieldSpec("LandfillSharePercent", "%", PERCENT),
        ),
        (
            "CarbonFootprintKilogramsCarbonDioxideEquivalentPerFunctionalUnitForEndOfLife",
            "EnergyFootprintMegajoulesPerFunctionalUnitForEndOfLife",
            "EndOfLifeRecyclingRatePercent",
            "RecycledMassTonnesPerFunctionalUnit",
            "DowncycledMassTonnesPerFunctionalUnit",
            "LandfilledMassTonnesPerFunctionalUnit",
            "ScrapUtilizationFraction",
        ),
    ),
}


def _squash(name: str) -> str:
    return re.sub(r"[^a-z0-9]", "", name.lower())


_STAGE_ALIASES = {_squash(name): name for name in PIPELINE_ORDER}


def normalize_stage_name(stage_name: str) -> str:
    """Map 'usePhase', 'Use Phase', 'end-of-life' ... onto the canonical stage name."""
    if not isinstance(stage_name, str) or not stage_name.strip():
        raise UnknownStageError(str(stage_name))
    canonical = _STAGE_ALIASES.get(_squash(stage_name))
    if canonical is None:
        raise UnknownStageError(stage_name)
    return canonical


def get_stage_definition(stage_name: str) -> StageDefinition:
    return STAGE_DEFINITIONS[normalize_stage_name(stage_name)]


def stages_for_processing_mode(processing_mode: str) -> Tuple[str, ...]:
    count = STAGE_COUNT_BY_MODE.get(processing_mode, STAGE_COUNT_BY_MODE["Linear"])
    return PIPELINE_ORDER[:count]


def is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def coerce_number(value: Any) -> Optional[float]:
    """Return a float for numbers and numeric strings, None for anything else."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip().replace(",", ""))
        except ValueError:
            return None
    return None


def validate_user_inputs(stage: StageDefinition,
                         user_inputs: Optional[Dict[str, Any]]) -> Tuple[Dict[str, float], List[str]]:
    """
    Check every supplied value against the stage's declared ranges.
    Returns (clean numeric inputs, warnings). Raises InputValidationError listing
    all bad fields at once.
    """
    if user_inputs is None:
        user_inputs = {}
    if not isinstance(user_inputs, dict):
        raise InputValidationError({"inputs": "Payload must be a JSON object"})

    errors: Dict[str, str] = {}
    clean: Dict[str, float] = {}
    warnings: List[str] = []

    for name, raw in user_inputs.items():
        field_spec = stage.field(name)
        if field_spec is None:
            if not is_missing(raw):
                warnings.append(
                    f"Field '{name}' is not part of the {stage.name} stage and was ignored.")
            continue
        if is_missing(raw):
            continue
        value = coerce_number(raw)
        if value is None or value != value or value in (float("inf"), float("-inf")):
            errors[name] = f"{name} must be {field_spec.valid_range.describe()}"
            continue
        if not field_spec.valid_range.contains(value):
            errors[name] = f"{name} must be {field_spec.valid_range.describe()}"
            continue
        clean[name] = value

    if errors:
        raise InputValidationError(errors)
    return clean, warnings
