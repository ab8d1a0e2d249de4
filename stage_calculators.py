# stage_calculators.py
import logging
from typing import Any, Callable, Dict, List, Tuple

import numpy as np

from emission_factors import EmissionFactorTable
from stage_definitions import (
    CONCENTRATION, END_OF_LIFE, FABRICATION, MINING, SMELTING, USE_PHASE,
    normalize_stage_name,
)

logger = logging.getLogger(__name__)

StageResult = Dict[str, Dict[str, float]]
Calculator = Callable[[Dict[str, float], EmissionFactorTable, float], StageResult]


def _pollutants(quantities: Dict[str, float], factors: EmissionFactorTable,
                pollutant: str) -> float:
    """Sum quantity * factor for one pollutant, e.g. {'diesel': 12.0} -> diesel_so2_kg_per_l."""
    units = {"diesel": "l", "electricity": "kwh", "reagent": "kg", "transport": "tkm"}
    total = 0.0
    for consumable, amount in quantities.items():
        total += amount * factors[f"{consumable}_{pollutant}_kg_per_{units[consumable]}"]
    return total


# -----------------------
# Mining
# -----------------------

def compute_mining(inputs: Dict[str, float], factors: EmissionFactorTable,
                   functional_unit_t: float) -> StageResult:
    # inputs: OreGradePercent, DieselUseLitersPerTonneOre, ElectricityUseKilowattHoursPerTonneOre,
    # ReagentsKilogramsPerTonneOre, WaterWithdrawalCubicMetersPerTonneOre,
    # TransportDistanceKilometersToConcentrator
    ore_grade_fraction = float(inputs.get("OreGradePercent", 0.0)) / 100.0
    diesel_l = float(inputs.get("DieselUseLitersPerTonneOre", 0.0)) * functional_unit_t
    electricity_kwh = float(inputs.get(
        "ElectricityUseKilowattHoursPerTonneOre", 0.0)) * functional_unit_t
    reagents_kg = float(inputs.get("ReagentsKilogramsPerTonneOre", 0.0)) * functional_unit_t
    water_m3 = float(inputs.get(
        "WaterWithdrawalCubicMetersPerTonneOre", 0.0)) * functional_unit_t
    transport_tkm = functional_unit_t * float(inputs.get(
        "TransportDistanceKilometersToConcentrator", 0.0))

    carbon = (diesel_l * factors["diesel_co2e_kg_per_l"]
              + electricity_kwh * factors["electricity_co2e_kg_per_kwh"]
              + reagents_kg * factors["reagent_co2e_kg_per_kg"]
              + transport_tkm * factors["transport_co2e_kg_per_tkm"])
    energy = (electricity_kwh * factors["electricity_energy_mj_per_kwh"]
              + diesel_l * factors["diesel_energy_mj_per_l"])

    consumables = {
        "diesel": diesel_l,
        "electricity": electricity_kwh,
        "reagent": reagents_kg,
        "transport": transport_tkm,
    }

    return {
        "outputs": {
            "CarbonFootprintKilogramsCarbonDioxideEquivalentPerFunctionalUnitForMining": carbon,
            "EnergyFootprintMegajoulesPerFunctionalUnitForMining": energy,
            "WaterFootprintCubicMetersPerFunctionalUnitForMining": water_m3,
            "SulfurDioxideKilogramsPerFunctionalUnitForMining":
                _pollutants(consumables, factors, "so2"),
            "NitrogenOxidesKilogramsPerFunctionalUnitForMining":
                _pollutants(consumables, factors, "nox"),
            "ParticulateMatterKilogramsPerFunctionalUnitForMining":
                _pollutants(consumables, factors, "pm"),
        },
        "derived": {
            "OreGradeFraction": ore_grade_fraction,
            "DieselUseLitersPerFunctionalUnit": diesel_l,
            "ElectricityUseKilowattHoursPerFunctionalUnit": electricity_kwh,
            "ReagentsKilogramsPerFunctionalUnit": reagents_kg,
            "WaterWithdrawalCubicMetersPerFunctionalUnit": water_m3,
            "TransportTonnesKilometersPerFunctionalUnit": transport_tkm,
        },
    }


# -----------------------
# Concentration
# -----------------------

def compute_concentration(inputs: Dict[str, float], factors: EmissionFactorTable,
                          functional_unit_t: float) -> StageResult:
    recovery_fraction = float(inputs.get("RecoveryYieldPercent", 0.0)) / 100.0
    grinding_kwh = float(inputs.get(
        "GrindingEnergyKilowattHoursPerTonneConcentrate", 0.0)) * functional_unit_t
    reagents_kg = float(inputs.get(
        "ConcentrationReagentsKilogramsPerTonneConcentrate", 0.0)) * functional_unit_t
    recycle_fraction = float(inputs.get("WaterRecycleRatePercent", 0.0)) / 100.0
    # net of recycled process water
    water_net_m3 = float(inputs.get(
        "ConcentrationWaterCubicMetersPerTonneConcentrate", 0.0)) \
        * functional_unit_t * (1.0 - recycle_fraction)
    tailings_t = float(inputs.get(
        "TailingsVolumeTonnesPerTonneConcentrate", 0.0)) * functional_unit_t

    carbon = (grinding_kwh * factors["electricity_co2e_kg_per_kwh"]
              + reagents_kg * factors["reagent_co2e_kg_per_kg"])
    energy = grinding_kwh * factors["electricity_energy_mj_per_kwh"]

    return {
        "outputs": {
            "CarbonFootprintKilogramsCarbonDioxideEquivalentPerFunctionalUnitForConcentration": carbon,
            "EnergyFootprintMegajoulesPerFunctionalUnitForConcentration": energy,
            "WaterFootprintCubicMetersPerFunctionalUnitForConcentration": water_net_m3,
            "TailingsMassTonnesPerFunctionalUnit": tailings_t,
            "StageRecoveryFractionFromOreToConcentrate": recovery_fraction,
        },
        "derived": {
            "RecoveryFractionFromConcentration": recovery_fraction,
            "GrindingEnergyKilowattHoursPerFunctionalUnit": grinding_kwh,
            "ConcentrationReagentsKilogramsPerFunctionalUnit": reagents_kg,
            "ConcentrationWaterCubicMetersPerFunctionalUnitNet": water_net_m3,
            "TailingsMassTonnesPerFunctionalUnit": tailings_t,
        },
    }


# -----------------------
# Smelting
# -----------------------

def compute_smelting(inputs: Dict[str, float], factors: EmissionFactorTable,
                     functional_unit_t: float) -> StageResult:
    smelt_recovery_fraction = float(inputs.get("SmeltRecoveryPercent", 0.0)) / 100.0
    smelt_kwh = float(inputs.get(
        "SmeltEnergyKilowattHoursPerTonneMetal", 0.0)) * functional_unit_t
    coke_kg = float(inputs.get("CokeUseKilogramsPerTonneMetal", 0.0)) * functional_unit_t
    fluxes_kg = float(inputs.get("FluxesKilogramsPerTonneMetal", 0.0)) * functional_unit_t
    control_fraction = float(inputs.get("EmissionControlEfficiencyPercent", 0.0)) / 100.0

    carbon = (smelt_kwh * factors["electricity_co2e_kg_per_kwh"]
              + coke_kg * factors["coke_co2e_kg_per_kg"]
              + fluxes_kg * factors["reagent_co2e_kg_per_kg"])
    energy = (smelt_kwh * factors["electricity_energy_mj_per_kwh"]
              + coke_kg * factors["coke_energy_mj_per_kg"])

    # coke and fluxes are charged at the reagent pollutant factors
    consumables = {"electricity": smelt_kwh, "reagent": coke_kg + fluxes_kg}
    uncontrolled = 1.0 - control_fraction

    return {
        "outputs": {
            "CarbonFootprintKilogramsCarbonDioxideEquivalentPerFunctionalUnitForSmelting": carbon,
            "EnergyFootprintMegajoulesPerFunctionalUnitForSmelting": energy,
            "StageRecoveryFractionForSmelting": smelt_recovery_fraction,
            "SulfurDioxideKilogramsPerFunctionalUnitForSmelting":
                _pollutants(consumables, factors, "so2") * uncontrolled,
            "NitrogenOxidesKilogramsPerFunctionalUnitForSmelting":
                _pollutants(consumables, factors, "nox") * uncontrolled,
            "ParticulateMatterKilogramsPerFunctionalUnitForSmelting":
                _pollutants(consumables, factors, "pm") * uncontrolled,
        },
        "derived": {
            "SmeltRecoveryFraction": smelt_recovery_fraction,
            "SmeltEnergyKilowattHoursPerFunctionalUnit": smelt_kwh,
            "CokeUseKilogramsPerFunctionalUnit": coke_kg,
            "FluxesKilogramsPerFunctionalUnit": fluxes_kg,
            "EmissionControlFraction": control_fraction,
        },
    }


# -----------------------
# Fabrication
# -----------------------

def compute_fabrication(inputs: Dict[str, float], factors: EmissionFactorTable,
                        functional_unit_t: float) -> StageResult:
    fabrication_kwh = float(inputs.get(
        "FabricationEnergyKilowattHoursPerTonneProduct", 0.0)) * functional_unit_t
    non_renewable_fraction = (100.0 - float(inputs.get(
        "FabricationElectricityRenewableSharePercent", 0.0))) / 100.0
    ancillary_kg = float(inputs.get(
        "AncillaryMaterialsKilogramsPerTonneProduct", 0.0)) * functional_unit_t
    water_m3 = float(inputs.get(
        "FabricationWaterCubicMetersPerTonneProduct", 0.0)) * functional_unit_t
    scrap_percent = float(inputs.get("ScrapInputPercent", 0.0))
    yield_loss_percent = float(inputs.get("YieldLossPercent", 0.0))

    carbon = (fabrication_kwh * non_renewable_fraction * factors["electricity_co2e_kg_per_kwh"]
              + ancillary_kg * factors["reagent_co2e_kg_per_kg"])
    energy = fabrication_kwh * factors["electricity_energy_mj_per_kwh"]

    return {
        "outputs": {
            "CarbonFootprintKilogramsCarbonDioxideEquivalentPerFunctionalUnitForFabrication": carbon,
            "EnergyFootprintMegajoulesPerFunctionalUnitForFabrication": energy,
            "WaterFootprintCubicMetersPerFunctionalUnitForFabrication": water_m3,
            "RecycledContentPercent": scrap_percent,
            "YieldEfficiencyPercent": 100.0 - yield_loss_percent,
        },
        "derived": {
            "FabricationEnergyKilowattHoursPerFunctionalUnit": fabrication_kwh,
            "FabricationElectricityNonRenewableShareFraction": non_renewable_fraction,
            "AncillaryMaterialsKilogramsPerFunctionalUnit": ancillary_kg,
            "FabricationWaterCubicMetersPerFunctionalUnit": water_m3,
            "ScrapInputFraction": scrap_percent / 100.0,
            "YieldEfficiencyFraction": (100.0 - yield_loss_percent) / 100.0,
        },
    }


# -----------------------
# Use phase
# -----------------------

def compute_use_phase(inputs: Dict[str, float], factors: EmissionFactorTable,
                      functional_unit_t: float) -> StageResult:
    # per-year inputs are already expressed per functional unit; scale by lifetime
    lifetime_years = float(inputs.get("ProductLifetimeYears", 0.0))
    failure_fraction = float(inputs.get("FailureRatePercent", 0.0)) / 100.0
    operational_kwh = float(inputs.get(
        "OperationalEnergyKilowattHoursPerYearPerFunctionalUnit", 0.0)) * lifetime_years
    maintenance_kwh = float(inputs.get(
        "MaintenanceEnergyKilowattHoursPerYearPerFunctionalUnit", 0.0)) * lifetime_years
    maintenance_kg = float(inputs.get(
        "MaintenanceMaterialsKilogramsPerYearPerFunctionalUnit", 0.0)) * lifetime_years
    reuse_percent = float(inputs.get("ReusePotentialPercent", 0.0))

    operational_carbon = operational_kwh * factors["electricity_co2e_kg_per_kwh"]
    maintenance_carbon = (maintenance_kwh * factors["electricity_co2e_kg_per_kwh"]
                          + maintenance_kg * factors["reagent_co2e_kg_per_kg"])
    energy = (operational_kwh + maintenance_kwh) * factors["electricity_energy_mj_per_kwh"]
    effective_lifetime = lifetime_years * (1.0 - failure_fraction)

    return {
        "outputs": {
            "CarbonFootprintKilogramsCarbonDioxideEquivalentPerFunctionalUnitOverLifetime":
                operational_carbon + maintenance_carbon,
            "EnergyFootprintMegajoulesPerFunctionalUnitOverLifetime": energy,
            "OperationalCarbonFootprintKilogramsCarbonDioxideEquivalentPerFunctionalUnitOverLifetime":
                operational_carbon,
            "MaintenanceCarbonFootprintKilogramsCarbonDioxideEquivalentPerFunctionalUnitOverLifetime":
                maintenance_carbon,
            "LifetimeEfficiencyYearsPerFunctionalUnit": effective_lifetime,
            "ReuseFactorPercent": reuse_percent,
        },
        "derived": {
            "FailureFraction": failure_fraction,
            "ReusePotentialFraction": reuse_percent / 100.0,
            "EffectiveServiceLifetimeYearsPerFunctionalUnit": effective_lifetime,
            "TotalOperationalEnergyKilowattHoursOverLifetimePerFunctionalUnit": operational_kwh,
            "TotalMaintenanceEnergyKilowattHoursOverLifetimePerFunctionalUnit": maintenance_kwh,
            "TotalMaintenanceMaterialsKilogramsOverLifetimePerFunctionalUnit": maintenance_kg,
        },
    }


# -----------------------
# End of life
# -----------------------

def compute_end_of_life(inputs: Dict[str, float], factors: EmissionFactorTable,
                        functional_unit_t: float) -> StageResult:
    collection_fraction = float(inputs.get("CollectionRatePercent", 0.0)) / 100.0
    recycling_efficiency_fraction = float(inputs.get("RecyclingEfficiencyPercent", 0.0)) / 100.0
    downcycling_fraction = float(inputs.get("DowncyclingFractionPercent", 0.0)) / 100.0
    landfill_fraction = float(inputs.get("LandfillSharePercent", 0.0)) / 100.0

    recovered_t = functional_unit_t * collection_fraction * recycling_efficiency_fraction
    downcycled_t = recovered_t * downcycling_fraction
    landfilled_t = functional_unit_t * landfill_fraction
    transport_tkm = recovered_t * float(inputs.get("TransportDistanceKilometersToRecycler", 0.0))
    recycling_kwh = float(inputs.get(
        "RecyclingEnergyKilowattHoursPerTonneRecycled", 0.0)) * recovered_t

    carbon = (recycling_kwh * factors["electricity_co2e_kg_per_kwh"]
              + transport_tkm * factors["transport_co2e_kg_per_tkm"])
    energy = recycling_kwh * factors["electricity_energy_mj_per_kwh"]
    scrap_utilization = recovered_t / functional_unit_t if functional_unit_t else 0.0

    return {
        "outputs": {
            "CarbonFootprintKilogramsCarbonDioxideEquivalentPerFunctionalUnitForEndOfLife": carbon,
            "EnergyFootprintMegajoulesPerFunctionalUnitForEndOfLife": energy,
            "EndOfLifeRecyclingRatePercent": collection_fraction * recycling_efficiency_fraction * 100.0,
            "RecycledMassTonnesPerFunctionalUnit": recovered_t,
            "DowncycledMassTonnesPerFunctionalUnit": downcycled_t,
            "LandfilledMassTonnesPerFunctionalUnit": landfilled_t,
            "ScrapUtilizationFraction": scrap_utilization,
        },
        "derived": {
            "CollectionFraction": collection_fraction,
            "RecyclingEfficiencyFraction": recycling_efficiency_fraction,
            "DowncyclingFraction": downcycling_fraction,
            "LandfillFraction": landfill_fraction,
            "RecoveredMassTonnesPerFunctionalUnit": recovered_t,
            "TransportTonnesKilometersPerFunctionalUnitToRecycler": transport_tkm,
            "RecyclingEnergyKilowattHoursPerFunctionalUnit": recycling_kwh,
        },
    }


# -----------------------
# Dispatch table
# -----------------------
STAGE_CALCULATORS: Dict[str, Calculator] = {
    MINING: compute_mining,
    CONCENTRATION: compute_concentration,
    SMELTING: compute_smelting,
    FABRICATION: compute_fabrication,
    USE_PHASE: compute_use_phase,
    END_OF_LIFE: compute_end_of_life,
}

# factors each calculator reads; checked once when the service starts
REQUIRED_FACTORS: Dict[str, Tuple[str, ...]] = {
    MINING: tuple(
        [f"{c}_co2e_kg_per_{u}" for c, u in
         (("diesel", "l"), ("electricity", "kwh"), ("reagent", "kg"), ("transport", "tkm"))]
        + ["electricity_energy_mj_per_kwh", "diesel_energy_mj_per_l"]
        + [f"{c}_{p}_kg_per_{u}" for p in ("so2", "nox", "pm") for c, u in
           (("diesel", "l"), ("electricity", "kwh"), ("reagent", "kg"), ("transport", "tkm"))]
    ),
    CONCENTRATION: ("electricity_co2e_kg_per_kwh", "reagent_co2e_kg_per_kg",
                    "electricity_energy_mj_per_kwh"),
    SMELTING: tuple(
        ["electricity_co2e_kg_per_kwh", "coke_co2e_kg_per_kg", "reagent_co2e_kg_per_kg",
         "electricity_energy_mj_per_kwh", "coke_energy_mj_per_kg"]
        + [f"{c}_{p}_kg_per_{u}" for p in ("so2", "nox", "pm") for c, u in
           (("electricity", "kwh"), ("reagent", "kg"))]
    ),
    FABRICATION: ("electricity_co2e_kg_per_kwh", "reagent_co2e_kg_per_kg",
                  "electricity_energy_mj_per_kwh"),
    USE_PHASE: ("electricity_co2e_kg_per_kwh", "reagent_co2e_kg_per_kg",
                "electricity_energy_mj_per_kwh"),
    END_OF_LIFE: ("electricity_co2e_kg_per_kwh", "transport_co2e_kg_per_tkm",
                  "electricity_energy_mj_per_kwh"),
}


def all_required_factors() -> List[str]:
    names = set()
    for required in REQUIRED_FACTORS.values():
        names.update(required)
    return sorted(names)


def _clamp_outputs(stage_name: str, outputs: Dict[str, Any]) -> Tuple[Dict[str, float], List[str]]:
    clean: Dict[str, float] = {}
    warnings: List[str] = []
    for key, value in outputs.items():
        value = float(value)
        if not np.isfinite(value) or value < 0.0:
            warnings.append(
                f"Output '{key}' for stage '{stage_name}' evaluated to {value}; clamped to 0.")
            logger.warning("Clamped %s output %s=%s to 0", stage_name, key, value)
            value = 0.0
        clean[key] = value
    return clean, warnings


def compute_stage_outputs(stage_name: str, inputs: Dict[str, float],
                          factors: EmissionFactorTable,
                          functional_unit_t: float) -> Tuple[Dict[str, float], Dict[str, float], List[str]]:
    """
    Run the stage's calculator and return (outputs, derived helper variables, warnings).
    Raises ConfigurationError when a referenced emission factor is missing.
    """
    stage = normalize_stage_name(stage_name)
    func = STAGE_CALCULATORS[stage]
    result = func(inputs, factors, float(functional_unit_t))
    outputs, warnings = _clamp_outputs(stage, result["outputs"])
    derived = {k: float(v) for k, v in result["derived"].items()}
    return outputs, derived, warnings
