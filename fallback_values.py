# fallback_values.py
# Static defaults used when neither the user nor the prediction service supplies a value.
from typing import Dict, Optional

# Per metal type. Only the fields that usually go unreported are listed.
METAL_FALLBACK_VALUES: Dict[str, Dict[str, float]] = {
    "Aluminium": {
        # Mining
        "ReagentsKilogramsPerTonneOre": 8.0,
        "WaterWithdrawalCubicMetersPerTonneOre": 3.5,
        "TransportDistanceKilometersToConcentrator": 25.0,
        # Concentration
        "ConcentrationReagentsKilogramsPerTonneConcentrate": 25.0,
        "ConcentrationWaterCubicMetersPerTonneConcentrate": 8.0,
        "WaterRecycleRatePercent": 85.0,
        # Smelting
        "FuelSharePercent": 60.0,
        "FluxesKilogramsPerTonneMetal": 120.0,
        "EmissionControlEfficiencyPercent": 88.0,
        # Fabrication
        "FabricationElectricityRenewableSharePercent": 45.0,
        "AncillaryMaterialsKilogramsPerTonneProduct": 25.0,
        "FabricationWaterCubicMetersPerTonneProduct": 3.5,
        # Use phase
        "MaintenanceEnergyKilowattHoursPerYearPerFunctionalUnit": 150.0,
        "MaintenanceMaterialsKilogramsPerYearPerFunctionalUnit": 8.0,
        "ReusePotentialPercent": 75.0,
        # End of life
        "TransportDistanceKilometersToRecycler": 150.0,
        "DowncyclingFractionPercent": 15.0,
        "LandfillSharePercent": 8.0,
    },
    "Copper": {
        "ReagentsKilogramsPerTonneOre": 5.0,
        "WaterWithdrawalCubicMetersPerTonneOre": 2.8,
        "TransportDistanceKilometersToConcentrator": 15.0,
        "ConcentrationReagentsKilogramsPerTonneConcentrate": 15.0,
        "ConcentrationWaterCubicMetersPerTonneConcentrate": 6.0,
        "WaterRecycleRatePercent": 80.0,
        "FuelSharePercent": 45.0,
        "FluxesKilogramsPerTonneMetal": 80.0,
        "EmissionControlEfficiencyPercent": 85.0,
        "FabricationElectricityRenewableSharePercent": 35.0,
        "AncillaryMaterialsKilogramsPerTonneProduct": 20.0,
        "FabricationWaterCubicMetersPerTonneProduct": 2.8,
        "MaintenanceEnergyKilowattHoursPerYearPerFunctionalUnit": 120.0,
        "MaintenanceMaterialsKilogramsPerYearPerFunctionalUnit": 6.0,
        "ReusePotentialPercent": 65.0,
        "TransportDistanceKilometersToRecycler": 120.0,
        "DowncyclingFractionPercent": 20.0,
        "LandfillSharePercent": 12.0,
    },
    "CriticalMinerals": {
        "ReagentsKilogramsPerTonneOre": 12.0,
        "WaterWithdrawalCubicMetersPerTonneOre": 4.2,
        "TransportDistanceKilometersToConcentrator": 50.0,
        "ConcentrationReagentsKilogramsPerTonneConcentrate": 35.0,
        "ConcentrationWaterCubicMetersPerTonneConcentrate": 12.0,
        "WaterRecycleRatePercent": 75.0,
        "FuelSharePercent": 70.0,
        "FluxesKilogramsPerTonneMetal": 150.0,
        "EmissionControlEfficiencyPercent": 80.0,
        "FabricationElectricityRenewableSharePercent": 30.0,
        "AncillaryMaterialsKilogramsPerTonneProduct": 35.0,
        "FabricationWaterCubicMetersPerTonneProduct": 4.5,
        "MaintenanceEnergyKilowattHoursPerYearPerFunctionalUnit": 200.0,
        "MaintenanceMaterialsKilogramsPerYearPerFunctionalUnit": 12.0,
        "ReusePotentialPercent": 55.0,
        "TransportDistanceKilometersToRecycler": 250.0,
        "DowncyclingFractionPercent": 35.0,
        "LandfillSharePercent": 25.0,
    },
}

# Metal-agnostic defaults: the copper values plus industry-typical figures for the
# fields users are normally expected to measure themselves.
GENERIC_FALLBACK_VALUES: Dict[str, float] = dict(METAL_FALLBACK_VALUES["Copper"])
GENERIC_FALLBACK_VALUES.update({
    "OreGradePercent": 1.0,
    "DieselUseLitersPerTonneOre": 20.0,
    "ElectricityUseKilowattHoursPerTonneOre": 60.0,
    "RecoveryYieldPercent": 85.0,
    "GrindingEnergyKilowattHoursPerTonneConcentrate": 40.0,
    "TailingsVolumeTonnesPerTonneConcentrate": 1.0,
    "SmeltEnergyKilowattHoursPerTonneMetal": 1500.0,
    "SmeltRecoveryPercent": 95.0,
    "CokeUseKilogramsPerTonneMetal": 400.0,
    "FabricationEnergyKilowattHoursPerTonneProduct": 2500.0,
    "ScrapInputPercent": 30.0,
    "YieldLossPercent": 8.0,
    "ProductLifetimeYears": 15.0,
    "OperationalEnergyKilowattHoursPerYearPerFunctionalUnit": 500.0,
    "FailureRatePercent": 2.0,
    "CollectionRatePercent": 60.0,
    "RecyclingEfficiencyPercent": 75.0,
    "RecyclingEnergyKilowattHoursPerTonneRecycled": 1500.0,
})


def _canonical_metal(metal_type: Optional[str], known) -> Optional[str]:
    if not metal_type:
        return None
    key = metal_type.strip().lower()
    for name in known:
        if name.lower() == key:
            return name
    if key == "aluminum":  # alternate spelling
        return "Aluminium"
    return None


def get_fallback_value(field: str, metal_type: Optional[str] = None,
                       metal_values: Optional[Dict[str, Dict[str, float]]] = None,
                       generic_values: Optional[Dict[str, float]] = None) -> Optional[float]:
    """Metal-specific value first, then the metal-agnostic default, else None."""
    metal_values = METAL_FALLBACK_VALUES if metal_values is None else metal_values
    generic_values = GENERIC_FALLBACK_VALUES if generic_values is None else generic_values

    metal = _canonical_metal(metal_type, metal_values)
    if metal is not None and field in metal_values.get(metal, {}):
        return metal_values[metal][field]
    return generic_values.get(field)
