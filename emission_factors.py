# emission_factors.py
# Default conversion factors and emission factors. Override per deployment with a CSV
# (columns: name, value) through EMISSION_FACTORS_CSV.
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional

import pandas as pd

from exceptions import ConfigurationError

# carbon footprint factors (kg CO2e per unit)
DIESEL_CO2E_KG_PER_L = 2.68
GRID_CO2E_KG_PER_KWH = 0.82      # India grid
REAGENT_CO2E_KG_PER_KG = 1.2
TRANSPORT_CO2E_KG_PER_TKM = 0.062
COKE_CO2E_KG_PER_KG = 3.2

# energy content (MJ per unit)
KWH_TO_MJ = 3.6
L_DIESEL_MJ = 38.6
KG_COKE_MJ = 28.2

# air pollutants (kg per unit)
DIESEL_SO2_KG_PER_L = 0.0054
ELECTRICITY_SO2_KG_PER_KWH = 0.0012
REAGENT_SO2_KG_PER_KG = 0.008
TRANSPORT_SO2_KG_PER_TKM = 0.00015

DIESEL_NOX_KG_PER_L = 0.0312
ELECTRICITY_NOX_KG_PER_KWH = 0.0008
REAGENT_NOX_KG_PER_KG = 0.005
TRANSPORT_NOX_KG_PER_TKM = 0.00089

DIESEL_PM_KG_PER_L = 0.0024
ELECTRICITY_PM_KG_PER_KWH = 0.0003
REAGENT_PM_KG_PER_KG = 0.002
TRANSPORT_PM_KG_PER_TKM = 0.00012


DEFAULT_EMISSION_FACTORS: Dict[str, float] = {
    "diesel_co2e_kg_per_l": DIESEL_CO2E_KG_PER_L,
    "electricity_co2e_kg_per_kwh": GRID_CO2E_KG_PER_KWH,
    "reagent_co2e_kg_per_kg": REAGENT_CO2E_KG_PER_KG,
    "transport_co2e_kg_per_tkm": TRANSPORT_CO2E_KG_PER_TKM,
    "coke_co2e_kg_per_kg": COKE_CO2E_KG_PER_KG,
    "electricity_energy_mj_per_kwh": KWH_TO_MJ,
    "diesel_energy_mj_per_l": L_DIESEL_MJ,
    "coke_energy_mj_per_kg": KG_COKE_MJ,
    "diesel_so2_kg_per_l": DIESEL_SO2_KG_PER_L,
    "electricity_so2_kg_per_kwh": ELECTRICITY_SO2_KG_PER_KWH,
    "reagent_so2_kg_per_kg": REAGENT_SO2_KG_PER_KG,
    "transport_so2_kg_per_tkm": TRANSPORT_SO2_KG_PER_TKM,
    "diesel_nox_kg_per_l": DIESEL_NOX_KG_PER_L,
    "electricity_nox_kg_per_kwh": ELECTRICITY_NOX_KG_PER_KWH,
    "reagent_nox_kg_per_kg": REAGENT_NOX_KG_PER_KG,
    "transport_nox_kg_per_tkm": TRANSPORT_NOX_KG_PER_TKM,
    "diesel_pm_kg_per_l": DIESEL_PM_KG_PER_L,
    "electricity_pm_kg_per_kwh": ELECTRICITY_PM_KG_PER_KWH,
    "reagent_pm_kg_per_kg": REAGENT_PM_KG_PER_KG,
    "transport_pm_kg_per_tkm": TRANSPORT_PM_KG_PER_TKM,
}


class EmissionFactorTable:
    """Read-only name -> factor mapping handed to the stage calculators."""

    def __init__(self, factors: Optional[Mapping[str, float]] = None):
        source = DEFAULT_EMISSION_FACTORS if factors is None else factors
        self._factors = MappingProxyType(
            {str(k): float(v) for k, v in source.items()})

    def __getitem__(self, name: str) -> float:
        try:
            return self._factors[name]
        except KeyError:
            raise ConfigurationError(
                f"Emission factor '{name}' is not configured", missing=[name]) from None

    def __contains__(self, name: object) -> bool:
        return name in self._factors

    def __len__(self) -> int:
        return len(self._factors)

    def as_dict(self) -> Dict[str, float]:
        return dict(self._factors)

    def require(self, names: Iterable[str]) -> None:
        """Raise ConfigurationError listing every factor the table lacks."""
        missing = sorted({n for n in names if n not in self._factors})
        if missing:
            raise ConfigurationError(
                "Emission factor table is missing: " + ", ".join(missing),
                missing=missing)

    def with_overrides(self, overrides: Mapping[str, float]) -> "EmissionFactorTable":
        merged = self.as_dict()
        merged.update({k: float(v) for k, v in overrides.items()})
        return EmissionFactorTable(merged)


def load_emission_factors_csv(csv_path: str,
                              base: Optional[EmissionFactorTable] = None) -> EmissionFactorTable:
    """
    Load factor overrides from a CSV with columns: name, value.
    Rows override the compiled-in defaults (or `base`), they never remove entries.
    """
    df = pd.read_csv(csv_path)
    required = {"name", "value"}
    missing_cols = required - set(df.columns)
    if missing_cols:
        raise ConfigurationError(
            f"Missing required columns in {csv_path}: {sorted(missing_cols)}")

    values = pd.to_numeric(df["value"], errors="coerce")
    bad = df.loc[values.isna(), "name"].astype(str).tolist()
    if bad:
        raise ConfigurationError(
            f"Non-numeric emission factors in {csv_path}: {', '.join(bad)}",
            missing=bad)

    overrides = dict(zip(df["name"].astype(str).str.strip(), values.astype(float)))
    return (base or EmissionFactorTable()).with_overrides(overrides)
