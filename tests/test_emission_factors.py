# tests/test_emission_factors.py
import pytest

from emission_factors import DEFAULT_EMISSION_FACTORS, EmissionFactorTable, load_emission_factors_csv
from exceptions import ConfigurationError


class TestEmissionFactorTable:
    def test_defaults(self):
        table = EmissionFactorTable()
        assert table["electricity_co2e_kg_per_kwh"] == 0.82
        assert len(table) == len(DEFAULT_EMISSION_FACTORS)

    def test_missing_factor_is_configuration_error(self):
        table = EmissionFactorTable({})
        with pytest.raises(ConfigurationError) as exc:
            table["diesel_co2e_kg_per_l"]
        assert exc.value.missing == ["diesel_co2e_kg_per_l"]

    def test_require_lists_every_missing_factor(self):
        table = EmissionFactorTable({"a": 1.0})
        with pytest.raises(ConfigurationError) as exc:
            table.require(["a", "c", "b"])
        assert exc.value.missing == ["b", "c"]

    def test_overrides_do_not_mutate_original(self):
        table = EmissionFactorTable()
        updated = table.with_overrides({"electricity_co2e_kg_per_kwh": 0.4})
        assert updated["electricity_co2e_kg_per_kwh"] == 0.4
        assert table["electricity_co2e_kg_per_kwh"] == 0.82

    def test_immutable(self):
        table = EmissionFactorTable()
        with pytest.raises(TypeError):
            table._factors["diesel_co2e_kg_per_l"] = 0.0


class TestLoadEmissionFactorsCsv:
    def test_overrides_defaults(self, tmp_path):
        path = tmp_path / "factors.csv"
        path.write_text("name,value\nelectricity_co2e_kg_per_kwh,0.25\n")
        table = load_emission_factors_csv(str(path))
        assert table["electricity_co2e_kg_per_kwh"] == 0.25
        assert table["diesel_co2e_kg_per_l"] == 2.68

    def test_non_numeric_value(self, tmp_path):
        path = tmp_path / "factors.csv"
        path.write_text("name,value\nelectricity_co2e_kg_per_kwh,lots\n")
        with pytest.raises(ConfigurationError, match="electricity_co2e_kg_per_kwh"):
            load_emission_factors_csv(str(path))

    def test_missing_columns(self, tmp_path):
        path = tmp_path / "factors.csv"
        path.write_text("factor,amount\nx,1\n")
        with pytest.raises(ConfigurationError, match="Missing required columns"):
            load_emission_factors_csv(str(path))
