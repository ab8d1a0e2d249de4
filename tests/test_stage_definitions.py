# tests/test_stage_definitions.py
import pytest

from exceptions import InputValidationError, UnknownStageError
from fallback_values import GENERIC_FALLBACK_VALUES, get_fallback_value
from stage_definitions import (
    PIPELINE_ORDER, STAGE_DEFINITIONS, coerce_number, normalize_stage_name,
    stages_for_processing_mode, validate_user_inputs,
)

MINING = STAGE_DEFINITIONS["Mining"]


class TestStageNames:
    @pytest.mark.parametrize("alias,expected", [
        ("Mining", "Mining"),
        ("use phase", "UsePhase"),
        ("usePhase", "UsePhase"),
        ("End-of-Life", "EndOfLife"),
        ("endoflife", "EndOfLife"),
    ])
    def test_aliases(self, alias, expected):
        assert normalize_stage_name(alias) == expected

    @pytest.mark.parametrize("bad", ["", "Refining", None])
    def test_unknown(self, bad):
        with pytest.raises(UnknownStageError):
            normalize_stage_name(bad)

    def test_stage_counts(self):
        assert stages_for_processing_mode("Linear") == PIPELINE_ORDER[:5]
        assert stages_for_processing_mode("Circular") == PIPELINE_ORDER

    def test_field_names_globally_unique(self):
        names = [n for stage in STAGE_DEFINITIONS.values() for n in stage.field_names]
        assert len(names) == len(set(names))


class TestValidateUserInputs:
    def test_numeric_strings_accepted(self):
        clean, warnings = validate_user_inputs(MINING, {"OreGradePercent": "1.5",
                                                       "DieselUseLitersPerTonneOre": ""})
        assert clean == {"OreGradePercent": 1.5}
        assert warnings == []

    def test_bool_rejected(self):
        with pytest.raises(InputValidationError) as exc:
            validate_user_inputs(MINING, {"DieselUseLitersPerTonneOre": True})
        assert "DieselUseLitersPerTonneOre" in exc.value.errors

    def test_exclusive_minimum(self):
        with pytest.raises(InputValidationError):
            validate_user_inputs(MINING, {"OreGradePercent": 0})

    def test_upper_bound(self):
        with pytest.raises(InputValidationError):
            validate_user_inputs(MINING, {"TransportDistanceKilometersToConcentrator": 1500})

    def test_non_dict_payload(self):
        with pytest.raises(InputValidationError):
            validate_user_inputs(MINING, ["OreGradePercent"])

    def test_coerce_number(self):
        assert coerce_number("1,250") == 1250.0
        assert coerce_number(False) is None
        assert coerce_number({"value": 1}) is None


class TestFallbackValues:
    def test_every_field_has_a_generic_fallback(self):
        for stage in STAGE_DEFINITIONS.values():
            for field_spec in stage.fields:
                assert field_spec.name in GENERIC_FALLBACK_VALUES
                assert field_spec.valid_range.contains(GENERIC_FALLBACK_VALUES[field_spec.name])

    def test_metal_specific_first(self):
        assert get_fallback_value("LandfillSharePercent", "CriticalMinerals") == 25.0
        assert get_fallback_value("LandfillSharePercent", "copper") == 12.0

    def test_unknown_metal_uses_generic(self):
        assert get_fallback_value("OreGradePercent", "Zinc") == GENERIC_FALLBACK_VALUES["OreGradePercent"]

    def test_unknown_field(self):
        assert get_fallback_value("Nope", "Copper") is None
