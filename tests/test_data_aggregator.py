# tests/test_data_aggregator.py
import pytest

from data_aggregator import aggregate_stage_data, find_output_key
from models import ComputationMetadata, StageRecord
from stores import StageRecordStore


def _record(project_id, stage_name, outputs, inputs=None):
    return StageRecord(
        project_identifier=project_id,
        stage_name=stage_name,
        inputs=inputs or {"A": 1.0},
        field_sources={},
        field_confidences={},
        outputs=outputs,
        computation_metadata=ComputationMetadata(functional_unit_used=1.0),
    )


class TestFindOutputKey:
    def test_first_match_case_insensitive(self):
        keys = ["WaterFootprint", "carbonFootprintA", "CarbonFootprintB"]
        assert find_output_key(keys, "carbon") == "carbonFootprintA"

    def test_no_match(self):
        assert find_output_key(["Water"], "energy") is None


class TestAggregateStageData:
    def test_empty_project_linear(self):
        result = aggregate_stage_data("p1", 5, StageRecordStore())
        assert result.carbon_footprint == 0.0
        assert result.energy_footprint == 0.0
        assert result.stages == {}
        assert result.warnings == [
            "Data for stage 'Mining' is missing.",
            "Data for stage 'Concentration' is missing.",
            "Data for stage 'Smelting' is missing.",
            "Data for stage 'Fabrication' is missing.",
            "Data for stage 'UsePhase' is missing.",
        ]

    def test_empty_project_circular(self):
        result = aggregate_stage_data("p1", 6, StageRecordStore())
        assert len(result.warnings) == 6
        assert result.warnings[-1] == "Data for stage 'EndOfLife' is missing."

    def test_sums_in_pipeline_order(self):
        store = StageRecordStore()
        store.put(_record("p1", "Smelting", {"CarbonX": 10.0, "EnergyX": 100.0}))
        store.put(_record("p1", "Mining", {"CarbonY": 1.5, "EnergyY": 20.0}))
        store.put(_record("p2", "Concentration", {"CarbonZ": 99.0, "EnergyZ": 99.0}))
        result = aggregate_stage_data("p1", 5, store)
        assert result.carbon_footprint == pytest.approx(11.5)
        assert result.energy_footprint == pytest.approx(120.0)
        assert list(result.stages) == ["Mining", "Smelting"]
        assert len(result.warnings) == 3

    def test_record_without_outputs(self):
        store = StageRecordStore()
        store.put(_record("p1", "Mining", {}, inputs={"OreGradePercent": 1.2}))
        result = aggregate_stage_data("p1", 1, store)
        assert result.warnings == ["Outputs for stage 'Mining' are incomplete."]
        assert result.stages["Mining"].inputs == {"OreGradePercent": 1.2}
        assert result.stages["Mining"].outputs == {}

    def test_end_of_life_ignored_for_linear(self):
        store = StageRecordStore()
        store.put(_record("p1", "EndOfLife", {"Carbon": 5.0, "Energy": 5.0}))
        assert aggregate_stage_data("p1", 5, store).carbon_footprint == 0.0
        assert aggregate_stage_data("p1", 6, store).carbon_footprint == 5.0
