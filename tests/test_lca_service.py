# tests/test_lca_service.py
"""Tests for lca_service.py: project lifecycle, stage submission and aggregation."""
import pytest

from conftest import StubPredictionService
from emission_factors import EmissionFactorTable
from exceptions import (
    ConfigurationError, InputValidationError, ProjectNotFoundError,
    StageRecordNotFoundError, UnknownStageError,
)
from lca_service import LCAService, build_service
from stage_definitions import STAGE_DEFINITIONS
from thresholds import Polarity, Severity, Threshold, ThresholdTable

MINING_INPUTS = {
    "OreGradePercent": 1.5,
    "ElectricityUseKilowattHoursPerTonneOre": 250,
}


class TestProjects:
    def test_create_and_get(self, service):
        project = service.create_project("Line A", "Aluminium", "Circular", 2.5)
        loaded = service.get_project(project.project_identifier)
        assert loaded == project
        assert loaded.functional_unit_mass_tonnes == 2.5

    def test_unknown_project(self, service):
        with pytest.raises(ProjectNotFoundError):
            service.get_project("nope")
        with pytest.raises(ProjectNotFoundError):
            service.compute_stage("Mining", "nope", {})

    def test_delete_cascades(self, service, project):
        pid = project.project_identifier
        service.compute_stage("Mining", pid, MINING_INPUTS)
        service.create_scenario(pid, "Mining", "what if", {})
        service.delete_project(pid)

        with pytest.raises(ProjectNotFoundError):
            service.get_project(pid)
        assert service.stage_records.get(pid, "Mining") is None
        assert service.scenarios.store.list(pid) == []


class TestComputeStage:
    def test_record_contents(self, service, project):
        record = service.compute_stage("Mining", project.project_identifier, MINING_INPUTS)

        assert record.stage_name == "Mining"
        assert list(record.inputs) == STAGE_DEFINITIONS["Mining"].field_names
        assert record.field_sources["OreGradePercent"] == "user"
        assert record.field_confidences["OreGradePercent"] == 100.0
        assert record.field_sources["DieselUseLitersPerTonneOre"] == "fallback"
        assert record.classification["OreGradePercent"].value == "Medium"
        assert record.classification["ElectricityUseKilowattHoursPerTonneOre"].value == "Very High"
        assert record.computation_metadata.functional_unit_used == 1.0
        assert "OreGradeFraction" in record.computation_metadata.derived_helper_variables
        assert record.warnings

    def test_stage_name_aliases(self, service, project):
        record = service.compute_stage("use phase", project.project_identifier, {})
        assert record.stage_name == "UsePhase"
        assert service.get_stage("usePhase", project.project_identifier) == record

    def test_unknown_stage(self, service, project):
        with pytest.raises(UnknownStageError):
            service.compute_stage("Refining", project.project_identifier, {})

    def test_validation_error_stores_nothing(self, service, project):
        pid = project.project_identifier
        with pytest.raises(InputValidationError) as exc:
            service.compute_stage("Mining", pid, {"OreGradePercent": "rich",
                                                  "DieselUseLitersPerTonneOre": -1})
        assert set(exc.value.errors) == {"OreGradePercent", "DieselUseLitersPerTonneOre"}
        with pytest.raises(StageRecordNotFoundError):
            service.get_stage("Mining", pid)

    def test_validation_happens_before_prediction(self, settings):
        stub = StubPredictionService({})
        svc = LCAService(settings=settings, prediction_service=stub)
        project = svc.create_project("p")
        with pytest.raises(InputValidationError):
            svc.compute_stage("Mining", project.project_identifier, {"OreGradePercent": 150})
        assert stub.calls == []

    def test_unknown_keys_warned(self, service, project):
        record = service.compute_stage("Mining", project.project_identifier,
                                       {"Colour": "blue"})
        assert any("Colour" in w for w in record.warnings)
        assert "Colour" not in record.inputs

    def test_idempotent_with_deterministic_predictions(self, settings):
        values = {name: 5.0 for name in STAGE_DEFINITIONS["Concentration"].field_names}
        svc = LCAService(settings=settings, prediction_service=StubPredictionService(values))
        pid = svc.create_project("p").project_identifier
        first = svc.compute_stage("Concentration", pid, {"RecoveryYieldPercent": 88})
        second = svc.compute_stage("Concentration", pid, {"RecoveryYieldPercent": 88})
        assert first.outputs == second.outputs
        assert first.inputs == second.inputs
        assert first.field_sources == second.field_sources
        assert second.field_sources["GrindingEnergyKilowattHoursPerTonneConcentrate"] == "ai-predicted"

    def test_resubmission_replaces_record(self, service, project):
        pid = project.project_identifier
        service.compute_stage("Mining", pid, {"DieselUseLitersPerTonneOre": 10})
        service.compute_stage("Mining", pid, {"DieselUseLitersPerTonneOre": 30})
        record = service.get_stage("Mining", pid)
        assert record.inputs["DieselUseLitersPerTonneOre"] == 30.0

    def test_stored_record_is_a_copy(self, service, project):
        pid = project.project_identifier
        record = service.compute_stage("Mining", pid, {})
        record.outputs.clear()
        assert service.get_stage("Mining", pid).outputs


class TestAggregate:
    def test_empty_project(self, service, project):
        result = service.aggregate(project.project_identifier)
        assert result.carbon_footprint == 0.0
        assert len(result.warnings) == 5

    def test_circular_project_expects_six_stages(self, service):
        project = service.create_project("loop", "Copper", "Circular", 1.0)
        assert len(service.aggregate(project.project_identifier).warnings) == 6

    def test_totals_match_records(self, service, project):
        pid = project.project_identifier
        mining = service.compute_stage("Mining", pid, {})
        smelting = service.compute_stage("Smelting", pid, {})
        result = service.aggregate(pid)
        assert result.carbon_footprint == pytest.approx(
            list(mining.outputs.values())[0] + list(smelting.outputs.values())[0])
        assert result.energy_footprint == pytest.approx(
            list(mining.outputs.values())[1] + list(smelting.outputs.values())[1])
        assert len(result.warnings) == 3


class TestClassification:
    def test_outputs_classified_with_custom_table(self, settings, failing_service):
        water_key = "WaterFootprintCubicMetersPerFunctionalUnitForMining"
        table = ThresholdTable({
            "OreGradePercent": Threshold(2.0, 1.0, 0.5, Polarity.INVERSE),
            water_key: Threshold(1.0, 2.0, 3.0),
        })
        svc = LCAService(settings=settings, prediction_service=failing_service,
                         thresholds=table)
        pid = svc.create_project("p").project_identifier
        record = svc.compute_stage("Mining", pid, {"OreGradePercent": 1.5,
                                                   "WaterWithdrawalCubicMetersPerTonneOre": 2.5})

        assert record.outputs[water_key] == 2.5
        assert record.classification[water_key] is Severity.HIGH
        assert record.classification["OreGradePercent"] is Severity.MEDIUM

    def test_scenario_outputs_classified(self, service, project):
        scenario = service.create_scenario(project.project_identifier, "Smelting", "s", {})
        assert set(scenario.outputs) <= set(scenario.classification)


class TestStartup:
    def test_missing_factor_fails_at_startup(self, settings, failing_service):
        with pytest.raises(ConfigurationError) as exc:
            LCAService(settings=settings, prediction_service=failing_service,
                       factors=EmissionFactorTable({"diesel_co2e_kg_per_l": 2.68}))
        assert "electricity_co2e_kg_per_kwh" in exc.value.missing

    def test_build_service_loads_csv_overrides(self, settings, tmp_path):
        path = tmp_path / "factors.csv"
        path.write_text("name,value\nelectricity_co2e_kg_per_kwh,0.1\n")
        svc = build_service(settings.model_copy(update={
            "emission_factors_csv": str(path), "prediction_backend": "none"}))
        assert svc.factors["electricity_co2e_kg_per_kwh"] == 0.1
