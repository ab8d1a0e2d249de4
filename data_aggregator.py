# data_aggregator.py
import logging
from typing import Iterable, Optional

from models import AggregateResult, StageSnapshot
from stage_definitions import PIPELINE_ORDER

logger = logging.getLogger(__name__)


def find_output_key(output_keys: Iterable[str], keyword: str) -> Optional[str]:
    """First key containing `keyword`, case-insensitive, in the record's output order."""
    keyword = keyword.lower()
    for key in output_keys:
        if keyword in key.lower():
            return key
    return None


def _as_number(value) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if value != value:
        return None
    return float(value)


def aggregate_stage_data(project_id: str, number_of_stages: int, record_store) -> AggregateResult:
    """
    Sum carbon and energy footprints over the first `number_of_stages` pipeline stages.
    Missing records and records without outputs become warnings, never errors.
    """
    result = AggregateResult()

    for stage_name in PIPELINE_ORDER[:number_of_stages]:
        record = record_store.get(project_id, stage_name)
        if record is None:
            result.warnings.append(f"Data for stage '{stage_name}' is missing.")
            continue

        if not record.outputs:
            result.stages[stage_name] = StageSnapshot(inputs=dict(record.inputs))
            result.warnings.append(f"Outputs for stage '{stage_name}' are incomplete.")
            continue

        result.stages[stage_name] = StageSnapshot(
            inputs=dict(record.inputs), outputs=dict(record.outputs))

        carbon_key = find_output_key(record.outputs, "carbon")
        energy_key = find_output_key(record.outputs, "energy")
        carbon = _as_number(record.outputs.get(carbon_key)) if carbon_key else None
        energy = _as_number(record.outputs.get(energy_key)) if energy_key else None
        if carbon is not None:
            result.carbon_footprint += carbon
        if energy is not None:
            result.energy_footprint += energy

    logger.info("Aggregated %d of %d stages for project %s (carbon=%.3f, energy=%.3f)",
                len(result.stages), number_of_stages, project_id,
                result.carbon_footprint, result.energy_footprint)
    return result
