"""Side-by-side metric comparison of finished experiments."""

import logging
from dataclasses import dataclass, field
from typing import Any

from mlwizard.core.client import WizardClient
from mlwizard.utils.validation import ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExperimentComparison:
    """Experiments and their scalar metrics, one row per experiment."""

    experiments: tuple[dict[str, Any], ...] = ()
    metrics: dict[str, dict[str, Any]] = field(default_factory=dict)
    task_type: str | None = None

    @property
    def metric_names(self) -> list[str]:
        names: dict[str, None] = {}
        for values in self.metrics.values():
            names.update(dict.fromkeys(values))
        return list(names)

    def rows(self) -> list[dict[str, Any]]:
        rows = []
        for experiment in self.experiments:
            experiment_id = str(experiment.get("experiment_id", ""))
            row = {
                "experiment_id": experiment_id,
                "name": experiment.get("experiment_name"),
                "model": experiment.get("algorithm") or experiment.get("automl_engine"),
            }
            scores = self.metrics.get(experiment_id, {})
            for name in self.metric_names:
                row[name] = scores.get(name)
            rows.append(row)
        return rows


def _scalar(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _metrics_by_experiment(raw: Any) -> dict[str, dict[str, Any]]:
    # Either {experiment_id: {metric: value}} or [{"experiment_id": ..., metric: value}]
    if isinstance(raw, dict):
        items = raw.items()
    elif isinstance(raw, list):
        items = (
            (row.get("experiment_id"), row) for row in raw if isinstance(row, dict)
        )
    else:
        return {}
    return {
        str(experiment_id): {k: v for k, v in values.items() if _scalar(v)}
        for experiment_id, values in items
        if experiment_id and isinstance(values, dict)
    }


def parse_comparison(payload: dict[str, Any]) -> ExperimentComparison:
    experiments = tuple(
        e for e in payload.get("experiments") or [] if isinstance(e, dict)
    )
    metrics = _metrics_by_experiment(payload.get("metrics_comparison"))
    if not experiments:
        experiments = tuple({"experiment_id": key} for key in metrics)
    return ExperimentComparison(experiments, metrics, payload.get("task_type"))


async def compare_experiments(
    client: WizardClient, experiment_ids: list[str], task_type: str | None = None
) -> ExperimentComparison:
    """Compare two or more experiments of the same task type.

    Raises:
        ValidationError: If fewer than two distinct experiments are given
    """
    ids = list(dict.fromkeys(i for i in experiment_ids if i))
    if len(ids) < 2:
        raise ValidationError("Select at least two experiments to compare")
    payload = await client.compare_experiments(ids, task_type)
    comparison = parse_comparison(payload)
    logger.info(f"Compared {len(ids)} experiments")
    return comparison
