"""Single-row and batch predictions against a trained experiment."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, ClassVar

import pandas as pd

from mlwizard.core.client import WizardClient
from mlwizard.error_handling import ApiError
from mlwizard.utils.validation import ValidationError, validate_file_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PredictionSchema:
    """Input columns a trained model expects."""

    experiment_id: str
    columns: tuple[str, ...]
    target: str | None = None
    example: dict[str, Any] = field(default_factory=dict)

    @property
    def input_columns(self) -> list[str]:
        return [c for c in self.columns if c != self.target]


@dataclass(frozen=True)
class EvaluationPrediction:
    """Batch prediction on a file that carried the target column."""

    mode: ClassVar[str] = "evaluation"

    metrics: dict[str, Any] = field(default_factory=dict)
    y_true: tuple[Any, ...] = ()
    y_pred: tuple[Any, ...] = ()
    confusion_matrix: tuple[tuple[int, ...], ...] | None = None
    target_column: str | None = None
    task_type: str | None = None
    preview: tuple[dict[str, Any], ...] = ()

    @property
    def accuracy(self) -> float | None:
        if not self.y_true or len(self.y_true) != len(self.y_pred):
            return None
        matches = sum(1 for t, p in zip(self.y_true, self.y_pred) if t == p)
        return matches / len(self.y_true)


@dataclass(frozen=True)
class BatchPrediction:
    """Batch prediction on a file without the target column."""

    mode: ClassVar[str] = "prediction_only"

    preview: tuple[dict[str, Any], ...] = ()
    predictions: tuple[Any, ...] = ()
    target_column: str | None = None
    task_type: str | None = None


CsvPrediction = EvaluationPrediction | BatchPrediction


def coerce_input_value(value: Any) -> Any:
    """Convert numeric-looking strings to int or float, leaving others as-is."""
    if not isinstance(value, str):
        return value
    text = value.strip()
    if not text:
        return value
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        return value


def parse_assignments(pairs: list[str]) -> dict[str, Any]:
    """Parse ``column=value`` command-line pairs into input values."""
    values: dict[str, Any] = {}
    for pair in pairs:
        column, sep, value = pair.partition("=")
        if not sep or not column.strip():
            raise ValidationError(f"Expected COLUMN=VALUE, got '{pair}'")
        values[column.strip()] = value
    return values


async def prediction_schema(client: WizardClient, experiment_id: str) -> PredictionSchema:
    payload = await client.prediction_schema(experiment_id)
    columns = payload.get("columns") or []
    if not columns:
        raise ApiError(f"No prediction schema available for experiment {experiment_id}")
    return PredictionSchema(
        experiment_id=experiment_id,
        columns=tuple(columns),
        target=payload.get("target") or None,
        example=dict(payload.get("example") or {}),
    )


async def predict_manual(
    client: WizardClient,
    experiment_id: str,
    inputs: dict[str, Any],
    schema: PredictionSchema | None = None,
) -> Any:
    """Predict one row; returns the model's prediction value.

    When a schema is given, inputs are checked against its feature columns.
    """
    if not inputs:
        raise ValidationError("Provide at least one input value")
    if schema is not None:
        missing = [c for c in schema.input_columns if c not in inputs]
        if missing:
            raise ValidationError(f"Missing input values for: {', '.join(missing)}")
        unknown = [c for c in inputs if c not in schema.columns]
        if unknown:
            raise ValidationError(f"Unknown input columns: {', '.join(unknown)}")

    values = {column: coerce_input_value(value) for column, value in inputs.items()}
    payload = await client.predict_manual(experiment_id, values)
    if isinstance(payload, dict):
        return payload.get("prediction")
    return payload


def classify_prediction(payload: dict[str, Any]) -> CsvPrediction:
    """Pick the batch prediction kind from the response ``mode``."""
    preview = tuple(
        row
        for row in payload.get("filled_dataset_preview") or []
        if isinstance(row, dict)
    )
    target_column = payload.get("target_column")
    task_type = payload.get("task_type")

    if payload.get("mode") == EvaluationPrediction.mode or (
        payload.get("mode") is None and payload.get("metrics")
    ):
        matrix = payload.get("confusion_matrix")
        return EvaluationPrediction(
            metrics=dict(payload.get("metrics") or {}),
            y_true=tuple(payload.get("y_true") or ()),
            y_pred=tuple(payload.get("y_pred") or ()),
            confusion_matrix=tuple(tuple(row) for row in matrix) if matrix else None,
            target_column=target_column,
            task_type=task_type,
            preview=preview,
        )

    predictions = payload.get("predictions")
    if predictions is None and target_column:
        predictions = [row.get(target_column) for row in preview]
    return BatchPrediction(
        preview=preview,
        predictions=tuple(predictions or ()),
        target_column=target_column,
        task_type=task_type,
    )


async def predict_csv(
    client: WizardClient, experiment_id: str, path: str | Path
) -> CsvPrediction:
    file_path = validate_file_path(str(path), must_exist=True)
    if file_path.suffix.lower() != ".csv":
        raise ValidationError(f"Expected a .csv file, got {file_path.name}")
    payload = await client.predict_csv(experiment_id, file_path)
    result = classify_prediction(payload)
    logger.info(f"Batch prediction for {experiment_id} finished in {result.mode} mode")
    return result


def save_predictions(result: CsvPrediction, path: str | Path) -> Path:
    """Write predictions to CSV and return the written path."""
    output = Path(path).expanduser()
    if result.preview:
        frame = pd.DataFrame(list(result.preview))
        if "class_probabilities" in frame.columns:
            frame = frame.drop(columns=["class_probabilities"])
    elif isinstance(result, EvaluationPrediction):
        frame = pd.DataFrame({"y_true": list(result.y_true), "y_pred": list(result.y_pred)})
    else:
        frame = pd.DataFrame({"prediction": list(result.predictions)})

    if frame.empty:
        raise ValidationError("There are no predictions to save")

    output.parent.mkdir(parents=True, exist_ok=True)
    frame.to_csv(output, index=False)
    logger.info(f"Saved {len(frame)} predictions to {output}")
    return output
