"""Experiment results as a tagged union decided once at the API boundary."""

from dataclasses import dataclass, field
from typing import Any, ClassVar

from mlwizard.jobs.models import ExperimentFile, ExperimentStatus


@dataclass(frozen=True)
class BaseResult:
    """Fields shared by every experiment result kind."""

    kind: ClassVar[str] = "base"

    experiment_id: str
    status: ExperimentStatus | None = None
    experiment_name: str | None = None
    task_type: str | None = None
    target_column: str | None = None
    metrics: dict[str, Any] = field(default_factory=dict)
    files: tuple[ExperimentFile, ...] = ()
    class_labels: tuple[str, ...] = ()
    created_at: str | None = None
    completed_at: str | None = None
    training_time_sec: float | None = None
    model_display_name: str | None = None
    error_message: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def is_complete(self) -> bool:
        return self.status is not None and self.status.is_success

    @property
    def display_name(self) -> str:
        return self.model_display_name or self.experiment_name or self.experiment_id

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.raw)
        data["kind"] = self.kind
        return data


@dataclass(frozen=True)
class AutoMLResult(BaseResult):
    """Result of an AutoML run on an engine without a dedicated view."""

    kind: ClassVar[str] = "automl"

    automl_engine: str | None = None
    leaderboard: tuple[dict[str, Any], ...] = ()
    best_model: str | None = None


@dataclass(frozen=True)
class MljarResult(AutoMLResult):
    kind: ClassVar[str] = "mljar"


@dataclass(frozen=True)
class H2OResult(AutoMLResult):
    kind: ClassVar[str] = "h2o"


@dataclass(frozen=True)
class CustomResult(BaseResult):
    """Result of a single-algorithm training run."""

    kind: ClassVar[str] = "custom"

    algorithm: str | None = None
    hyperparameters: dict[str, Any] = field(default_factory=dict)


ExperimentResult = MljarResult | H2OResult | AutoMLResult | CustomResult


def _seconds(value: Any) -> float | None:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _common_fields(payload: dict[str, Any]) -> dict[str, Any]:
    return {
        "experiment_id": str(payload.get("experiment_id") or ""),
        "status": ExperimentStatus.parse(payload.get("status")),
        "experiment_name": payload.get("experiment_name"),
        "task_type": payload.get("task_type"),
        "target_column": payload.get("target_column"),
        "metrics": dict(payload.get("metrics") or {}),
        "files": tuple(
            ExperimentFile.from_dict(f)
            for f in payload.get("files") or []
            if isinstance(f, dict)
        ),
        "class_labels": tuple(str(label) for label in payload.get("class_labels") or []),
        "created_at": payload.get("created_at"),
        "completed_at": payload.get("completed_at"),
        "training_time_sec": _seconds(payload.get("training_time_sec")),
        "model_display_name": payload.get("model_display_name"),
        "error_message": payload.get("error_message"),
        "raw": payload,
    }


def _leaderboard(payload: dict[str, Any]) -> tuple[dict[str, Any], ...]:
    board = payload.get("leaderboard")
    if isinstance(board, list):
        return tuple(row for row in board if isinstance(row, dict))
    # Column-oriented frames: {"model": [...], "metric": [...]}
    if isinstance(board, dict) and board and all(
        isinstance(v, list) for v in board.values()
    ):
        keys = list(board)
        return tuple(dict(zip(keys, row)) for row in zip(*board.values()))
    return ()


def classify_results(payload: dict[str, Any]) -> ExperimentResult:
    """Pick the result kind from the ``automl_engine`` tag.

    ``automl_engine`` wins when present: ``mljar`` and ``h2o`` have their own
    kinds and any other engine is generic AutoML. Everything else, including
    payloads with neither tag, is a custom result.
    """
    common = _common_fields(payload)
    engine = payload.get("automl_engine")

    if engine:
        automl = {
            **common,
            "automl_engine": str(engine),
            "leaderboard": _leaderboard(payload),
            "best_model": payload.get("best_model") or payload.get("model_display_name"),
        }
        engine_key = str(engine).lower()
        if engine_key == "mljar":
            return MljarResult(**automl)
        if engine_key == "h2o":
            return H2OResult(**automl)
        return AutoMLResult(**automl)

    return CustomResult(
        **common,
        algorithm=payload.get("algorithm") or payload.get("algorithm_choice"),
        hyperparameters=dict(payload.get("hyperparameters") or {}),
    )
