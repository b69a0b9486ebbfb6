"""Dataset session data models and types."""

from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any


class TaskType(Enum):
    """Learning task inferred for a target column."""

    BINARY_CLASSIFICATION = "binary_classification"
    MULTICLASS_CLASSIFICATION = "multiclass_classification"
    REGRESSION = "regression"

    @property
    def is_classification(self) -> bool:
        return self is not TaskType.REGRESSION

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()


class ProcessingStage(Enum):
    """Position of a dataset in the cleaning pipeline.

    Values are the service's wire names; the service calls the
    features-selected stage ``final``.
    """

    RAW = "raw"
    CLEANED = "cleaned"
    FEATURES_SELECTED = "final"
    PROCESSED = "processed"

    @property
    def rank(self) -> int:
        return _STAGE_ORDER.index(self)

    def __ge__(self, other: "ProcessingStage") -> bool:
        if not isinstance(other, ProcessingStage):
            return NotImplemented
        return self.rank >= other.rank

    def __gt__(self, other: "ProcessingStage") -> bool:
        if not isinstance(other, ProcessingStage):
            return NotImplemented
        return self.rank > other.rank

    def __le__(self, other: "ProcessingStage") -> bool:
        if not isinstance(other, ProcessingStage):
            return NotImplemented
        return self.rank <= other.rank

    def __lt__(self, other: "ProcessingStage") -> bool:
        if not isinstance(other, ProcessingStage):
            return NotImplemented
        return self.rank < other.rank


_STAGE_ORDER = [
    ProcessingStage.RAW,
    ProcessingStage.CLEANED,
    ProcessingStage.FEATURES_SELECTED,
    ProcessingStage.PROCESSED,
]


@dataclass(frozen=True)
class DatasetOverview:
    """Summary statistics the service computes on upload."""

    num_rows: int = 0
    num_columns: int = 0
    total_missing_values: int = 0
    missing_values_count: dict[str, int] = field(default_factory=dict)
    column_names: list[str] = field(default_factory=list)
    numerical_features: list[str] = field(default_factory=list)
    categorical_features: list[str] = field(default_factory=list)
    data_types: dict[str, str] = field(default_factory=dict)

    @property
    def has_missing_values(self) -> bool:
        return self.total_missing_values > 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DatasetOverview":
        missing_count = data.get("missing_values_count") or {}
        if not missing_count and isinstance(data.get("missing_values"), dict):
            missing_count = {
                column: value
                for column, value in data["missing_values"].items()
                if isinstance(value, int)
            }
        total = data.get("total_missing_values")
        if total is None:
            total = sum(missing_count.values())
        return cls(
            num_rows=int(data.get("num_rows") or 0),
            num_columns=int(data.get("num_columns") or 0),
            total_missing_values=int(total or 0),
            missing_values_count=dict(missing_count),
            column_names=list(data.get("column_names") or []),
            numerical_features=list(data.get("numerical_features") or []),
            categorical_features=list(data.get("categorical_features") or []),
            data_types=dict(data.get("data_types") or {}),
        )


@dataclass(frozen=True)
class ClassImbalanceReport:
    """Class distribution analysis for a dataset and target pair."""

    target_column: str
    is_imbalanced: bool = False
    needs_balancing: bool = False
    severity: str | None = None
    recommendation: str | None = None
    imbalance_ratio: float | None = None
    class_distribution: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_dict(
        cls, data: dict[str, Any], target_column: str | None = None
    ) -> "ClassImbalanceReport":
        distribution = data.get("class_distribution") or {}
        ratio = data.get("imbalance_ratio")
        return cls(
            target_column=data.get("target_column") or target_column or "",
            is_imbalanced=bool(data.get("is_imbalanced", False)),
            needs_balancing=bool(data.get("needs_balancing", False)),
            severity=data.get("severity"),
            recommendation=data.get("recommendation"),
            imbalance_ratio=float(ratio) if ratio is not None else None,
            class_distribution={str(k): int(v) for k, v in distribution.items()},
        )


@dataclass(frozen=True)
class FeatureImportance:
    feature: str
    importance: float


@dataclass(frozen=True)
class DatasetSession:
    """Client-held mirror of the server-side dataset metadata.

    Instances are immutable; transitions go through
    :func:`mlwizard.session.store.reduce`.
    """

    dataset_id: str | None = None
    file_url: str | None = None
    processing_stage: ProcessingStage | None = None
    overview: DatasetOverview | None = None
    target_column: str | None = None
    task_type: TaskType | None = None
    feature_importance: tuple[FeatureImportance, ...] = ()
    columns_to_keep: tuple[str, ...] | None = None
    num_classes: int | None = None
    processed_file_url: str | None = None
    class_imbalance: ClassImbalanceReport | None = None

    def evolve(self, **changes: Any) -> "DatasetSession":
        return replace(self, **changes)

    @property
    def has_saved_features(self) -> bool:
        return bool(self.columns_to_keep)

    def stage_at_least(self, stage: ProcessingStage) -> bool:
        return self.processing_stage is not None and self.processing_stage >= stage

    def to_dict(self) -> dict[str, Any]:
        """Convert the session to a JSON-serializable dictionary."""
        data = asdict(self)
        data["processing_stage"] = (
            self.processing_stage.value if self.processing_stage else None
        )
        data["task_type"] = self.task_type.value if self.task_type else None
        data["feature_importance"] = [asdict(f) for f in self.feature_importance]
        data["columns_to_keep"] = (
            list(self.columns_to_keep) if self.columns_to_keep is not None else None
        )
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DatasetSession":
        """Create a session from a dictionary produced by :meth:`to_dict`."""
        stage = data.get("processing_stage")
        task_type = data.get("task_type")
        overview = data.get("overview")
        imbalance = data.get("class_imbalance")
        columns = data.get("columns_to_keep")
        return cls(
            dataset_id=data.get("dataset_id"),
            file_url=data.get("file_url"),
            processing_stage=ProcessingStage(stage) if stage else None,
            overview=DatasetOverview.from_dict(overview) if overview else None,
            target_column=data.get("target_column"),
            task_type=TaskType(task_type) if task_type else None,
            feature_importance=tuple(
                FeatureImportance(item["feature"], float(item["importance"]))
                for item in data.get("feature_importance") or []
            ),
            columns_to_keep=tuple(columns) if columns is not None else None,
            num_classes=data.get("num_classes"),
            processed_file_url=data.get("processed_file_url"),
            class_imbalance=(
                ClassImbalanceReport.from_dict(imbalance) if imbalance else None
            ),
        )
