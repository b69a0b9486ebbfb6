"""Dataset wizard steps: each call hits the service and advances the session."""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from mlwizard.core.client import WizardClient
from mlwizard.error_handling import ApiError
from mlwizard.session.models import (
    ClassImbalanceReport,
    DatasetOverview,
    DatasetSession,
    FeatureImportance,
    ProcessingStage,
    TaskType,
)
from mlwizard.session.store import (
    ClassImbalanceChecked,
    DatasetPreprocessed,
    DatasetUploaded,
    FeatureImportanceLoaded,
    FeaturesSaved,
    MissingValuesHandled,
    SessionStore,
    TargetSelected,
    check_transition,
)
from mlwizard.session.wizard import WizardTab, blocked_reason
from mlwizard.utils.validation import ValidationError, validate_file_path

logger = logging.getLogger(__name__)


class MissingValueStrategy(Enum):
    MEAN = "mean"
    MEDIAN = "median"
    MODE = "mode"
    DROP = "drop"
    SKIP = "skip"


class NormalizationMethod(Enum):
    MINMAX = "minmax"
    STANDARD = "standard"
    ROBUST = "robust"
    LOG = "log"
    SKIP = "skip"


class BalanceStrategy(Enum):
    UNDERSAMPLE = "undersample"
    OVERSAMPLE = "oversample"
    SKIP = "skip"


UNDERSAMPLING_METHODS = ("random", "enn", "tomek", "ncr")
OVERSAMPLING_METHODS = ("random", "smote", "borderline_smote", "adasyn", "smotenc")

PREVIEW_STAGES = ("raw", "cleaned", "final", "processed", "latest")


@dataclass(frozen=True)
class BalanceChoice:
    """Balancing strategy plus the concrete resampling method."""

    strategy: BalanceStrategy = BalanceStrategy.SKIP
    method: str | None = None

    def validate(self) -> "BalanceChoice":
        if self.strategy is BalanceStrategy.SKIP:
            return BalanceChoice()
        allowed = (
            UNDERSAMPLING_METHODS
            if self.strategy is BalanceStrategy.UNDERSAMPLE
            else OVERSAMPLING_METHODS
        )
        method = self.method or "random"
        if method not in allowed:
            raise ValidationError(
                f"Invalid {self.strategy.value} method '{method}'. "
                f"Must be one of: {', '.join(allowed)}"
            )
        return BalanceChoice(self.strategy, method)


def recommend_balance(report: ClassImbalanceReport | None) -> BalanceChoice:
    """Translate a class-imbalance recommendation into a balance choice."""
    if report is None or not report.needs_balancing or not report.recommendation:
        return BalanceChoice()

    recommendation = report.recommendation.lower()
    if "smote" in recommendation:
        return BalanceChoice(BalanceStrategy.OVERSAMPLE, "smote")
    if "oversample" in recommendation:
        return BalanceChoice(BalanceStrategy.OVERSAMPLE, "random")
    if "undersample" in recommendation:
        return BalanceChoice(BalanceStrategy.UNDERSAMPLE, "random")
    return BalanceChoice()


def _parse_task_type(value: Any) -> TaskType:
    try:
        return TaskType(value)
    except ValueError as e:
        raise ApiError(f"Service returned unknown task type: {value!r}") from e


def _parse_enum(enum_cls: type[Enum], value: Any, label: str) -> Enum:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError as e:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(
            f"Invalid {label} '{value}'. Must be one of: {allowed}"
        ) from e


class DatasetWorkflow:
    """Runs the upload → explore → features → preprocess steps.

    Each method validates locally, calls the service, then dispatches the
    outcome into the injected :class:`SessionStore`.
    """

    def __init__(self, client: WizardClient, store: SessionStore):
        self.client = client
        self.store = store

    @property
    def state(self) -> DatasetSession:
        return self.store.state

    def _require_dataset(self) -> str:
        dataset_id = self.state.dataset_id
        if not dataset_id:
            raise ValidationError("No dataset selected. Upload a dataset first")
        return dataset_id

    def _require_tab(self, tab: WizardTab) -> None:
        reason = blocked_reason(self.state, tab)
        if reason:
            raise ValidationError(reason)

    async def upload(
        self, path: str | Path, custom_missing_symbol: str | None = None
    ) -> DatasetSession:
        """Upload a CSV file and start a new session for it."""
        file_path = validate_file_path(str(path), must_exist=True)
        payload = await self.client.upload_dataset(file_path, custom_missing_symbol)

        dataset_id = payload.get("dataset_id")
        if not dataset_id:
            raise ApiError("Upload response did not include a dataset id")

        overview_data = payload.get("overview") or payload
        logger.info(f"Uploaded {file_path.name} as dataset {dataset_id}")
        return self.store.dispatch(
            DatasetUploaded(
                dataset_id=dataset_id,
                file_url=payload.get("file_url"),
                overview=DatasetOverview.from_dict(overview_data),
            )
        )

    async def preview(self, stage: str = "latest") -> dict[str, Any]:
        """Fetch preview rows for a pipeline stage."""
        dataset_id = self._require_dataset()
        if stage not in PREVIEW_STAGES:
            raise ValidationError(
                f"Invalid stage '{stage}'. Must be one of: {', '.join(PREVIEW_STAGES)}"
            )
        return await self.client.preview_dataset(dataset_id, stage)

    async def handle_missing_values(
        self,
        strategy: MissingValueStrategy | str,
        custom_missing_symbol: str | None = None,
    ) -> DatasetSession:
        strategy = _parse_enum(MissingValueStrategy, strategy, "missing-value strategy")
        dataset_id = self._require_dataset()
        check_transition(self.state, ProcessingStage.CLEANED)

        payload = await self.client.handle_missing_values(
            dataset_id, strategy.value, custom_missing_symbol
        )
        overview_data = payload.get("overview")
        return self.store.dispatch(
            MissingValuesHandled(
                overview=DatasetOverview.from_dict(overview_data)
                if isinstance(overview_data, dict)
                else None
            )
        )

    async def detect_task_type(self, target_column: str) -> DatasetSession:
        """Select the target column and let the service infer the task type."""
        dataset_id = self._require_dataset()
        if not target_column:
            raise ValidationError("Target column cannot be empty")
        overview = self.state.overview
        if overview and overview.column_names and target_column not in overview.column_names:
            raise ValidationError(f"Unknown target column '{target_column}'")

        payload = await self.client.detect_task_type(dataset_id, target_column)
        task_type = _parse_task_type(payload.get("task_type"))
        return self.store.dispatch(
            TargetSelected(
                target_column=target_column,
                task_type=task_type,
                num_classes=payload.get("num_classes"),
            )
        )

    async def set_target(
        self, target_column: str, task_type: TaskType | str
    ) -> DatasetSession:
        """Select the target column with an explicitly chosen task type."""
        self._require_dataset()
        if not target_column:
            raise ValidationError("Target column cannot be empty")
        task_type = _parse_enum(TaskType, task_type, "task type")
        return self.store.dispatch(TargetSelected(target_column, task_type))

    async def feature_importance(
        self, target_column: str | None = None
    ) -> list[FeatureImportance]:
        """Load feature importance for the target, updating the task type."""
        self._require_tab(WizardTab.FEATURES)
        dataset_id = self._require_dataset()
        target = target_column or self.state.target_column
        if not target:
            raise ValidationError("Select a target column first")

        payload = await self.client.feature_importance_preview(dataset_id, target)
        task_type = _parse_task_type(payload["task_type"])
        items = tuple(
            FeatureImportance(str(item["feature"]), float(item["importance"]))
            for item in payload["feature_importance"]
        )
        if target != self.state.target_column:
            self.store.dispatch(TargetSelected(target, task_type))
        self.store.dispatch(FeatureImportanceLoaded(items=items, task_type=task_type))
        return sorted(items, key=lambda item: item.importance, reverse=True)

    async def save_features(self, columns: list[str]) -> DatasetSession:
        """Persist the selected feature columns on the service."""
        self._require_tab(WizardTab.FEATURES)
        dataset_id = self._require_dataset()
        target = self.state.target_column
        if not target or not self.state.task_type:
            raise ValidationError("Select a target column and task type first")
        columns = [c for c in dict.fromkeys(columns) if c and c != target]
        if not columns:
            raise ValidationError("Select at least one feature column")
        check_transition(self.state, ProcessingStage.FEATURES_SELECTED)

        await self.client.save_dataset(dataset_id, target, columns)
        logger.info(f"Saved {len(columns)} feature columns for dataset {dataset_id}")
        return self.store.dispatch(FeaturesSaved(columns=tuple(columns)))

    async def check_class_imbalance(
        self, refresh: bool = False
    ) -> tuple[ClassImbalanceReport, BalanceChoice]:
        """Analyze the target's class distribution.

        The report is cached in the session for the dataset/target pair and
        only recomputed when ``refresh`` is set.
        """
        dataset_id = self._require_dataset()
        state = self.state
        if not state.target_column:
            raise ValidationError("Select a target column first")
        if not state.task_type or not state.task_type.is_classification:
            raise ValidationError(
                "Class imbalance only applies to classification tasks"
            )

        cached = state.class_imbalance
        if cached and not refresh and cached.target_column == state.target_column:
            return cached, recommend_balance(cached)

        payload = await self.client.check_class_imbalance(
            dataset_id, state.target_column
        )
        report = ClassImbalanceReport.from_dict(payload, state.target_column)
        self.store.dispatch(ClassImbalanceChecked(report))
        return report, recommend_balance(report)

    async def preprocess(
        self,
        normalization: NormalizationMethod | str = NormalizationMethod.MINMAX,
        balance: BalanceChoice | None = None,
    ) -> dict[str, Any]:
        """Apply normalization and class balancing on the service."""
        normalization = _parse_enum(
            NormalizationMethod, normalization, "normalization method"
        )
        balance = (balance or BalanceChoice()).validate()
        dataset_id = self._require_dataset()
        if not self.state.has_saved_features:
            raise ValidationError("You need to save your feature selection first")
        if (
            balance.strategy is not BalanceStrategy.SKIP
            and self.state.task_type is not None
            and not self.state.task_type.is_classification
        ):
            raise ValidationError("Class balancing only applies to classification tasks")
        check_transition(self.state, ProcessingStage.PROCESSED)

        payload = await self.client.preprocess_dataset(
            dataset_id,
            normalization.value,
            balance.strategy.value,
            balance.method,
        )
        self.store.dispatch(
            DatasetPreprocessed(processed_file_url=payload.get("processed_file_url"))
        )
        payload.setdefault("message", "Data preprocessing completed successfully")
        return payload
