"""Training parameters, defaults and client-side validation."""

from dataclasses import asdict, dataclass, field, replace
from datetime import date
from typing import Any

from mlwizard.jobs.models import AutoMLEngine
from mlwizard.session.models import TaskType
from mlwizard.utils.validation import ValidationError, validate_test_size

DEFAULT_TEST_SIZE = 0.2
DEFAULT_RANDOM_SEED = 42

_CLASSIFIER_ALGORITHMS = [
    "Decision Tree",
    "Random Forest",
    "XGBoost",
    "LightGBM",
    "CatBoost",
    "Neural Network",
    "Extra Trees",
]

ALLOWED_ALGORITHMS: dict[TaskType, list[str]] = {
    TaskType.BINARY_CLASSIFICATION: [
        "Logistic Regression",
        *_CLASSIFIER_ALGORITHMS,
        "Nearest Neighbors",
    ],
    TaskType.MULTICLASS_CLASSIFICATION: [
        "Logistic Regression",
        *_CLASSIFIER_ALGORITHMS,
    ],
    TaskType.REGRESSION: [
        "Linear Regression",
        *_CLASSIFIER_ALGORITHMS,
    ],
}

DEFAULT_HYPERPARAMETERS: dict[str, dict[str, Any]] = {
    "Decision Tree": {"max_depth": 5, "min_samples_split": 2},
    "Random Forest": {"n_estimators": 100, "max_depth": 7},
    "XGBoost": {"n_estimators": 100, "learning_rate": 0.1, "max_depth": 6},
    "LightGBM": {
        "n_estimators": 100,
        "learning_rate": 0.1,
        "num_leaves": 31,
        "max_depth": -1,
    },
    "CatBoost": {"iterations": 100, "depth": 6, "learning_rate": 0.1},
    "Neural Network": {
        "hidden_layer_sizes": [64, 32],
        "activation": "relu",
        "solver": "adam",
        "alpha": 0.0001,
    },
    "Extra Trees": {"n_estimators": 100, "max_depth": 7, "min_samples_split": 2},
    "Nearest Neighbors": {
        "n_neighbors": 5,
        "metric": "minkowski",
        "weights": "uniform",
    },
    "Linear Regression": {"fit_intercept": True, "n_jobs": None},
    "Logistic Regression": {
        "penalty": "l2",
        "C": 1.0,
        "solver": "lbfgs",
        "max_iter": 100,
        "fit_intercept": True,
        "class_weight": None,
    },
    "Baseline": {},
}


def generate_experiment_name(
    prefix: str, identifier: str | None = None, today: date | None = None
) -> str:
    """Build a dated default name such as ``AutoML_MLJAR_2025_03_14``."""
    stamp = (today or date.today()).strftime("%Y_%m_%d")
    if identifier:
        identifier = identifier.replace(" ", "_")
        return f"{prefix}_{identifier}_{stamp}"
    return f"{prefix}_{stamp}"


def get_default_hyperparameters(algorithm: str) -> dict[str, Any]:
    return dict(DEFAULT_HYPERPARAMETERS.get(algorithm, {}))


def _coerce_task_type(task_type: TaskType | str | None) -> TaskType:
    if isinstance(task_type, TaskType):
        return task_type
    if not task_type:
        raise ValidationError("Task type is required. Select a target column first")
    try:
        return TaskType(task_type)
    except ValueError as e:
        raise ValidationError(f"Unknown task type '{task_type}'") from e


def _require_dataset(dataset_id: str | None) -> str:
    if not dataset_id:
        raise ValidationError("Dataset ID is required. Upload a dataset first")
    return dataset_id


@dataclass
class AutoMLParameters:
    """Form parameters for an AutoML training run."""

    automl_engine: str = AutoMLEngine.MLJAR.value
    test_size: float = DEFAULT_TEST_SIZE
    stratify: bool = True
    random_seed: int = DEFAULT_RANDOM_SEED
    experiment_name: str | None = None

    def with_changes(self, **changes: Any) -> "AutoMLParameters":
        return replace(self, **changes)

    def validate(self) -> AutoMLEngine:
        """Check the parameters and return the parsed engine.

        Raises:
            ValidationError: If any value is outside its allowed range
        """
        validate_test_size(self.test_size)
        try:
            engine = AutoMLEngine(str(self.automl_engine).lower())
        except ValueError as e:
            allowed = ", ".join(member.value for member in AutoMLEngine)
            raise ValidationError(
                f"Unknown AutoML engine '{self.automl_engine}'. Must be one of: {allowed}"
            ) from e
        if not isinstance(self.random_seed, int) or isinstance(self.random_seed, bool):
            raise ValidationError("Random seed must be an integer")
        return engine

    def to_form(
        self, dataset_id: str | None, task_type: TaskType | str | None
    ) -> dict[str, Any]:
        """Validate and build the ``/training/automl/`` form fields."""
        dataset_id = _require_dataset(dataset_id)
        task = _coerce_task_type(task_type)
        engine = self.validate()
        return {
            "dataset_id": dataset_id,
            "task_type": task.value,
            "automl_engine": engine.value,
            "test_size": self.test_size,
            "stratify": self.stratify,
            "random_seed": self.random_seed,
            "experiment_name": self.experiment_name
            or generate_experiment_name("AutoML", engine.label),
        }

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AutoMLParameters":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


@dataclass
class CustomParameters:
    """Form parameters for a single-algorithm training run."""

    algorithm: str | None = None
    hyperparameters: dict[str, Any] = field(default_factory=dict)
    use_default_hyperparameters: bool = True
    test_size: float = DEFAULT_TEST_SIZE
    stratify: bool = True
    random_seed: int = DEFAULT_RANDOM_SEED
    enable_analytics: bool = True
    enable_visualization: bool = True
    experiment_name: str | None = None

    def with_changes(self, **changes: Any) -> "CustomParameters":
        return replace(self, **changes)

    def validate(self, task_type: TaskType | str | None) -> TaskType:
        """Check the parameters against the allowed algorithms for a task.

        Raises:
            ValidationError: If the algorithm or split settings are invalid
        """
        task = _coerce_task_type(task_type)
        if not self.algorithm:
            raise ValidationError("Select an algorithm to train")
        allowed = ALLOWED_ALGORITHMS[task]
        if self.algorithm not in allowed:
            raise ValidationError(
                f"Algorithm '{self.algorithm}' is not available for "
                f"{task.label}. Choose one of: {', '.join(allowed)}"
            )
        validate_test_size(self.test_size)
        if not isinstance(self.hyperparameters, dict):
            raise ValidationError("Hyperparameters must be a mapping of names to values")
        return task

    def effective_hyperparameters(self) -> dict[str, Any]:
        if self.use_default_hyperparameters or not self.hyperparameters:
            return get_default_hyperparameters(self.algorithm or "")
        return dict(self.hyperparameters)

    def to_form(
        self, dataset_id: str | None, task_type: TaskType | str | None
    ) -> dict[str, Any]:
        """Validate and build the ``/training/custom-train/`` form fields."""
        dataset_id = _require_dataset(dataset_id)
        task = self.validate(task_type)
        return {
            "dataset_id": dataset_id,
            "task_type": task.value,
            "algorithm": self.algorithm,
            "hyperparameters": self.effective_hyperparameters(),
            "use_default_hyperparams": self.use_default_hyperparameters,
            "test_size": self.test_size,
            "stratify": self.stratify,
            "random_seed": self.random_seed,
            "enable_visualization": self.enable_visualization,
            "enable_analytics": self.enable_analytics,
            "experiment_name": self.experiment_name
            or generate_experiment_name("Custom", self.algorithm),
        }

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CustomParameters":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)
