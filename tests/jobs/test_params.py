"""Tests for training parameter validation and form building."""

from datetime import date

import pytest

from mlwizard.jobs.params import (
    ALLOWED_ALGORITHMS,
    AutoMLParameters,
    CustomParameters,
    generate_experiment_name,
    get_default_hyperparameters,
)
from mlwizard.session.models import TaskType
from mlwizard.utils.validation import ValidationError


def test_generate_experiment_name():
    today = date(2025, 3, 14)
    assert generate_experiment_name("AutoML", "MLJAR", today) == "AutoML_MLJAR_2025_03_14"
    assert (
        generate_experiment_name("Custom", "Random Forest", today)
        == "Custom_Random_Forest_2025_03_14"
    )
    assert generate_experiment_name("Run", today=today) == "Run_2025_03_14"


def test_automl_form():
    params = AutoMLParameters(automl_engine="H2O", stratify=False, experiment_name="mine")

    form = params.to_form("ds-1", TaskType.BINARY_CLASSIFICATION)

    assert form == {
        "dataset_id": "ds-1",
        "task_type": "binary_classification",
        "automl_engine": "h2o",
        "test_size": 0.2,
        "stratify": False,
        "random_seed": 42,
        "experiment_name": "mine",
    }


def test_automl_default_name():
    form = AutoMLParameters().to_form("ds-1", "regression")
    assert form["experiment_name"].startswith("AutoML_MLJAR_")


@pytest.mark.parametrize("test_size", [0.05, 0.55, "0.2", True])
def test_test_size_bounds(test_size):
    with pytest.raises(ValidationError):
        AutoMLParameters(test_size=test_size).validate()


@pytest.mark.parametrize("test_size", [0.1, 0.5])
def test_test_size_inclusive_bounds(test_size):
    AutoMLParameters(test_size=test_size).validate()


def test_automl_rejects_unknown_engine():
    with pytest.raises(ValidationError, match="Unknown AutoML engine"):
        AutoMLParameters(automl_engine="tpot").validate()


def test_form_requires_dataset_and_task():
    with pytest.raises(ValidationError, match="Upload a dataset"):
        AutoMLParameters().to_form(None, TaskType.REGRESSION)
    with pytest.raises(ValidationError, match="Select a target"):
        AutoMLParameters().to_form("ds-1", None)


def test_custom_algorithm_must_fit_task():
    params = CustomParameters(algorithm="Linear Regression")
    with pytest.raises(ValidationError, match="not available"):
        params.validate(TaskType.BINARY_CLASSIFICATION)
    assert params.validate(TaskType.REGRESSION) is TaskType.REGRESSION

    assert "Nearest Neighbors" in ALLOWED_ALGORITHMS[TaskType.BINARY_CLASSIFICATION]
    assert "Nearest Neighbors" not in ALLOWED_ALGORITHMS[TaskType.MULTICLASS_CLASSIFICATION]


def test_custom_requires_algorithm():
    with pytest.raises(ValidationError, match="Select an algorithm"):
        CustomParameters().validate(TaskType.REGRESSION)


def test_custom_form_with_defaults():
    form = CustomParameters(algorithm="Random Forest").to_form(
        "ds-1", TaskType.MULTICLASS_CLASSIFICATION
    )

    assert form["hyperparameters"] == {"n_estimators": 100, "max_depth": 7}
    assert form["use_default_hyperparams"] is True
    assert form["enable_analytics"] is True
    assert form["enable_visualization"] is True
    assert form["experiment_name"].startswith("Custom_Random_Forest_")


def test_custom_form_with_overrides():
    params = CustomParameters(
        algorithm="XGBoost",
        hyperparameters={"max_depth": 3},
        use_default_hyperparameters=False,
        enable_visualization=False,
    )

    form = params.to_form("ds-1", TaskType.REGRESSION)

    assert form["hyperparameters"] == {"max_depth": 3}
    assert form["use_default_hyperparams"] is False
    assert form["enable_visualization"] is False


def test_default_hyperparameters_are_copies():
    defaults = get_default_hyperparameters("XGBoost")
    defaults["max_depth"] = 99
    assert get_default_hyperparameters("XGBoost")["max_depth"] == 6
    assert get_default_hyperparameters("Unknown") == {}


def test_parameters_round_trip_and_ignore_unknown_keys():
    params = CustomParameters(algorithm="CatBoost", hyperparameters={"depth": 4})
    restored = CustomParameters.from_dict({**params.to_dict(), "legacy": 1})
    assert restored == params

    automl = AutoMLParameters.from_dict({"automl_engine": "h2o", "old_field": True})
    assert automl == AutoMLParameters(automl_engine="h2o")


def test_with_changes_returns_copy():
    params = AutoMLParameters()
    changed = params.with_changes(random_seed=7)
    assert params.random_seed == 42
    assert changed.random_seed == 7
