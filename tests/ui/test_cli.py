"""Tests for the mlwizard click commands."""

import io
import json

import httpx
import pytest
from click.testing import CliRunner
from rich.console import Console

from mlwizard.core.config import SettingsManager
from mlwizard.session.models import DatasetSession, ProcessingStage, TaskType
from mlwizard.ui.cli import AppContext, cli, mask_token
from mlwizard.ui.console import WizardConsole
from mlwizard.ui.printer import Printer

READY_SESSION = DatasetSession(
    dataset_id="ds-1",
    processing_stage=ProcessingStage.PROCESSED,
    target_column="churn",
    task_type=TaskType.BINARY_CLASSIFICATION,
    columns_to_keep=("age", "income"),
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "MLWIZARD_API_TOKEN",
        "MLWIZARD_API_URL",
        "MLWIZARD_POLL_INTERVAL",
        "MLWIZARD_SOFT_TIMEOUT",
        "MLWIZARD_VERBOSE",
        "MLWIZARD_HOME",
        "MLWIZARD_MAX_POLL_ERRORS",
        "MLWIZARD_MAX_POLL_ATTEMPTS",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def settings(tmp_path):
    settings = SettingsManager(str(tmp_path / "home"))
    settings.update_user_setting("apiToken", "secret-token-123")
    settings.update_user_setting("baseURL", "http://service.test/api")
    settings.update_user_setting("pollInterval", 0.01)
    return settings


@pytest.fixture
def output():
    return io.StringIO()


@pytest.fixture
def app(settings, service, output):
    console = Console(file=output, width=200, color_system=None)
    return AppContext(
        settings,
        ui=WizardConsole(Printer(console)),
        transport=httpx.MockTransport(service.handler),
    )


@pytest.fixture
def invoke(app):
    runner = CliRunner()

    def run(*args):
        return runner.invoke(cli, list(args), obj=app, catch_exceptions=False)

    return run


def _save_session(settings, dataset=READY_SESSION, training=None):
    settings.save_session({"dataset": dataset.to_dict(), "training": training or {}})


def test_mask_token():
    assert mask_token(None) == "not set"
    assert mask_token("short") == "****"
    assert mask_token("secret-token-123") == "secr…-123"


def test_config_shows_masked_token(invoke, output):
    result = invoke("config")

    assert result.exit_code == 0
    text = output.getvalue()
    assert "secr…-123" in text
    assert "secret-token-123" not in text
    assert "http://service.test/api" in text


def test_config_update_and_reject(invoke, settings, output):
    assert invoke("config", "--soft-timeout", "90").exit_code == 0
    assert settings.get_soft_timeout() == 90.0

    result = invoke("config", "--base-url", "not-a-url")
    assert result.exit_code == 1
    assert "Validation error" in output.getvalue()


def test_upload_persists_session(invoke, service, settings, output, tmp_path):
    csv_path = tmp_path / "churn.csv"
    csv_path.write_text("age,churn\n41,0\n")
    service.on(
        "POST",
        "/dataset/dataset-overview/",
        {
            "dataset_id": "ds-9",
            "num_rows": 1,
            "num_columns": 2,
            "column_names": ["age", "churn"],
            "missing_values_count": {"age": 0, "churn": 0},
        },
    )

    result = invoke("upload", str(csv_path))

    assert result.exit_code == 0
    assert "Uploaded dataset ds-9" in output.getvalue()
    saved = settings.load_session()
    assert saved["dataset"]["dataset_id"] == "ds-9"
    assert saved["dataset"]["processing_stage"] == "raw"


def test_tabs_show_locked_steps(invoke, output):
    result = invoke("tabs")

    assert result.exit_code == 0
    text = output.getvalue()
    assert "Please upload a dataset first" in text


def test_invalid_test_size_exits_without_request(invoke, service, settings, output):
    _save_session(settings)

    result = invoke("train", "automl", "--test-size", "0.05")

    assert result.exit_code == 1
    assert "out of range" in output.getvalue()
    assert service.requests == []


def test_train_automl_and_wait(invoke, service, settings, output):
    _save_session(settings)
    service.on("POST", "/training/automl/", {"experiment_id": "exp-1"})
    service.on(
        "GET",
        "/training/check-status/exp-1",
        [{"status": "running"}, {"status": "success"}],
    )
    service.on(
        "GET",
        "/experiments/experiment-results/exp-1",
        {
            "status": "success",
            "automl_engine": "mljar",
            "best_model": "Ensemble",
            "metrics": {"f1": 0.87},
        },
    )

    result = invoke("train", "automl", "--engine", "mljar", "--seed", "7", "--wait")

    assert result.exit_code == 0
    text = output.getvalue()
    assert "Started experiment exp-1" in text
    assert "MLJAR AutoML Results" in text
    assert "Best model: Ensemble" in text
    assert service.last_form("POST", "/training/automl/")["random_seed"] == "7"
    training = settings.load_session()["training"]
    assert training["active_experiment_id"] == "exp-1"
    assert training["is_training"] is False
    assert training["status"] == "success"
    assert training["automl_parameters"]["random_seed"] == 7


def test_second_submission_is_refused(invoke, settings, service, output):
    _save_session(
        settings,
        training={
            "active_experiment_id": "exp-1",
            "is_training": True,
            "status": "running",
        },
    )

    result = invoke("train", "custom", "XGBoost")

    assert result.exit_code == 1
    assert "still training" in output.getvalue()
    assert service.requests == []


def test_train_custom_parses_params(invoke, settings, service):
    _save_session(settings)
    service.on("POST", "/training/custom-train/", {"experiment_id": "exp-2"})

    result = invoke(
        "train", "custom", "XGBoost", "-p", "max_depth=3", "-p", "booster=gbtree"
    )

    assert result.exit_code == 0
    form = service.last_form("POST", "/training/custom-train/")
    assert json.loads(form["hyperparameters"]) == {"max_depth": 3, "booster": "gbtree"}
    assert form["use_default_hyperparams"] == "false"


def test_status_without_experiment(invoke, output):
    result = invoke("status")
    assert result.exit_code == 0
    assert "Training" in output.getvalue()


def test_results_for_explicit_experiment(invoke, service, output):
    service.on(
        "GET",
        "/experiments/experiment-results/exp-5",
        {"status": "completed", "algorithm": "Random Forest", "hyperparameters": {"n_estimators": 10}},
    )

    result = invoke("results", "exp-5")

    assert result.exit_code == 0
    text = output.getvalue()
    assert "Custom Training Results" in text
    assert "Algorithm: Random Forest" in text


def test_predict_shows_schema_then_predicts(invoke, service, output):
    service.on(
        "GET",
        "/prediction/schema/exp-1",
        {"columns": ["age", "churn"], "target": "churn", "example": {"age": 30}},
    )
    service.on("POST", "/prediction/predict-manual/", {"prediction": 1})

    assert invoke("predict", "exp-1").exit_code == 0
    assert "Inputs (target: churn)" in output.getvalue()

    assert invoke("predict", "exp-1", "age=41").exit_code == 0
    assert "churn: 1" in output.getvalue()


def test_predict_batch_writes_output(invoke, service, tmp_path, output):
    csv_path = tmp_path / "rows.csv"
    csv_path.write_text("age\n41\n")
    out_path = tmp_path / "predictions.csv"
    service.on(
        "POST",
        "/prediction/predict-csv/",
        {
            "mode": "prediction_only",
            "data": {
                "target_column": "churn",
                "filled_dataset_preview": [{"age": 41, "churn": 1}],
            },
        },
    )

    result = invoke("predict-batch", "exp-1", str(csv_path), "-o", str(out_path))

    assert result.exit_code == 0
    assert out_path.read_text().splitlines() == ["age,churn", "41,1"]
    assert "Predictions generated for 1 samples" in output.getvalue()


def test_delete_active_experiment_resets_training(invoke, settings, service):
    _save_session(
        settings,
        training={"active_experiment_id": "exp-1", "is_training": False, "status": "failed"},
    )
    service.on("DELETE", "/experiments/delete-experiment/exp-1", {"message": "deleted"})

    result = invoke("experiments", "delete", "exp-1", "--yes")

    assert result.exit_code == 0
    assert settings.load_session()["training"]["active_experiment_id"] is None


def test_reset_full_clears_dataset(invoke, settings):
    _save_session(settings)

    assert invoke("reset", "--full").exit_code == 0

    saved = settings.load_session()
    assert saved["dataset"]["dataset_id"] is None
    assert saved["training"]["active_experiment_id"] is None


def test_api_error_exits_with_message(invoke, service, output):
    service.on(
        "GET",
        "/experiments/list-experiments/",
        httpx.Response(401, json={"detail": "Token expired"}),
    )

    result = invoke("experiments", "list")

    assert result.exit_code == 1
    assert "Authentication error: Token expired" in output.getvalue()


def test_max_poll_errors_setting_ends_run(invoke, service, settings, output):
    _save_session(settings)
    assert invoke("config", "--max-poll-errors", "2").exit_code == 0
    service.on("POST", "/training/automl/", {"experiment_id": "exp-1"})
    service.on(
        "GET",
        "/training/check-status/exp-1",
        lambda request: httpx.Response(503, json={"detail": "busy"}),
    )

    result = invoke("train", "automl", "--wait")

    assert result.exit_code == 0
    assert "Failed to check training status after 2 attempts" in output.getvalue()
    assert len(service.calls("GET", "/training/check-status/exp-1")) == 2
    assert settings.load_session()["training"]["is_training"] is False


def test_experiments_compare_and_save(invoke, service, output):
    service.on(
        "POST",
        "/comparisons/compare/",
        {
            "data": {
                "experiments": [
                    {"experiment_id": "exp-1", "algorithm": "Random Forest"},
                    {"experiment_id": "exp-2", "algorithm": "XGBoost"},
                ],
                "metrics_comparison": {
                    "exp-1": {"accuracy": 0.9},
                    "exp-2": {"accuracy": 0.95},
                },
            }
        },
    )
    service.on("POST", "/comparisons/save/", {"status": "success"})

    result = invoke("experiments", "compare", "exp-1", "exp-2", "--save", "baseline")

    assert result.exit_code == 0
    text = output.getvalue()
    assert "Experiment Comparison" in text
    assert "0.9500" in text
    assert "Saved comparison 'baseline'" in text
    assert json.loads(service.calls("POST", "/comparisons/save/")[0].content) == {
        "name": "baseline",
        "experiment_ids": ["exp-1", "exp-2"],
    }


def test_compare_single_experiment_is_rejected(invoke, service, output):
    result = invoke("experiments", "compare", "exp-1")

    assert result.exit_code == 1
    assert "at least two" in output.getvalue()
    assert service.requests == []


def test_comparisons_show_reruns_saved(invoke, service, output):
    service.on(
        "GET",
        "/comparisons/list/",
        {
            "comparisons": [
                {
                    "comparison_id": "c-1",
                    "name": "baseline",
                    "experiment_ids": ["exp-1", "exp-2"],
                    "task_type": "regression",
                }
            ]
        },
    )
    service.on(
        "POST",
        "/comparisons/compare/",
        {"metrics_comparison": {"exp-1": {"rmse": 1.5}, "exp-2": {"rmse": 1.2}}},
    )

    result = invoke("comparisons", "show", "c-1")

    assert result.exit_code == 0
    assert "Comparison: baseline" in output.getvalue()
    assert json.loads(service.calls("POST", "/comparisons/compare/")[0].content) == {
        "experiment_ids": ["exp-1", "exp-2"],
        "task_type": "regression",
    }
    assert invoke("comparisons", "show", "c-9").exit_code == 1


def test_experiments_tune_tracks_new_run(invoke, service, settings, output):
    _save_session(settings)
    service.on("POST", "/experiments/tune-model/", {"data": {"experiment_id": "exp-3"}})

    result = invoke("experiments", "tune", "exp-1", "-p", "max_depth=6")

    assert result.exit_code == 0
    assert "Started experiment exp-3" in output.getvalue()
    body = json.loads(service.calls("POST", "/experiments/tune-model/")[0].content)
    assert body == {"experiment_id": "exp-1", "new_hyperparameters": {"max_depth": 6}}
    training = settings.load_session()["training"]
    assert training["active_experiment_id"] == "exp-3"
    assert training["is_training"] is True


def test_datasets_download(invoke, service, tmp_path, output):
    service.on(
        "GET",
        "/dataset-management/download/ds-1",
        {"data": {"download_url": "http://files.test/ds-1.csv"}},
    )
    service.on("GET", "/ds-1.csv", lambda request: httpx.Response(200, content=b"age\n41\n"))
    target = tmp_path / "ds.csv"

    result = invoke("datasets", "download", "ds-1", "--stage", "final", "-o", str(target))

    assert result.exit_code == 0
    assert target.read_text() == "age\n41\n"
    request = service.calls("GET", "/dataset-management/download/ds-1")[0]
    assert request.url.params["stage"] == "final"


def test_datasets_clone(invoke, service, output):
    service.on(
        "POST",
        "/dataset-management/clone-dataset/public-1",
        {"data": {"new_dataset_id": "ds-7"}},
    )

    result = invoke("datasets", "clone", "public-1")

    assert result.exit_code == 0
    assert "Cloned dataset public-1 as ds-7" in output.getvalue()
