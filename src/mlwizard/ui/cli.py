"""Command-line interface for mlwizard."""

import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import click
import httpx
from dotenv import load_dotenv
from rich.logging import RichHandler

from mlwizard import __version__
from mlwizard.core import SettingsManager, WizardClient
from mlwizard.error_handling import (
    ErrorContext,
    ValidationError,
    WizardError,
    error_handler,
)
from mlwizard.jobs.comparison import compare_experiments
from mlwizard.jobs.manager import ExperimentManager, TrainingState
from mlwizard.jobs.models import AutoMLEngine
from mlwizard.jobs.params import ALLOWED_ALGORITHMS, DEFAULT_RANDOM_SEED, DEFAULT_TEST_SIZE
from mlwizard.jobs.prediction import (
    parse_assignments,
    predict_csv,
    predict_manual,
    prediction_schema,
    save_predictions,
)
from mlwizard.session.models import ProcessingStage, TaskType
from mlwizard.session.store import SessionStore
from mlwizard.session.workflow import (
    OVERSAMPLING_METHODS,
    PREVIEW_STAGES,
    UNDERSAMPLING_METHODS,
    BalanceChoice,
    BalanceStrategy,
    DatasetWorkflow,
    MissingValueStrategy,
    NormalizationMethod,
    recommend_balance,
)
from mlwizard.ui.console import WizardConsole, format_value

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool) -> None:
    """Route log records through rich; DEBUG when verbose, else WARNING."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(show_path=False, rich_tracebacks=verbose)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def mask_token(token: str | None) -> str:
    if not token:
        return "not set"
    if len(token) <= 8:
        return "****"
    return f"{token[:4]}…{token[-4:]}"


class AppContext:
    """Shared objects for one CLI invocation."""

    def __init__(
        self,
        settings: SettingsManager,
        ui: WizardConsole | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings
        self.ui = ui or WizardConsole()
        self.transport = transport

    def client(self) -> WizardClient:
        return WizardClient(
            self.settings.get_base_url(),
            token=self.settings.get_api_token(),
            transport=self.transport,
        )

    def load_state(self) -> tuple[SessionStore, TrainingState]:
        data = self.settings.load_session()
        store = SessionStore.from_dict(data.get("dataset"))
        training = TrainingState.from_dict(data.get("training"))
        return store, training

    def save_state(self, store: SessionStore, training: TrainingState) -> None:
        self.settings.save_session(
            {"dataset": store.to_dict(), "training": training.to_dict()}
        )


@dataclass
class Workspace:
    """Live objects available to a command body."""

    app: AppContext
    client: WizardClient
    store: SessionStore
    manager: ExperimentManager
    workflow: DatasetWorkflow

    @property
    def ui(self) -> WizardConsole:
        return self.app.ui


CommandBody = Callable[[Workspace], Awaitable[None]]


async def _run_in_workspace(app: AppContext, body: CommandBody) -> None:
    store, training = app.load_state()
    async with app.client() as client:
        manager = ExperimentManager(
            client,
            store,
            training,
            poll_interval=app.settings.get_poll_interval(),
            soft_timeout=app.settings.get_soft_timeout(),
            max_errors=app.settings.get_max_poll_errors(),
            max_attempts=app.settings.get_max_poll_attempts(),
        )
        workspace = Workspace(app, client, store, manager, DatasetWorkflow(client, store))
        try:
            await body(workspace)
        finally:
            await manager.poller.aclose()
            app.save_state(store, manager.state)


def run_command(app: AppContext, body: CommandBody) -> None:
    """Run an async command body, reporting WizardErrors and exiting 1."""
    try:
        asyncio.run(_run_in_workspace(app, body))
    except WizardError as e:
        message = error_handler.handle(e, ErrorContext(function_name=body.__name__))
        app.ui.show_system_error(message)
        sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option(
    "--settings-dir",
    envvar="MLWIZARD_HOME",
    default=None,
    type=click.Path(file_okay=False),
    help="Settings directory (default ~/.mlwizard, or set MLWIZARD_HOME)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, settings_dir: str | None):
    """mlwizard - drive a remote AutoML training service from the terminal."""
    if ctx.obj is None:
        ctx.obj = AppContext(SettingsManager(settings_dir))
    configure_logging(verbose or ctx.obj.settings.get_verbose_mode())


pass_app = click.make_pass_decorator(AppContext)


# Configuration


@cli.command()
@click.option("--token", default=None, help="API bearer token")
@click.option("--base-url", default=None, help="Training service base URL")
@click.option("--poll-interval", type=float, default=None, help="Seconds between status checks")
@click.option("--soft-timeout", type=float, default=None, help="Seconds before a slow-run warning")
@click.option(
    "--max-poll-errors", type=int, default=None,
    help="Fail a run after this many consecutive status-check errors",
)
@click.option(
    "--max-poll-attempts", type=int, default=None,
    help="Fail a run after this many status checks",
)
@click.option("--verbose/--quiet", "verbose_setting", default=None, help="Persist debug logging")
@pass_app
def config(
    app: AppContext,
    token: str | None,
    base_url: str | None,
    poll_interval: float | None,
    soft_timeout: float | None,
    max_poll_errors: int | None,
    max_poll_attempts: int | None,
    verbose_setting: bool | None,
):
    """Show or update settings in ~/.mlwizard/user-settings.json."""
    updates = {
        "apiToken": token,
        "baseURL": base_url,
        "pollInterval": poll_interval,
        "softTimeout": soft_timeout,
        "maxPollErrors": max_poll_errors,
        "maxPollAttempts": max_poll_attempts,
        "verbose": verbose_setting,
    }
    try:
        for key, value in updates.items():
            if value is not None:
                app.settings.update_user_setting(key, value)
                app.ui.show_system_success(f"Saved {key}")
    except WizardError as e:
        app.ui.show_system_error(error_handler.handle(e))
        sys.exit(1)

    app.ui.show_key_values(
        "Configuration",
        [
            ["Base URL", app.settings.get_base_url()],
            ["API token", mask_token(app.settings.get_api_token())],
            ["Poll interval", f"{app.settings.get_poll_interval():g}s"],
            ["Soft timeout", f"{app.settings.get_soft_timeout():g}s"],
            ["Max poll errors", str(app.settings.get_max_poll_errors() or "unlimited")],
            ["Max poll attempts", str(app.settings.get_max_poll_attempts() or "unlimited")],
            ["Verbose", format_value(app.settings.get_verbose_mode())],
            ["Settings file", str(app.settings.settings_file)],
        ],
    )


# Dataset wizard


@cli.command()
@click.argument("path", type=click.Path(dir_okay=False))
@click.option("--missing-symbol", default=None, help="Extra token to treat as missing")
@pass_app
def upload(app: AppContext, path: str, missing_symbol: str | None):
    """Upload a CSV file and start a new dataset session."""

    async def upload_dataset(ws: Workspace) -> None:
        state = await ws.workflow.upload(path, missing_symbol)
        ws.ui.show_system_success(f"Uploaded dataset {state.dataset_id}")
        if state.overview:
            ws.ui.show_overview(state.dataset_id, state.overview)
        ws.ui.show_tabs(state)

    run_command(app, upload_dataset)


@cli.command()
@click.option(
    "--stage", type=click.Choice(PREVIEW_STAGES), default="latest", show_default=True
)
@pass_app
def preview(app: AppContext, stage: str):
    """Show the first rows of the dataset at a pipeline stage."""

    async def preview_dataset(ws: Workspace) -> None:
        payload = await ws.workflow.preview(stage)
        rows = payload.get("preview") or payload.get("data") or []
        ws.ui.show_records(f"Preview ({payload.get('stage', stage)})", rows)

    run_command(app, preview_dataset)


@cli.command()
@click.argument(
    "strategy", type=click.Choice([s.value for s in MissingValueStrategy])
)
@click.option("--missing-symbol", default=None, help="Extra token to treat as missing")
@pass_app
def clean(app: AppContext, strategy: str, missing_symbol: str | None):
    """Handle missing values with STRATEGY."""

    async def clean_dataset(ws: Workspace) -> None:
        state = await ws.workflow.handle_missing_values(strategy, missing_symbol)
        ws.ui.show_system_success(f"Missing values handled with '{strategy}'")
        if state.overview:
            ws.ui.show_overview(state.dataset_id, state.overview)

    run_command(app, clean_dataset)


@cli.command()
@click.argument("column")
@click.option(
    "--task-type",
    type=click.Choice([t.value for t in TaskType]),
    default=None,
    help="Set the task type instead of detecting it",
)
@pass_app
def target(app: AppContext, column: str, task_type: str | None):
    """Select the target COLUMN and detect its task type."""

    async def select_target(ws: Workspace) -> None:
        if task_type:
            state = await ws.workflow.set_target(column, task_type)
        else:
            state = await ws.workflow.detect_task_type(column)
        ws.ui.show_system_success(
            f"Target '{state.target_column}' ({state.task_type.label})"
        )

    run_command(app, select_target)


@cli.command()
@click.option("--target", "target_column", default=None, help="Target column")
@pass_app
def features(app: AppContext, target_column: str | None):
    """Rank features by importance against the target."""

    async def rank_features(ws: Workspace) -> None:
        items = await ws.workflow.feature_importance(target_column)
        ws.ui.show_feature_importance(items)

    run_command(app, rank_features)


@cli.command("save-features")
@click.argument("columns", nargs=-1)
@click.option("--top", type=int, default=None, help="Keep the N most important features")
@pass_app
def save_features(app: AppContext, columns: tuple[str, ...], top: int | None):
    """Save the selected feature COLUMNS for training."""

    async def save_selection(ws: Workspace) -> None:
        selected = list(columns)
        if top:
            ranked = sorted(
                ws.store.state.feature_importance,
                key=lambda item: item.importance,
                reverse=True,
            )
            selected += [item.feature for item in ranked[:top]]
        state = await ws.workflow.save_features(selected)
        ws.ui.show_system_success(
            f"Saved {len(state.columns_to_keep)} features: "
            f"{', '.join(state.columns_to_keep)}"
        )

    run_command(app, save_selection)


@cli.command()
@click.option("--refresh", is_flag=True, help="Recompute instead of using the cached report")
@pass_app
def imbalance(app: AppContext, refresh: bool):
    """Analyze the class distribution of the target."""

    async def check_imbalance(ws: Workspace) -> None:
        report, choice = await ws.workflow.check_class_imbalance(refresh=refresh)
        ws.ui.show_imbalance(report, choice)

    run_command(app, check_imbalance)


@cli.command()
@click.option(
    "--normalization",
    type=click.Choice([m.value for m in NormalizationMethod]),
    default=NormalizationMethod.MINMAX.value,
    show_default=True,
)
@click.option(
    "--balance",
    type=click.Choice([s.value for s in BalanceStrategy]),
    default=None,
    help="Balancing strategy (defaults to the class-imbalance recommendation)",
)
@click.option(
    "--method",
    type=click.Choice(sorted(set(UNDERSAMPLING_METHODS + OVERSAMPLING_METHODS))),
    default=None,
    help="Resampling method for the chosen strategy",
)
@pass_app
def preprocess(
    app: AppContext, normalization: str, balance: str | None, method: str | None
):
    """Normalize and balance the saved feature set."""

    async def preprocess_dataset(ws: Workspace) -> None:
        if balance:
            choice = BalanceChoice(BalanceStrategy(balance), method)
        else:
            choice = recommend_balance(ws.store.state.class_imbalance)
        payload = await ws.workflow.preprocess(normalization, choice)
        ws.ui.show_system_success(payload["message"])
        ws.ui.show_session(ws.store.state)

    run_command(app, preprocess_dataset)


@cli.command()
@pass_app
def tabs(app: AppContext):
    """Show the dataset session and which wizard steps are open."""
    store, _ = app.load_state()
    app.ui.show_session(store.state)
    app.ui.show_tabs(store.state)


# Training


def _parse_hyperparameters(pairs: tuple[str, ...]) -> dict[str, Any]:
    values = {}
    for name, raw in parse_assignments(list(pairs)).items():
        try:
            values[name] = json.loads(raw)
        except json.JSONDecodeError:
            values[name] = raw
    return values


async def _follow(ws: Workspace, wait: bool, experiment_id: str) -> None:
    ws.ui.show_system_success(f"Started experiment {experiment_id}")
    if not wait:
        ws.ui.show_info("Run `mlwizard watch` to follow progress.")
        return
    await _watch_active(ws)


async def _watch_active(ws: Workspace) -> None:
    manager = ws.manager
    with ws.ui.printer.status(f"Training {manager.active_experiment_id}…"):
        result = await manager.wait_for_completion()
    ws.ui.show_training_state(manager.state)
    if result is not None:
        ws.ui.show_result(result)
    elif manager.state.error:
        ws.ui.show_system_error(f"Training failed: {manager.state.error}")


@cli.group()
def train():
    """Submit training runs."""
    pass


@train.command("automl")
@click.option(
    "--engine",
    type=click.Choice([e.value for e in AutoMLEngine]),
    default=AutoMLEngine.MLJAR.value,
    show_default=True,
)
@click.option("--test-size", type=float, default=DEFAULT_TEST_SIZE, show_default=True)
@click.option("--stratify/--no-stratify", default=True, show_default=True)
@click.option("--seed", type=int, default=DEFAULT_RANDOM_SEED, show_default=True)
@click.option("--name", default=None, help="Experiment name")
@click.option("--wait", is_flag=True, help="Poll until the run finishes")
@pass_app
def train_automl(
    app: AppContext,
    engine: str,
    test_size: float,
    stratify: bool,
    seed: int,
    name: str | None,
    wait: bool,
):
    """Train with an AutoML engine on the processed dataset."""

    async def submit(ws: Workspace) -> None:
        params = ws.manager.state.automl_parameters.with_changes(
            automl_engine=engine,
            test_size=test_size,
            stratify=stratify,
            random_seed=seed,
            experiment_name=name,
        )
        experiment_id = await ws.manager.submit_automl(params)
        await _follow(ws, wait, experiment_id)

    run_command(app, submit)


@train.command("custom")
@click.argument("algorithm")
@click.option("-p", "--param", "params", multiple=True, help="Hyperparameter NAME=VALUE")
@click.option("--test-size", type=float, default=DEFAULT_TEST_SIZE, show_default=True)
@click.option("--stratify/--no-stratify", default=True, show_default=True)
@click.option("--seed", type=int, default=DEFAULT_RANDOM_SEED, show_default=True)
@click.option("--no-analytics", is_flag=True, help="Skip analytics reports")
@click.option("--no-visualization", is_flag=True, help="Skip chart generation")
@click.option("--name", default=None, help="Experiment name")
@click.option("--wait", is_flag=True, help="Poll until the run finishes")
@pass_app
def train_custom(
    app: AppContext,
    algorithm: str,
    params: tuple[str, ...],
    test_size: float,
    stratify: bool,
    seed: int,
    no_analytics: bool,
    no_visualization: bool,
    name: str | None,
    wait: bool,
):
    """Train a single ALGORITHM, optionally with custom hyperparameters."""

    async def submit(ws: Workspace) -> None:
        hyperparameters = _parse_hyperparameters(params)
        custom = ws.manager.state.custom_parameters.with_changes(
            algorithm=algorithm,
            hyperparameters=hyperparameters,
            use_default_hyperparameters=not hyperparameters,
            test_size=test_size,
            stratify=stratify,
            random_seed=seed,
            enable_analytics=not no_analytics,
            enable_visualization=not no_visualization,
            experiment_name=name,
        )
        experiment_id = await ws.manager.submit_custom(custom)
        await _follow(ws, wait, experiment_id)

    run_command(app, submit)


@cli.command()
@click.option(
    "--task-type",
    type=click.Choice([t.value for t in TaskType]),
    default=None,
    help="Task type (defaults to the session's)",
)
@click.option("--algorithm", default=None, help="Show hyperparameters for one algorithm")
@pass_app
def algorithms(app: AppContext, task_type: str | None, algorithm: str | None):
    """List algorithms for a task type, or one algorithm's hyperparameters."""

    async def list_algorithms(ws: Workspace) -> None:
        if algorithm:
            hyperparameters = await ws.client.get_hyperparameters(algorithm)
            rows = [[name, format_value(v)] for name, v in hyperparameters.items()]
            ws.ui.show_table(algorithm, ["Hyperparameter", "Default"], rows)
            return
        task = TaskType(task_type) if task_type else ws.store.state.task_type
        if task is None:
            raise click.UsageError("Pass --task-type or select a target first")
        names = await ws.client.list_algorithms(task.value)
        allowed = ALLOWED_ALGORITHMS[task]
        rows = [[n, "yes" if n in allowed else "no"] for n in names]
        ws.ui.show_table(f"Algorithms ({task.label})", ["Algorithm", "Selectable"], rows)

    run_command(app, list_algorithms)


@cli.command()
@pass_app
def status(app: AppContext):
    """Check the active experiment's status once."""

    async def check_status(ws: Workspace) -> None:
        if ws.manager.active_experiment_id:
            await ws.manager.refresh_status()
        ws.ui.show_training_state(ws.manager.state)

    run_command(app, check_status)


@cli.command()
@pass_app
def watch(app: AppContext):
    """Poll the active experiment until it finishes, then show results."""

    async def watch_active(ws: Workspace) -> None:
        manager = ws.manager
        if manager.resume():
            await _watch_active(ws)
            return
        if not manager.active_experiment_id:
            ws.ui.show_info("No active experiment.")
            return
        ws.ui.show_training_state(manager.state)
        if manager.state.status and manager.state.status.is_success:
            ws.ui.show_result(await manager.fetch_results())

    run_command(app, watch_active)


@cli.command()
@click.argument("experiment_id", required=False)
@pass_app
def results(app: AppContext, experiment_id: str | None):
    """Show results for EXPERIMENT_ID or the active experiment."""

    async def show_results(ws: Workspace) -> None:
        result = await ws.manager.fetch_results(experiment_id)
        ws.ui.show_result(result)

    run_command(app, show_results)


# Prediction


@cli.command()
@click.argument("experiment_id")
@click.argument("values", nargs=-1)
@pass_app
def predict(app: AppContext, experiment_id: str, values: tuple[str, ...]):
    """Predict one row from COLUMN=VALUE pairs; without values, show the inputs."""

    async def predict_row(ws: Workspace) -> None:
        schema = await prediction_schema(ws.client, experiment_id)
        if not values:
            ws.ui.show_schema(schema)
            return
        inputs = parse_assignments(list(values))
        prediction = await predict_manual(ws.client, experiment_id, inputs, schema)
        ws.ui.show_prediction(prediction, schema.target)

    run_command(app, predict_row)


@cli.command("predict-batch")
@click.argument("experiment_id")
@click.argument("path", type=click.Path(dir_okay=False))
@click.option(
    "-o", "--output", type=click.Path(dir_okay=False), default=None,
    help="Write predictions to this CSV file",
)
@pass_app
def predict_batch(app: AppContext, experiment_id: str, path: str, output: str | None):
    """Predict every row of a CSV file."""

    async def predict_file(ws: Workspace) -> None:
        result = await predict_csv(ws.client, experiment_id, path)
        ws.ui.show_csv_prediction(result)
        if output:
            written = save_predictions(result, output)
            ws.ui.show_system_success(f"Predictions saved to {written}")

    run_command(app, predict_file)


# Management


@cli.group()
def experiments():
    """List, compare, tune and delete experiments."""
    pass


@experiments.command("list")
@pass_app
def experiments_list(app: AppContext):
    """List experiments on the service."""

    async def list_experiments(ws: Workspace) -> None:
        items = await ws.client.list_experiments()
        rows = [
            [
                str(item.get("experiment_id", "")),
                str(item.get("experiment_name") or "-"),
                str(item.get("algorithm") or item.get("automl_engine") or "-"),
                str(item.get("status") or "-"),
                str(item.get("created_at") or "-"),
            ]
            for item in items
        ]
        ws.ui.show_table(
            "Experiments", ["ID", "Name", "Model", "Status", "Created"], rows
        )

    run_command(app, list_experiments)


@experiments.command("delete")
@click.argument("experiment_id")
@click.option("-y", "--yes", is_flag=True, help="Do not ask for confirmation")
@pass_app
def experiments_delete(app: AppContext, experiment_id: str, yes: bool):
    """Delete an experiment; the active one also resets training state."""
    if not yes and not click.confirm(f"Delete experiment {experiment_id}?"):
        return

    async def delete_experiment(ws: Workspace) -> None:
        await ws.client.delete_experiment(experiment_id)
        if ws.manager.active_experiment_id == experiment_id:
            ws.manager.reset()
        ws.ui.show_system_success(f"Deleted experiment {experiment_id}")

    run_command(app, delete_experiment)


@experiments.command("tune")
@click.argument("experiment_id")
@click.option("-p", "--param", "params", multiple=True, help="Hyperparameter NAME=VALUE")
@click.option("--wait", is_flag=True, help="Poll until the run finishes")
@pass_app
def experiments_tune(
    app: AppContext, experiment_id: str, params: tuple[str, ...], wait: bool
):
    """Retrain EXPERIMENT_ID with new hyperparameters as a new experiment."""

    async def tune_experiment(ws: Workspace) -> None:
        new_id = await ws.manager.submit_tuning(
            experiment_id, _parse_hyperparameters(params)
        )
        await _follow(ws, wait, new_id)

    run_command(app, tune_experiment)


@experiments.command("compare")
@click.argument("experiment_ids", nargs=-1, required=True)
@click.option(
    "--task-type",
    type=click.Choice([t.value for t in TaskType]),
    default=None,
    help="Task type shared by the experiments",
)
@click.option("--save", "save_as", default=None, help="Save the comparison under this name")
@pass_app
def experiments_compare(
    app: AppContext,
    experiment_ids: tuple[str, ...],
    task_type: str | None,
    save_as: str | None,
):
    """Compare metrics of two or more experiments."""

    async def compare(ws: Workspace) -> None:
        ids = list(dict.fromkeys(experiment_ids))
        comparison = await compare_experiments(ws.client, ids, task_type)
        ws.ui.show_comparison(comparison)
        if save_as:
            await ws.client.save_comparison(save_as, ids)
            ws.ui.show_system_success(f"Saved comparison '{save_as}'")

    run_command(app, compare)


@cli.group()
def comparisons():
    """List, show and delete saved comparisons."""
    pass


@comparisons.command("list")
@pass_app
def comparisons_list(app: AppContext):
    """List saved comparisons."""

    async def list_comparisons(ws: Workspace) -> None:
        items = await ws.client.list_comparisons()
        rows = [
            [
                str(item.get("comparison_id", "")),
                str(item.get("name") or "-"),
                str(item.get("task_type") or "-"),
                str(
                    item.get("experiment_count")
                    or len(item.get("experiment_ids") or [])
                ),
                str(item.get("created_at") or "-"),
            ]
            for item in items
        ]
        ws.ui.show_table(
            "Comparisons", ["ID", "Name", "Task", "Experiments", "Created"], rows
        )

    run_command(app, list_comparisons)


@comparisons.command("show")
@click.argument("comparison_id")
@pass_app
def comparisons_show(app: AppContext, comparison_id: str):
    """Re-run a saved comparison and show its metrics."""

    async def show_comparison(ws: Workspace) -> None:
        items = await ws.client.list_comparisons()
        saved = next(
            (i for i in items if str(i.get("comparison_id")) == comparison_id), None
        )
        if saved is None:
            raise ValidationError(f"Comparison {comparison_id} not found")
        comparison = await compare_experiments(
            ws.client, list(saved.get("experiment_ids") or []), saved.get("task_type")
        )
        ws.ui.show_info(f"Comparison: {saved.get('name') or comparison_id}")
        ws.ui.show_comparison(comparison)

    run_command(app, show_comparison)


@comparisons.command("delete")
@click.argument("comparison_id")
@click.option("-y", "--yes", is_flag=True, help="Do not ask for confirmation")
@pass_app
def comparisons_delete(app: AppContext, comparison_id: str, yes: bool):
    """Delete a saved comparison."""
    if not yes and not click.confirm(f"Delete comparison {comparison_id}?"):
        return

    async def delete_comparison(ws: Workspace) -> None:
        await ws.client.delete_comparison(comparison_id)
        ws.ui.show_system_success(f"Deleted comparison {comparison_id}")

    run_command(app, delete_comparison)


@cli.group()
def datasets():
    """List, download, clone and delete datasets."""
    pass


@datasets.command("list")
@pass_app
def datasets_list(app: AppContext):
    """List uploaded datasets."""

    async def list_datasets(ws: Workspace) -> None:
        items = await ws.client.list_datasets()
        rows = [
            [
                str(item.get("dataset_id", "")),
                str(item.get("name") or item.get("file_name") or "-"),
                str(item.get("target_column") or "-"),
                str(item.get("task_type") or "-"),
                str(item.get("created_at") or "-"),
            ]
            for item in items
        ]
        ws.ui.show_table("Datasets", ["ID", "Name", "Target", "Task", "Created"], rows)

    run_command(app, list_datasets)


@datasets.command("delete")
@click.argument("dataset_id")
@click.option("-y", "--yes", is_flag=True, help="Do not ask for confirmation")
@pass_app
def datasets_delete(app: AppContext, dataset_id: str, yes: bool):
    """Delete a dataset; the current one also resets the session."""
    if not yes and not click.confirm(f"Delete dataset {dataset_id}?"):
        return

    async def delete_dataset(ws: Workspace) -> None:
        await ws.client.delete_dataset(dataset_id)
        if ws.store.state.dataset_id == dataset_id:
            ws.store.reset()
        ws.ui.show_system_success(f"Deleted dataset {dataset_id}")

    run_command(app, delete_dataset)


@datasets.command("download")
@click.argument("dataset_id")
@click.option(
    "--stage",
    type=click.Choice([s.value for s in ProcessingStage]),
    default=ProcessingStage.RAW.value,
    show_default=True,
)
@click.option(
    "-o", "--output", type=click.Path(dir_okay=False), default=None,
    help="Destination file (default DATASET_ID_STAGE.csv)",
)
@pass_app
def datasets_download(app: AppContext, dataset_id: str, stage: str, output: str | None):
    """Download a dataset file at a pipeline stage."""

    async def download_dataset(ws: Workspace) -> None:
        url = await ws.client.dataset_download_url(dataset_id, stage)
        written = await ws.client.download_file(
            url, output or f"{dataset_id}_{stage}.csv"
        )
        ws.ui.show_system_success(f"Downloaded {stage} dataset to {written}")

    run_command(app, download_dataset)


@datasets.command("clone")
@click.argument("dataset_id")
@pass_app
def datasets_clone(app: AppContext, dataset_id: str):
    """Copy a public dataset into your account."""

    async def clone_dataset(ws: Workspace) -> None:
        new_id = await ws.client.clone_dataset(dataset_id)
        ws.ui.show_system_success(f"Cloned dataset {dataset_id} as {new_id}")

    run_command(app, clone_dataset)


@cli.command()
@click.option("--full", is_flag=True, help="Also clear the dataset session")
@pass_app
def reset(app: AppContext, full: bool):
    """Stop tracking the active experiment and restore default parameters."""

    async def reset_state(ws: Workspace) -> None:
        ws.manager.reset(full=full)
        ws.ui.show_system_success("Session reset" if full else "Training state reset")
        if full:
            ws.ui.show_tabs(ws.store.state)

    run_command(app, reset_state)

