"""Console facade: formats wizard and experiment data for the terminal."""

import json
from collections.abc import Callable
from typing import Any

from rich import box
from rich.markup import escape
from rich.table import Table

from mlwizard.jobs.comparison import ExperimentComparison
from mlwizard.jobs.manager import TrainingState
from mlwizard.jobs.prediction import (
    BatchPrediction,
    CsvPrediction,
    EvaluationPrediction,
    PredictionSchema,
)
from mlwizard.jobs.results import (
    AutoMLResult,
    CustomResult,
    ExperimentResult,
    H2OResult,
    MljarResult,
)
from mlwizard.session.models import (
    ClassImbalanceReport,
    DatasetOverview,
    DatasetSession,
    FeatureImportance,
)
from mlwizard.session.wizard import TAB_ORDER, blocked_reason, initial_tab
from mlwizard.ui.printer import Printer

MAX_ROWS = 20


def format_value(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, float):
        return f"{value:.4f}"
    if isinstance(value, (dict, list, tuple)):
        try:
            return json.dumps(value, separators=(",", ":"), default=str)
        except (TypeError, ValueError):
            return str(value)
    return str(value)


def scalar_metrics(metrics: dict[str, Any]) -> list[list[str]]:
    """Flatten scalar metrics to rows, skipping nested reports."""
    rows = []
    for name, value in metrics.items():
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            rows.append([name.replace("_", " "), format_value(value)])
    return rows


class WizardConsole:
    """Formats content for the CLI; delegates printing to Printer."""

    def __init__(self, printer: Printer | None = None):
        self._printer = printer or Printer()

    @property
    def printer(self) -> Printer:
        return self._printer

    # System and misc helpers using Printer
    def show_system_error(self, message: str) -> None:
        self._printer.show_message(f"❌ {message}", style="red", use_section=False)

    def show_system_success(self, message: str) -> None:
        self._printer.show_message(f"✓ {message}", use_section=False)

    def show_warning(self, message: str) -> None:
        self._printer.show_message(f"⚠️ {message}", style="yellow", use_section=False)

    def show_info(self, message: str) -> None:
        self._printer.show_message(message, use_section=False)

    def _print_titled(self, title: str, table: Table) -> None:
        # Table titles wrap to the table width, so print them as a line
        with self._printer.section(color="blue") as p:
            p.print(f"[bold]{escape(title)}[/bold]")
            p.print(table)

    def show_table(self, title: str, columns: list[str], rows: list[list[str]]) -> None:
        table = Table(box=box.SIMPLE_HEAVY)
        for col in columns:
            table.add_column(col)

        if not rows:
            table.add_row(*(["-"] * len(columns)))
        else:
            for row in rows[:MAX_ROWS]:
                table.add_row(*row)
            if len(rows) > MAX_ROWS:
                table.add_row(*(["..."] * len(columns)), style="dim")

        self._print_titled(title, table)

    def show_key_values(self, title: str, pairs: list[list[str]]) -> None:
        table = Table(box=box.SIMPLE)
        table.add_column("Field", style="bold")
        table.add_column("Value")

        for pair in pairs:
            if len(pair) >= 2:
                table.add_row(pair[0], pair[1])

        self._print_titled(title, table)

    def show_records(self, title: str, records: list[dict[str, Any]]) -> None:
        """Render a list of row dicts, using the first row's keys as columns."""
        if not records:
            self.show_info(f"{title}: no rows")
            return
        columns = [str(c) for c in records[0]]
        rows = [[format_value(r.get(c)) for c in columns] for r in records]
        self.show_table(title, columns, rows)

    # Dataset wizard

    def show_overview(self, dataset_id: str | None, overview: DatasetOverview) -> None:
        pairs = [
            ["Dataset ID", dataset_id or "-"],
            ["Rows", str(overview.num_rows)],
            ["Columns", str(overview.num_columns)],
            ["Missing values", str(overview.total_missing_values)],
            ["Numerical", ", ".join(overview.numerical_features) or "-"],
            ["Categorical", ", ".join(overview.categorical_features) or "-"],
        ]
        self.show_key_values("Dataset Overview", pairs)
        missing = [
            [column, str(count)]
            for column, count in overview.missing_values_count.items()
            if count
        ]
        if missing:
            self.show_table("Missing Values", ["Column", "Missing"], missing)

    def show_session(self, state: DatasetSession) -> None:
        pairs = [
            ["Dataset ID", state.dataset_id or "-"],
            [
                "Stage",
                state.processing_stage.value if state.processing_stage else "-",
            ],
            ["Target", state.target_column or "-"],
            ["Task type", state.task_type.label if state.task_type else "-"],
            [
                "Features",
                ", ".join(state.columns_to_keep) if state.columns_to_keep else "-",
            ],
        ]
        if state.processed_file_url:
            pairs.append(["Processed file", state.processed_file_url])
        self.show_key_values("Dataset Session", pairs)

    def show_tabs(self, state: DatasetSession) -> None:
        current = initial_tab(state)
        rows = []
        for tab in TAB_ORDER:
            reason = blocked_reason(state, tab)
            marker = "→ " if tab is current else ""
            state_label = "enabled" if reason is None else "locked"
            rows.append([f"{marker}{tab.value}", state_label, reason or ""])
        self.show_table("Wizard", ["Step", "State", "Note"], rows)

    def show_feature_importance(self, items: list[FeatureImportance]) -> None:
        rows = [[item.feature, f"{item.importance:.4f}"] for item in items]
        self.show_table("Feature Importance", ["Feature", "Importance"], rows)

    def show_imbalance(self, report: ClassImbalanceReport, choice: Any) -> None:
        pairs = [
            ["Target", report.target_column],
            ["Imbalanced", format_value(report.is_imbalanced)],
            ["Needs balancing", format_value(report.needs_balancing)],
            ["Severity", report.severity or "-"],
            ["Imbalance ratio", format_value(report.imbalance_ratio)],
            ["Recommendation", report.recommendation or "-"],
            [
                "Suggested balancing",
                f"{choice.strategy.value}/{choice.method}"
                if choice.method
                else choice.strategy.value,
            ],
        ]
        self.show_key_values("Class Imbalance", pairs)
        if report.class_distribution:
            rows = [
                [label, str(count)]
                for label, count in report.class_distribution.items()
            ]
            self.show_table("Class Distribution", ["Class", "Count"], rows)

    # Training

    def show_training_state(self, state: TrainingState) -> None:
        pairs = [
            ["Experiment", state.active_experiment_id or "-"],
            [
                "Type",
                state.last_training_type.value if state.last_training_type else "-",
            ],
            ["Status", state.status.value if state.status else "-"],
            ["Training", format_value(state.is_training)],
        ]
        if state.status_message:
            pairs.append(["Message", state.status_message])
        if state.error:
            pairs.append(["Error", state.error])
        self.show_key_values("Training", pairs)
        if state.timed_out and state.is_training:
            self.show_warning(
                "Training is taking longer than expected. It is still running."
            )

    def show_result(self, result: ExperimentResult) -> None:
        renderer = RESULT_RENDERERS.get(result.kind, _render_custom)
        renderer(self, result)

    def _show_result_header(self, result: ExperimentResult, title: str) -> None:
        pairs = [
            ["Experiment", result.experiment_id],
            ["Name", result.display_name],
            ["Status", result.status.value if result.status else "-"],
            ["Task type", result.task_type or "-"],
            ["Target", result.target_column or "-"],
        ]
        if result.training_time_sec is not None:
            pairs.append(["Training time", f"{result.training_time_sec:.1f}s"])
        if result.completed_at:
            pairs.append(["Completed", result.completed_at])
        if result.error_message:
            pairs.append(["Error", result.error_message])
        self.show_key_values(title, pairs)

    def _show_metrics_and_files(self, result: ExperimentResult) -> None:
        metrics = scalar_metrics(result.metrics)
        if metrics:
            self.show_table("Metrics", ["Metric", "Value"], metrics)
        if result.files:
            rows = [
                [f.file_type, f.file_name or "-", f.file_url] for f in result.files
            ]
            self.show_table("Artifacts", ["Type", "Name", "URL"], rows)

    def _show_leaderboard(self, result: AutoMLResult) -> None:
        if result.leaderboard:
            self.show_records("Leaderboard", list(result.leaderboard))

    # Prediction

    def show_schema(self, schema: PredictionSchema) -> None:
        rows = [
            [column, format_value(schema.example.get(column))]
            for column in schema.input_columns
        ]
        self.show_table(
            f"Inputs (target: {schema.target or '-'})", ["Column", "Example"], rows
        )

    def show_prediction(self, prediction: Any, target: str | None = None) -> None:
        label = target or "prediction"
        self.show_system_success(f"{label}: {format_value(prediction)}")

    def show_csv_prediction(self, result: CsvPrediction) -> None:
        if isinstance(result, EvaluationPrediction):
            metrics = scalar_metrics(result.metrics)
            if result.accuracy is not None and not metrics:
                metrics = [["accuracy", format_value(result.accuracy)]]
            self.show_table("Evaluation", ["Metric", "Value"], metrics)
            pairs = list(zip(result.y_true, result.y_pred))[:10]
            if pairs:
                rows = [
                    [format_value(t), format_value(p), "✓" if t == p else "✗"]
                    for t, p in pairs
                ]
                self.show_table(
                    "Predictions vs actual", ["Actual", "Predicted", ""], rows
                )
        elif isinstance(result, BatchPrediction):
            self.show_info(f"Predictions generated for {len(result.predictions)} samples")
            if result.preview:
                records = [
                    {k: v for k, v in row.items() if k != "class_probabilities"}
                    for row in result.preview
                ]
                self.show_records("Predictions", records)

    # Comparison

    def show_comparison(self, comparison: ExperimentComparison) -> None:
        title = "Experiment Comparison"
        if comparison.task_type:
            title += f" ({comparison.task_type})"
        self.show_records(title, comparison.rows())


def _render_mljar(ui: WizardConsole, result: MljarResult) -> None:
    ui._show_result_header(result, "MLJAR AutoML Results")
    if result.best_model:
        ui.show_info(f"Best model: {result.best_model}")
    ui._show_leaderboard(result)
    ui._show_metrics_and_files(result)


def _render_h2o(ui: WizardConsole, result: H2OResult) -> None:
    ui._show_result_header(result, "H2O AutoML Results")
    ui._show_leaderboard(result)
    ui._show_metrics_and_files(result)


def _render_automl(ui: WizardConsole, result: AutoMLResult) -> None:
    ui._show_result_header(result, f"{result.automl_engine or 'AutoML'} Results")
    ui._show_leaderboard(result)
    ui._show_metrics_and_files(result)


def _render_custom(ui: WizardConsole, result: CustomResult) -> None:
    ui._show_result_header(result, "Custom Training Results")
    if result.algorithm:
        ui.show_info(f"Algorithm: {result.algorithm}")
    if result.hyperparameters:
        rows = [[name, format_value(v)] for name, v in result.hyperparameters.items()]
        ui.show_table("Hyperparameters", ["Parameter", "Value"], rows)
    ui._show_metrics_and_files(result)


RESULT_RENDERERS: dict[str, Callable[[WizardConsole, Any], None]] = {
    MljarResult.kind: _render_mljar,
    H2OResult.kind: _render_h2o,
    AutoMLResult.kind: _render_automl,
    CustomResult.kind: _render_custom,
}
