"""Experiment lifecycle: submit, poll, resolve and fetch results."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from mlwizard.core.client import WizardClient
from mlwizard.error_handling import ExperimentInProgressError, ValidationError, WizardError
from mlwizard.jobs.models import ExperimentStatus, TrainingType, advance_status
from mlwizard.jobs.params import AutoMLParameters, CustomParameters
from mlwizard.jobs.poller import (
    DEFAULT_POLL_INTERVAL,
    DEFAULT_SOFT_TIMEOUT,
    PollOutcome,
    StatusPoller,
    evaluate_status,
)
from mlwizard.jobs.results import ExperimentResult, classify_results
from mlwizard.session.store import SessionStore

logger = logging.getLogger(__name__)


@dataclass
class TrainingState:
    """Training-side session state; everything except results is persisted."""

    active_experiment_id: str | None = None
    last_training_type: TrainingType | None = None
    is_training: bool = False
    status: ExperimentStatus | None = None
    status_message: str | None = None
    error: str | None = None
    timed_out: bool = False
    automl_parameters: AutoMLParameters = field(default_factory=AutoMLParameters)
    custom_parameters: CustomParameters = field(default_factory=CustomParameters)
    results: ExperimentResult | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "active_experiment_id": self.active_experiment_id,
            "last_training_type": (
                self.last_training_type.value if self.last_training_type else None
            ),
            "is_training": self.is_training,
            "status": self.status.value if self.status else None,
            "error": self.error,
            "automl_parameters": self.automl_parameters.to_dict(),
            "custom_parameters": self.custom_parameters.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "TrainingState":
        if not data:
            return cls()
        training_type = data.get("last_training_type")
        if training_type not in {t.value for t in TrainingType}:
            training_type = None
        return cls(
            active_experiment_id=data.get("active_experiment_id"),
            last_training_type=TrainingType(training_type) if training_type else None,
            is_training=bool(data.get("is_training", False)),
            status=ExperimentStatus.parse(data.get("status")),
            error=data.get("error"),
            automl_parameters=AutoMLParameters.from_dict(
                data.get("automl_parameters") or {}
            ),
            custom_parameters=CustomParameters.from_dict(
                data.get("custom_parameters") or {}
            ),
        )


Listener = Callable[[TrainingState], None]


class ExperimentManager:
    """Owns the single active experiment of a session.

    Submissions are validated locally before any request, and a second
    submission while one is in flight raises :class:`ExperimentInProgressError`.
    """

    def __init__(
        self,
        client: WizardClient,
        session: SessionStore,
        state: TrainingState | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        soft_timeout: float = DEFAULT_SOFT_TIMEOUT,
        max_errors: int | None = None,
        max_attempts: int | None = None,
    ):
        self.client = client
        self.session = session
        self.state = state or TrainingState()
        self._listeners: list[Listener] = []
        self.poller = StatusPoller(
            client,
            interval=poll_interval,
            soft_timeout=soft_timeout,
            on_update=self._on_status_update,
            on_resolved=self._on_resolved,
            on_soft_timeout=self._on_soft_timeout,
            max_errors=max_errors,
            max_attempts=max_attempts,
        )

    @property
    def is_training(self) -> bool:
        return self.state.is_training

    @property
    def active_experiment_id(self) -> str | None:
        return self.state.active_experiment_id

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called after every state change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self.state)

    def _ensure_idle(self) -> None:
        if self.state.is_training:
            raise ExperimentInProgressError(
                f"Experiment {self.state.active_experiment_id} is still training. "
                "Wait for it to finish or reset first."
            )

    async def submit_automl(self, params: AutoMLParameters | None = None) -> str:
        """Validate and submit an AutoML run; returns the experiment id.

        Raises:
            ValidationError: If the parameters or session are incomplete
            ExperimentInProgressError: If another run is in flight
            ApiError: If the service rejects the submission
        """
        params = params or self.state.automl_parameters
        session = self.session.state
        form = params.to_form(session.dataset_id, session.task_type)
        self._ensure_idle()
        self.state.automl_parameters = params
        return await self._submit(
            TrainingType.AUTOML, lambda: self.client.automl_train(form)
        )

    async def submit_custom(self, params: CustomParameters | None = None) -> str:
        """Validate and submit a single-algorithm run; returns the experiment id."""
        params = params or self.state.custom_parameters
        session = self.session.state
        form = params.to_form(session.dataset_id, session.task_type)
        self._ensure_idle()
        self.state.custom_parameters = params
        return await self._submit(
            TrainingType.CUSTOM, lambda: self.client.custom_train(form)
        )

    async def submit_tuning(
        self, experiment_id: str, hyperparameters: dict[str, Any]
    ) -> str:
        """Retrain a finished experiment with new hyperparameters.

        The service starts a new experiment, which becomes the active one.
        """
        if not experiment_id:
            raise ValidationError("Experiment ID is required for tuning")
        self._ensure_idle()
        return await self._submit(
            TrainingType.CUSTOM,
            lambda: self.client.tune_model(experiment_id, hyperparameters),
        )

    async def _submit(
        self,
        training_type: TrainingType,
        send: Callable[[], Awaitable[dict[str, Any]]],
    ) -> str:
        state = self.state
        state.is_training = True
        state.error = None
        state.results = None
        state.timed_out = False
        self._notify()

        try:
            payload = await send()
        except WizardError as e:
            if self.state is state:
                state.is_training = False
                state.active_experiment_id = None
                state.error = e.message
                self._notify()
            logger.error(f"Failed to start {training_type.value} training: {e.message}")
            raise

        experiment_id = str(payload["experiment_id"])
        if self.state is not state:
            # Reset while the request was in flight
            logger.warning(
                f"Dropping experiment {experiment_id}: training state was reset "
                "before the service answered"
            )
            return experiment_id

        state.active_experiment_id = experiment_id
        state.last_training_type = training_type
        state.status = ExperimentStatus.SUBMITTED
        state.status_message = payload.get("message")
        logger.info(f"Submitted {training_type.value} experiment {experiment_id}")
        self._notify()

        self.poller.start(experiment_id)
        return experiment_id

    def resume(self) -> bool:
        """Restart polling for a restored in-flight experiment.

        Returns:
            True if polling was restarted
        """
        experiment_id = self.state.active_experiment_id
        if not experiment_id or not self.state.is_training:
            return False
        if self.state.status is not None and self.state.status.is_terminal:
            self.state.is_training = False
            self._notify()
            return False
        logger.info(f"Resuming status polling for {experiment_id}")
        self.poller.start(experiment_id)
        return True

    async def refresh_status(self) -> ExperimentStatus | None:
        """Check the active experiment's status once, without polling.

        A terminal status resolves the poller too, so a running watch ends.
        """
        experiment_id = self.state.active_experiment_id
        if not experiment_id:
            raise ValidationError("No active experiment. Submit a training run first")

        state = self.state
        payload = await self.client.check_status(experiment_id)
        if self.state is not state or state.active_experiment_id != experiment_id:
            return self.state.status

        status, outcome = evaluate_status(experiment_id, payload, state.status)
        state.status = status
        state.status_message = payload.get("message") or state.status_message
        if outcome is not None and state.is_training:
            if not self.poller.resolve(outcome):
                self._on_resolved(outcome)
        else:
            self._notify()
        return state.status

    async def wait_for_completion(self) -> ExperimentResult | None:
        """Wait for the active run to finish and fetch its results on success."""
        outcome = await self.poller.wait()
        if outcome is None or not outcome.succeeded:
            return None
        return await self.fetch_results()

    async def fetch_results(self, experiment_id: str | None = None) -> ExperimentResult:
        """Fetch and classify results for ``experiment_id`` or the active run.

        Results for the active experiment are also stored on the state.
        """
        target = experiment_id or self.state.active_experiment_id
        if not target:
            raise ValidationError("No active experiment. Submit a training run first")

        payload = await self.client.get_experiment_results(target)
        if isinstance(payload, dict) and not payload.get("experiment_id"):
            payload = {**payload, "experiment_id": target}
        result = classify_results(payload)

        if target == self.state.active_experiment_id:
            self.state.results = result
            self.state.status = advance_status(self.state.status, result.status)
            self._notify()
        return result

    def reset(self, full: bool = False) -> None:
        """Stop polling and clear the active experiment.

        With ``full`` the dataset session is reset too, which puts the wizard
        back on its first tab.
        """
        self.poller.stop()
        self.state = TrainingState()
        if full:
            self.session.reset()
        logger.info("Training state reset" + (" (full)" if full else ""))
        self._notify()

    def _on_status_update(self, experiment_id: str, payload: dict[str, Any]) -> None:
        if experiment_id != self.state.active_experiment_id:
            return
        observed = ExperimentStatus.parse(payload.get("status"))
        self.state.status = advance_status(self.state.status, observed)
        self.state.status_message = payload.get("message") or self.state.status_message
        self._notify()

    def _on_resolved(self, outcome: PollOutcome) -> None:
        if outcome.experiment_id != self.state.active_experiment_id:
            return
        self.state.is_training = False
        self.state.status = outcome.status
        if not outcome.succeeded:
            self.state.error = outcome.error_message
            logger.error(
                f"Experiment {outcome.experiment_id} failed: {outcome.error_message}"
            )
        self._notify()

    def _on_soft_timeout(self, experiment_id: str) -> None:
        if experiment_id == self.state.active_experiment_id:
            self.state.timed_out = True
            self._notify()
