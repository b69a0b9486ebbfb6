"""Cancellable status polling for remote training runs."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import httpx

from mlwizard.core.client import WizardClient
from mlwizard.error_handling import ApiError
from mlwizard.jobs.models import ExperimentStatus, advance_status

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_SOFT_TIMEOUT = 60.0


class PollerState(Enum):
    """Lifecycle of a :class:`StatusPoller`."""

    IDLE = "idle"
    POLLING = "polling"
    RESOLVED_SUCCESS = "resolved_success"
    RESOLVED_FAILURE = "resolved_failure"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class PollOutcome:
    """Terminal result of polling one experiment."""

    experiment_id: str
    status: ExperimentStatus
    error_message: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status.is_success


def _has_training_results(payload: dict[str, Any]) -> bool:
    return bool(payload.get("hasTrainingResults") or payload.get("has_training_results"))


def evaluate_status(
    experiment_id: str,
    payload: dict[str, Any],
    current: ExperimentStatus | None = None,
) -> tuple[ExperimentStatus | None, PollOutcome | None]:
    """Fold one status response into ``current``.

    Returns the advanced status and, when the response is terminal, the
    outcome. A failed status or any ``error_message`` is a failure; a
    completed or success status, or a training-results flag, is a success.
    """
    status = advance_status(current, ExperimentStatus.parse(payload.get("status")))

    error_message = payload.get("error_message")
    if status is ExperimentStatus.FAILED or error_message:
        return ExperimentStatus.FAILED, PollOutcome(
            experiment_id,
            ExperimentStatus.FAILED,
            error_message or "Training failed",
            payload,
        )
    if status is not None and status.is_success:
        return status, PollOutcome(experiment_id, status, None, payload)
    if _has_training_results(payload):
        return ExperimentStatus.COMPLETED, PollOutcome(
            experiment_id, ExperimentStatus.COMPLETED, None, payload
        )
    return status, None


class StatusPoller:
    """Polls ``check_status`` on a fixed interval until a terminal status.

    At most one polling task exists per poller: :meth:`start` cancels the
    previous one. Every tick carries the generation it was started under, and
    responses from an older generation are dropped.

    Tick errors are logged and polling continues. ``max_errors`` and
    ``max_attempts`` optionally bound that; both default to unlimited.
    """

    def __init__(
        self,
        client: WizardClient,
        interval: float = DEFAULT_POLL_INTERVAL,
        soft_timeout: float = DEFAULT_SOFT_TIMEOUT,
        on_update: Callable[[str, dict[str, Any]], None] | None = None,
        on_resolved: Callable[[PollOutcome], None] | None = None,
        on_soft_timeout: Callable[[str], None] | None = None,
        max_errors: int | None = None,
        max_attempts: int | None = None,
    ):
        self.client = client
        self.interval = interval
        self.soft_timeout = soft_timeout
        self.on_update = on_update
        self.on_resolved = on_resolved
        self.on_soft_timeout = on_soft_timeout
        self.max_errors = max_errors
        self.max_attempts = max_attempts

        self.state = PollerState.IDLE
        self.experiment_id: str | None = None
        self.status: ExperimentStatus | None = None
        self.timed_out = False
        self.attempts = 0
        self.consecutive_errors = 0

        self._generation = 0
        self._task: asyncio.Task | None = None
        self._outcome: asyncio.Future | None = None

    @property
    def is_polling(self) -> bool:
        return self.state is PollerState.POLLING

    def start(self, experiment_id: str) -> None:
        """Begin polling ``experiment_id``; must be called inside a running loop."""
        self.stop()

        loop = asyncio.get_running_loop()
        self._generation += 1
        self.experiment_id = experiment_id
        self.status = ExperimentStatus.SUBMITTED
        self.timed_out = False
        self.attempts = 0
        self.consecutive_errors = 0
        self.state = PollerState.POLLING
        self._outcome = loop.create_future()
        self._task = loop.create_task(self._run(self._generation, experiment_id))
        logger.info(f"Started polling experiment {experiment_id}")

    def stop(self) -> None:
        """Cancel polling. Pending :meth:`wait` calls resolve to None."""
        task = self._task
        self._task = None
        self._generation += 1

        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        if self._outcome is not None and not self._outcome.done():
            self._outcome.set_result(None)
        if self.state is PollerState.POLLING:
            self.state = PollerState.CANCELLED
            logger.info(f"Stopped polling experiment {self.experiment_id}")

    def resolve(self, outcome: PollOutcome) -> bool:
        """Finish polling with a terminal status observed outside the loop.

        Returns:
            True if the poller was following ``outcome.experiment_id``
        """
        if not self.is_polling or outcome.experiment_id != self.experiment_id:
            return False
        task = self._task
        self._generation += 1
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        self._resolve(self._generation, outcome)
        return True

    async def aclose(self) -> None:
        """Stop polling and wait for the cancelled task to unwind."""
        task = self._task
        self.stop()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def wait(self) -> PollOutcome | None:
        """Wait for the terminal outcome, or None if polling was cancelled."""
        if self._outcome is None:
            return None
        return await asyncio.shield(self._outcome)

    async def _run(self, generation: int, experiment_id: str) -> None:
        loop = asyncio.get_running_loop()
        started = loop.time()

        while generation == self._generation:
            await asyncio.sleep(self.interval)
            if generation != self._generation:
                return

            self.attempts += 1
            outcome = await self._tick(generation, experiment_id)
            if generation != self._generation:
                return
            if outcome is not None:
                self._resolve(generation, outcome)
                return

            if not self.timed_out and loop.time() - started >= self.soft_timeout:
                self.timed_out = True
                logger.warning(
                    f"Experiment {experiment_id} is taking longer than expected; "
                    "still polling"
                )
                if self.on_soft_timeout:
                    self.on_soft_timeout(experiment_id)

            if self.max_attempts is not None and self.attempts >= self.max_attempts:
                self._resolve(
                    generation,
                    PollOutcome(
                        experiment_id,
                        ExperimentStatus.FAILED,
                        f"Training did not finish after {self.attempts} status checks",
                    ),
                )
                return

    async def _tick(self, generation: int, experiment_id: str) -> PollOutcome | None:
        try:
            payload = await self.client.check_status(experiment_id)
        except (ApiError, httpx.HTTPError) as e:
            if generation != self._generation:
                return None
            self.consecutive_errors += 1
            logger.warning(
                f"Status check {self.attempts} for {experiment_id} failed: {e}"
            )
            if self.max_errors is not None and self.consecutive_errors >= self.max_errors:
                return PollOutcome(
                    experiment_id,
                    ExperimentStatus.FAILED,
                    f"Failed to check training status after {self.consecutive_errors} "
                    "attempts. The server might be unavailable.",
                )
            return None

        if generation != self._generation:
            logger.debug(f"Dropping stale status response for {experiment_id}")
            return None
        self.consecutive_errors = 0
        if not isinstance(payload, dict):
            payload = {}
        logger.debug(f"Experiment {experiment_id} status: {payload.get('status')}")
        self.status, outcome = evaluate_status(experiment_id, payload, self.status)
        if self.on_update:
            self.on_update(experiment_id, payload)
        return outcome

    def _resolve(self, generation: int, outcome: PollOutcome) -> None:
        if generation != self._generation:
            return
        self.status = outcome.status
        self.state = (
            PollerState.RESOLVED_SUCCESS
            if outcome.succeeded
            else PollerState.RESOLVED_FAILURE
        )
        self._task = None
        if self._outcome is not None and not self._outcome.done():
            self._outcome.set_result(outcome)
        logger.info(
            f"Experiment {outcome.experiment_id} finished with status "
            f"{outcome.status.value}"
        )
        if self.on_resolved:
            self.on_resolved(outcome)
