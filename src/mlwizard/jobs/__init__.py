"""mlwizard jobs: experiment submission, polling, results and prediction."""

from mlwizard.jobs.manager import ExperimentManager, TrainingState
from mlwizard.jobs.models import ExperimentStatus, TrainingType
from mlwizard.jobs.params import AutoMLParameters, CustomParameters
from mlwizard.jobs.poller import PollerState, PollOutcome, StatusPoller
from mlwizard.jobs.results import ExperimentResult, classify_results

__all__ = [
    "AutoMLParameters",
    "CustomParameters",
    "ExperimentManager",
    "ExperimentResult",
    "ExperimentStatus",
    "PollOutcome",
    "PollerState",
    "StatusPoller",
    "TrainingState",
    "TrainingType",
    "classify_results",
]
