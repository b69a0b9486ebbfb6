"""Reducer-style state container for the dataset wizard session."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from mlwizard.error_handling import StageTransitionError
from mlwizard.session.models import (
    ClassImbalanceReport,
    DatasetOverview,
    DatasetSession,
    FeatureImportance,
    ProcessingStage,
    TaskType,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DatasetUploaded:
    """A new dataset was uploaded; starts a fresh session at ``raw``."""

    dataset_id: str
    file_url: str | None = None
    overview: DatasetOverview | None = None


@dataclass(frozen=True)
class MissingValuesHandled:
    overview: DatasetOverview | None = None


@dataclass(frozen=True)
class TargetSelected:
    target_column: str
    task_type: TaskType
    num_classes: int | None = None


@dataclass(frozen=True)
class FeatureImportanceLoaded:
    items: tuple[FeatureImportance, ...]
    task_type: TaskType | None = None


@dataclass(frozen=True)
class FeaturesSaved:
    columns: tuple[str, ...]


@dataclass(frozen=True)
class ClassImbalanceChecked:
    report: ClassImbalanceReport


@dataclass(frozen=True)
class DatasetPreprocessed:
    processed_file_url: str | None = None


@dataclass(frozen=True)
class SessionReset:
    pass


Action = (
    DatasetUploaded
    | MissingValuesHandled
    | TargetSelected
    | FeatureImportanceLoaded
    | FeaturesSaved
    | ClassImbalanceChecked
    | DatasetPreprocessed
    | SessionReset
)


def check_transition(state: DatasetSession, stage: ProcessingStage) -> None:
    """Raise if moving ``state`` to ``stage`` would go backward.

    Raises:
        StageTransitionError: If ``stage`` precedes the current stage
    """
    current = state.processing_stage
    if current is not None and stage < current:
        raise StageTransitionError(
            f"Dataset is already '{current.value}'; cannot go back to "
            f"'{stage.value}'. Reset the session to start over."
        )


def _advance(state: DatasetSession, stage: ProcessingStage) -> ProcessingStage:
    """Return the stage after moving to ``stage``; never moves backward."""
    check_transition(state, stage)
    return stage


def _require_dataset(state: DatasetSession, action: Any) -> None:
    if not state.dataset_id:
        raise StageTransitionError(
            f"{type(action).__name__} requires an uploaded dataset"
        )


def reduce(state: DatasetSession, action: Action) -> DatasetSession:
    """Apply one action and return the next session state.

    Raises:
        StageTransitionError: If the action would move the processing stage
            backward or targets a session with no dataset.
    """
    if isinstance(action, SessionReset):
        return DatasetSession()

    if isinstance(action, DatasetUploaded):
        return DatasetSession(
            dataset_id=action.dataset_id,
            file_url=action.file_url,
            overview=action.overview,
            processing_stage=ProcessingStage.RAW,
        )

    _require_dataset(state, action)

    if isinstance(action, MissingValuesHandled):
        return state.evolve(
            processing_stage=_advance(state, ProcessingStage.CLEANED),
            overview=action.overview or state.overview,
        )

    if isinstance(action, TargetSelected):
        if action.target_column == state.target_column:
            return state.evolve(
                task_type=action.task_type,
                num_classes=action.num_classes or state.num_classes,
            )
        # Cached analyses are tied to the previous target
        return state.evolve(
            target_column=action.target_column,
            task_type=action.task_type,
            num_classes=action.num_classes,
            feature_importance=(),
            class_imbalance=None,
        )

    if isinstance(action, FeatureImportanceLoaded):
        return state.evolve(
            feature_importance=tuple(action.items),
            task_type=action.task_type or state.task_type,
        )

    if isinstance(action, FeaturesSaved):
        if not action.columns:
            raise StageTransitionError("Cannot save an empty feature selection")
        return state.evolve(
            columns_to_keep=tuple(action.columns),
            processing_stage=_advance(state, ProcessingStage.FEATURES_SELECTED),
        )

    if isinstance(action, ClassImbalanceChecked):
        return state.evolve(class_imbalance=action.report)

    if isinstance(action, DatasetPreprocessed):
        return state.evolve(
            processing_stage=_advance(state, ProcessingStage.PROCESSED),
            processed_file_url=action.processed_file_url or state.processed_file_url,
        )

    raise TypeError(f"Unknown session action: {action!r}")


Listener = Callable[[DatasetSession], None]


class SessionStore:
    """Holds the current :class:`DatasetSession` and applies actions to it.

    Consumers receive the store by injection and never mutate state directly.
    Listeners run after every successful dispatch (e.g. to persist the session).
    """

    def __init__(self, state: DatasetSession | None = None):
        self._state = state or DatasetSession()
        self._listeners: list[Listener] = []

    @property
    def state(self) -> DatasetSession:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def dispatch(self, action: Action) -> DatasetSession:
        new_state = reduce(self._state, action)
        logger.debug(
            f"{type(action).__name__}: stage "
            f"{getattr(self._state.processing_stage, 'value', None)} -> "
            f"{getattr(new_state.processing_stage, 'value', None)}"
        )
        self._state = new_state
        for listener in list(self._listeners):
            listener(new_state)
        return new_state

    def reset(self) -> DatasetSession:
        return self.dispatch(SessionReset())

    def to_dict(self) -> dict[str, Any]:
        return self._state.to_dict()

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "SessionStore":
        """Restore a store from persisted data, starting empty when unreadable."""
        if not data:
            return cls()
        try:
            return cls(DatasetSession.from_dict(data))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Discarding invalid persisted session: {e}")
            return cls()
