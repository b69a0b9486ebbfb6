"""Forward-only gate over the dataset wizard tabs."""

from enum import Enum

from mlwizard.session.models import DatasetSession, ProcessingStage


class WizardTab(Enum):
    UPLOAD = "upload"
    EXPLORE = "explore"
    FEATURES = "features"
    PREPROCESS = "preprocess"


TAB_ORDER = [
    WizardTab.UPLOAD,
    WizardTab.EXPLORE,
    WizardTab.FEATURES,
    WizardTab.PREPROCESS,
]


def _features_ready(state: DatasetSession) -> bool:
    if not state.dataset_id:
        return False
    if state.stage_at_least(ProcessingStage.CLEANED):
        return True
    # Datasets uploaded without gaps may skip the cleaning step
    return state.overview is not None and not state.overview.has_missing_values


def is_tab_enabled(state: DatasetSession, tab: WizardTab) -> bool:
    """Return whether ``tab`` may be opened for the given session.

    Only the preceding step's completion condition is checked; earlier steps
    are not re-validated.
    """
    if tab is WizardTab.UPLOAD:
        return True
    if tab is WizardTab.EXPLORE:
        return bool(state.dataset_id)
    if tab is WizardTab.FEATURES:
        return _features_ready(state)
    if tab is WizardTab.PREPROCESS:
        return bool(
            state.dataset_id
            and state.target_column
            and state.task_type
            and state.has_saved_features
        )
    return False


def blocked_reason(state: DatasetSession, tab: WizardTab) -> str | None:
    """User-facing reason why ``tab`` is disabled, or None if it is enabled."""
    if is_tab_enabled(state, tab):
        return None
    if not state.dataset_id:
        return "Please upload a dataset first"
    if tab is WizardTab.FEATURES:
        return "Please process missing values first"
    if not state.target_column or not state.task_type:
        return "Please select a target column and task type first"
    return "Please complete feature selection first"


def initial_tab(state: DatasetSession) -> WizardTab:
    """Tab to resume on for a restored session."""
    if not state.dataset_id:
        return WizardTab.UPLOAD
    if not state.target_column:
        return WizardTab.EXPLORE
    if not state.has_saved_features:
        return WizardTab.FEATURES if _features_ready(state) else WizardTab.EXPLORE
    return WizardTab.PREPROCESS


def next_tab(state: DatasetSession, current: WizardTab) -> WizardTab:
    """Advance one tab if it is enabled, otherwise stay on ``current``."""
    index = TAB_ORDER.index(current)
    if index + 1 >= len(TAB_ORDER):
        return current
    candidate = TAB_ORDER[index + 1]
    return candidate if is_tab_enabled(state, candidate) else current
