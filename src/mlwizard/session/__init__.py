"""Dataset wizard session: state, transitions and the step workflow."""

from mlwizard.session.models import (
    ClassImbalanceReport,
    DatasetOverview,
    DatasetSession,
    FeatureImportance,
    ProcessingStage,
    TaskType,
)
from mlwizard.session.store import SessionStore, reduce
from mlwizard.session.wizard import WizardTab, is_tab_enabled

__all__ = [
    "ClassImbalanceReport",
    "DatasetOverview",
    "DatasetSession",
    "FeatureImportance",
    "ProcessingStage",
    "SessionStore",
    "TaskType",
    "WizardTab",
    "is_tab_enabled",
    "reduce",
]
