"""Core components for mlwizard."""

from mlwizard.core.client import WizardClient
from mlwizard.core.config import SettingsManager

__all__ = [
    "SettingsManager",
    "WizardClient",
]
