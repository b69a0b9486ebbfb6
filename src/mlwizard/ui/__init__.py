"""User interface components for the mlwizard CLI."""

from mlwizard.ui.cli import cli
from mlwizard.ui.console import WizardConsole

__all__ = [
    "cli",
    "WizardConsole",
]
