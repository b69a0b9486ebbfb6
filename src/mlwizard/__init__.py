"""mlwizard - a terminal client for a remote AutoML training service."""

__version__ = "0.1.0"


def main() -> None:
    """Entry point for the mlwizard CLI."""
    from mlwizard.ui.cli import cli

    cli()
