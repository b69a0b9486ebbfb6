"""Printer: centralizes console output for the mlwizard CLI.

- Provides output sections that automatically insert a trailing blank line.
- Delegates actual rendering to rich.console.Console, but keeps formatting
  decisions out of CLI business logic.
"""

from contextlib import contextmanager, suppress

from rich.console import Console
from rich.status import Status


class SectionPrinter:
    """Prints inside a section, prefixing the first text line with a dot."""

    def __init__(self, printer: "Printer", color: str, add_dot: bool):
        self.printer = printer
        self.color = color
        self.add_dot = add_dot
        self._started = False

    def print(self, *args, **kwargs) -> None:
        # Rich renderables (tables, panels) carry their own structure
        is_rich_object = bool(args) and hasattr(args[0], "__rich_console__")
        if not self._started and self.add_dot and args and not is_rich_object:
            first, *rest = str(args[0]).split("\n", 1)
            text = f"[{self.color}]⏺[/{self.color}] {first}"
            if rest:
                text += "\n" + rest[0]
            args = (text,) + args[1:]
        self._started = True
        self.printer.console.print(*args, **kwargs)


class Printer:
    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    @contextmanager
    def output_section(self, separator_style: str = "blank"):
        """Group an output block and add a separator line after it."""
        try:
            yield self
        finally:
            with suppress(Exception):
                self.add_separator(separator_style)

    @contextmanager
    def section(
        self,
        color: str = "cyan",
        add_dot: bool = True,
        separator_style: str = "blank",
    ):
        """Context manager for a block of output with a dot prefix and a
        trailing separator.

        Args:
            color: Color for the dot prefix
            add_dot: Whether to add a dot prefix
            separator_style: Style of separator after section ("blank", "line",
                "dots", "space")
        """
        section_printer = SectionPrinter(self, color, add_dot)
        try:
            yield section_printer
        finally:
            self.add_separator(separator_style)

    @contextmanager
    def status(self, message: str):
        """Show a spinner while a long-running call is in flight."""
        if not self.console.is_terminal:
            yield None
            return
        with Status(message, console=self.console, spinner="dots") as status:
            yield status

    def print(self, *args, **kwargs) -> None:
        """Direct print passthrough to the underlying console.

        Use this for simple output that doesn't need section management.
        For organized output with dots and separation, use section() context manager.
        """
        self.console.print(*args, **kwargs)

    def add_separator(self, style: str = "blank") -> None:
        """Add a separator line with configurable style.

        Args:
            style: Type of separator - "blank" (default), "line", "dots", etc.
        """
        if style == "line":
            self.console.print("─" * 50, style="dim")
        elif style == "dots":
            self.console.print("⋯" * 25, style="dim")
        elif style == "space":
            self.console.print(" ")
        else:
            self.console.print("")

    def show_message(
        self, message: str, style: str | None = None, use_section: bool = True
    ) -> None:
        """Show a message, optionally with section management.

        Args:
            message: The message to display
            style: Optional Rich style
            use_section: Whether to use section context (adds separator line)
        """
        if use_section:
            with self.output_section() as p:
                p.print(message, style=style)
        else:
            self.console.print(message, style=style)
