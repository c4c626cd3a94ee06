from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

from toggle_analysis.common.models import AnalysisPanel, ViewModel

TEAL = "#2BB3A3"
AMBER = "#F5A623"


_analysis_theme = Theme(
    {
        "primary": TEAL,
        "accent": AMBER,
        "bold": "bold",
        "success": "green bold",
        "error": "red bold",
        "warning": "yellow bold",
        "info": "blue bold",
    }
)


_console: Console | None = None


def get_console(force_terminal: bool | None = None) -> Console:
    global _console

    if _console is None or force_terminal is not None:
        _console = Console(
            theme=_analysis_theme,
            force_terminal=force_terminal,
            legacy_windows=False,
        )

    return _console


def success_badge() -> Text:
    return Text("[SUCCESS]", style="success")


def failed_badge() -> Text:
    return Text("[FAILED]", style="error")


def pending_badge() -> Text:
    return Text("[PENDING]", style=f"bold {AMBER}")


def _cell(value: object) -> str:
    if value is None:
        return "-"
    if isinstance(value, (list, tuple)):
        return escape("[" + ", ".join(str(v) for v in value) + "]")
    return escape(str(value))


def create_results_table(view_model: ViewModel) -> Table:
    """Render table rows verbatim; statistics are shown exactly as received."""
    table = Table(
        title="Variation Results",
        title_style=f"bold {TEAL}",
        border_style=AMBER,
        header_style=f"bold {TEAL}",
        row_styles=["", "dim"],
        padding=(0, 1),
    )

    table.add_column("Variation", style="bold")
    table.add_column("Mean", justify="right")
    table.add_column("Winning %", justify="right")
    table.add_column("Credible Interval", justify="right")
    table.add_column("Sample Size", justify="right")

    if not view_model.has_data:
        table.add_row("-", "-", "-", "-", "-")
        return table

    for row in view_model.table_rows:
        table.add_row(
            escape(row.name) if row.name else "-",
            _cell(row.mean),
            _cell(row.winning_percentage),
            _cell(row.credible_interval),
            _cell(row.sample_size),
        )

    return table


def create_summary_panel(panel: AnalysisPanel) -> Panel:
    window = panel.window
    collection = ("collecting", "success") if panel.collection_enabled else ("stopped", "warning")

    summary = Text.assemble(
        ("Event: ", "info"),
        (panel.event.name if panel.event else "not configured", "bold accent"),
        (f" ({panel.event_summary})" if panel.event_summary else "", "default"),
        ("\n", "default"),
        ("Window: ", "info"),
        (f"{window.start} - {window.end}" if window else "-", "bold accent"),
        ("\n", "default"),
        ("Collection: ", "info"),
        collection,
        ("\n", "default"),
        ("Iterations: ", "info"),
        (f"{len(panel.iterations)}", "bold accent"),
        ("\n", "default"),
        ("Buckets: ", "info"),
        (f"{len(panel.view_model.axis_labels)}", "bold accent"),
    )

    return Panel(summary, title="Analysis", border_style="accent")
