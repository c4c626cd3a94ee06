"""Command line entry point for toggle analysis.

Commands:
    show     Print the results table and analysis summary for a toggle
    collect  Start or stop event collection for a toggle

Scope keys and the window can be passed as arguments/options or taken from
the ``analysis`` section of a YAML file (default: analysis.yaml).

Dependencies:
    - toggle_analysis.results.controller: AnalysisController
    - toggle_analysis.common.display: Rich console output
"""

import asyncio
from collections.abc import Callable
from pathlib import Path
from typing import Annotated

import typer

from toggle_analysis.client.analysis_client import AnalysisClient
from toggle_analysis.common.config import Settings
from toggle_analysis.common.display import (
    create_results_table,
    create_summary_panel,
    failed_badge,
    get_console,
    pending_badge,
    success_badge,
)
from toggle_analysis.common.logging import configure_log_path
from toggle_analysis.common.models import AnalysisBackend, AnalysisPanel, ScopeKeys
from toggle_analysis.common.observability import init_logfire
from toggle_analysis.common.yaml_config import load_scope_config
from toggle_analysis.results.collection_toggle import ToggleOutcome
from toggle_analysis.results.controller import AnalysisController
from toggle_analysis.results.navigation import LocationNavigation

app = typer.Typer(help="Inspect experiment analysis results for a feature toggle.")

DEFAULT_CONFIG_PATH = Path("analysis.yaml")

STOP_CONFIRMATION = (
    "Results already exist for this toggle. Stopping collection will interrupt the "
    "analysed window. Stop anyway?"
)

backend_factory: Callable[[Settings], AnalysisBackend] = AnalysisClient.from_settings

ProjectArg = Annotated[str | None, typer.Argument(help="Project key")]
EnvironmentArg = Annotated[str | None, typer.Argument(help="Environment key")]
ToggleArg = Annotated[str | None, typer.Argument(help="Toggle key")]
ConfigOption = Annotated[
    Path, typer.Option("--config", help="YAML file with default scope and window")
]


def _build_controller(
    project: str | None,
    environment: str | None,
    toggle: str | None,
    start: str | None,
    end: str | None,
    config_path: Path,
) -> AnalysisController:
    console = get_console()
    defaults = load_scope_config(config_path)

    project = project or defaults.project_key
    environment = environment or defaults.environment_key
    toggle = toggle or defaults.toggle_key
    if not (project and environment and toggle):
        console.print("[error]Project, environment and toggle keys are required[/error]")
        raise typer.Exit(code=2)

    settings = Settings()
    configure_log_path(settings.log_path)
    init_logfire(settings)

    scope = ScopeKeys(project_key=project, environment_key=environment, toggle_key=toggle)
    params = {
        key: value
        for key, value in (("start", start or defaults.start), ("end", end or defaults.end))
        if value
    }
    return AnalysisController(
        scope, backend_factory(settings), navigation=LocationNavigation(scope, params)
    )


def _print_notifications(panel: AnalysisPanel) -> None:
    console = get_console()
    for message in panel.notifications:
        console.print(failed_badge(), message)


@app.command()
def show(
    project: ProjectArg = None,
    environment: EnvironmentArg = None,
    toggle: ToggleArg = None,
    start: Annotated[str | None, typer.Option("--start", help="Window start")] = None,
    end: Annotated[str | None, typer.Option("--end", help="Window end")] = None,
    config_path: ConfigOption = DEFAULT_CONFIG_PATH,
) -> None:
    """Show the analysis results table for a toggle."""
    console = get_console()
    controller = _build_controller(project, environment, toggle, start, end, config_path)

    asyncio.run(controller.initialize())
    panel = controller.snapshot()

    console.print(create_summary_panel(panel))
    console.print()
    if panel.show_event_tip:
        console.print(
            "[warning]No metric event is configured; results appear once one is set.[/warning]"
        )
    console.print(create_results_table(panel.view_model))
    console.print(f"[dim]{panel.location}[/dim]")
    _print_notifications(panel)


@app.command()
def collect(
    action: Annotated[str, typer.Argument(help="'start' or 'stop'")],
    project: ProjectArg = None,
    environment: EnvironmentArg = None,
    toggle: ToggleArg = None,
    yes: Annotated[
        bool, typer.Option("--yes", "-y", help="Confirm stopping without prompting")
    ] = False,
    config_path: ConfigOption = DEFAULT_CONFIG_PATH,
) -> None:
    """Start or stop event collection for a toggle."""
    console = get_console()
    if action not in ("start", "stop"):
        console.print(f"[error]Unknown action {action!r}; use 'start' or 'stop'[/error]")
        raise typer.Exit(code=2)

    controller = _build_controller(project, environment, toggle, None, None, config_path)

    async def run() -> ToggleOutcome:
        await controller.initialize()
        if action == "start":
            return await controller.start_collection()

        outcome = await controller.stop_collection()
        if outcome != "confirmation_required":
            return outcome
        console.print(pending_badge(), "Stopping collection requires confirmation")
        if yes or typer.confirm(STOP_CONFIRMATION, default=False):
            return await controller.confirm_stop()
        controller.cancel_stop()
        return "ignored"

    outcome = asyncio.run(run())
    panel = controller.snapshot()
    _print_notifications(panel)

    state = "collecting" if panel.collection_enabled else "stopped"
    if outcome == "issued":
        console.print(success_badge(), f"Collection is now {state}", style="success")
    elif outcome == "failed":
        raise typer.Exit(code=1)
    else:
        console.print(f"[info]No change; collection is {state}[/info]")


if __name__ == "__main__":
    app()
