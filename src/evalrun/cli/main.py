"""CLI entrypoint for evalrun."""

import asyncio
from pathlib import Path

import structlog
import typer

from evalrun.client import EvalRunClient
from evalrun.config.domain.settings import ClientSettings
from evalrun.config.infrastructure.settings_loader import load_settings
from evalrun.core.errors import EvalRunError
from evalrun.execution.application.poller import CompletionPoller, calculate_polling_interval
from evalrun.execution.infrastructure.logger import StructlogRunLogger, render_status_table
from evalrun.remote.domain.models import RunResult, RunStatus

app = typer.Typer(add_completion=False)

_CONFIG_HELP = "Path to a settings YAML file; EVALRUN_* variables are used when omitted"
_LOG_FORMAT_HELP = "Log format: 'console' or 'json'"


def _configure_structlog(log_format: str) -> None:
    """Configure structlog based on the requested format."""
    if log_format == "console":
        renderer: structlog.types.Processor = structlog.dev.ConsoleRenderer()
    elif log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        typer.echo(f"Invalid log format: {log_format!r}. Must be 'console' or 'json'.")
        raise typer.Exit(code=1)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(0),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
    )


def _make_client(settings: ClientSettings) -> EvalRunClient:
    return EvalRunClient.from_settings(settings)


def _load(config_path: Path | None) -> ClientSettings:
    try:
        return load_settings(path=config_path)
    except EvalRunError as exc:
        typer.echo(str(exc))
        raise typer.Exit(code=1) from exc


def _resolve_workspace(settings: ClientSettings, workspace_id: str | None) -> str:
    resolved = workspace_id or settings.workspace_id
    if not resolved:
        typer.echo(
            "No workspace id given. Pass --workspace or set workspace_id in the settings."
        )
        raise typer.Exit(code=1)
    return resolved


def _print_result(result: RunResult) -> None:
    typer.echo(f"View the report here: {result.link}")
    for summary in result.result:
        typer.echo(f"\n{summary.name}")
        for evaluator, scores in sorted(summary.individual_evaluator_mean_score.items()):
            rendered = ", ".join(f"{key}={value}" for key, value in scores.items())
            typer.echo(f"  {evaluator}: {rendered}")


@app.command()
def interval(
    timeout: float = typer.Option(15, "--timeout", help="Run timeout in minutes"),
    ai: bool = typer.Option(False, "--ai", help="An AI evaluator is attached to the run"),
) -> None:
    """Print the polling interval used for a run with the given timeout."""
    if timeout <= 0:
        typer.echo(f"Invalid timeout: {timeout}. Must be greater than zero.")
        raise typer.Exit(code=1)
    typer.echo(str(calculate_polling_interval(timeout, is_ai_evaluator_in_use=ai)))


@app.command()
def status(
    run_id: str = typer.Argument(..., help="Id of the hosted test run"),
    config_path: Path | None = typer.Option(None, "--config", "-c", help=_CONFIG_HELP),
    log_format: str = typer.Option("console", "--log-format", help=_LOG_FORMAT_HELP),
) -> None:
    """Fetch a test run's status once and print the entry breakdown."""
    _configure_structlog(log_format=log_format)
    settings = _load(config_path)

    async def _fetch() -> RunStatus:
        async with _make_client(settings) as client:
            return await client.test_runs.get_status(run_id)

    try:
        run_status = asyncio.run(_fetch())
    except EvalRunError as exc:
        typer.echo(str(exc))
        raise typer.Exit(code=1) from exc

    typer.echo(f"Test run is {run_status.test_run_status.value}")
    typer.echo(render_status_table(run_status.entry_status))


@app.command()
def wait(
    run_id: str = typer.Argument(..., help="Id of the hosted test run"),
    timeout: float | None = typer.Option(
        None, "--timeout", help="Minutes to wait; defaults to the settings value"
    ),
    ai: bool = typer.Option(False, "--ai", help="An AI evaluator is attached to the run"),
    workspace_id: str | None = typer.Option(
        None, "--workspace", "-w", help="Workspace id used in the run URL"
    ),
    config_path: Path | None = typer.Option(None, "--config", "-c", help=_CONFIG_HELP),
    log_format: str = typer.Option("console", "--log-format", help=_LOG_FORMAT_HELP),
) -> None:
    """Wait for a test run to finish, then print its report link and scores."""
    _configure_structlog(log_format=log_format)
    settings = _load(config_path)
    workspace = _resolve_workspace(settings, workspace_id)
    timeout_minutes = timeout if timeout is not None else settings.default_timeout_minutes

    async def _wait() -> RunResult:
        async with _make_client(settings) as client:
            poller = CompletionPoller(
                controller=client.test_runs,
                logger=StructlogRunLogger(),
                base_url=client.base_url,
                workspace_id=workspace,
            )
            await poller.wait(
                run_id,
                timeout_minutes=timeout_minutes,
                is_ai_evaluator_in_use=ai,
            )
            result = await client.test_runs.get_final_result(run_id)
            return result.model_copy(update={"link": client.base_url + result.link})

    try:
        result = asyncio.run(_wait())
    except KeyboardInterrupt:
        typer.echo("Wait interrupted.")
        raise typer.Exit(code=1) from None
    except EvalRunError as exc:
        typer.echo(str(exc))
        raise typer.Exit(code=1) from exc

    _print_result(result)


if __name__ == "__main__":
    app()
