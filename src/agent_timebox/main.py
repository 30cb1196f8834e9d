"""CLI entrypoint for agent-timebox."""

import logging
from pathlib import Path

import rich_click as click

from agent_timebox import __version__
from agent_timebox.config import AUTO_BACKEND
from agent_timebox.controllers import (
    AgentCliController,
    CompareCommand,
    RunCommand,
    SmokeCommand,
)
from agent_timebox.runtime.errors import ExecutionError
from agent_timebox.runtime.smoke import DEFAULT_SMOKE_PROMPT

click.rich_click.USE_MARKDOWN = True
CONTROLLER = AgentCliController()


@click.group()
@click.version_option(version=__version__, prog_name="agent-timebox")
@click.option("--verbose", is_flag=True, default=False, help="Log runtime details to stderr.")
def agent_timebox(verbose: bool) -> None:
    """Bounded execution of CLI text-generation backends."""

    if verbose:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s: %(message)s")


@agent_timebox.command("run")
@click.argument("prompt", required=False)
@click.option(
    "--prompt-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Read the prompt from a file instead of the PROMPT argument.",
)
@click.option(
    "--backend",
    default=None,
    help=f"Backend id or {AUTO_BACKEND!r}. Defaults to AGENT_TIMEBOX_DEFAULT_BACKEND.",
)
@click.option("--json", "as_json", is_flag=True, default=False, help="Print a JSON envelope.")
def run(prompt: str | None, prompt_file: Path | None, backend: str | None, as_json: bool) -> None:
    """Run one prompt with adaptive timeout extension."""

    if prompt is None and prompt_file is None:
        raise click.UsageError("Pass PROMPT or --prompt-file.")
    try:
        lines = CONTROLLER.run(
            RunCommand(prompt=prompt, prompt_file=prompt_file, backend=backend, as_json=as_json),
            on_progress=None if as_json else _progress,
        )
    except (ExecutionError, ValueError) as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


@agent_timebox.command("backends")
def backends() -> None:
    """Show configured backends, availability and budgets."""

    try:
        _emit_lines(CONTROLLER.backends())
    except ValueError as error:
        raise click.ClickException(str(error)) from error


@agent_timebox.command("smoke")
@click.option(
    "--backend",
    "backend_ids",
    multiple=True,
    help="Backend id to check. Can be repeated. Defaults to all configured backends.",
)
@click.option("--prompt", default=DEFAULT_SMOKE_PROMPT, show_default=True)
@click.option(
    "--expect-substring",
    default="",
    help="Fail the run check unless the response contains this text.",
)
@click.option(
    "--timeout-seconds",
    type=click.FloatRange(min=1),
    default=60.0,
    show_default=True,
    help="Budget for the probe and the synthetic prompt.",
)
def smoke(
    backend_ids: tuple[str, ...],
    prompt: str,
    expect_substring: str,
    timeout_seconds: float,
) -> None:
    """Probe backends and send a short synthetic prompt to each."""

    try:
        report = CONTROLLER.smoke(
            SmokeCommand(
                backends=tuple(backend_id.lower() for backend_id in backend_ids),
                prompt=prompt,
                expect_substring=expect_substring,
                timeout_seconds=timeout_seconds,
            ),
        )
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(report.lines)
    if not report.success:
        raise click.ClickException("Backend smoke check failed.")


@agent_timebox.command("compare")
@click.argument("prompt")
def compare(prompt: str) -> None:
    """Run the same prompt on every usable backend and compare."""

    try:
        _emit_lines(CONTROLLER.compare(CompareCommand(prompt=prompt), on_progress=_progress))
    except ValueError as error:
        raise click.ClickException(str(error)) from error


def _progress(message: str) -> None:
    click.echo(message, err=True)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    agent_timebox()
