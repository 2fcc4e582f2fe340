"""Command-line interface for conformix.

Example:
    >>> # From terminal:
    >>> # conformix --version
    >>> # conformix cache show localhost:4433
    >>> # conformix cache clear localhost:4433
    >>> # conformix report summary report.json
    >>> # conformix run --driver my_driver:create --direction server --port 4433
"""

import importlib
import json
from pathlib import Path
from typing import Annotated, Any, Callable, Optional

import typer
from pydantic import ValidationError

from conformix import __version__
from conformix.config import RunConfig
from conformix.errors import ProbingExhaustionError, UnsupportedTargetError
from conformix.models.enums import EndpointDirection
from conformix.observability import configure_logging, get_metrics
from conformix.probing.cache import DEFAULT_CACHE_DIR, FeatureCache, render_text
from conformix.results.report import RunReport
from conformix.runner import default_registry, run_conformance

app = typer.Typer(help="conformix: combinatorial conformance testing of TLS implementations.")

cache_app = typer.Typer(help="Feature Report cache operations (show, clear).")
app.add_typer(cache_app, name="cache")

report_app = typer.Typer(help="Run report operations.")
app.add_typer(report_app, name="report")

EXIT_TESTS_FAILED = 1
EXIT_PROBING_EXHAUSTED = 2
EXIT_UNSUPPORTED_TARGET = 3


def _version_callback(value: bool) -> None:
    """Print the version and exit when requested."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


VERSION_OPTION = typer.Option(
    False,
    "--version",
    help="Show conformix version and exit.",
    callback=_version_callback,
    is_eager=True,
)

CACHE_DIR_OPTION = typer.Option(
    DEFAULT_CACHE_DIR, "--cache-dir", help="Directory of the Feature Report cache."
)


@app.callback()
def cli(
    version: bool = VERSION_OPTION,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """conformix CLI entrypoint."""
    configure_logging(log_level="DEBUG" if verbose else None, force=verbose)


@cache_app.command("show")
def cache_show(
    identity: Annotated[str, typer.Argument(help="Target identity (client port or server host).")],
    cache_dir: Path = CACHE_DIR_OPTION,
    as_json: Annotated[bool, typer.Option("--json", help="Print the structured report.")] = False,
) -> None:
    """Print the cached Feature Report of a target."""
    report = FeatureCache(cache_dir).load(identity)
    if report is None:
        typer.echo(f"No cached report for {identity} in {cache_dir}", err=True)
        raise typer.Exit(1)
    typer.echo(report.model_dump_json(indent=2) if as_json else render_text(report), nl=as_json)


@cache_app.command("clear")
def cache_clear(
    identity: Annotated[str, typer.Argument(help="Target identity (client port or server host).")],
    cache_dir: Path = CACHE_DIR_OPTION,
) -> None:
    """Delete the cached Feature Report of a target so it is probed again."""
    if FeatureCache(cache_dir).clear(identity):
        typer.echo(f"Cleared cached report for {identity}")
    else:
        typer.echo(f"No cached report for {identity}")


def _load_report(path: Path) -> RunReport:
    if not path.exists():
        raise typer.BadParameter(f"Report file not found: {path}")
    try:
        return RunReport.read(path)
    except ValidationError as exc:
        typer.echo(f"Invalid report file {path}: {exc}", err=True)
        raise typer.Exit(1) from exc


@report_app.command("summary")
def report_summary(
    report_file: Annotated[Path, typer.Argument(help="Path to a run report JSON file.")],
    as_json: Annotated[bool, typer.Option("--json", help="Print the summary as JSON.")] = False,
) -> None:
    """Print verdict counts and interaction volume of a run report."""
    report = _load_report(report_file)
    summary = report.summary
    if as_json:
        typer.echo(summary.model_dump_json(indent=2))
        return
    typer.echo(f"Target:     {report.identity} ({report.direction.value})")
    typer.echo(
        f"Tests:      {summary.total} total, {summary.succeeded} succeeded, "
        f"{summary.failed} failed, {summary.disabled} disabled"
    )
    if summary.engine_failures:
        typer.echo(f"Engine failures: {summary.engine_failures}")
    for entry in summary.volume:
        typer.echo(
            f"Volume:     {entry.epoch.value}/{entry.direction.value}: "
            f"{entry.executed} executed of {entry.planned} planned"
        )
    for case in report.test_cases:
        if case.cause:
            typer.echo(f"  FAILED {case.test_id}: {case.cause}")


def _load_factory(reference: str) -> Callable[..., Any]:
    """Resolve ``module:attribute`` to a callable."""
    module_name, _, attribute = reference.partition(":")
    if not module_name or not attribute:
        raise typer.BadParameter(f"Expected module:attribute, got {reference!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise typer.BadParameter(f"Cannot import {module_name}: {exc}") from exc
    factory = getattr(module, attribute, None)
    if not callable(factory):
        raise typer.BadParameter(f"{reference} is not callable")
    return factory


@app.command("run")
def run(
    driver: Annotated[
        str, typer.Option(..., "--driver", help="Protocol Driver factory as module:attribute.")
    ],
    direction: Annotated[
        Optional[EndpointDirection], typer.Option("--direction", help="Role under test.")
    ] = None,
    identity: Annotated[Optional[str], typer.Option("--identity", help="Cache key.")] = None,
    port: Annotated[Optional[int], typer.Option("--port", help="Server port to wait for.")] = None,
    scanner: Annotated[
        Optional[str], typer.Option("--scanner", help="Capability Scanner factory.")
    ] = None,
    listener: Annotated[
        Optional[str], typer.Option("--listener", help="Connection listener factory.")
    ] = None,
    ignore_cache: Annotated[
        bool, typer.Option("--ignore-cache", help="Probe even when a cache entry exists.")
    ] = False,
    output: Annotated[
        Optional[Path],
        typer.Option(
            "--output",
            "-o",
            help="Write the run report JSON here, and run metrics beside it as .prom.",
        ),
    ] = None,
) -> None:
    """Probe the target and run the built-in conformance tests against it."""
    try:
        config = RunConfig.from_env(
            direction=direction,
            identity=identity,
            server_port=port,
            ignore_cache=ignore_cache or None,
        )
    except ValidationError as exc:
        typer.echo(f"Invalid configuration: {exc}", err=True)
        raise typer.Exit(1) from exc

    try:
        report = run_conformance(
            config,
            _load_factory(driver)(),
            default_registry(),
            scanner=_load_factory(scanner)() if scanner else None,
            listener=_load_factory(listener)() if listener else None,
        )
    except ProbingExhaustionError as exc:
        typer.echo(f"Error: {exc.message}", err=True)
        raise typer.Exit(EXIT_PROBING_EXHAUSTED) from exc
    except UnsupportedTargetError as exc:
        typer.echo(f"Error: {exc.message}", err=True)
        raise typer.Exit(EXIT_UNSUPPORTED_TARGET) from exc

    if output is not None:
        report.write(output)
        typer.echo(f"Report written to {output}")
        metrics_path = output.with_suffix(".prom")
        get_metrics().write_prometheus(metrics_path)
        typer.echo(f"Metrics written to {metrics_path}")
    summary = report.summary
    typer.echo(
        json.dumps(
            {
                "identity": report.identity,
                "total": summary.total,
                "succeeded": summary.succeeded,
                "failed": summary.failed,
                "disabled": summary.disabled,
            }
        )
    )
    if not summary.passed:
        raise typer.Exit(EXIT_TESTS_FAILED)


def main() -> None:
    """Run the conformix CLI."""
    app()
