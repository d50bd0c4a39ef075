# src/zonetest/cli.py
"""zonetest Command Line Interface.

Entry point for the zonetest CLI tool. Operators use it to submit tests,
inspect jobs and run the delegation class back-fill against the configured
job store.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

import typer
from pydantic import ValidationError

from zonetest import __version__
from zonetest.contracts.errors import ZonetestError
from zonetest.core.config import ZonetestSettings, load_settings, sanitize_url

if TYPE_CHECKING:
    from zonetest.core.jobs import JobStore

__all__ = [
    "app",
]

app = typer.Typer(
    name="zonetest",
    help="zonetest: DNS delegation test job store.",
    no_args_is_help=True,
)

_DEFAULT_SETTINGS = Path("settings.yaml")

# Logging flags given on the command line; they win over the settings file
_log_overrides: dict[str, Any] = {}


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"zonetest version {__version__}")
        raise typer.Exit()


def _load_dotenv(env_file: Path | None = None) -> bool:
    """Load environment variables from .env file.

    Args:
        env_file: Explicit path to .env file. If None, searches for .env
                 in current directory and parent directories.

    Returns:
        True if .env was found and loaded, False otherwise.

    Raises:
        typer.Exit: If explicit env_file path doesn't exist.
    """
    from dotenv import load_dotenv

    if env_file is not None:
        if not env_file.exists():
            typer.secho(
                f"Error: .env file not found: {env_file}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(1)
        return load_dotenv(env_file, override=False)

    return load_dotenv(override=False)  # Don't override existing env vars


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    no_dotenv: bool = typer.Option(
        False,
        "--no-dotenv",
        help="Skip loading .env file.",
    ),
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Path to .env file (skips automatic search).",
        exists=False,  # We handle existence check ourselves for better error message
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose/debug logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs (for machine processing).",
    ),
) -> None:
    """zonetest: DNS delegation test job store."""
    from zonetest.core.logging import configure_logging

    _log_overrides.clear()
    if verbose:
        _log_overrides["level"] = "DEBUG"
    if json_logs:
        _log_overrides["json_output"] = True
    configure_logging(**_log_overrides)

    if not no_dotenv:
        _load_dotenv(env_file=env_file)
    elif env_file is not None:
        typer.secho(
            "Warning: --env-file ignored because --no-dotenv is set.",
            fg=typer.colors.YELLOW,
            err=True,
        )


def _fail(message: str) -> typer.Exit:
    typer.secho(f"Error: {message}", fg=typer.colors.RED, err=True)
    return typer.Exit(1)


def _resolve_settings(settings: Path | None) -> ZonetestSettings:
    """Load settings from an explicit path, ./settings.yaml, or defaults.

    Logging is reconfigured from the loaded settings, keeping any
    --verbose or --json-logs given on the command line.
    """
    from zonetest.core.logging import configure_logging

    config = _load_config(settings)
    configure_logging(config.logging, **_log_overrides)
    return config


def _load_config(settings: Path | None) -> ZonetestSettings:
    path = settings if settings is not None else _DEFAULT_SETTINGS
    if settings is None and not path.exists():
        return ZonetestSettings()
    try:
        return load_settings(path)
    except FileNotFoundError:
        raise _fail(f"Settings file not found: {path}") from None
    except ValidationError as e:
        typer.echo("Configuration errors:", err=True)
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            typer.echo(f"  - {loc}: {error['msg']}", err=True)
        raise typer.Exit(1) from None


@contextmanager
def _open_store(settings_path: Path | None, database: str | None) -> Iterator[JobStore]:
    """Open the configured job store and map store errors to CLI failures."""
    from zonetest.core.jobs import JobDB, JobStore, SchemaCompatibilityError

    config = _resolve_settings(settings_path)
    url = database or config.database.url
    try:
        db = JobDB.from_url(url, echo=config.database.echo)
    except SchemaCompatibilityError as e:
        raise _fail(str(e)) from None

    try:
        yield JobStore(db, config)
    except ZonetestError as e:
        raise _fail(str(e)) from None
    finally:
        db.close()


def _parse_json_object(text: str, what: str) -> dict[str, Any]:
    """Parse a JSON object given inline or as @path."""
    if text.startswith("@"):
        path = Path(text[1:]).expanduser()
        if not path.exists():
            raise _fail(f"{what} file not found: {path}")
        text = path.read_text(encoding="utf-8")
    try:
        value = json.loads(text)
    except json.JSONDecodeError as e:
        raise _fail(f"{what} is not valid JSON: {e}") from None
    if not isinstance(value, dict):
        raise _fail(f"{what} must be a JSON object")
    return value


def _echo_json(value: Any) -> None:
    typer.echo(json.dumps(value, indent=2, default=str))


_SETTINGS_OPTION = typer.Option(None, "--settings", "-s", help="Path to settings YAML (default: ./settings.yaml if present).")
_DATABASE_OPTION = typer.Option(None, "--database", "-d", help="SQLAlchemy database URL (overrides settings).")


@app.command()
def submit(
    params: str = typer.Argument(..., help="Test parameters as a JSON object, or @path to a JSON file."),
    settings: Path | None = _SETTINGS_OPTION,
    database: str | None = _DATABASE_OPTION,
) -> None:
    """Submit a test, reusing an identical recent job when there is one.

    Examples:

        zonetest submit '{"domain": "afnic.fr"}'

        zonetest submit @request.json --database postgresql://zt@db/zonetest
    """
    raw = _parse_json_object(params, "Parameters")
    with _open_store(settings, database) as store:
        result = store.submit(raw)
    status = "queued" if result.created else "reused"
    typer.echo(f"{result.identity} ({status})")


@app.command("submit-batch")
def submit_batch(
    domains: list[str] = typer.Option(..., "--domain", help="Domain to test (repeat for each member)."),
    template: str = typer.Option("{}", "--template", "-t", help="Shared parameters as JSON, or @path."),
    settings: Path | None = _SETTINGS_OPTION,
    database: str | None = _DATABASE_OPTION,
) -> None:
    """Submit one test per domain from a shared parameter template."""
    shared = _parse_json_object(template, "Template")
    with _open_store(settings, database) as store:
        batch = store.submit_batch(domains, shared)
    typer.echo(f"batch {batch.batch_id}: {len(batch.created)} queued, {len(batch.reused)} reused")
    for domain, identity in zip(domains, batch.identities, strict=True):
        typer.echo(f"  {identity}  {domain}")


@app.command()
def progress(
    identity: str = typer.Argument(..., help="Job identity."),
    settings: Path | None = _SETTINGS_OPTION,
    database: str | None = _DATABASE_OPTION,
) -> None:
    """Show a job's progress percentage."""
    with _open_store(settings, database) as store:
        typer.echo(str(store.progress(identity)))


@app.command()
def results(
    identity: str = typer.Argument(..., help="Job identity."),
    language: str | None = typer.Option(None, "--language", "-l", help="Result language (default from settings)."),
    partial: bool = typer.Option(False, "--partial", help="Show the job even if it has not finished."),
    settings: Path | None = _SETTINGS_OPTION,
    database: str | None = _DATABASE_OPTION,
) -> None:
    """Show a job's parameters, delegation class and result."""
    with _open_store(settings, database) as store:
        view = store.results(identity, language, require_terminal=not partial)
    _echo_json(
        {
            "identity": view.identity,
            "state": view.state.value,
            "delegation_class": view.delegation_class.value if view.delegation_class is not None else None,
            "language": view.language,
            "params": view.params,
            "result": view.result,
        }
    )


@app.command()
def params(
    identity: str = typer.Argument(..., help="Job identity."),
    settings: Path | None = _SETTINGS_OPTION,
    database: str | None = _DATABASE_OPTION,
) -> None:
    """Show the parameters exactly as they were submitted."""
    with _open_store(settings, database) as store:
        _echo_json(store.get_params(identity))


@app.command()
def history(
    domain: str | None = typer.Option(None, "--domain", help="Only jobs for this domain."),
    delegation_class: str | None = typer.Option(None, "--class", help="Only 'delegated' or 'undelegated' jobs."),
    offset: int = typer.Option(0, "--offset", help="Rows to skip."),
    limit: int | None = typer.Option(None, "--limit", help="Page size."),
    as_of: str | None = typer.Option(None, "--as-of", help="Snapshot printed by a previous page."),
    output_format: Literal["console", "json"] = typer.Option("console", "--format", "-f", help="Output format."),
    settings: Path | None = _SETTINGS_OPTION,
    database: str | None = _DATABASE_OPTION,
) -> None:
    """List jobs, most recently submitted first."""
    with _open_store(settings, database) as store:
        page = store.history(domain=domain, delegation_class=delegation_class, offset=offset, limit=limit, as_of=as_of)

    if output_format == "json":
        _echo_json(
            {
                "as_of": str(page.as_of),
                "offset": page.offset,
                "limit": page.limit,
                "items": [
                    {
                        "identity": item.identity,
                        "domain": item.domain,
                        "delegation_class": item.delegation_class.value if item.delegation_class is not None else None,
                        "state": item.state.value,
                        "submitted_at": item.submitted_at.isoformat(),
                    }
                    for item in page.items
                ],
            }
        )
        return

    for item in page.items:
        klass = item.delegation_class.value if item.delegation_class is not None else "-"
        typer.echo(f"{item.submitted_at.isoformat()}  {item.identity}  {item.state.value:<9}  {klass:<11}  {item.domain}")
    typer.echo(f"({len(page.items)} shown, as-of {page.as_of})")


@app.command()
def backfill(
    reclassify_all: bool = typer.Option(False, "--all", help="Re-derive every row, not only unclassified ones."),
    chunk_size: int | None = typer.Option(None, "--chunk-size", help="Rows per transaction."),
    settings: Path | None = _SETTINGS_OPTION,
    database: str | None = _DATABASE_OPTION,
) -> None:
    """Derive the delegation class of historical jobs from their stored parameters.

    Safe to re-run. Rows that cannot be classified are listed and left
    unchanged; the command exits 1 when there were any.
    """
    from zonetest.core.jobs import JobDB, SchemaCompatibilityError, backfill_delegation_class

    config = _resolve_settings(settings)
    url = database or config.database.url
    typer.echo(f"Back-filling delegation class in {sanitize_url(url)}")
    try:
        db = JobDB.from_url(url, echo=config.database.echo)
    except SchemaCompatibilityError as e:
        raise _fail(str(e)) from None

    try:
        report = backfill_delegation_class(db, config.jobs, reclassify_all=reclassify_all, chunk_size=chunk_size)
    except ZonetestError as e:
        raise _fail(str(e)) from None
    finally:
        db.close()

    typer.echo(f"scanned={report.scanned} updated={report.updated} unchanged={report.unchanged} failed={len(report.failures)}")
    for failure in report.failures:
        typer.secho(f"  job {failure.job_id} ({failure.identity}): {failure.reason}", fg=typer.colors.YELLOW, err=True)
    if not report.ok:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
