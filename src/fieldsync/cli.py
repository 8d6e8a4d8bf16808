"""fieldsync CLI - sync field photos from a GeoJSON layer."""

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer

from fieldsync import __version__
from fieldsync.config import Settings, SyncMode, get_settings
from fieldsync.errors import ConfigValidationError
from fieldsync.logging import setup_logging
from fieldsync.storage import GeoJsonFeatureStore
from fieldsync.sync import BatchCallbacks, SyncService
from fieldsync.sync.models import BatchResult

app = typer.Typer(
    name="fieldsync",
    help="Upload field photos to WebDAV, confirm them in the sync API and write URLs back to the layer.",
    no_args_is_help=True,
)

ProjectOption = typer.Option(
    None,
    "--project",
    "-p",
    help="YAML file with the field project's render_* variables.",
)
ModeOption = typer.Option(None, "--mode", "-m", help="Pipeline mode: upload or db_only.")
JsonOption = typer.Option(False, "--json", "-j", help="Output in JSON format")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"fieldsync {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """fieldsync - photo sync for field survey layers."""
    pass


def _load_settings(project: Path | None) -> Settings:
    settings = get_settings()
    if project is not None:
        try:
            settings = settings.with_project_variables(project)
        except ConfigValidationError as e:
            typer.echo(f"Error: {e.message}", err=True)
            raise typer.Exit(code=1)
    setup_logging(settings.log_level, settings.log_file)
    return settings


def _open_store(dataset: Path) -> GeoJsonFeatureStore:
    try:
        return GeoJsonFeatureStore(dataset)
    except ConfigValidationError as e:
        typer.echo(f"Error: {e.message}", err=True)
        raise typer.Exit(code=1)


def _output(data: dict, as_json: bool, human_message: str) -> None:
    """Output data as JSON or human-readable format."""
    if as_json:
        typer.echo(json.dumps(data))
    else:
        typer.echo(human_message)


@app.command()
def stats(
    dataset: Path = typer.Argument(..., help="GeoJSON layer with photo attributes."),
    project: Optional[Path] = ProjectOption,
    output_json: bool = JsonOption,
) -> None:
    """Show how many photos are pending upload and how many are synced."""
    settings = _load_settings(project)
    store = _open_store(dataset)

    async def run() -> dict:
        async with SyncService(settings.to_sync_config(), store) as service:
            result = service.statistics()
        return {"total": result.total, "pending": result.pending, "synced": result.synced}

    data = asyncio.run(run())
    _output(
        data,
        output_json,
        f"Photos: {data['total']} total, {data['pending']} pending, {data['synced']} synced",
    )


@app.command()
def check(
    dataset: Path = typer.Argument(..., help="GeoJSON layer with photo attributes."),
    mode: Optional[SyncMode] = ModeOption,
    project: Optional[Path] = ProjectOption,
    output_json: bool = JsonOption,
) -> None:
    """Validate configuration and layer schema without syncing."""
    settings = _load_settings(project)
    store = _open_store(dataset)

    async def run():
        async with SyncService(settings.to_sync_config(mode), store) as service:
            return service.check()

    report = asyncio.run(run())
    lines = ["Ready to sync"] if report.valid else [f"- {error}" for error in report.errors]
    _output({"valid": report.valid, "errors": report.errors}, output_json, "\n".join(lines))
    if not report.valid:
        raise typer.Exit(code=1)


@app.command(name="test-connections")
def test_connections_command(
    mode: Optional[SyncMode] = ModeOption,
    project: Optional[Path] = ProjectOption,
    output_json: bool = JsonOption,
) -> None:
    """Check that the WebDAV store and the sync API are reachable."""
    settings = _load_settings(project)

    async def run():
        async with SyncService(settings.to_sync_config(mode)) as service:
            return await service.test_connections()

    report = asyncio.run(run())

    def describe(name: str, success: bool, error: str | None) -> str:
        return f"{name}: OK" if success else f"{name}: FAILED ({error})"

    _output(
        report.to_dict(),
        output_json,
        "\n".join([
            describe("WebDAV", report.webdav.success, report.webdav.error),
            describe("API", report.api.success, report.api.error),
        ]),
    )
    if not (report.webdav.success and report.api.success):
        raise typer.Exit(code=1)


@app.command()
def sync(
    dataset: Path = typer.Argument(..., help="GeoJSON layer with photo attributes."),
    mode: Optional[SyncMode] = ModeOption,
    project: Optional[Path] = ProjectOption,
    output_json: bool = JsonOption,
) -> None:
    """Sync every pending photo on the layer."""
    settings = _load_settings(project)
    store = _open_store(dataset)

    def on_item_complete(index: int, success: bool, error: str | None) -> None:
        if not output_json:
            typer.echo(f"[{index + 1}] {'ok' if success else 'FAILED: ' + (error or 'unknown error')}")

    async def run() -> BatchResult:
        async with SyncService(settings.to_sync_config(mode), store) as service:
            return await service.sync(BatchCallbacks(on_item_complete=on_item_complete))

    result = asyncio.run(run())

    lines = [f"Synced {result.succeeded} of {result.total} photo(s), {result.failed} failed"]
    lines += [f"  {entry['global_id']}: {entry['error']}" for entry in result.errors]
    if result.aborted:
        lines.append(f"Aborted: {result.aborted}")
    _output(result.to_dict(), output_json, "\n".join(lines))

    if result.failed or result.aborted:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
