"""Command-line interface for mediaflow."""

from __future__ import annotations

import json
import logging
import shutil
from pathlib import Path
from typing import Annotated, Optional

import typer
from tqdm import tqdm

from mediaflow import __version__
from mediaflow.config import PipelineConfig
from mediaflow.errors import FatalPipelineError

app = typer.Typer(
    name="mediaflow",
    help="Label, transcribe and tag uploaded media into one record per asset.",
    add_completion=False,
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"mediaflow {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """mediaflow: media ingestion pipeline."""
    pass


def _load_json(path: Path) -> dict:
    data = json.loads(path.read_text())
    if not isinstance(data, dict):
        raise ValueError(f"{path} does not contain a JSON object")
    return data


@app.command()
def process(
    events: Annotated[
        list[Path],
        typer.Argument(
            help="Storage event JSON files (raw object payloads or CloudEvents)",
            exists=True,
            readable=True,
            dir_okay=False,
        ),
    ],
    output: Annotated[
        Optional[Path],
        typer.Option(
            "--output",
            "-o",
            help="Output JSON file for the resulting records (default: stdout)",
        ),
    ] = None,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            help="Suppress progress output",
        ),
    ] = False,
) -> None:
    """Replay storage events through the pipeline.

    Example:
        mediaflow process events/clip.json events/note.json -o records.json
    """
    from mediaflow.pipeline import Pipeline
    from mediaflow.utils.logging import configure_logging

    try:
        config = PipelineConfig.from_env()
        configure_logging(logging.WARNING if quiet else config.log_level)
        pipeline = Pipeline(config)
    except ValueError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    records = []
    failures = 0

    for path in tqdm(events, desc="Processing events", unit="event", disable=quiet):
        try:
            record = pipeline.handle_event(_load_json(path))
        except (ValueError, KeyError) as e:
            typer.secho(f"Error: {path}: invalid event ({e})", fg=typer.colors.RED, err=True)
            failures += 1
            continue
        except FatalPipelineError as e:
            typer.secho(f"Error: {path}: {e}", fg=typer.colors.RED, err=True)
            failures += 1
            continue

        if record is not None:
            records.append({"assetId": record.asset_id, **record.to_document()})

    json_output = json.dumps(records, indent=2)
    if output:
        output.write_text(json_output)
        if not quiet:
            typer.echo(f"Output written to: {output}")
    else:
        typer.echo(json_output)

    if failures:
        raise typer.Exit(1)


@app.command()
def extract(
    message: Annotated[
        Path,
        typer.Argument(
            help="Extraction request JSON file ({sourceContainerName, sourceFilePath, assetId})",
            exists=True,
            readable=True,
            dir_okay=False,
        ),
    ],
) -> None:
    """Run the audio extractor on one extraction request."""
    from mediaflow.extractor import AudioExtractor
    from mediaflow.utils.logging import configure_logging

    config = PipelineConfig.from_env()
    configure_logging(config.log_level)

    try:
        uri = AudioExtractor(config).handle_message(message.read_bytes())
    except ValueError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    except Exception as e:
        typer.secho(f"Unexpected error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    if uri is None:
        typer.secho("Message was malformed and has been dropped.", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(1)

    typer.echo(uri)


@app.command()
def info() -> None:
    """Show the configuration read from the environment."""
    config = PipelineConfig.from_env()

    typer.echo(f"mediaflow v{__version__}")
    typer.echo("")

    typer.echo("Configuration:")
    for name, value in config.model_dump().items():
        typer.echo(f"  {name}: {value if value is not None else '(not set)'}")

    typer.echo("")
    typer.echo("Tools:")
    for tool in ("ffmpeg", "ffprobe"):
        typer.echo(f"  {tool}: {shutil.which(tool) or 'not found'}")


if __name__ == "__main__":
    app()
