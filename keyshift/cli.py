"""KeyShift CLI entry point."""

import logging
import sys
from pathlib import Path

import click

from keyshift import __version__
from keyshift.config import Settings
from keyshift.errors import KeyShiftError, ToolNotFoundError
from keyshift.files import SUPPORTED_EXTENSIONS, find_audio_files
from keyshift.key_distance import KEY_NAMES, MINOR_KEY_NAMES
from keyshift.models import ConversionJob, ConversionStatus
from keyshift.pipeline import KeyConverter


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
    )


def _build_settings(
    converter: str | None,
    detector: str | None,
    stretcher: str | None,
    temp_dir: str | None,
) -> Settings:
    """Settings from the environment, with any CLI flags taking precedence."""
    overrides = {
        "converter_path": converter,
        "detector_path": detector,
        "stretcher_path": stretcher,
        "temp_dir": temp_dir,
    }
    return Settings(**{name: value for name, value in overrides.items() if value is not None})


def _collect_inputs(inputs: tuple[str, ...], recursive: bool) -> list[Path]:
    files: list[Path] = []
    for item in inputs:
        found = find_audio_files(Path(item), recursive=recursive)
        if not found:
            click.echo(f"  WARNING: No audio files found at '{item}'.", err=True)
        files.extend(found)
    return files


def tool_options(func):
    """Options shared by every subcommand: tool locations and verbosity."""
    options = [
        click.option("--converter", default=None, metavar="PATH",
                     help="Format converter command. [env: KEYSHIFT_CONVERTER_PATH]"),
        click.option("--detector", default=None, metavar="PATH",
                     help="Key detector executable. [env: KEYSHIFT_DETECTOR_PATH]"),
        click.option("--stretcher", default=None, metavar="PATH",
                     help="Pitch stretcher executable. [env: KEYSHIFT_STRETCHER_PATH]"),
        click.option("--temp-dir", default=None, metavar="DIR",
                     help="Directory for scratch files. [env: KEYSHIFT_TEMP_DIR]"),
        click.option("--recursive/--no-recursive", default=True, show_default=True,
                     help="Search directories given as INPUT recursively."),
        click.option("--verbose", "-v", is_flag=True, help="Log every tool invocation."),
    ]
    for option in reversed(options):
        func = option(func)
    return func


# ── CLI group ──────────────────────────────────────────────────────────────────

@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="keyshift")
def main() -> None:
    """KeyShift — transpose audio files into another musical key."""


# ── convert subcommand ─────────────────────────────────────────────────────────

@main.command()
@click.argument("inputs", nargs=-1, required=True, metavar="INPUT...")
@click.option(
    "--target-key",
    "-t",
    required=True,
    type=click.Choice(KEY_NAMES),
    help="Key to transpose into.",
)
@click.option(
    "--source-key",
    "-s",
    default=None,
    type=click.Choice(KEY_NAMES + MINOR_KEY_NAMES),
    help="Key the input is in. Detected automatically when omitted.",
)
@click.option(
    "--output-folder",
    "-o",
    default=".",
    show_default=True,
    metavar="DIR",
    help="Folder for the transposed files. Created if missing.",
)
@click.option("--overwrite", is_flag=True, help="Replace existing output files.")
@tool_options
def convert(
    inputs: tuple[str, ...],
    target_key: str,
    source_key: str | None,
    output_folder: str,
    overwrite: bool,
    converter: str | None,
    detector: str | None,
    stretcher: str | None,
    temp_dir: str | None,
    recursive: bool,
    verbose: bool,
) -> None:
    """
    Transpose audio files into TARGET-KEY.

    INPUT is an audio file or a folder of them.

    \b
    Examples:
      keyshift convert song.mp3 --target-key C
      keyshift convert song.mp3 -t F# -s Bb -o transposed/
      keyshift convert ~/Music/set/ -t A --overwrite
    """
    _configure_logging(verbose)
    key_converter = KeyConverter(_build_settings(converter, detector, stretcher, temp_dir))

    click.echo(f"keyshift v{__version__}")
    click.echo(f"  Target : {target_key}  |  Source: {source_key or 'detect'}")
    click.echo(f"  Output : {output_folder}")
    click.echo()

    try:
        key_converter.check_tools()
    except ToolNotFoundError as exc:
        click.echo(f"  ERROR: {exc}", err=True)
        sys.exit(1)

    files = _collect_inputs(inputs, recursive)
    if not files:
        click.echo(f"No audio files found. Supported formats: {', '.join(SUPPORTED_EXTENSIONS)}")
        sys.exit(1)

    counts = {status: 0 for status in ConversionStatus}
    errors = 0
    for path in files:
        job = ConversionJob(
            input_file=path,
            output_folder=Path(output_folder),
            target_key=target_key,
            source_key=source_key,
            overwrite=overwrite,
        )
        try:
            result = key_converter.run(job)
        except ToolNotFoundError as exc:
            click.echo(f"  ERROR: {exc}", err=True)
            sys.exit(1)
        except (KeyShiftError, OSError) as exc:
            errors += 1
            click.echo(f"  ERROR: {path.name}: {exc}", err=True)
            continue

        counts[result.status] += 1
        if result.skipped:
            click.echo(f"  SKIP: {path.name} (key unknown, pass --source-key)")
        else:
            click.echo(
                f"  {result.source_key} → {result.target_key} ({result.semitones:+d}): "
                f"{result.output_path}"
            )

    click.echo()
    click.echo(f"{'=' * 40}")
    click.echo(f"  Converted:      {counts[ConversionStatus.CONVERTED]}")
    click.echo(f"  Already in key: {counts[ConversionStatus.ALREADY_IN_TARGET]}")
    click.echo(f"  Skipped:        {counts[ConversionStatus.SKIPPED]}")
    click.echo(f"  Errors:         {errors}")
    click.echo(f"{'=' * 40}")

    if errors:
        sys.exit(1)


# ── detect subcommand ──────────────────────────────────────────────────────────

@main.command()
@click.argument("inputs", nargs=-1, required=True, metavar="INPUT...")
@click.option(
    "--log",
    "-l",
    "log_path",
    required=True,
    type=click.Path(dir_okay=False, writable=True),
    metavar="PATH",
    help="CSV log to (re)create with one 'path,key' line per input.",
)
@tool_options
def detect(
    inputs: tuple[str, ...],
    log_path: str,
    converter: str | None,
    detector: str | None,
    stretcher: str | None,
    temp_dir: str | None,
    recursive: bool,
    verbose: bool,
) -> None:
    """
    Detect the key of audio files and log it.

    \b
    Examples:
      keyshift detect song.mp3 --log keys.csv
      keyshift detect ~/Music/set/ -l keys.csv
    """
    _configure_logging(verbose)
    key_converter = KeyConverter(_build_settings(converter, detector, stretcher, temp_dir))
    files = _collect_inputs(inputs, recursive)

    try:
        results = key_converter.detect_and_log(files, log_path)
    except ToolNotFoundError as exc:
        click.echo(f"  ERROR: {exc}", err=True)
        sys.exit(1)

    for path, key in results.items():
        click.echo(f"  {key:<8} {path}")

    click.echo()
    click.echo(f"Done!  Wrote {len(results)} line(s) to '{log_path}'.")
