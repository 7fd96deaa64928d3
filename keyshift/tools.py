"""ExternalTools: command-line boundary to the converter, detector and stretcher."""

import logging
import os
import re
import shutil
import subprocess
from pathlib import Path

from keyshift.config import Settings
from keyshift.errors import (
    DecodeFailedError,
    ReencodeFailedError,
    ShiftFailedError,
    StageFailedError,
    ToolNotFoundError,
)

logger = logging.getLogger(__name__)

# Intermediate format handed to the detector and the stretcher
PCM_CODEC = "pcm_s16le"
SAMPLE_RATE = 44100
CHANNELS = 2

# ffmetadata escapes '=', ';', '#', '\' and newlines with a backslash, so an
# escaped newline continues the value on the next line
_TITLE_LINE = re.compile(r"^title=((?:[^\\\n]|\\.)*)", re.IGNORECASE | re.MULTILINE | re.DOTALL)
_FFMETADATA_ESCAPE = re.compile(r"\\(.)", re.DOTALL)


def has_content(path: Path) -> bool:
    """True when *path* exists and is non-empty."""
    return path.is_file() and path.stat().st_size > 0


def format_pitch(semitones: int) -> str:
    """Stretcher pitch argument: '+2' for positive shifts, '-3' for negative."""
    return f"-pitch={semitones:+d}"


class ExternalTools:
    """
    Runs the three external executables named in a Settings object.

    Every invocation blocks until the process exits; stdout and stderr are
    captured together so that failures can be reported with the tool's own
    diagnostics.

    Usage:
        tools = ExternalTools(Settings())
        tools.check_available()
        tools.decode(Path("song.mp3"), Path("/tmp/decoded.wav"))
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    # ------------------------------------------------------------------
    # Availability
    # ------------------------------------------------------------------

    def check_available(self, need_stretcher: bool = True) -> None:
        """
        Fail fast if any configured tool is missing.

        The detector and stretcher must resolve to executable files (directly
        or via PATH); the converter must answer a version query.

        Raises:
            ToolNotFoundError: Naming the first tool that could not be found.
        """
        self._resolve_file(self.settings.detector_path, "key detector")
        if need_stretcher:
            self._resolve_file(self.settings.stretcher_path, "pitch stretcher")

        result = self._run([self.settings.converter_path, "-version"])
        if result.returncode != 0:
            raise ToolNotFoundError(
                f"Converter '{self.settings.converter_path}' did not answer a version query "
                f"(exit code {result.returncode})."
            )

    @staticmethod
    def _resolve_file(location: str, label: str) -> str:
        path = Path(location).expanduser()
        if path.is_file():
            if not os.access(path, os.X_OK):
                raise ToolNotFoundError(f"The {label} at '{location}' is not executable.")
            return str(path)
        found = shutil.which(location)
        if found:
            return found
        raise ToolNotFoundError(f"The {label} was not found at '{location}'.")

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def decode(self, source: Path, destination: Path) -> None:
        """
        Transcode *source* into 16-bit stereo 44.1 kHz PCM WAV.

        Raises:
            DecodeFailedError: Non-zero exit, or no output written.
        """
        args = [
            self.settings.converter_path,
            "-i", str(source),
            "-acodec", PCM_CODEC,
            "-ar", str(SAMPLE_RATE),
            "-ac", str(CHANNELS),
            str(destination),
            "-y",
        ]
        self._run_stage(args, destination, DecodeFailedError)

    def detect(self, wav_path: Path) -> str:
        """Run the key detector and return its raw text output."""
        result = self._run([self.settings.detector_path, str(wav_path)])
        if result.returncode != 0:
            logger.warning(
                "Key detector exited with code %d; parsing its output anyway", result.returncode
            )
        return result.stdout or ""

    def stretch(self, source: Path, destination: Path, semitones: int) -> None:
        """
        Pitch-shift *source* by *semitones* into *destination*.

        Raises:
            ShiftFailedError: Non-zero exit, or no output written.
        """
        args = [
            self.settings.stretcher_path,
            str(source),
            str(destination),
            format_pitch(semitones),
        ]
        self._run_stage(args, destination, ShiftFailedError)

    def read_title(self, source: Path) -> str | None:
        """
        Title tag of *source*, or None if it has none or cannot be read.

        Metadata is dumped in ffmetadata form and the first ``title=`` entry
        is used, including any backslash-continued lines.
        """
        result = self._run([self.settings.converter_path, "-i", str(source), "-f", "ffmetadata", "-"])
        if result.returncode != 0:
            logger.debug("Could not read metadata from %s", source)
            return None

        match = _TITLE_LINE.search(result.stdout or "")
        if match is None:
            return None
        title = _FFMETADATA_ESCAPE.sub(r"\1", match.group(1)).strip()
        return title or None

    def encode(self, shifted: Path, original: Path, destination: Path, title: str) -> None:
        """
        Transcode *shifted* into *destination*, copying the metadata of
        *original* and overriding its title.

        Raises:
            ReencodeFailedError: Non-zero exit, or no output written.
        """
        args = [
            self.settings.converter_path,
            "-i", str(shifted),
            "-i", str(original),
            "-map", "0:a",
            "-map_metadata", "1",
            "-metadata", f"title={title}",
            str(destination),
            "-y",
        ]
        self._run_stage(args, destination, ReencodeFailedError)

    # ------------------------------------------------------------------
    # Process handling
    # ------------------------------------------------------------------

    def _run_stage(
        self,
        args: list[str],
        destination: Path,
        error: type[StageFailedError],
    ) -> None:
        result = self._run(args)
        if result.returncode != 0:
            raise error(f"exit code {result.returncode}", output=result.stdout or "")
        if not has_content(destination):
            raise error(f"no output written to '{destination}'", output=result.stdout or "")

    def _run(self, args: list[str]) -> subprocess.CompletedProcess:
        logger.debug("Running: %s", " ".join(args))
        try:
            return subprocess.run(
                args,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
                check=False,
            )
        except OSError as exc:
            raise ToolNotFoundError(f"Could not start '{args[0]}': {exc}") from exc
