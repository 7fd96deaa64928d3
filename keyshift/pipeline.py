"""KeyConverter: runs the decode / detect / shift / re-encode pipeline for one file."""

import logging
import shutil
import tempfile
from collections.abc import Iterable
from pathlib import Path

from keyshift.config import Settings
from keyshift.errors import (
    InvalidKeyError,
    KeyShiftError,
    OutputExistsError,
    ToolNotFoundError,
    UnsupportedFormatError,
)
from keyshift.files import SUPPORTED_EXTENSIONS, is_supported
from keyshift.key_distance import KEY_POSITIONS, is_valid_key, semitone_shift
from keyshift.key_parser import parse_detected_key
from keyshift.models import UNKNOWN_KEY, ConversionJob, ConversionResult, ConversionStatus
from keyshift.tools import ExternalTools

logger = logging.getLogger(__name__)

ERROR_MARKER = "Error"


class ScratchFiles:
    """
    Per-job scratch space holding the two intermediate WAV files.

    A fresh, uniquely named directory is created under the configured temp
    directory on entry and removed with its contents on exit, however the
    block is left:

        with ScratchFiles(settings.temp_dir) as scratch:
            tools.decode(source, scratch.decoded)
    """

    def __init__(self, base_dir: Path) -> None:
        self.base_dir = Path(base_dir)
        self.directory: Path | None = None

    @property
    def decoded(self) -> Path:
        return self._path("decoded.wav")

    @property
    def shifted(self) -> Path:
        return self._path("shifted.wav")

    def _path(self, name: str) -> Path:
        if self.directory is None:
            raise RuntimeError("ScratchFiles must be used as a context manager.")
        return self.directory / name

    def cleanup(self) -> None:
        """Remove the scratch directory and everything in it."""
        if self.directory is not None:
            shutil.rmtree(self.directory, ignore_errors=True)
            self.directory = None

    def __enter__(self) -> "ScratchFiles":
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.directory = Path(tempfile.mkdtemp(prefix="keyshift_", dir=self.base_dir))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.cleanup()


class KeyConverter:
    """
    Transposes audio files into a target key using the external tools.

    Pipeline for one file
    ---------------------
    1. **Decode** the input to 16-bit stereo 44.1 kHz WAV.
    2. **Resolve the source key**: the caller's key if given, otherwise the
       detector's output run through the key parser. When nothing matches,
       the job stops and a SKIPPED result is returned instead of raising.
    3. **Compute the shift** between source and target. A shift of 0 copies
       the input unchanged to the output path.
    4. **Shift** the decoded audio with the stretcher.
    5. **Re-encode** into the original format, keeping the input's metadata
       and retitling it ``<title>_in_<target>``.

    Both intermediate files live in a ScratchFiles block, so they are gone
    before a result is returned or an error propagates.

    Usage:
        converter = KeyConverter(Settings())
        result = converter.convert_key("song.mp3", "out", "C", source_key="Bb")
    """

    STAGES = 5

    def __init__(self, settings: Settings, tools: ExternalTools | None = None) -> None:
        self.settings = settings
        self.tools = tools if tools is not None else ExternalTools(settings)

    def check_tools(self, need_stretcher: bool = True) -> None:
        """Raise ToolNotFoundError unless every required tool is present."""
        self.tools.check_available(need_stretcher=need_stretcher)

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def convert_key(
        self,
        input_file: str | Path,
        output_folder: str | Path,
        target_key: str,
        source_key: str | None = None,
        overwrite: bool = False,
    ) -> ConversionResult:
        """
        Transpose *input_file* into *target_key*.

        Args:
            input_file:    Path to a .mp3 or .wav file.
            output_folder: Destination folder; created if absent.
            target_key:    One of the 17 key spellings, e.g. 'F#' or 'Bb'.
            source_key:    Key of the input (a minor variant such as 'Am' is
                           accepted). Detected when omitted.
            overwrite:     Replace an existing output file.

        Returns:
            ConversionResult describing the outcome. Failed key detection
            yields a SKIPPED result rather than an exception.

        Raises:
            ToolNotFoundError:      A configured tool is missing.
            InvalidKeyError:        target_key or source_key is not recognised.
            UnsupportedFormatError: The input extension is not supported.
            OutputExistsError:      The output exists and overwrite is False.
            DecodeFailedError, ShiftFailedError, ReencodeFailedError:
                                    An external tool failed at that stage.
        """
        self.check_tools()
        job = ConversionJob(
            input_file=Path(input_file),
            output_folder=Path(output_folder),
            target_key=target_key,
            source_key=source_key,
            overwrite=overwrite,
        )
        return self.run(job)

    def run(self, job: ConversionJob) -> ConversionResult:
        """
        Execute one ConversionJob. Tool availability is assumed to have been
        checked already, which lets batch callers probe the tools only once.
        """
        if job.target_key not in KEY_POSITIONS:
            raise InvalidKeyError(f"Unrecognised target key: {job.target_key!r}")
        if job.source_key is not None and not is_valid_key(job.source_key):
            raise InvalidKeyError(f"Unrecognised source key: {job.source_key!r}")
        self._check_format(job.input_file)

        job.output_folder.mkdir(parents=True, exist_ok=True)
        output_path = job.output_path
        name = job.input_file.name

        with ScratchFiles(self.settings.temp_dir) as scratch:
            logger.info("[1/%d] Decoding %s...", self.STAGES, name)
            self.tools.decode(job.input_file, scratch.decoded)

            if job.source_key is not None:
                source_key = job.source_key
                logger.info("[2/%d] Using supplied source key %s", self.STAGES, source_key)
            else:
                logger.info("[2/%d] Detecting key of %s...", self.STAGES, name)
                source_key = parse_detected_key(self.tools.detect(scratch.decoded))
                if source_key is None:
                    logger.warning(
                        "Could not detect the key of %s; skipping it. "
                        "Specify the source key manually.",
                        name,
                    )
                    return ConversionResult(
                        input_path=job.input_file,
                        output_path=None,
                        source_key=UNKNOWN_KEY,
                        target_key=job.target_key,
                        semitones=0,
                        status=ConversionStatus.SKIPPED,
                    )
                logger.info("      Detected key: %s", source_key)

            semitones = semitone_shift(source_key, job.target_key)
            logger.info(
                "[3/%d] Shift from %s to %s: %+d semitone(s)",
                self.STAGES, source_key, job.target_key, semitones,
            )

            if semitones == 0:
                self._check_output(output_path, job.overwrite)
                logger.info("      Already in %s; copying unchanged", job.target_key)
                shutil.copyfile(job.input_file, output_path)
                return ConversionResult(
                    input_path=job.input_file,
                    output_path=output_path,
                    source_key=source_key,
                    target_key=job.target_key,
                    semitones=0,
                    status=ConversionStatus.ALREADY_IN_TARGET,
                )

            logger.info("[4/%d] Shifting pitch by %+d...", self.STAGES, semitones)
            self.tools.stretch(scratch.decoded, scratch.shifted, semitones)

            self._check_output(output_path, job.overwrite)
            logger.info("[5/%d] Writing %s...", self.STAGES, output_path)
            title = self.tools.read_title(job.input_file) or job.input_file.stem
            self.tools.encode(
                scratch.shifted,
                job.input_file,
                output_path,
                title=f"{title}_in_{job.target_key}",
            )

        return ConversionResult(
            input_path=job.input_file,
            output_path=output_path,
            source_key=source_key,
            target_key=job.target_key,
            semitones=semitones,
            status=ConversionStatus.CONVERTED,
        )

    # ------------------------------------------------------------------
    # Detection only
    # ------------------------------------------------------------------

    def detect_key(self, input_file: str | Path) -> str | None:
        """
        Decode *input_file* and return its detected key, or None when the
        detector output could not be parsed.
        """
        input_path = Path(input_file)
        self._check_format(input_path)

        with ScratchFiles(self.settings.temp_dir) as scratch:
            logger.info("Decoding %s...", input_path.name)
            self.tools.decode(input_path, scratch.decoded)
            logger.info("Detecting key of %s...", input_path.name)
            return parse_detected_key(self.tools.detect(scratch.decoded))

    def detect_and_log(self, input_files: Iterable[str | Path], log_path: str | Path) -> dict[Path, str]:
        """
        Detect the key of every input and write one ``path,key`` line each.

        The log is truncated first. Inputs whose key cannot be parsed are
        logged as ``Unknown``; inputs that fail to process as ``Error``.

        Returns:
            Mapping of input path to the value written to the log.
        """
        self.check_tools(need_stretcher=False)

        results: dict[Path, str] = {}
        with open(log_path, "w", encoding="utf-8") as log:
            for input_file in input_files:
                path = Path(input_file)
                try:
                    key = self.detect_key(path) or UNKNOWN_KEY
                except ToolNotFoundError:
                    raise
                except (KeyShiftError, OSError) as exc:
                    logger.error("Could not process %s: %s", path, exc)
                    key = ERROR_MARKER
                results[path] = key
                log.write(f"{path},{key}\n")
                log.flush()
        return results

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    @staticmethod
    def _check_format(input_file: Path) -> None:
        if not is_supported(input_file):
            raise UnsupportedFormatError(
                f"Unsupported format '{input_file.suffix}' for {input_file.name}; "
                f"expected one of {', '.join(SUPPORTED_EXTENSIONS)}."
            )

    @staticmethod
    def _check_output(output_path: Path, overwrite: bool) -> None:
        if output_path.exists() and not overwrite:
            raise OutputExistsError(
                f"Output file '{output_path}' already exists; use overwrite to replace it."
            )
