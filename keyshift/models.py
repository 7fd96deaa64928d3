"""Data models for a single key conversion."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

UNKNOWN_KEY = "Unknown"


class ConversionStatus(str, Enum):
    """Outcome label attached to every ConversionResult."""

    CONVERTED = "converted"
    ALREADY_IN_TARGET = "already in target key"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class ConversionJob:
    """
    Parameters for one run of the pipeline over one input file.

    Attributes:
        input_file:    Audio file to transpose.
        output_folder: Folder the transposed file is written to.
        target_key:    Key to transpose into.
        source_key:    Key the input is in; detected when None.
        overwrite:     Replace an existing output file.
    """

    input_file: Path
    output_folder: Path
    target_key: str
    source_key: str | None = None
    overwrite: bool = False

    @property
    def output_path(self) -> Path:
        """``<stem>_in_<target><ext>`` inside the output folder."""
        name = f"{self.input_file.stem}_in_{self.target_key}{self.input_file.suffix}"
        return self.output_folder / name


@dataclass(frozen=True)
class ConversionResult:
    """What a finished ConversionJob produced."""

    input_path: Path
    output_path: Path | None
    source_key: str
    target_key: str
    semitones: int
    status: ConversionStatus

    @property
    def skipped(self) -> bool:
        return self.status is ConversionStatus.SKIPPED
