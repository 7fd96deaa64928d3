"""Exception hierarchy for keyshift."""


class KeyShiftError(Exception):
    """Base class for every error raised by keyshift."""


class ToolNotFoundError(KeyShiftError):
    """A configured external executable cannot be found or started."""


class UnsupportedFormatError(KeyShiftError):
    """The input file extension is not one of the supported formats."""


class InvalidKeyError(KeyShiftError, ValueError):
    """A key name is not one of the recognised spellings."""


class OutputExistsError(KeyShiftError):
    """The destination file already exists and overwrite was not requested."""


class StageFailedError(KeyShiftError):
    """
    An external tool reported failure, or produced no output, during a stage.

    Attributes:
        stage:  Name of the pipeline stage that failed.
        output: Combined stdout/stderr captured from the tool, if any.
    """

    stage = "stage"

    def __init__(self, message: str, output: str = "") -> None:
        self.output = output
        text = f"{self.stage} failed: {message}"
        if output.strip():
            text = f"{text}\n{output.strip()}"
        super().__init__(text)


class DecodeFailedError(StageFailedError):
    stage = "decode"


class ShiftFailedError(StageFailedError):
    stage = "pitch shift"


class ReencodeFailedError(StageFailedError):
    stage = "re-encode"
