"""Input discovery for batch runs."""

from pathlib import Path

# Formats the converter is asked to decode and re-encode
SUPPORTED_EXTENSIONS: tuple[str, ...] = (".mp3", ".wav")


def is_supported(path: Path) -> bool:
    return path.suffix.lower() in SUPPORTED_EXTENSIONS


def find_audio_files(path: Path, recursive: bool = True) -> list[Path]:
    """
    Expand one command-line input into the audio files it names.

    A file is returned as-is, whatever its extension, so that the pipeline can
    report it as unsupported. A directory is searched for supported files.

    Args:
        path:      File or directory.
        recursive: Search subdirectories if True.

    Returns:
        Sorted list of file paths; empty if *path* does not exist.
    """
    path = Path(path)

    if path.is_file():
        return [path]

    if not path.is_dir():
        return []

    pattern = "**/*" if recursive else "*"
    files = {candidate for candidate in path.glob(pattern) if candidate.is_file() and is_supported(candidate)}
    return sorted(files)
