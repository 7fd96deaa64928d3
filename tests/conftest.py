"""Shared fixtures: a fake converter / detector / stretcher behind subprocess.run."""

import subprocess
from pathlib import Path

import pytest

from keyshift.config import Settings
from keyshift.pipeline import KeyConverter

CONVERTER = "fake-ffmpeg"


class FakeToolchain:
    """
    Stands in for the three external tools.

    Writes the files the real tools would write, records every command line,
    and can be told to fail at a given stage.
    """

    def __init__(self, detector_path: str, stretcher_path: str) -> None:
        self.detector_path = detector_path
        self.stretcher_path = stretcher_path
        self.detector_output = "Bb\n"
        self.title: str | None = "Original Title"
        self.fail: set[str] = set()
        self.silent: set[str] = set()
        self.unstartable: set[str] = set()
        self.calls: list[list[str]] = []

    def commands(self, stage: str) -> list[list[str]]:
        return [args for args in self.calls if self._stage(args) == stage]

    def _stage(self, args: list[str]) -> str:
        if args[0] == self.detector_path:
            return "detect"
        if args[0] == self.stretcher_path:
            return "stretch"
        if "-version" in args:
            return "version"
        if "ffmetadata" in args:
            return "metadata"
        if "-map_metadata" in args:
            return "encode"
        return "decode"

    def __call__(self, args, **kwargs) -> subprocess.CompletedProcess:
        args = [str(arg) for arg in args]
        self.calls.append(args)
        stage = self._stage(args)

        if stage in self.unstartable:
            raise PermissionError(13, "Permission denied", args[0])
        if stage in self.fail:
            return subprocess.CompletedProcess(args, 1, stdout=f"{stage} exploded\n")

        stdout = ""
        if stage == "version":
            stdout = "ffmpeg version 6.1\n"
        elif stage == "metadata":
            stdout = ";FFMETADATA1\n"
            if self.title is not None:
                stdout += f"title={self.title}\n"
        elif stage == "detect":
            stdout = self.detector_output
        elif stage not in self.silent:
            destination = Path(args[2] if stage == "stretch" else args[-2])
            destination.write_bytes(f"{stage}d audio".encode())

        return subprocess.CompletedProcess(args, 0, stdout=stdout)


@pytest.fixture
def toolchain(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> FakeToolchain:
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    detector = bin_dir / "keyfinder-cli"
    stretcher = bin_dir / "soundstretch"
    for tool in (detector, stretcher):
        tool.write_text("")
        tool.chmod(0o755)

    fake = FakeToolchain(str(detector), str(stretcher))
    monkeypatch.setattr("keyshift.tools.subprocess.run", fake)
    return fake


@pytest.fixture
def settings(tmp_path: Path, toolchain: FakeToolchain) -> Settings:
    return Settings(
        converter_path=CONVERTER,
        detector_path=toolchain.detector_path,
        stretcher_path=toolchain.stretcher_path,
        temp_dir=tmp_path / "scratch",
    )


@pytest.fixture
def converter(settings: Settings) -> KeyConverter:
    return KeyConverter(settings)


@pytest.fixture
def song(tmp_path: Path) -> Path:
    path = tmp_path / "music" / "song.mp3"
    path.parent.mkdir()
    path.write_bytes(b"ID3 original mp3 bytes")
    return path
