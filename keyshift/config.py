"""Runtime configuration: locations of the external tools and scratch space."""

import tempfile
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Tool paths and temp directory, read from ``KEYSHIFT_*`` environment
    variables or a ``.env`` file. Keyword arguments take precedence, which is
    how the CLI applies its flags.
    """

    model_config = SettingsConfigDict(
        env_prefix="KEYSHIFT_",
        env_file=".env",
        extra="ignore",
        frozen=True,
    )

    converter_path: str = "ffmpeg"
    detector_path: str = "keyfinder-cli"
    stretcher_path: str = "soundstretch"
    temp_dir: Path = Field(default_factory=lambda: Path(tempfile.gettempdir()))
