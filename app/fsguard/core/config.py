"""Filesystem settings I/O.

Settings are stored as a flat TOML document and validated with a
Pydantic model. A missing settings file yields the built-in defaults.
"""

import logging
import os
import tomllib
from pathlib import Path
from typing import Annotated, Any

import tomli_w
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from fsguard.core.paths import ensure_config_dir, get_settings_path

logger = logging.getLogger(__name__)

Mode = Annotated[int, Field(ge=0, le=0o7777)]


class SettingsError(Exception):
    """Base exception for settings-related errors."""


class SettingsParseError(SettingsError):
    """Raised when the settings file cannot be parsed."""


class SettingsValidationError(SettingsError):
    """Raised when settings content is invalid."""


class FilesystemSettings(BaseModel):
    """Tunable defaults for the filesystem layer.

    Attributes:
        file_mode: Mode applied to newly created files.
        directory_mode: Mode applied to directories created by ensure().
        ensure_parent_mode: Mode a parent directory is temporarily given
            while a child directory is created inside it.
        target_directory_size: Length of generated target directory names.
        target_directory_single: Whether generated targets are a single
            directory level instead of one level per character.
        automounts_enabled: Whether missing paths may trigger an auto-mount.
        root_directory: Default prefix for relative paths.
        cdn_directory: Base for category prefixes (css, js, img, ...).
            Defaults to <root_directory>/cdn.
        language: Language segment used below the CDN directory.
        buffer_size: Chunk size used when streaming file contents.
        command_timeout: Timeout in seconds for external commands.
        secure_delete_timeout: Timeout in seconds for shred runs.
        duplicates_max_size: Files larger than this are not hashed when
            searching for duplicates.
    """

    model_config = ConfigDict(extra="forbid")

    file_mode: Mode = 0o640
    directory_mode: Mode = 0o750
    ensure_parent_mode: Mode = 0o770
    target_directory_size: Annotated[int, Field(ge=1, le=64)] = 8
    target_directory_single: bool = False
    automounts_enabled: bool = False
    root_directory: str = Field(default_factory=os.getcwd)
    cdn_directory: str | None = None
    language: Annotated[str, Field(min_length=1)] = "en"
    buffer_size: Annotated[int, Field(gt=0)] = 1_048_576
    command_timeout: Annotated[float, Field(gt=0)] = 10.0
    secure_delete_timeout: Annotated[float, Field(gt=0)] = 60.0
    duplicates_max_size: Annotated[int, Field(gt=0)] = 1_073_741_824

    @field_validator("file_mode", "directory_mode", "ensure_parent_mode", mode="before")
    @classmethod
    def parse_octal_mode(cls, v: object) -> object:
        """Accept modes written as octal strings ("750", "0o750")."""
        if isinstance(v, str):
            text = v.strip().lower().removeprefix("0o")
            try:
                return int(text, 8)
            except ValueError:
                msg = f"invalid octal mode '{v}'"
                raise ValueError(msg) from None
        return v

    @field_validator("root_directory", "cdn_directory")
    @classmethod
    def validate_absolute(cls, v: str | None) -> str | None:
        """Directories must be absolute."""
        if v is None:
            return v
        if not v.startswith("/"):
            msg = f"directory '{v}' must be absolute"
            raise ValueError(msg)
        return v.rstrip("/") or "/"

    @property
    def cdn_path(self) -> str:
        """Resolved CDN base directory."""
        if self.cdn_directory:
            return self.cdn_directory
        return f"{self.root_directory.rstrip('/')}/cdn"

    def get(self, key: str, default: Any = None) -> Any:
        """Return a setting by name, or default when it is not a known key."""
        if key in type(self).model_fields:
            return getattr(self, key)
        return default


def load_settings(path: Path | None = None) -> FilesystemSettings:
    """Load and validate filesystem settings from a TOML file.

    Args:
        path: Settings file. If None, uses the default settings path.

    Returns:
        Validated settings, or the defaults when the file does not exist.

    Raises:
        SettingsParseError: If the TOML syntax is invalid.
        SettingsValidationError: If the content doesn't match the schema.
    """
    settings_path = path or get_settings_path()

    if not settings_path.exists():
        logger.debug("No settings file at %s, using defaults", settings_path)
        return FilesystemSettings()

    try:
        with open(settings_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise SettingsParseError(f"Invalid TOML syntax: {e}") from e
    except OSError as e:
        raise SettingsError(f"Failed to read settings: {e}") from e

    try:
        return FilesystemSettings.model_validate(data)
    except ValidationError as e:
        raise SettingsValidationError(f"Invalid settings content: {e}") from e


def save_settings(settings: FilesystemSettings, path: Path | None = None) -> Path:
    """Save settings to a TOML file.

    The file is written to a temporary sibling first and then moved over
    the destination with os.replace().

    Args:
        settings: Settings to save.
        path: Destination. If None, uses the default settings path.

    Returns:
        Path where the settings were saved.

    Raises:
        SettingsError: If the file cannot be written.
    """
    from tempfile import NamedTemporaryFile

    settings_path = path or get_settings_path()
    try:
        if path is None:
            ensure_config_dir()
        else:
            settings_path.parent.mkdir(parents=True, exist_ok=True)
    except (RuntimeError, OSError) as e:
        raise SettingsError(f"Failed to create settings directory: {e}") from e

    data = settings.model_dump(exclude_none=True)

    tmp_path: Path | None = None
    try:
        with NamedTemporaryFile(
            mode="wb",
            dir=settings_path.parent,
            delete=False,
            suffix=".tmp",
        ) as f:
            tmp_path = Path(f.name)
            tomli_w.dump(data, f)
        os.replace(str(tmp_path), str(settings_path))
    except OSError as e:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise SettingsError(f"Failed to write settings: {e}") from e

    return settings_path
