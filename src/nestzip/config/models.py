"""Configuration models describing nestzip settings."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class NestzipBaseModel(BaseModel):
    """Shared configuration for nestzip Pydantic models."""

    model_config = ConfigDict(extra="forbid")


class MarkerSpec(NestzipBaseModel):
    """A marker file that must be present for a directory to be archived.

    Attributes:
        canonical: Preferred filename of the marker.
        alternate: Accepted alternate spelling, if any.
    """

    canonical: str
    alternate: Optional[str] = None

    @field_validator("canonical")
    @classmethod
    def _canonical_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("marker filename must not be empty")
        return value

    def names(self) -> set[str]:
        """Return the lower-cased spellings accepted for this marker."""
        accepted = {self.canonical.lower()}
        if self.alternate:
            accepted.add(self.alternate.lower())
        return accepted


def _default_markers() -> List[MarkerSpec]:
    return [
        MarkerSpec(canonical="__init__.py", alternate="__init__.pyc"),
        MarkerSpec(canonical="__manifest__.py", alternate="__openerp__.py"),
    ]


class ArchiveSettings(NestzipBaseModel):
    """Archive output settings.

    Attributes:
        extension: File extension used for produced archives.
        compression_level: Deflate level applied uniformly to every entry.
    """

    extension: str = "zip"
    compression_level: int = Field(default=9, ge=0, le=9)

    @field_validator("extension")
    @classmethod
    def _strip_dot(cls, value: str) -> str:
        cleaned = value.strip().lstrip(".")
        if not cleaned:
            raise ValueError("archive extension must not be empty")
        return cleaned


class RunOptions(NestzipBaseModel):
    """Defaults for a bottom-up run.

    Attributes:
        mode: `delete` replaces archived directories in place; `export` leaves
            the source tree untouched and stages intermediate archives.
        zip_root: Whether delete-mode runs also archive and remove the root.
        confirm_destructive: Whether the CLI asks before delete-mode runs.
    """

    mode: Literal["delete", "export"] = "export"
    zip_root: bool = False
    confirm_destructive: bool = True


class ScanOptions(NestzipBaseModel):
    """Directory discovery settings.

    Attributes:
        follow_symlinks: Whether symlinked directories are descended into.
    """

    follow_symlinks: bool = False


class LoggingSettings(NestzipBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        file: Optional log file path; enables a rotating file handler.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
    """

    level: str = "WARNING"
    file: Optional[str] = None
    max_size_mb: int = 100
    backup_count: int = 5


class CLIOptions(NestzipBaseModel):
    """CLI behavior defaults and presentation preferences.

    Attributes:
        quiet_default: Whether commands suppress non-error output by default.
        show_log: Whether timestamped log lines are echoed during runs.
    """

    quiet_default: bool = False
    show_log: bool = True


class NestzipConfig(NestzipBaseModel):
    """Top-level configuration struct for nestzip.

    Attributes:
        markers: Marker files required for a directory to be archived on its
            own. An empty list archives every directory.
        archive: Archive output settings.
        run: Run defaults.
        scan: Directory discovery settings.
        logging: Logging configuration.
        cli: CLI presentation defaults.
    """

    markers: List[MarkerSpec] = Field(default_factory=_default_markers)
    archive: ArchiveSettings = Field(default_factory=ArchiveSettings)
    run: RunOptions = Field(default_factory=RunOptions)
    scan: ScanOptions = Field(default_factory=ScanOptions)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLIOptions = Field(default_factory=CLIOptions)


__all__ = [
    "NestzipBaseModel",
    "MarkerSpec",
    "ArchiveSettings",
    "RunOptions",
    "ScanOptions",
    "LoggingSettings",
    "CLIOptions",
    "NestzipConfig",
]
