"""Configuration settings for DVD Ripper application.

Settings come from defaults, an optional JSON file and ``DVDRIPPER_*``
environment variables. Besides directories and logging they name the disc
device and the directory searched for the external tools before ``PATH``.
"""

import json
import logging
import os
import shutil
import stat
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..exceptions import DVDRipperError

# Each stage works if at least one of its tools is installed
TOOL_GROUPS: Dict[str, Tuple[str, ...]] = {
    "scan": ("lsdvd", "mplayer"),
    "capture": ("mpv", "mplayer"),
    "remux": ("mkvmerge", "ffmpeg"),
}


class ConfigurationError(DVDRipperError):
    """Exception raised for configuration validation errors."""

    pass


class ValidationResult:
    """Container for validation results with error details."""

    def __init__(self) -> None:
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def add_error(self, error: str) -> None:
        """Add a validation error."""
        self.errors.append(error)

    def add_warning(self, warning: str) -> None:
        """Add a validation warning."""
        self.warnings.append(warning)

    @property
    def is_valid(self) -> bool:
        """Check if validation passed (no errors)."""
        return len(self.errors) == 0

    @property
    def has_warnings(self) -> bool:
        """Check if validation has warnings."""
        return len(self.warnings) > 0

    def get_summary(self) -> str:
        """Get a summary of validation results."""
        parts = []
        if self.errors:
            parts.append(f"{len(self.errors)} error(s)")
        if self.warnings:
            parts.append(f"{len(self.warnings)} warning(s)")
        return ", ".join(parts) if parts else "validation passed"

    def raise_if_invalid(self) -> None:
        """Raise ConfigurationError if validation failed."""
        if not self.is_valid:
            error_msg = "Configuration validation failed:\n" + "\n".join(
                f"  - {error}" for error in self.errors
            )
            raise ConfigurationError(
                error_msg, {"errors": self.errors, "warnings": self.warnings}
            )


class Settings(BaseSettings):
    """Application settings with validation."""

    # Disc settings
    device: str = Field(default="/dev/sr0")

    # Directory settings
    output_dir: Path = Field(default_factory=lambda: Path.home() / "Videos")
    temp_dir: Path = Field(default_factory=lambda: Path(tempfile.gettempdir()))
    bin_dir: Path = Field(default_factory=lambda: Path.cwd() / "bin")
    log_dir: Path = Field(default_factory=lambda: Path.cwd() / "logs")

    # Logging settings
    log_level: str = Field(default="INFO")
    log_file_max_size: int = Field(default=10 * 1024 * 1024)  # 10MB
    log_file_backup_count: int = Field(default=5)

    # Console output settings
    verbose: bool = Field(default=False)
    quiet: bool = Field(default=False)

    model_config = SettingsConfigDict(
        env_prefix="DVDRIPPER_",
        case_sensitive=False,
        env_ignore_empty=True,
    )

    @field_validator("device")
    @classmethod
    def validate_device(cls, v: str) -> str:
        """Validate device is not blank."""
        if not v or not v.strip():
            raise ValueError("Device must be provided")
        return v.strip()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is supported."""
        valid_levels = ["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(valid_levels)}")
        return v.upper()

    @field_validator("log_file_max_size")
    @classmethod
    def validate_log_file_max_size(cls, v: int) -> int:
        """Validate log file max size is positive."""
        if v <= 0:
            raise ValueError("Log file max size must be positive")
        return v

    @field_validator("log_file_backup_count")
    @classmethod
    def validate_log_file_backup_count(cls, v: int) -> int:
        """Validate log file backup count is non-negative."""
        if v < 0:
            raise ValueError("Log file backup count must be non-negative")
        return v

    @field_validator("output_dir", "temp_dir", "bin_dir", "log_dir")
    @classmethod
    def validate_directories(cls, v: Union[str, Path]) -> Path:
        """Convert string paths to Path objects and validate."""
        if isinstance(v, str):
            v = Path(v)

        # Expand user home directory
        v = v.expanduser()

        # Convert to absolute path
        if not v.is_absolute():
            v = Path.cwd() / v

        return v

    @field_validator("quiet")
    @classmethod
    def validate_quiet_verbose_conflict(cls, v: bool, info: Any) -> bool:
        """Ensure quiet and verbose are not both True."""
        if v and info.data.get("verbose", False):
            raise ValueError("Cannot use both --quiet and --verbose flags")
        return v

    @model_validator(mode="after")
    def validate_cross_field_constraints(self) -> "Settings":
        """Comprehensive cross-field validation."""
        result: ValidationResult = ValidationResult()

        self._validate_directory_config(result)
        self._validate_logging_config(result)

        result.raise_if_invalid()

        return self

    def _validate_directory_config(self, result: ValidationResult) -> None:
        """Validate directory configuration."""
        if self.temp_dir.resolve() == self.output_dir.resolve():
            result.add_error(
                f"Directory conflict: temp_dir and output_dir "
                f"resolve to the same path: {self.temp_dir.resolve()}"
            )

        directories = {
            "output_dir": self.output_dir,
            "temp_dir": self.temp_dir,
            "log_dir": self.log_dir,
        }

        # Check directory accessibility
        for name, path in directories.items():
            parent = path.parent if not path.exists() else path
            if parent.exists():
                if not os.access(parent, os.R_OK):
                    result.add_error(
                        f"{name} parent directory is not readable: {parent}"
                    )
                if not os.access(parent, os.W_OK):
                    result.add_error(
                        f"{name} parent directory is not writable: {parent}"
                    )

    def _validate_logging_config(self, result: ValidationResult) -> None:
        """Validate logging configuration."""
        if self.log_file_max_size > 100 * 1024 * 1024:  # 100MB
            size_mb = self.log_file_max_size / (1024 * 1024)
            result.add_warning(f"Log file max size is quite large: {size_mb:.1f}MB")

        if self.log_file_backup_count > 20:
            result.add_warning(
                f"Log file backup count is quite high: {self.log_file_backup_count}"
            )

    def _validate_resource_config(self, result: ValidationResult) -> None:
        """Validate free space where raw captures and remuxed files land."""
        try:
            for name, path in [
                ("temp", self.temp_dir),
                ("output", self.output_dir),
            ]:
                if path.exists() or path.parent.exists():
                    check_path = path if path.exists() else path.parent
                    usage = shutil.disk_usage(check_path)
                    free_gb = usage.free / (1024**3)
                    # A single-layer DVD title can be up to 4.7GB
                    if free_gb < 5.0:
                        result.add_warning(
                            f"Low disk space for {name} directory "
                            f"({check_path}): only {free_gb:.1f}GB available"
                        )
        except OSError:
            # Can't check disk space on this system
            pass

    def _validate_device_config(self, result: ValidationResult) -> None:
        """Check the disc device exists and looks readable by the tools.

        lsdvd, mpv and mplayer accept a block device, a mounted VIDEO_TS
        folder or an ISO image.
        """
        device = Path(self.device).expanduser()
        if not device.exists():
            result.add_warning(f"Disc device does not exist: {device}")
            return

        is_image = device.is_file() and device.suffix.lower() == ".iso"
        if not (stat.S_ISBLK(device.stat().st_mode) or device.is_dir() or is_image):
            result.add_warning(
                f"Disc device is not a block device, folder or ISO image: {device}"
            )

        if not os.access(device, os.R_OK):
            result.add_warning(f"Disc device is not readable: {device}")

    def _validate_tool_config(self, result: ValidationResult) -> None:
        """Warn when a stage has none of its tools available."""
        for stage, tools in TOOL_GROUPS.items():
            found = [tool for tool in tools if self.find_tool(tool)]
            if not found:
                result.add_warning(
                    f"No {stage} tool found in {self.bin_dir} or on PATH "
                    f"(install {' or '.join(tools)})"
                )

    def find_tool(self, name: str) -> Optional[Path]:
        """Locate an external tool, preferring ``bin_dir`` over ``PATH``.

        Args:
            name: Executable name (e.g. "mkvmerge")

        Returns:
            Path to the executable, or None if it cannot be found
        """
        local_path = self.bin_dir / name
        if local_path.is_file() and os.access(local_path, os.X_OK):
            return local_path

        system_path = shutil.which(name)
        if system_path:
            return Path(system_path)
        return None

    def validate_comprehensive(self) -> ValidationResult:
        """Perform comprehensive validation and return detailed results.

        Returns:
            ValidationResult with detailed error and warning information
        """
        result: ValidationResult = ValidationResult()

        try:
            self._validate_directory_config(result)
            self._validate_logging_config(result)
            self._validate_resource_config(result)
            self._validate_device_config(result)
            self._validate_tool_config(result)
        except Exception as e:
            result.add_error(f"Validation error: {e}")

        return result

    def create_directories(self) -> None:
        """Create all configured directories if they don't exist."""
        for directory in [self.output_dir, self.temp_dir, self.log_dir]:
            directory.mkdir(parents=True, exist_ok=True)

    def get_effective_log_level(self) -> str:
        """Get the effective log level considering verbose/quiet flags."""
        if self.quiet:
            return "ERROR"
        elif self.verbose:
            return "DEBUG"
        else:
            return self.log_level

    @classmethod
    def load_config(cls, config_file: Optional[Path] = None) -> "Settings":
        """Load configuration from file and environment variables.

        Priority order:
        1. Environment variables (handled automatically by BaseSettings)
        2. Config file
        3. Default values
        """
        init_kwargs = {}

        if config_file and config_file.exists():
            try:
                with open(config_file, "r") as f:
                    file_config = json.load(f)
                init_kwargs.update(file_config)
            except (json.JSONDecodeError, TypeError) as e:
                logging.warning(f"Failed to load config from {config_file}: {e}")

        return cls(**init_kwargs)


def get_default_config_file() -> Path:
    """Get the default configuration file path."""
    xdg_config_home = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config_home:
        return Path(xdg_config_home) / "dvdripper" / "config.json"

    return Path.home() / ".config" / "dvdripper" / "config.json"


def load_settings(
    config_file: Optional[Path] = None, validate: bool = True
) -> Settings:
    """Load application settings from configuration file and environment.

    Args:
        config_file: Optional path to configuration file.
                    If None, uses default location.
        validate: Whether to perform comprehensive validation and show warnings.

    Returns:
        Settings instance with loaded configuration.

    Raises:
        ConfigurationError: If validation fails with errors.
    """
    if config_file is None:
        config_file = get_default_config_file()

    settings = Settings.load_config(config_file)

    if validate:
        validation_result = settings.validate_comprehensive()

        for warning in validation_result.warnings:
            logging.warning(f"Configuration warning: {warning}")

        if validation_result.has_warnings:
            logging.info(f"Configuration validation: {validation_result.get_summary()}")

    try:
        settings.create_directories()
    except OSError as e:
        logging.warning(f"Failed to create some directories: {e}")

    return settings
