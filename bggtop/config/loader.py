"""Configuration loader with validation."""

import hashlib
from pathlib import Path

import structlog
import yaml
from pydantic import ValidationError

from bggtop.config.constants import COMPONENT_CONFIG
from bggtop.config.schemas import AppConfig


logger = structlog.get_logger()


class ConfigValidationError(Exception):
    """Raised when the configuration file cannot be loaded or validated."""

    def __init__(self, errors: list[dict[str, str]], file_path: str) -> None:
        """Initialize the error.

        Args:
            errors: List of validation error details (loc, msg, type).
            file_path: Path to the file that failed validation.
        """
        self.errors = errors
        self.file_path = file_path
        super().__init__(f"Validation failed for {file_path}: {len(errors)} errors")


class ConfigLoader:
    """Loads, validates and writes the YAML config file."""

    def __init__(self, run_id: str = "") -> None:
        """Initialize the loader.

        Args:
            run_id: Identifier for the current run, used in logs.
        """
        self._run_id = run_id
        self._validation_errors: list[dict[str, str]] = []
        self._checksum: str | None = None

    @property
    def validation_errors(self) -> list[dict[str, str]]:
        """Get validation errors from the last load."""
        return self._validation_errors.copy()

    @property
    def checksum(self) -> str | None:
        """Get the SHA-256 checksum of the last loaded file."""
        return self._checksum

    def load(self, config_path: Path) -> AppConfig:
        """Load and validate the config file.

        Args:
            config_path: Path to the YAML config file.

        Returns:
            Validated, frozen AppConfig.

        Raises:
            ConfigValidationError: If the file is missing, unparsable or invalid.
        """
        self._validation_errors = []
        log = logger.bind(
            component=COMPONENT_CONFIG,
            run_id=self._run_id,
            file_path=str(config_path),
        )

        try:
            content = config_path.read_bytes()
        except FileNotFoundError as e:
            self._fail("file", str(e), "file_not_found", log)
            raise ConfigValidationError(self.validation_errors, str(config_path)) from e

        self._checksum = hashlib.sha256(content).hexdigest()

        try:
            data = yaml.safe_load(content.decode("utf-8")) or {}
        except yaml.YAMLError as e:
            self._fail("file", str(e), "yaml_parse_error", log)
            raise ConfigValidationError(self.validation_errors, str(config_path)) from e

        try:
            config = AppConfig.model_validate(data)
        except ValidationError as e:
            for err in e.errors():
                self._validation_errors.append(
                    {
                        "loc": ".".join(str(loc) for loc in err["loc"]) or "config",
                        "msg": err["msg"],
                        "type": err["type"],
                    }
                )
            log.error(
                "config_validation_failed",
                validation_error_count=len(self._validation_errors),
                errors=self._validation_errors,
            )
            raise ConfigValidationError(self.validation_errors, str(config_path)) from e

        log.info(
            "config_loaded",
            file_sha256=self._checksum,
            threads=config.threads,
            attempts=config.attempts,
            delay_ms=config.delay_ms,
        )
        return config

    def write_default(
        self,
        config_path: Path,
        config: AppConfig | None = None,
    ) -> AppConfig:
        """Write a config file, overwriting any existing one.

        Args:
            config_path: Destination path.
            config: Config to write (defaults to AppConfig()).

        Returns:
            The config that was written.
        """
        config = config or AppConfig()
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(
            yaml.safe_dump(config.model_dump(), sort_keys=False),
            encoding="utf-8",
        )
        logger.info(
            "config_written",
            component=COMPONENT_CONFIG,
            run_id=self._run_id,
            file_path=str(config_path),
        )
        return config

    def _fail(
        self,
        loc: str,
        msg: str,
        error_type: str,
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        """Record a file-level failure."""
        self._validation_errors.append({"loc": loc, "msg": msg, "type": error_type})
        log.error("config_load_failed", error_type=error_type, error=msg)


def load_config(config_path: Path, run_id: str = "") -> AppConfig:
    """Load the config file with a throwaway loader.

    Args:
        config_path: Path to the YAML config file.
        run_id: Identifier for the current run.

    Returns:
        Validated AppConfig.
    """
    return ConfigLoader(run_id=run_id).load(config_path)
