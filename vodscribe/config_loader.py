"""Handles loading and validating configuration from YAML files and the environment."""

import yaml
import os
import logging
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional

from .exceptions import ConfigurationError
from .models import RetryPolicy

logger = logging.getLogger(__name__)

class ConfigLoader:
    """Loads configuration settings from a YAML file."""

    def load_config(self, config_path: str) -> dict:
        """
        Loads configuration from the specified YAML file path.

        Args:
            config_path: The path to the YAML configuration file.

        Returns:
            A dictionary containing the loaded configuration settings.
            An empty file yields an empty dictionary.

        Raises:
            FileNotFoundError: If the configuration file does not exist.
            ConfigurationError: If the file cannot be parsed as YAML or
                              if there are other reading errors.
        """
        logger.info(f"Attempting to load configuration from: {config_path}")
        if not os.path.exists(config_path):
            logger.error(f"Configuration file not found at path: {config_path}")
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
        if not os.path.isfile(config_path):
            logger.error(f"Configuration path is not a file: {config_path}")
            raise ConfigurationError(f"Configuration path is not a file: {config_path}")

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error(f"Error parsing YAML configuration file {config_path}: {e}", exc_info=True)
            raise ConfigurationError(f"Invalid YAML format in {config_path}: {e}") from e
        except IOError as e:
            logger.error(f"Error reading configuration file {config_path}: {e}", exc_info=True)
            raise ConfigurationError(f"Could not read configuration file {config_path}: {e}") from e

        if config is None:
            config = {}
        if not isinstance(config, dict):
            # Handle cases where YAML loads something other than a dictionary (e.g., just a string)
            logger.error(f"Configuration file {config_path} did not load as a dictionary (root object).")
            raise ConfigurationError(f"Invalid YAML structure in {config_path}. Root must be a mapping (dictionary).")
        logger.info(f"Configuration loaded successfully from {config_path}")
        return config


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class PipelineSettings:
    """Settings for the transcript pipeline. Validated on construction."""

    use_acceleration: bool = False
    model_name: str = "base"
    chunk_concurrency: int = 2
    include_total_duration: bool = False
    chunk_duration_seconds: int = 1800
    overlap_seconds: int = 30
    similarity_threshold: float = 0.8
    # Compare a chunk head against the previous chunk tail instead of [offset - overlap, offset)
    dedup_previous_tail: bool = False
    data_root: str = "data"

    # External tools; None means "look it up on PATH"
    ffmpeg_path: Optional[str] = None
    ffprobe_path: Optional[str] = None
    whisper_path: Optional[str] = None
    beam_size: int = 5

    pipeline_max_attempts: int = 3
    chunk_max_attempts: int = 2
    retry_base_delay_seconds: float = 5.0
    retry_max_delay_seconds: float = 30.0

    show_progress: bool = False

    def __post_init__(self):
        if self.chunk_concurrency < 1:
            raise ConfigurationError(f"chunk_concurrency must be at least 1, got {self.chunk_concurrency}")
        if self.chunk_duration_seconds <= 0:
            raise ConfigurationError(f"chunk_duration_seconds must be positive, got {self.chunk_duration_seconds}")
        if not 0 <= self.overlap_seconds < self.chunk_duration_seconds:
            raise ConfigurationError(
                f"overlap_seconds must be in [0, chunk_duration_seconds), got {self.overlap_seconds}"
            )
        if not 0 < self.similarity_threshold <= 1:
            raise ConfigurationError(f"similarity_threshold must be in (0, 1], got {self.similarity_threshold}")
        if self.pipeline_max_attempts < 1 or self.chunk_max_attempts < 1:
            raise ConfigurationError("Retry attempt counts must be at least 1")
        if self.retry_base_delay_seconds < 0 or self.retry_max_delay_seconds < 0:
            raise ConfigurationError("Retry delays cannot be negative")
        if not self.model_name:
            raise ConfigurationError("model_name cannot be empty")

    @property
    def audio_dir(self) -> str:
        return os.path.join(self.data_root, "audio")

    @property
    def transcripts_dir(self) -> str:
        return os.path.join(self.data_root, "transcripts")

    @property
    def pipeline_retry(self) -> RetryPolicy:
        return RetryPolicy(self.pipeline_max_attempts, self.retry_base_delay_seconds, self.retry_max_delay_seconds)

    @property
    def chunk_retry(self) -> RetryPolicy:
        return RetryPolicy(self.chunk_max_attempts, self.retry_base_delay_seconds, self.retry_max_delay_seconds)

    @classmethod
    def from_dict(cls, config: Mapping[str, Any]) -> "PipelineSettings":
        """
        Builds settings from a loaded configuration mapping.

        Unknown keys are ignored with a warning so that one YAML file can be
        shared with other tools.

        Raises:
            ConfigurationError: If a value has the wrong type or is out of range.
        """
        known = {f.name: f for f in fields(cls)}
        values: Dict[str, Any] = {}
        for key, value in config.items():
            if key not in known:
                logger.warning(f"Ignoring unknown configuration key: {key}")
                continue
            default = known[key].default
            try:
                if isinstance(default, bool):
                    values[key] = _parse_bool(value)
                elif isinstance(default, int):
                    values[key] = int(value)
                elif isinstance(default, float):
                    values[key] = float(value)
                else:
                    values[key] = value if value is None else str(value)
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"Invalid value for '{key}': {value!r}") from e
        return cls(**values)

    @classmethod
    def from_env(cls, base: Optional["PipelineSettings"] = None, environ: Optional[Mapping[str, str]] = None) -> "PipelineSettings":
        """Applies USE_GPU, WHISPER_MODEL, CONCURRENT_CHUNK_PROCESS, INCLUDE_TRANSCRIPT_DURATION and DATA_ROOT overrides."""
        base = base or cls()
        environ = os.environ if environ is None else environ
        overrides: Dict[str, Any] = {}
        try:
            if "USE_GPU" in environ:
                overrides["use_acceleration"] = _parse_bool(environ["USE_GPU"])
            if environ.get("WHISPER_MODEL"):
                overrides["model_name"] = environ["WHISPER_MODEL"]
            if environ.get("CONCURRENT_CHUNK_PROCESS"):
                overrides["chunk_concurrency"] = int(environ["CONCURRENT_CHUNK_PROCESS"])
            if "INCLUDE_TRANSCRIPT_DURATION" in environ:
                overrides["include_total_duration"] = _parse_bool(environ["INCLUDE_TRANSCRIPT_DURATION"])
            if environ.get("DATA_ROOT"):
                overrides["data_root"] = environ["DATA_ROOT"]
        except ValueError as e:
            raise ConfigurationError(f"Invalid environment override: {e}") from e
        if overrides:
            logger.info(f"Applying environment overrides: {', '.join(sorted(overrides))}")
        return replace(base, **overrides)
