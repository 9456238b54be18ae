import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import yaml

from note_triage.core.errors import ConfigError

# Initialize logger
logger = logging.getLogger(__name__)


def load_config(config_path: str = "config.yaml") -> Dict[str, Any]:
    """
    Loads the YAML configuration file from the project root.

    Args:
        config_path (str): Relative path to the config file.

    Returns:
        Dict[str, Any]: The configuration dictionary.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ConfigError: If the file contains invalid YAML or is not a mapping.
    """
    # Strategy: Look in the current working directory first (Best for Docker/Root run)
    path = Path(config_path)

    if not path.exists():
        # Fallback: Try to find it relative to this file (useful during dev/testing)
        base_dir = Path(__file__).resolve().parent.parent.parent
        path = base_dir / config_path

    if not path.exists():
        logger.critical(f"Configuration file not found at: {path.absolute()}")
        raise FileNotFoundError(f"Config file '{config_path}' is missing.")

    try:
        with open(path, "r") as file:
            config = yaml.safe_load(file) or {}
    except yaml.YAMLError as e:
        logger.critical(f"Error parsing YAML configuration: {e}")
        raise ConfigError(f"Invalid YAML in '{path}': {e}") from e

    if not isinstance(config, dict):
        raise ConfigError(f"Config file '{path}' must contain a mapping at the top level.")

    logger.info(f"Configuration loaded successfully from {path}")
    return config


def get_categories(config: Dict[str, Any]) -> List[str]:
    """
    Helper to extract the default categories used by the command-line runner.
    """
    try:
        categories = config["triage"]["categories"]
    except (KeyError, TypeError) as e:
        raise ConfigError("Invalid Config: 'triage.categories' key is missing.") from e

    if not isinstance(categories, list) or not all(isinstance(c, str) for c in categories):
        raise ConfigError("Invalid Config: 'triage.categories' must be a list of strings.")
    return categories


@dataclass
class Settings:
    """
    Runtime settings: config.yaml values with environment overrides applied.
    """

    gemini_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash-lite"
    openai_model: str = "gpt-5-nano"
    openai_base_url: str = "https://api.openai.com/v1"
    request_timeout: float = 8.0

    fallback_category: str = "Other"
    fallback_confidence: float = 0.6
    subcategory_threshold: float = 0.8
    low_confidence_threshold: Optional[float] = None
    reason_max_length: int = 280
    max_hints_per_category: int = 100
    batch_workers: int = 8

    cache_max_entries: int = 5000
    cache_ttl_seconds: float = 7 * 24 * 3600

    classify_template_file: Optional[str] = None
    analyze_template_file: Optional[str] = None

    log_level: str = "INFO"
    default_categories: List[str] = field(default_factory=list)


def _section(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = config.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"Invalid Config: '{name}' must be a mapping.")
    return value


def _coerce(name: str, value: Any, cast: Callable[[Any], Any]) -> Any:
    try:
        return cast(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for '{name}': {value!r}") from e


def _optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


def get_settings(config: Optional[Dict[str, Any]] = None) -> Settings:
    """
    Builds Settings from a loaded config dictionary and the environment.

    Secrets (GEMINI_API_KEY, OPENAI_API_KEY) only ever come from the environment.
    """
    config = config or {}
    providers = _section(config, "providers")
    gemini = providers.get("gemini") or {}
    openai = providers.get("openai") or {}
    classifier = _section(config, "classifier")
    cache = _section(config, "cache")
    prompts = _section(config, "prompts")
    logging_section = _section(config, "logging")

    env = os.environ
    settings = Settings(
        gemini_api_key=env.get("GEMINI_API_KEY") or None,
        openai_api_key=env.get("OPENAI_API_KEY") or None,
        gemini_model=env.get("GEMINI_MODEL") or gemini.get("model", Settings.gemini_model),
        openai_model=env.get("OPENAI_MODEL") or openai.get("model", Settings.openai_model),
        openai_base_url=env.get("OPENAI_BASE_URL") or openai.get("base_url", Settings.openai_base_url),
        request_timeout=_coerce(
            "providers.request_timeout_seconds",
            providers.get("request_timeout_seconds", Settings.request_timeout),
            float,
        ),
        fallback_category=str(classifier.get("fallback_category", Settings.fallback_category)),
        fallback_confidence=_coerce(
            "FALLBACK_CONFIDENCE",
            env.get("FALLBACK_CONFIDENCE") or classifier.get("fallback_confidence", Settings.fallback_confidence),
            float,
        ),
        subcategory_threshold=_coerce(
            "classifier.subcategory_threshold",
            classifier.get("subcategory_threshold", Settings.subcategory_threshold),
            float,
        ),
        low_confidence_threshold=_coerce(
            "LOW_CONFIDENCE_THRESHOLD",
            env.get("LOW_CONFIDENCE_THRESHOLD") or classifier.get("low_confidence_threshold"),
            _optional_float,
        ),
        reason_max_length=_coerce(
            "classifier.reason_max_length", classifier.get("reason_max_length", Settings.reason_max_length), int
        ),
        max_hints_per_category=_coerce(
            "classifier.max_hints_per_category",
            classifier.get("max_hints_per_category", Settings.max_hints_per_category),
            int,
        ),
        batch_workers=max(1, _coerce("classifier.batch_workers", classifier.get("batch_workers", 8), int)),
        cache_max_entries=_coerce("cache.max_entries", cache.get("max_entries", Settings.cache_max_entries), int),
        cache_ttl_seconds=_coerce("cache.ttl_seconds", cache.get("ttl_seconds", Settings.cache_ttl_seconds), float),
        classify_template_file=prompts.get("classify_template_file"),
        analyze_template_file=prompts.get("analyze_template_file"),
        log_level="DEBUG" if env.get("DEBUG_LOG") == "1" else str(logging_section.get("level", "INFO")).upper(),
        default_categories=list((config.get("triage") or {}).get("categories") or []),
    )

    if not 0.0 <= settings.fallback_confidence <= 1.0:
        raise ConfigError("FALLBACK_CONFIDENCE must be between 0 and 1.")
    if settings.cache_max_entries < 1:
        raise ConfigError("cache.max_entries must be at least 1.")
    return settings
