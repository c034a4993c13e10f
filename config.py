# This module holds the tunables of the classifier: the category map, the acceptance threshold and where the model comes from
# Every value can be overridden with a WASTEWISE_* environment variable

import os
import json
import math
import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from category_map import DEFAULT_CATEGORY_MAP, CategoryMap
from errors import ConfigurationError
from verdict_engine import DEFAULT_ACCEPTANCE_THRESHOLD

logger = logging.getLogger(__name__)

# the model file a configured model_url is downloaded to
DEFAULT_MODEL_PATH = "waste_image_classifier.h5"
DEFAULT_INPUT_SIZE = 224
# the upload box accepts "PNG, JPG up to 5MB"
DEFAULT_MAX_UPLOAD_BYTES = 5 * 1024 * 1024

ENV_PREFIX = "WASTEWISE_"


@dataclass(frozen=True)
class ClassifierConfig:
    """Configuration of the image classifier and of the verdict engine."""
    category_map: CategoryMap = DEFAULT_CATEGORY_MAP
    acceptance_threshold: float = DEFAULT_ACCEPTANCE_THRESHOLD
    apply_weights: bool = False
    model_url: Optional[str] = None
    model_path: str = DEFAULT_MODEL_PATH
    input_size: int = DEFAULT_INPUT_SIZE
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES

    def validate(self) -> "ClassifierConfig":
        """Validate the settings and return self so calls can be chained."""
        if not 0.0 <= self.acceptance_threshold < 1.0:
            raise ConfigurationError(
                f"acceptance_threshold must be in [0, 1), got {self.acceptance_threshold}",
                config_field="acceptance_threshold"
            )
        if self.input_size <= 0:
            raise ConfigurationError(
                "input_size must be positive",
                config_field="input_size"
            )
        if self.max_upload_bytes <= 0:
            raise ConfigurationError(
                "max_upload_bytes must be positive",
                config_field="max_upload_bytes"
            )
        if self.model_url is not None and not self.model_url.startswith(("http://", "https://")):
            raise ConfigurationError(
                f"model_url must be an http(s) URL, got {self.model_url!r}",
                config_field="model_url"
            ).add_suggestion("Unset WASTEWISE_MODEL_URL to use the built-in MobileNet classifier")
        return self


def load_category_map(path: str) -> CategoryMap:
    """Read a category map from a JSON file holding a list of entry records."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            records = json.load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(
            f"Category map file not found: {path}",
            config_field="category_map"
        ) from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            f"Category map file is not valid JSON: {e}",
            config_field="category_map"
        ) from e

    if not isinstance(records, list):
        raise ConfigurationError(
            "Category map file must contain a JSON list of records",
            config_field="category_map"
        )
    return CategoryMap.from_records(records)


def _parse(environ, name, convert):
    raw = environ.get(ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return convert(raw.strip())
    except ValueError as e:
        raise ConfigurationError(
            f"Invalid value for {ENV_PREFIX + name}: {raw!r}",
            config_field=name.lower()
        ) from e


def _parse_bool(raw: str) -> bool:
    lowered = raw.lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ValueError(raw)


def _parse_megabytes(raw: str) -> int:
    megabytes = float(raw)
    if not math.isfinite(megabytes):
        raise ValueError(raw)
    return int(megabytes * 1024 * 1024)


def load_config(environ: Optional[Mapping[str, str]] = None) -> ClassifierConfig:
    """Build the configuration from the defaults and the WASTEWISE_* environment variables."""
    if environ is None:
        environ = os.environ

    overrides = {}

    threshold = _parse(environ, "ACCEPTANCE_THRESHOLD", float)
    if threshold is not None:
        overrides["acceptance_threshold"] = threshold

    apply_weights = _parse(environ, "APPLY_WEIGHTS", _parse_bool)
    if apply_weights is not None:
        overrides["apply_weights"] = apply_weights

    model_url = _parse(environ, "MODEL_URL", str)
    if model_url is not None:
        overrides["model_url"] = model_url

    model_path = _parse(environ, "MODEL_PATH", str)
    if model_path is not None:
        overrides["model_path"] = model_path

    input_size = _parse(environ, "INPUT_SIZE", int)
    if input_size is not None:
        overrides["input_size"] = input_size

    max_upload_bytes = _parse(environ, "MAX_UPLOAD_MB", _parse_megabytes)
    if max_upload_bytes is not None:
        overrides["max_upload_bytes"] = max_upload_bytes

    category_map_path = _parse(environ, "CATEGORY_MAP", str)
    if category_map_path is not None:
        overrides["category_map"] = load_category_map(category_map_path)
        logger.info(f"Loaded category map from {category_map_path}")

    config = ClassifierConfig(**overrides).validate()
    logger.info(
        f"Classifier config: threshold={config.acceptance_threshold}, "
        f"apply_weights={config.apply_weights}, entries={len(config.category_map)}"
    )
    return config
