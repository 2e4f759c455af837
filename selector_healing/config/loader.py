from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from selector_healing.config.schema import HealingConfig
from selector_healing.core.exceptions import ConfigLoadError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config") / "healing.json"


class ConfigLoader:
    """Loads and validates the JSON healing configuration."""

    @staticmethod
    def load(path: str | Path) -> HealingConfig:
        config_path = Path(path)
        try:
            with config_path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigLoadError(f"Could not read healing config {config_path}: {exc}") from exc
        try:
            return HealingConfig.model_validate(payload)
        except ValidationError as exc:
            raise ConfigLoadError(f"Invalid healing config {config_path}: {exc}") from exc

    @staticmethod
    def load_or_default(path: str | Path = DEFAULT_CONFIG_PATH) -> HealingConfig:
        """Like :meth:`load`, but falls back to built-in defaults.

        A missing file is not worth a warning; a broken one is.
        """

        config_path = Path(path)
        if not config_path.exists():
            logger.debug("No healing config at %s, using defaults", config_path)
            return HealingConfig()
        try:
            return ConfigLoader.load(config_path)
        except ConfigLoadError as exc:
            logger.warning("Failed to load healing config, using defaults: %s", exc)
            return HealingConfig()
