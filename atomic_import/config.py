"""
Import settings: YAML file, then environment overrides.

Environment variables (optionally loaded from a .env file):
    IMPORT_ORDER_CONCURRENCY, IMPORT_SKU_CONCURRENCY, IMPORT_MAX_RETRIES,
    IMPORT_RETRY_DELAYS_MS (comma separated), IMPORT_UPSERT_MODE,
    IMPORT_STOCK_MODE, IMPORT_RULES_PATH
"""

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Literal

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from atomic_import.core.errors import ConfigError
from atomic_import.observability.logger import get_logger

logger = get_logger(__name__)

DEFAULT_SETTINGS_PATH = Path(__file__).resolve().parent.parent / "config" / "import_settings.yaml"

UpsertModeName = Literal["skip", "update", "fail"]


class ImportSettings(BaseModel):
    """
    Runtime settings for import runs.

    Attributes:
        order_concurrency: Wave size for order imports
        sku_concurrency: Wave size for SKU imports
        max_retries: Retries after the first attempt for transient failures
        retry_delays_ms: Backoff schedule; the last entry repeats if short
        upsert_mode: What to do with groups whose key already exists
        stock_mode: "set" (last value wins) or "delta" (values are summed)
        rules_path: Optional YAML file overriding the built-in rules
    """

    order_concurrency: int = Field(5, ge=1)
    sku_concurrency: int = Field(10, ge=1)
    max_retries: int = Field(3, ge=0)
    retry_delays_ms: list[int] = Field(default_factory=lambda: [500, 1000, 2000])
    upsert_mode: UpsertModeName = "skip"
    stock_mode: Literal["set", "delta"] = "set"
    rules_path: str | None = None

    @field_validator("retry_delays_ms")
    @classmethod
    def check_delays(cls, v: list[int]) -> list[int]:
        if any(d < 0 for d in v):
            raise ValueError("retry delays must be >= 0")
        return v

    def concurrency_for(self, entity_kind: str) -> int:
        return self.order_concurrency if entity_kind == "order" else self.sku_concurrency

    @property
    def retry_delays(self) -> tuple[float, ...]:
        return tuple(ms / 1000 for ms in self.retry_delays_ms)


_ENV_FIELDS = {
    "IMPORT_ORDER_CONCURRENCY": "order_concurrency",
    "IMPORT_SKU_CONCURRENCY": "sku_concurrency",
    "IMPORT_MAX_RETRIES": "max_retries",
    "IMPORT_RETRY_DELAYS_MS": "retry_delays_ms",
    "IMPORT_UPSERT_MODE": "upsert_mode",
    "IMPORT_STOCK_MODE": "stock_mode",
    "IMPORT_RULES_PATH": "rules_path",
}


def load_settings(
    path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    dotenv_path: str | Path | None = None,
) -> ImportSettings:
    """
    Load settings from YAML and apply environment overrides.

    Args:
        path: Settings file (defaults to config/import_settings.yaml if present)
        env: Environment mapping (defaults to os.environ)
        dotenv_path: Optional .env file loaded into os.environ first

    Returns:
        Validated ImportSettings

    Raises:
        ConfigError: If the file or an override is invalid
    """
    if dotenv_path is not None:
        load_dotenv(dotenv_path, override=False)

    if env is None:
        env = os.environ

    data: dict = {}
    settings_path = Path(path) if path is not None else DEFAULT_SETTINGS_PATH
    if settings_path.exists():
        try:
            with open(settings_path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {settings_path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Settings file {settings_path} must contain a mapping")
        data = dict(data.get("import", data))
    elif path is not None:
        raise ConfigError(f"Settings file not found: {settings_path}")

    for var, field in _ENV_FIELDS.items():
        value = env.get(var)
        if value is None or value == "":
            continue
        if field == "retry_delays_ms":
            data[field] = [part.strip() for part in value.split(",") if part.strip()]
        else:
            data[field] = value

    try:
        settings = ImportSettings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid import settings: {e}") from e

    logger.debug(f"Loaded import settings: {settings.model_dump()}")
    return settings
