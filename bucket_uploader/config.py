"""Configuration loading for the bucket uploader.

Settings come from environment variables. A ``.env`` file, when present,
seeds variables that are not already set in the real environment.

Environment Variables:
    S3_ENDPOINT             e.g. https://<ACCOUNT_ID>.r2.cloudflarestorage.com
    S3_ACCESS_KEY_ID
    S3_SECRET_ACCESS_KEY
    S3_BUCKET_NAME
    S3_REGION               default: auto
    S3_ADDRESSING_STYLE     path | virtual (default: path)
    S3_PART_SIZE_MB         default: 5 (minimum 5)
    S3_CONCURRENCY          default: 5
    S3_PART_ATTEMPTS        default: 3

The four connection variables are passed through as-is; a missing one
surfaces as a failure of the first remote call.
"""

import logging
import os
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from bucket_uploader.models import (
    DEFAULT_CONCURRENCY,
    DEFAULT_PART_ATTEMPTS,
    MIB,
    MIN_PART_SIZE,
    StoreConfig,
)

logger = logging.getLogger(__name__)

ADDRESSING_STYLES = ("path", "virtual", "auto")


class ConfigError(Exception):
    """Raised when a configuration value is malformed."""

    pass


def _get_int(env: Mapping[str, str], name: str, default: int, minimum: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default

    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got '{raw}'") from e

    if value < minimum:
        raise ConfigError(f"{name} must be at least {minimum}, got {value}")
    return value


def config_from_env(env: Optional[Mapping[str, str]] = None) -> StoreConfig:
    """Build a StoreConfig from environment variables.

    Args:
        env: Mapping to read from (defaults to os.environ).

    Returns:
        The parsed configuration.

    Raises:
        ConfigError: If a tuning variable is not a valid number or an
                    addressing style is unknown.
    """
    if env is None:
        env = os.environ

    addressing_style = env.get("S3_ADDRESSING_STYLE", "path").strip().lower()
    if addressing_style not in ADDRESSING_STYLES:
        raise ConfigError(
            f"S3_ADDRESSING_STYLE must be one of {', '.join(ADDRESSING_STYLES)}, "
            f"got '{addressing_style}'"
        )

    part_size_mb = _get_int(
        env, "S3_PART_SIZE_MB", MIN_PART_SIZE // MIB, minimum=MIN_PART_SIZE // MIB
    )

    return StoreConfig(
        endpoint_url=env.get("S3_ENDPOINT") or None,
        aws_access_key_id=env.get("S3_ACCESS_KEY_ID") or None,
        aws_secret_access_key=env.get("S3_SECRET_ACCESS_KEY") or None,
        bucket_name=env.get("S3_BUCKET_NAME") or None,
        region_name=env.get("S3_REGION") or "auto",
        addressing_style=addressing_style,
        part_size=part_size_mb * MIB,
        concurrency=_get_int(env, "S3_CONCURRENCY", DEFAULT_CONCURRENCY, minimum=1),
        part_attempts=_get_int(
            env, "S3_PART_ATTEMPTS", DEFAULT_PART_ATTEMPTS, minimum=1
        ),
    )


def load_config(env_file: Optional[str] = ".env") -> StoreConfig:
    """Load configuration, seeding the environment from a .env file.

    Variables already present in the environment take priority over
    the file.

    Args:
        env_file: Path to a dotenv file, or None to skip it.

    Returns:
        The parsed configuration.

    Raises:
        ConfigError: If a value is malformed.
    """
    if env_file and Path(env_file).is_file():
        logger.debug("Loading environment from %s", env_file)
        load_dotenv(env_file, override=False)

    return config_from_env()
