"""Application configuration."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field

from skill_knife.gitops import CACHE_DIR
from skill_knife.metadata import DEFAULT_LOCK_TTL, LOCK_FILE
from skill_knife.packaging import DEFAULT_COMMAND
from skill_knife.persistence import DATA_DIR, PersistenceStore
from skill_knife.readers import expand_path
from skill_knife.skillsh import DEFAULT_TIMEOUT_S
from skill_knife.types import InstallMode

logger = logging.getLogger(__name__)

ENV_PREFIX = "SKILL_KNIFE_"


class AppConfig(BaseModel):
    """Runtime settings for skill-knife."""

    model_config = ConfigDict(populate_by_name=True)

    data_dir: Path = DATA_DIR
    cache_dir: Path = CACHE_DIR
    lock_file: Path = LOCK_FILE
    mode: InstallMode = InstallMode.DELEGATED
    cli_command: str = " ".join(DEFAULT_COMMAND)
    lock_ttl: float = DEFAULT_LOCK_TTL
    hydrate_delay: float = 0.3
    http_timeout: float = DEFAULT_TIMEOUT_S
    readers: list[dict[str, Any]] = Field(default_factory=list)


def load_config(environ: Mapping[str, str] | None = None, **overrides: Any) -> AppConfig:
    """Build the configuration from defaults, environment and settings.json.

    Environment variables:
        SKILL_KNIFE_HOME_DIR: Data directory (markets, profiles, settings).
        SKILL_KNIFE_CACHE_DIR: Git mirror cache directory.
        SKILL_KNIFE_MODE: ``delegated`` or ``direct``.
        SKILL_KNIFE_CLI: Packaging CLI command prefix.

    Args:
        environ: Environment mapping. Defaults to os.environ.
        **overrides: Explicit field values; these win over the environment.

    Returns:
        Validated AppConfig.
    """
    env = os.environ if environ is None else environ
    values: dict[str, Any] = {}

    if env.get(f"{ENV_PREFIX}HOME_DIR"):
        values["data_dir"] = expand_path(env[f"{ENV_PREFIX}HOME_DIR"])
    if env.get(f"{ENV_PREFIX}CACHE_DIR"):
        values["cache_dir"] = expand_path(env[f"{ENV_PREFIX}CACHE_DIR"])
    if env.get(f"{ENV_PREFIX}MODE"):
        values["mode"] = env[f"{ENV_PREFIX}MODE"].strip().lower()
    if env.get(f"{ENV_PREFIX}CLI"):
        values["cli_command"] = env[f"{ENV_PREFIX}CLI"]

    values.update({k: v for k, v in overrides.items() if v is not None})

    if "readers" not in values:
        data_dir = Path(values.get("data_dir", DATA_DIR))
        values["readers"] = PersistenceStore(data_dir).get_reader_overrides()

    config = AppConfig.model_validate(values)
    logger.debug("Loaded config: %s", config)
    return config
