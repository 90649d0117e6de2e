"""Configuration file I/O."""

from __future__ import annotations

import json
import shutil
from pathlib import Path
from typing import Any, Callable

from loguru import logger

from .schema import CURRENT_SCHEMA_VERSION, Config, DEFAULT_HOME


CONFIG_FILE = DEFAULT_HOME / "config.json"


def _migrate_v0_to_v1(raw: dict[str, Any]) -> dict[str, Any]:
    """Migrate pre-versioned config to schema v1."""
    raw["schema_version"] = 1
    # Older configs kept the model under agents.defaults
    defaults = raw.pop("agents", {}).get("defaults", {})
    if defaults.get("model"):
        raw.setdefault("agent", {})["model"] = defaults["model"]
        logger.info(f"Moved agents.defaults.model to agent.model ({defaults['model']})")
    return raw


def _migrate_v1_to_v2(raw: dict[str, Any]) -> dict[str, Any]:
    """Schema v2 split the gateway section into api and delivery."""
    raw["schema_version"] = 2
    gateway = raw.pop("gateway", None)
    if gateway:
        api = raw.setdefault("api", {})
        api.setdefault("host", gateway.get("host", "0.0.0.0"))
        api.setdefault("port", gateway.get("port", 18790))
        logger.info("Migrated gateway section to api")
    return raw


# Registry: from_version -> migration function
MIGRATIONS: dict[int, Callable[[dict[str, Any]], dict[str, Any]]] = {
    0: _migrate_v0_to_v1,
    1: _migrate_v1_to_v2,
}


def load_config(path: Path | None = None) -> Config:
    """Load configuration from file, falling back to defaults."""
    config_file = path or CONFIG_FILE
    if not config_file.exists():
        return Config()

    try:
        raw = json.loads(config_file.read_text())
        logger.debug(f"Loaded config from {config_file}")

        schema_version = raw.get("schema_version", 0)
        if schema_version > CURRENT_SCHEMA_VERSION:
            logger.warning(
                f"Config schema v{schema_version} is newer than supported v{CURRENT_SCHEMA_VERSION}. "
                f"You may be running an older version of brainbot."
            )
        if schema_version < CURRENT_SCHEMA_VERSION:
            logger.info(
                f"Migrating config from schema v{schema_version} to v{CURRENT_SCHEMA_VERSION}"
            )
            backup_path = config_file.with_suffix(".json.bak")
            shutil.copy2(config_file, backup_path)
            logger.info(f"Backed up config to {backup_path}")
            for version in range(schema_version, CURRENT_SCHEMA_VERSION):
                if version in MIGRATIONS:
                    try:
                        raw = MIGRATIONS[version](raw)
                        logger.info(f"Migrated config schema v{version} → v{version + 1}")
                    except Exception as e:
                        logger.error(
                            f"Config migration v{version} → v{version + 1} failed: {e}"
                        )
                        logger.warning(f"Using defaults, original kept at {backup_path}")
                        return Config()
            config_file.write_text(json.dumps(raw, indent=2) + "\n")
            logger.info(f"Wrote migrated config to {config_file}")

        return Config(**raw)
    except json.JSONDecodeError as e:
        logger.warning(f"Config file is corrupted: {e}, using defaults")
        return Config()
    except Exception as e:
        logger.warning(f"Failed to load config: {e}, using defaults")
        return Config()


def save_config(config: Config, path: Path | None = None) -> None:
    """Save configuration to file."""
    config_file = path or CONFIG_FILE
    config_file.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(mode="json")
    config_file.write_text(json.dumps(data, indent=2) + "\n")
    logger.info(f"Saved config to {config_file}")


def ensure_dirs(config: Config) -> None:
    """Ensure all required directories exist."""
    for d in [
        config.home_dir,
        config.data_path,
        config.hosted_dir,
        config.sessions_dir,
    ]:
        d.mkdir(parents=True, exist_ok=True)
