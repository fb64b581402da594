import os
from pathlib import Path

import yaml

from doc_chat.exception import ConfigurationError


def _project_root() -> Path:
    # doc_chat/utils/config_loader.py -> repository root
    return Path(__file__).resolve().parents[2]


def _default_config_path() -> Path:
    return Path(__file__).resolve().parents[1] / "config" / "config.yaml"


def load_config(config_path: str | None = None) -> dict:
    """
    Load the YAML config.

    Resolution order: explicit argument, then CONFIG_PATH, then the packaged
    doc_chat/config/config.yaml. Relative paths are resolved from the project root.
    DATABASE_URL and LOG_LEVEL in the environment override the file.
    """
    env_path = os.getenv("CONFIG_PATH", None)

    if config_path is None:
        config_path = env_path or str(_default_config_path())

    path = Path(config_path)

    if not path.is_absolute():
        path = _project_root() / path
    if not path.exists():
        raise ConfigurationError(f"Config file not found at {path}")

    with open(path, "r", encoding="utf-8") as file:
        config = yaml.safe_load(file) or {}

    if db_url := os.getenv("DATABASE_URL"):
        config.setdefault("database", {})["url"] = db_url
    if level := os.getenv("LOG_LEVEL"):
        config.setdefault("logging", {})["level"] = level

    return config
