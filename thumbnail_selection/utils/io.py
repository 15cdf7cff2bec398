"""
I/O utilities: logging, config loading and saving, output directories.
"""

import json
import logging
import logging.config
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

PACKAGE_LOGGER = "thumbnail_selection"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

YAML_SUFFIXES = (".yaml", ".yml")


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    format_string: Optional[str] = None,
) -> logging.Logger:
    """
    Route all log records to stdout, and optionally a file, at one level.

    Loggers created before the call keep working; only the root handlers
    are replaced.

    Args:
        level: Logging level (e.g., logging.INFO).
        log_file: Optional path to also write logs to.
        format_string: Custom format string.

    Returns:
        The package logger.
    """
    handlers: Dict[str, Dict[str, Any]] = {
        "console": {
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stdout",
            "formatter": "default",
        },
    }
    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.FileHandler",
            "filename": str(log_file),
            "formatter": "default",
        }

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {"format": format_string or LOG_FORMAT, "datefmt": DATE_FORMAT},
        },
        "handlers": handlers,
        "root": {"level": level, "handlers": list(handlers)},
        "loggers": {PACKAGE_LOGGER: {"level": level}},
    })

    return logging.getLogger(PACKAGE_LOGGER)


def load_config(config_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load configuration from YAML or JSON file.

    Args:
        config_path: Path to config file.

    Returns:
        Configuration dictionary.
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    content = config_path.read_text()

    if config_path.suffix == ".json":
        return json.loads(content)
    # YAML is a superset of JSON, so unknown suffixes go through the YAML parser
    return yaml.safe_load(content) or {}


def to_plain(value: Any) -> Any:
    """Reduce paths, enums and tuples to YAML/JSON-safe values."""
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(k): to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    return value


def save_config(config: Dict[str, Any], config_path: Union[str, Path]) -> Path:
    """
    Write a config dictionary; the suffix picks YAML or JSON.

    Returns:
        Path written to.
    """
    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)

    plain = to_plain(config)
    if config_path.suffix in YAML_SUFFIXES:
        content = yaml.safe_dump(plain, default_flow_style=False, sort_keys=False)
    else:
        content = json.dumps(plain, indent=2)

    config_path.write_text(content)
    return config_path


def ensure_dir(path: Union[str, Path]) -> Path:
    """Create directory if it doesn't exist and return Path object."""
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path
