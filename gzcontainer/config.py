"""Configuration: frozen dataclass built from defaults <- env vars <- YAML file."""

import logging
import os
from dataclasses import dataclass, fields, replace

import yaml

logger = logging.getLogger(__name__)


def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes")


def _parse_optional_int(value) -> int | None:
    if value is None or str(value).strip() == "":
        return None
    return int(value)


@dataclass(frozen=True)
class CodecConfig:
    compression_level: int = 6
    max_output_len: int = 1 << 30
    header_crc: bool = False
    mtime: int | None = None
    log_level: str = "WARNING"


_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_CONVERTERS = {
    "compression_level": int,
    "max_output_len": int,
    "header_crc": _parse_bool,
    "mtime": _parse_optional_int,
    "log_level": lambda v: str(v).upper(),
}


def load_yaml_config(path: str | None) -> dict:
    """Load settings from a YAML file. Returns empty dict if no path or file."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping, got {type(data).__name__}")
    logger.info("Loaded YAML config from %s", path)
    return data


def _from_env() -> dict:
    env = {
        "compression_level": os.environ.get("GZC_COMPRESSION_LEVEL"),
        "max_output_len": os.environ.get("GZC_MAX_OUTPUT_LEN"),
        "header_crc": os.environ.get("GZC_HEADER_CRC"),
        "mtime": os.environ.get("GZC_MTIME", os.environ.get("SOURCE_DATE_EPOCH")),
        "log_level": os.environ.get("GZC_LOG_LEVEL"),
    }
    return {k: v for k, v in env.items() if v is not None}


def _coerce(values: dict) -> dict:
    known = {f.name for f in fields(CodecConfig)}
    result = {}
    for key, value in values.items():
        key = key.replace("-", "_")
        if key not in known:
            logger.warning("Ignoring unknown config key %r", key)
            continue
        result[key] = _CONVERTERS[key](value)
    return result


def load_config(path: str | None = None, overrides: dict | None = None) -> CodecConfig:
    """Build CodecConfig from defaults, env vars, the YAML file, then ``overrides``.

    ``path`` falls back to the ``GZC_CONFIG`` environment variable. Override
    values of None are ignored so argparse namespaces can be passed through.
    """
    config = CodecConfig()
    config = replace(config, **_coerce(_from_env()))
    config = replace(config, **_coerce(load_yaml_config(path or os.environ.get("GZC_CONFIG"))))
    if overrides:
        config = replace(config, **_coerce({k: v for k, v in overrides.items() if v is not None}))

    if not 1 <= config.compression_level <= 9:
        raise ValueError(f"compression_level must be in 1-9, got {config.compression_level}")
    if config.max_output_len < 0:
        raise ValueError(f"max_output_len must be non-negative, got {config.max_output_len}")
    if config.log_level not in _LOG_LEVELS:
        raise ValueError(f"log_level must be one of {'/'.join(_LOG_LEVELS)}, got {config.log_level}")
    return config
