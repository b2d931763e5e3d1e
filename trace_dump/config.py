"""Configuration loading from YAML file, env vars, and CLI args."""

import os
import logging
from dataclasses import dataclass, replace

import yaml

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TracerConfig:
    completion_delay: float = 0.1    # seconds
    body_idle_delay: float = 0.12    # seconds
    jbang_executable: str = "jbang"
    camel_version: str = "4.13.0"
    log_level: str = "INFO"

    def __post_init__(self):
        for name in ("completion_delay", "body_idle_delay"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or value < 0:
                raise ValueError(f"{name} must be a non-negative number, got {value!r}")


def _ms_to_seconds(value) -> float:
    try:
        return float(value) / 1000.0
    except (TypeError, ValueError):
        raise ValueError(f"invalid delay in milliseconds: {value!r}") from None


def load_yaml_config(path: str | None) -> dict:
    """Load settings from a YAML file. Returns empty dict if no path."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    logger.info("Loaded YAML config from %s", path)
    return data


def load_config(cli_args=None, yaml_data: dict | None = None) -> TracerConfig:
    """Build TracerConfig: defaults < YAML < env vars < CLI args."""
    yaml_data = yaml_data or {}
    timers = yaml_data.get("timers") or {}
    jbang = yaml_data.get("jbang") or {}
    logging_section = yaml_data.get("logging") or {}

    values: dict = {}
    if "completion_delay_ms" in timers:
        values["completion_delay"] = _ms_to_seconds(timers["completion_delay_ms"])
    if "body_idle_delay_ms" in timers:
        values["body_idle_delay"] = _ms_to_seconds(timers["body_idle_delay_ms"])
    if "executable" in jbang:
        values["jbang_executable"] = str(jbang["executable"])
    if "camel_version" in jbang:
        values["camel_version"] = str(jbang["camel_version"])
    if "level" in logging_section:
        values["log_level"] = str(logging_section["level"]).upper()

    env = os.environ
    if "TRACE_COMPLETION_DELAY_MS" in env:
        values["completion_delay"] = _ms_to_seconds(env["TRACE_COMPLETION_DELAY_MS"])
    if "TRACE_BODY_IDLE_DELAY_MS" in env:
        values["body_idle_delay"] = _ms_to_seconds(env["TRACE_BODY_IDLE_DELAY_MS"])
    if "JBANG_EXECUTABLE" in env:
        values["jbang_executable"] = env["JBANG_EXECUTABLE"]
    if "CAMEL_JBANG_VERSION" in env:
        values["camel_version"] = env["CAMEL_JBANG_VERSION"]
    if "TRACE_LOG_LEVEL" in env:
        values["log_level"] = env["TRACE_LOG_LEVEL"].upper()

    if cli_args is not None:
        if getattr(cli_args, "completion_delay_ms", None) is not None:
            values["completion_delay"] = _ms_to_seconds(cli_args.completion_delay_ms)
        if getattr(cli_args, "body_idle_delay_ms", None) is not None:
            values["body_idle_delay"] = _ms_to_seconds(cli_args.body_idle_delay_ms)
        if getattr(cli_args, "jbang", None):
            values["jbang_executable"] = cli_args.jbang
        if getattr(cli_args, "log_level", None):
            values["log_level"] = cli_args.log_level.upper()

    return replace(TracerConfig(), **values)
