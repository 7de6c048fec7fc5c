"""Configuration management using TOML + environment variables."""

from __future__ import annotations

import json
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomllib
    except ModuleNotFoundError:
        import tomli as tomllib  # type: ignore[no-redef]

import tomli_w

from cmdw.services.filter import DEFAULT_IGNORE_RULES

CONFIG_DIR = Path.home() / ".cmdw"
CONFIG_FILE = CONFIG_DIR / "config.toml"
LOG_FILE = CONFIG_DIR / "cmdw.log"

TRUE_VALUES = ("1", "true", "yes", "on")
FALSE_VALUES = ("0", "false", "no", "off")


class ConfigError(Exception):
    """Raised for malformed configuration values."""


@dataclass
class HistoryConfig:
    file: str = "~/.cmdw_history"
    max_records: int = 3000


@dataclass
class EngineConfig:
    enabled: bool = True
    ignore: list[str] = field(default_factory=lambda: list(DEFAULT_IGNORE_RULES))


@dataclass
class ShellConfig:
    program: str = "/bin/bash"
    prompt: str = "cmdw$ "
    hooks: str = "auto"
    show_timestamps: bool = True


@dataclass
class LoggingConfig:
    level: str = "WARNING"
    file: str = "~/.cmdw/cmdw.log"


@dataclass
class AppConfig:
    history: HistoryConfig = field(default_factory=HistoryConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    shell: ShellConfig = field(default_factory=ShellConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def ensure_config_dir() -> None:
    """Create config directory with secure permissions."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    os.chmod(CONFIG_DIR, 0o700)


def parse_bool(value: str, name: str) -> bool:
    lowered = value.strip().lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    raise ConfigError(f"{name}: expected a boolean, got {value!r}")


def parse_int(value: str, name: str) -> int:
    try:
        return int(value.strip())
    except ValueError:
        raise ConfigError(f"{name}: expected an integer, got {value!r}") from None


def parse_ignore(value: str, name: str) -> list[str]:
    """Parse an ignore list: a JSON array, or one pattern per line."""
    if value.lstrip().startswith("["):
        try:
            rules = json.loads(value)
        except json.JSONDecodeError as e:
            raise ConfigError(f"{name}: invalid JSON list: {e}") from None
        if not isinstance(rules, list) or not all(isinstance(r, str) for r in rules):
            raise ConfigError(f"{name}: expected a list of strings")
        return rules
    return [line.strip() for line in value.splitlines() if line.strip()]


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ConfigError(f"[{name}] must be a table, got {section!r}")
    return section


def _value(section: dict[str, Any], name: str, key: str, default: Any) -> Any:
    """Read ``key`` from a TOML table, requiring the same type as ``default``."""
    value = section.get(key, default)
    if isinstance(default, list):
        valid = isinstance(value, list) and all(isinstance(v, str) for v in value)
    elif isinstance(default, bool):
        valid = isinstance(value, bool)
    elif isinstance(default, int):
        valid = isinstance(value, int) and not isinstance(value, bool)
    else:
        valid = isinstance(value, type(default))
    if not valid:
        raise ConfigError(f"{name}.{key}: expected {type(default).__name__}, got {value!r}")
    return value


def load_config() -> AppConfig:
    """Load configuration from TOML file with env var overrides."""
    config = AppConfig()

    if CONFIG_FILE.exists():
        try:
            with open(CONFIG_FILE, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"{CONFIG_FILE}: {e}") from e

        history = _section(data, "history")
        config.history.file = _value(history, "history", "file", config.history.file)
        config.history.max_records = _value(history, "history", "max_records", config.history.max_records)

        engine = _section(data, "engine")
        config.engine.enabled = _value(engine, "engine", "enabled", config.engine.enabled)
        config.engine.ignore = _value(engine, "engine", "ignore", config.engine.ignore)

        shell = _section(data, "shell")
        config.shell.program = _value(shell, "shell", "program", config.shell.program)
        config.shell.prompt = _value(shell, "shell", "prompt", config.shell.prompt)
        config.shell.hooks = _value(shell, "shell", "hooks", config.shell.hooks)
        config.shell.show_timestamps = _value(shell, "shell", "show_timestamps", config.shell.show_timestamps)

        logging_cfg = _section(data, "logging")
        config.logging.level = _value(logging_cfg, "logging", "level", config.logging.level)
        config.logging.file = _value(logging_cfg, "logging", "file", config.logging.file)

    # Environment variable overrides
    if env_size := os.environ.get("CMDWSIZE"):
        config.history.max_records = parse_int(env_size, "CMDWSIZE")
    if env_enable := os.environ.get("CMDW_ENABLE"):
        config.engine.enabled = parse_bool(env_enable, "CMDW_ENABLE")
    if (env_ignore := os.environ.get("CMDW_IGNORE")) is not None:
        config.engine.ignore = parse_ignore(env_ignore, "CMDW_IGNORE")
    if env_file := os.environ.get("CMDW_HISTORY_FILE"):
        config.history.file = env_file
    if env_log_level := os.environ.get("CMDW_LOG_LEVEL"):
        config.logging.level = env_log_level

    if config.history.max_records < 0:
        raise ConfigError(f"history.max_records must be >= 0, got {config.history.max_records}")

    return config


def save_config(config: AppConfig) -> None:
    """Save configuration to TOML file."""
    ensure_config_dir()

    data = {
        "history": {
            "file": config.history.file,
            "max_records": config.history.max_records,
        },
        "engine": {
            "enabled": config.engine.enabled,
            "ignore": config.engine.ignore,
        },
        "shell": {
            "program": config.shell.program,
            "prompt": config.shell.prompt,
            "hooks": config.shell.hooks,
            "show_timestamps": config.shell.show_timestamps,
        },
        "logging": {
            "level": config.logging.level,
            "file": config.logging.file,
        },
    }

    with open(CONFIG_FILE, "wb") as f:
        tomli_w.dump(data, f)

    os.chmod(CONFIG_FILE, 0o600)

