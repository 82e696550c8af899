"""Configuration loading and management."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from gitify_prompt.errors import ConfigError
from gitify_prompt.logging import get_logger

logger = get_logger("config")

CONFIG_ENV_VAR = "GITIFY_PROMPT_CONFIG"
DATA_DIR_ENV_VAR = "GITIFY_PROMPT_DATA_DIR"

KNOWN_TOOLS = ("claude-code", "cursor", "chatgpt", "generic")


def _default_tools() -> dict[str, bool]:
    return {"claude-code": True, "cursor": True, "chatgpt": False, "generic": True}


def _default_exclude_patterns() -> list[str]:
    return ["*.env", "*secret*", "*password*", "*api*key*"]


@dataclass
class AutoCaptureConfig:
    enabled: bool = True
    tools: dict[str, bool] = field(default_factory=_default_tools)

    def is_tool_enabled(self, tool: str) -> bool:
        """Whether capture is on for a tool tag; unknown tags follow 'generic'."""
        if not self.enabled:
            return False
        if tool in self.tools:
            return self.tools[tool]
        return self.tools.get("generic", True)


@dataclass
class PrivacyConfig:
    exclude_patterns: list[str] = field(default_factory=_default_exclude_patterns)
    mask_sensitive_data: bool = True


@dataclass
class StorageConfig:
    max_session_age_ms: int = 86_400_000  # 24 hours
    auto_cleanup: bool = True
    data_dir: Path = field(
        default_factory=lambda: Path.home() / ".local" / "share" / "gitify-prompt"
    )


@dataclass
class DaemonConfig:
    auto_capture: AutoCaptureConfig = field(default_factory=AutoCaptureConfig)
    privacy: PrivacyConfig = field(default_factory=PrivacyConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    path: Path | None = None

    def to_dict(self) -> dict[str, Any]:
        """Wire/file form of the configuration (camelCase keys)."""
        return {
            "autoCapture": {
                "enabled": self.auto_capture.enabled,
                "tools": dict(self.auto_capture.tools),
            },
            "privacy": {
                "excludePatterns": list(self.privacy.exclude_patterns),
                "maskSensitiveData": self.privacy.mask_sensitive_data,
            },
            "storage": {
                "maxSessionAge": self.storage.max_session_age_ms,
                "autoCleanup": self.storage.auto_cleanup,
                "dataDir": str(self.storage.data_dir),
            },
        }


def expand_env_var(value: str) -> str:
    """Expand environment variables in string (e.g. ${VAR})."""
    if value.startswith("${") and value.endswith("}"):
        env_var = value[2:-1]
        return os.environ.get(env_var, value)
    return value


def expand_path(path_str: str) -> Path:
    """Expand ~ and environment variables in path."""
    return Path(os.path.expandvars(os.path.expanduser(path_str)))


def default_config_path() -> Path:
    """User-level config file location, honouring GITIFY_PROMPT_CONFIG."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return expand_path(override)
    return Path.home() / ".config" / "gitify-prompt" / "config.yaml"


def _as_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false", "yes", "no", "1", "0"):
        return value.lower() in ("true", "yes", "1")
    raise ConfigError(f"Expected a boolean for {key}, got {value!r}")


def config_from_dict(data: dict[str, Any], base: DaemonConfig | None = None) -> DaemonConfig:
    """Build a DaemonConfig from the camelCase dict form.

    Keys missing from ``data`` keep the values of ``base`` (or the defaults),
    so partial updates merge section by section.

    Raises:
        ConfigError: If a value has the wrong type
    """
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping")

    base = base or DaemonConfig()

    capture_data = data.get("autoCapture") or {}
    tools = dict(base.auto_capture.tools)
    for tool, enabled in (capture_data.get("tools") or {}).items():
        tools[str(tool)] = _as_bool(enabled, f"autoCapture.tools.{tool}")
    auto_capture = AutoCaptureConfig(
        enabled=_as_bool(capture_data.get("enabled", base.auto_capture.enabled), "autoCapture.enabled"),
        tools=tools,
    )

    privacy_data = data.get("privacy") or {}
    patterns = privacy_data.get("excludePatterns", base.privacy.exclude_patterns)
    if not isinstance(patterns, list):
        raise ConfigError("privacy.excludePatterns must be a list")
    privacy = PrivacyConfig(
        exclude_patterns=[str(p) for p in patterns],
        mask_sensitive_data=_as_bool(
            privacy_data.get("maskSensitiveData", base.privacy.mask_sensitive_data),
            "privacy.maskSensitiveData",
        ),
    )

    storage_data = data.get("storage") or {}
    try:
        max_age = int(storage_data.get("maxSessionAge", base.storage.max_session_age_ms))
    except (TypeError, ValueError):
        raise ConfigError("storage.maxSessionAge must be an integer (milliseconds)")
    data_dir = storage_data.get("dataDir")
    storage = StorageConfig(
        max_session_age_ms=max_age,
        auto_cleanup=_as_bool(storage_data.get("autoCleanup", base.storage.auto_cleanup), "storage.autoCleanup"),
        data_dir=expand_path(expand_env_var(str(data_dir))) if data_dir else base.storage.data_dir,
    )

    return DaemonConfig(
        auto_capture=auto_capture,
        privacy=privacy,
        storage=storage,
        path=base.path,
    )


def load_daemon_config(config_path: Path | None = None) -> DaemonConfig:
    """Load configuration from the user-level YAML file.

    Falls back to defaults when the file does not exist or cannot be parsed;
    a broken file is logged rather than preventing the daemon from starting.
    """
    if config_path is None:
        config_path = default_config_path()

    defaults = DaemonConfig(path=config_path)
    env_data_dir = os.environ.get(DATA_DIR_ENV_VAR)
    if env_data_dir:
        defaults.storage.data_dir = expand_path(env_data_dir)

    if not config_path.exists():
        return defaults

    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return config_from_dict(data, base=defaults)
    except (yaml.YAMLError, OSError, ConfigError) as e:
        logger.error("Error loading config: path=%s error=%s", config_path, e)
        return defaults


def save_daemon_config(config: DaemonConfig, updates: dict[str, Any] | None = None) -> DaemonConfig:
    """Merge ``updates`` into ``config`` and rewrite the config file wholesale.

    Returns the new in-memory configuration; the caller swaps it in so the
    file and the running daemon never disagree.
    """
    new_config = config_from_dict(updates or {}, base=config)
    path = new_config.path or default_config_path()
    new_config.path = path

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(new_config.to_dict(), f, sort_keys=False)

    logger.info("Configuration saved: path=%s", path)
    return new_config
