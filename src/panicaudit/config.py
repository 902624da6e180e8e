"""Global configuration — XDG paths, env vars, defaults, YAML settings."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from panicaudit import __version__

_SETTINGS_FILENAME = "panicaudit.yaml"


def _default_cache_dir() -> Path:
    xdg = os.environ.get("XDG_CACHE_HOME")
    if xdg:
        return Path(xdg) / "panicaudit"
    return Path.home() / ".cache" / "panicaudit"


def _default_config_dir() -> Path:
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "panicaudit"
    return Path.home() / ".config" / "panicaudit"


@dataclass
class PanicAuditConfig:
    """Application-wide configuration."""

    work_dir: Path = field(default_factory=_default_cache_dir)
    config_dir: Path = field(default_factory=_default_config_dir)
    registry_url: str = "https://crates.io/api/v1"
    user_agent: str = f"panicaudit/{__version__}"
    timeout: float = 60.0
    exclude: list[str] = field(default_factory=list)
    fail_on_findings: bool = False
    show_all: bool = False

    @classmethod
    def load(cls, settings_path: str | Path | None = None) -> PanicAuditConfig:
        """Load config from environment variables, then a YAML settings file.

        ``settings_path`` defaults to ``panicaudit.yaml`` in the config
        dir and is ignored when that default does not exist.
        """
        config = cls()

        env_registry = os.environ.get("PANICAUDIT_REGISTRY_URL")
        if env_registry:
            config.registry_url = env_registry.rstrip("/")

        env_timeout = os.environ.get("PANICAUDIT_TIMEOUT")
        if env_timeout:
            config.timeout = float(env_timeout)

        env_agent = os.environ.get("PANICAUDIT_USER_AGENT")
        if env_agent:
            config.user_agent = env_agent

        if settings_path is None:
            default = config.config_dir / _SETTINGS_FILENAME
            if default.is_file():
                settings_path = default

        if settings_path is not None:
            config.apply_settings(load_settings(settings_path))

        return config

    def apply_settings(self, data: dict) -> None:
        exclude = data.get("exclude", [])
        if isinstance(exclude, str):
            exclude = [exclude]
        self.exclude.extend(str(e) for e in exclude)

        if "fail_on_findings" in data:
            self.fail_on_findings = bool(data["fail_on_findings"])
        if "show_all" in data:
            self.show_all = bool(data["show_all"])


def load_settings(path: str | Path) -> dict:
    """Read a YAML settings file into a mapping."""
    text = Path(path).read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ValueError(f"Malformed settings file {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("Settings YAML must be a mapping")
    return data
