from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

BASE_URL_ENV = "ACCOUNTAPI_BASE_URL"


class ApiConfig(BaseModel):
    base_url: str = "http://accountapi:8080"
    retry_count: int = Field(default=3, ge=0)
    timeout_seconds: float = Field(default=30.0, gt=0)


class BackoffConfig(BaseModel):
    base_delay_ms: float = Field(default=500.0, gt=0)
    growth_factor: float = Field(default=1.5, ge=1.0)
    jitter_ms: float = Field(default=100.0, ge=0)
    min_delay_ms: float = Field(default=100.0, ge=0)


class LoggingConfig(BaseModel):
    enabled: bool = True
    jsonl_dir: str = "./runs"
    sanitize_control_chars: bool = True
    redact_secrets: bool = True


class ClientConfig(BaseModel):
    api: ApiConfig = Field(default_factory=ApiConfig)
    backoff: BackoffConfig = Field(default_factory=BackoffConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class ConfigError(RuntimeError):
    pass


def _parse_dotenv_line(line: str) -> tuple[str, str] | None:
    text = line.strip()
    if not text or text.startswith("#"):
        return None
    if text.startswith("export "):
        text = text[len("export ") :].strip()
    if "=" not in text:
        return None

    key, raw_value = text.split("=", 1)
    key = key.strip()
    if not key:
        return None

    value = raw_value.strip()
    if value and value[0] in {"'", '"'} and value[-1:] == value[0]:
        value = value[1:-1]
    elif " #" in value:
        value = value.split(" #", 1)[0].rstrip()

    return key, value.strip()


def _read_dotenv(path: Path) -> dict[str, str]:
    if not path.exists():
        return {}

    values: dict[str, str] = {}
    for line in path.read_text(encoding="utf-8").splitlines():
        parsed = _parse_dotenv_line(line)
        if parsed is None:
            continue
        key, value = parsed
        values[key] = value
    return values


def _get_env_or_dotenv(env_name: str) -> str | None:
    value = os.getenv(env_name)
    if value is None:
        value = _read_dotenv(Path(".env")).get(env_name)
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


def discover_config_path(config_override: Path | None = None) -> Path | None:
    if config_override is not None:
        return config_override.resolve()

    candidates = [
        Path("./accountapi.yaml"),
        Path("~/.config/accountapi/accountapi.yaml").expanduser(),
    ]

    for candidate in candidates:
        if candidate.exists():
            return candidate.resolve()
    return None


def _load_yaml(path: Path) -> dict[str, Any]:
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file is not valid YAML: {path}: {exc}") from exc
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config file must contain a mapping: {path}")
    return raw


def _apply_env_overrides(config: ClientConfig) -> ClientConfig:
    base_url = _get_env_or_dotenv(BASE_URL_ENV)
    if base_url is not None:
        config.api.base_url = base_url
    return config


def load_config(config_override: Path | None = None) -> ClientConfig:
    path = discover_config_path(config_override)
    if path is None:
        return _apply_env_overrides(ClientConfig())
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    data = _load_yaml(path)
    try:
        config = ClientConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc
    return _apply_env_overrides(config)


def write_default_config(path: Path, overwrite: bool = False) -> None:
    if path.exists() and not overwrite:
        raise ConfigError(f"Config file already exists: {path}")

    config = ClientConfig()
    serialized = yaml.safe_dump(config.model_dump(mode="python"), sort_keys=False)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(serialized, encoding="utf-8")
