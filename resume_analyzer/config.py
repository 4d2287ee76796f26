"""Service configuration: environment, optional YAML overrides, validation."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from .providers import PROVIDER_DEFAULTS

ENV_PREFIX = "RESUME_ANALYZER_"
VALID_KV_BACKENDS = {"memory", "sqlite"}
VALID_BLOB_BACKENDS = {"memory", "local"}
VALID_AUTH_MODES = {"off", "token"}


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass
class ConfigError:
    """A single configuration issue."""
    field: str
    message: str
    severity: Severity


@dataclass
class ProviderSettings:
    provider: str = "stub"
    model: str = ""
    api_key: str = ""
    api_base: str = ""
    max_tokens: int = 4096
    temperature: float = 0.2


@dataclass
class AppSettings:
    blob_backend: str = "local"
    blob_root: Path = Path("workspace/blobs")
    kv_backend: str = "memory"
    kv_path: Path = Path("workspace/records.db")
    max_upload_bytes: int = 5 * 1024 * 1024
    auth_mode: str = "off"
    api_token: str = ""
    render_scale: float = 4.0
    abort_on_checkpoint_failure: bool = False
    provider: ProviderSettings = field(default_factory=ProviderSettings)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AppSettings":
        env = os.environ if environ is None else environ

        def get(name: str, default: str) -> str:
            return env.get(f"{ENV_PREFIX}{name}", default).strip()

        provider = ProviderSettings(
            provider=get("PROVIDER", "stub").lower(),
            model=get("MODEL", ""),
            api_key=get("API_KEY", ""),
            api_base=get("API_BASE", ""),
            max_tokens=int(get("MAX_TOKENS", "4096")),
            temperature=float(get("TEMPERATURE", "0.2")),
        )
        settings = cls(
            blob_backend=get("BLOB_BACKEND", "local").lower(),
            blob_root=Path(get("BLOB_ROOT", "workspace/blobs")),
            kv_backend=get("KV_BACKEND", "memory").lower(),
            kv_path=Path(get("KV_PATH", "workspace/records.db")),
            max_upload_bytes=int(get("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024))),
            auth_mode=get("AUTH_MODE", "off").lower(),
            api_token=get("API_TOKEN", ""),
            render_scale=float(get("RENDER_SCALE", "4.0")),
            abort_on_checkpoint_failure=get("ABORT_ON_CHECKPOINT_FAILURE", "false").lower() in ("1", "true", "yes"),
            provider=provider,
        )

        config_path = get("CONFIG", "")
        if config_path:
            settings = settings.with_provider_file(Path(config_path))
        return settings

    def with_provider_file(self, path: Path) -> "AppSettings":
        """Overlay provider keys from a YAML file onto these settings."""
        data = load_provider_file(path)
        provider = replace(
            self.provider,
            provider=str(data.get("provider", self.provider.provider)).lower(),
            model=str(data.get("model", self.provider.model) or ""),
            api_key=str(data.get("api_key", self.provider.api_key) or ""),
            api_base=str(data.get("api_base", self.provider.api_base) or ""),
            max_tokens=data.get("max_tokens", self.provider.max_tokens),
            temperature=data.get("temperature", self.provider.temperature),
        )
        return replace(self, provider=provider)


def load_provider_file(path: Path) -> Dict[str, Any]:
    """Load provider configuration from a YAML file."""
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    return data


def validate_settings(settings: AppSettings) -> List[ConfigError]:
    """Validate settings and return a list of issues (empty = valid)."""
    errors: List[ConfigError] = []

    if settings.blob_backend not in VALID_BLOB_BACKENDS:
        errors.append(ConfigError(
            field="blob_backend",
            message=f"blob backend must be one of {sorted(VALID_BLOB_BACKENDS)}, got '{settings.blob_backend}'",
            severity=Severity.ERROR,
        ))

    if settings.kv_backend not in VALID_KV_BACKENDS:
        errors.append(ConfigError(
            field="kv_backend",
            message=f"kv backend must be one of {sorted(VALID_KV_BACKENDS)}, got '{settings.kv_backend}'",
            severity=Severity.ERROR,
        ))
    elif settings.kv_backend == "memory":
        errors.append(ConfigError(
            field="kv_backend",
            message="in-memory record store loses analyses on restart",
            severity=Severity.WARNING,
        ))

    if settings.max_upload_bytes <= 0:
        errors.append(ConfigError(
            field="max_upload_bytes",
            message=f"max_upload_bytes must be a positive integer, got {settings.max_upload_bytes}",
            severity=Severity.ERROR,
        ))

    if settings.auth_mode not in VALID_AUTH_MODES:
        errors.append(ConfigError(
            field="auth_mode",
            message=f"auth mode must be one of {sorted(VALID_AUTH_MODES)}, got '{settings.auth_mode}'",
            severity=Severity.ERROR,
        ))
    elif settings.auth_mode == "off":
        errors.append(ConfigError(
            field="auth_mode",
            message="authentication is off; every request runs as tenant 'local-dev'",
            severity=Severity.WARNING,
        ))
    elif settings.auth_mode == "token" and not settings.api_token:
        errors.append(ConfigError(
            field="api_token",
            message="token auth is enabled but RESUME_ANALYZER_API_TOKEN is empty",
            severity=Severity.ERROR,
        ))

    if settings.render_scale <= 0:
        errors.append(ConfigError(
            field="render_scale",
            message=f"render_scale must be positive, got {settings.render_scale}",
            severity=Severity.ERROR,
        ))

    provider = settings.provider
    if provider.provider not in PROVIDER_DEFAULTS:
        errors.append(ConfigError(
            field="provider",
            message=f"unknown provider '{provider.provider}', treating it as OpenAI-compatible",
            severity=Severity.WARNING,
        ))
        if not provider.api_base:
            errors.append(ConfigError(
                field="api_base",
                message="api_base is required for providers without built-in defaults",
                severity=Severity.ERROR,
            ))
        if not provider.model:
            errors.append(ConfigError(
                field="model",
                message="model is required for providers without built-in defaults",
                severity=Severity.ERROR,
            ))

    if not isinstance(provider.temperature, (int, float)) or provider.temperature < 0 or provider.temperature > 2:
        errors.append(ConfigError(
            field="temperature",
            message=f"temperature must be a number between 0 and 2, got {provider.temperature}",
            severity=Severity.ERROR,
        ))

    if not isinstance(provider.max_tokens, int) or provider.max_tokens <= 0:
        errors.append(ConfigError(
            field="max_tokens",
            message=f"max_tokens must be a positive integer, got {provider.max_tokens}",
            severity=Severity.ERROR,
        ))

    return errors


def has_errors(errors: List[ConfigError]) -> bool:
    return any(e.severity == Severity.ERROR for e in errors)
