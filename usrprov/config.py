"""
Centralized configuration for usrprov.

All configuration is loaded from environment variables with sensible defaults.

Usage:
    from usrprov.config import get_config
    cfg = get_config()
    print(cfg.store.path)          # Artifacts/users.htpasswd
    print(cfg.secret.namespace)    # "openshift-config"
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from usrprov.errors import ConfigError

HASHERS = ("htpasswd", "bcrypt")
KUBE_AUTH_MODES = ("incluster", "kubeconfig")

# bcrypt accepts 4..31, htpasswd -C only 4..17
MIN_BCRYPT_COST = 4
MAX_BCRYPT_COST = 17


@dataclass(frozen=True)
class StoreConfig:
    """Credential store file location and hashing parameters."""

    content_dir: Path = field(default_factory=lambda: Path("Artifacts"))
    filename: str = "users.htpasswd"
    hasher: str = "htpasswd"
    htpasswd_bin: str = "htpasswd"
    bcrypt_cost: int = 10
    tool_timeout: float = 10.0

    @property
    def path(self) -> Path:
        return self.content_dir / self.filename


@dataclass(frozen=True)
class SecretConfig:
    """Target Secret object consumed by the identity provider."""

    name: str = "users"
    namespace: str = "openshift-config"
    key: str = "htpasswd"
    kube_auth: str = "incluster"
    api_timeout: float = 15.0


@dataclass(frozen=True)
class Config:
    """Top-level usrprov configuration."""

    store: StoreConfig = field(default_factory=StoreConfig)
    secret: SecretConfig = field(default_factory=SecretConfig)
    host: str = "0.0.0.0"
    port: int = 8080

    def __post_init__(self) -> None:
        if self.store.hasher not in HASHERS:
            raise ConfigError(
                f"Unknown hasher {self.store.hasher!r}, expected one of {', '.join(HASHERS)}"
            )
        if self.secret.kube_auth not in KUBE_AUTH_MODES:
            raise ConfigError(
                f"Unknown kube auth mode {self.secret.kube_auth!r}, "
                f"expected one of {', '.join(KUBE_AUTH_MODES)}"
            )
        if not MIN_BCRYPT_COST <= self.store.bcrypt_cost <= MAX_BCRYPT_COST:
            raise ConfigError(
                f"bcrypt cost must be between {MIN_BCRYPT_COST} and {MAX_BCRYPT_COST}, "
                f"got {self.store.bcrypt_cost}"
            )
        if self.store.tool_timeout <= 0 or self.secret.api_timeout <= 0:
            raise ConfigError("Timeouts must be positive")


# Singleton
_config: Config | None = None


def get_config() -> Config:
    """Get or create the singleton config from environment variables."""
    global _config
    if _config is not None:
        return _config
    _config = _load_from_env()
    return _config


def _env_number(name: str, default: str, cast: type[int] | type[float]) -> int | float:
    raw = os.environ.get(name, default)
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from e


def _load_from_env() -> Config:
    """Load configuration from environment variables."""
    store = StoreConfig(
        content_dir=Path(os.environ.get("USRPROV_CONTENT_DIR", "Artifacts")),
        filename=os.environ.get("USRPROV_HTPASSWD_FILE", "users.htpasswd"),
        hasher=os.environ.get("USRPROV_HASHER", "htpasswd").lower(),
        htpasswd_bin=os.environ.get("USRPROV_HTPASSWD_BIN", "htpasswd"),
        bcrypt_cost=_env_number("USRPROV_BCRYPT_COST", "10", int),
        tool_timeout=_env_number("USRPROV_TOOL_TIMEOUT", "10", float),
    )

    secret = SecretConfig(
        name=os.environ.get("USRPROV_SECRET_NAME", "users"),
        namespace=os.environ.get("USRPROV_SECRET_NAMESPACE", "openshift-config"),
        key=os.environ.get("USRPROV_SECRET_KEY", "htpasswd"),
        kube_auth=os.environ.get("USRPROV_KUBE_AUTH", "incluster").lower(),
        api_timeout=_env_number("USRPROV_API_TIMEOUT", "15", float),
    )

    return Config(
        store=store,
        secret=secret,
        host=os.environ.get("USRPROV_HOST", "0.0.0.0"),
        port=_env_number("USRPROV_PORT", "8080", int),
    )


def reset_config() -> None:
    """Reset the singleton config (for testing)."""
    global _config
    _config = None
