from __future__ import annotations

import os
from dataclasses import dataclass, replace

from .errors import ConfigError
from .selectors import KEY_RE, VALUE_RE, LabelSelector


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def split_pool_label(label: str) -> tuple[str, str]:
    """Split a `key=value` pool label. A bare `key` yields an empty value."""
    key, sep, value = label.strip().partition("=")
    key = key.strip()
    if not key or any(ch.isspace() for ch in key):
        raise ConfigError(f"Invalid failover pool label {label!r}: expected key=value.")
    value = value.strip()
    if sep and "=" in value:
        raise ConfigError(f"Invalid failover pool label {label!r}: more than one '='.")
    if not KEY_RE.match(key):
        raise ConfigError(f"Invalid failover pool label {label!r}: bad label key {key!r}.")
    if not VALUE_RE.match(value):
        raise ConfigError(f"Invalid failover pool label {label!r}: bad label value {value!r}.")
    return key, value


@dataclass(frozen=True)
class Settings:
    # Selection
    node_selector: str = os.getenv("FAILOVER_NODE_SELECTOR", "")
    master_pod_selector: str = os.getenv("FAILOVER_MASTER_POD_SELECTOR", "")
    slave_pod_selector: str = os.getenv("FAILOVER_SLAVE_POD_SELECTOR", "")
    slave_pod_namespace: str = os.getenv("FAILOVER_SLAVE_POD_NAMESPACE", "")
    failover_pool_label: str = os.getenv("FAILOVER_POOL_LABEL", "")

    # Loop
    poll_interval_s: float = _env_float("FAILOVER_POLL_INTERVAL_S", 5.0)
    log_every_run: bool = _env_bool("FAILOVER_LOG_EVERY_RUN", False)

    # Ambient
    namespace: str | None = os.getenv("FAILOVER_NAMESPACE") or None  # overrides the service account namespace
    events_db_path: str = os.getenv("FAILOVER_EVENTS_DB", "failover-events.db")
    log_level: str = os.getenv("FAILOVER_LOG_LEVEL", "INFO")

    @property
    def pool_label_key(self) -> str:
        return split_pool_label(self.failover_pool_label)[0]

    @property
    def pool_label_value(self) -> str:
        return split_pool_label(self.failover_pool_label)[1]

    def with_overrides(self, **changes: object) -> "Settings":
        """Return a copy with every non-None value in `changes` applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def validate(self) -> None:
        """Fail fast on anything that would make every pass abort."""
        split_pool_label(self.failover_pool_label)
        for expr in (self.node_selector, self.master_pod_selector, self.slave_pod_selector):
            LabelSelector.parse(expr)
        if not self.slave_pod_namespace.strip():
            raise ConfigError("slave pod namespace must be set.")
        if self.poll_interval_s <= 0:
            raise ConfigError("poll interval must be positive.")


settings = Settings()
