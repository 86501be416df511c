"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field, fields

from diffwatch.models.context import DEFAULT_MAX_RETRIES

DEFAULT_DIFF_IGNORE_PATHS = ("/metadata/resourceVersion", "/metadata/managedFields")


@dataclass
class ResourceConfig:
    """Per-kind enable flags.  Every kind is off unless switched on."""

    core_event: bool = False
    event: bool = False
    pod: bool = False
    hpa: bool = False
    daemon_set: bool = False
    stateful_set: bool = False
    replica_set: bool = False
    service: bool = False
    deployment: bool = False
    namespace: bool = False
    replication_controller: bool = False
    job: bool = False
    node: bool = False
    service_account: bool = False
    cluster_role: bool = False
    cluster_role_binding: bool = False
    persistent_volume: bool = False
    secret: bool = False
    config_map: bool = False
    ingress: bool = False

    @classmethod
    def flag_names(cls) -> list[str]:
        return [f.name for f in fields(cls)]

    def enabled(self) -> list[str]:
        return [name for name in self.flag_names() if getattr(self, name)]


@dataclass
class NamespacesConfig:
    """Namespace include/exclude policy.

    A non-empty ``include`` wins outright; ``exclude`` only applies when
    watching every namespace.
    """

    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)


@dataclass
class DiffConfig:
    """Update diff configuration."""

    ignore_paths: list[str] = field(default_factory=lambda: list(DEFAULT_DIFF_IGNORE_PATHS))


@dataclass
class ControllerConfig:
    """Resource controller tuning."""

    max_retries: int = DEFAULT_MAX_RETRIES
    sync_timeout_seconds: int = 300
    sink_timeout_seconds: int = 30
    watch_timeout_seconds: int = 300


@dataclass
class NotificationConfig:
    """Notification system configuration."""

    log_enabled: bool = True
    slack_secret_ref: str = ""
    email_secret_ref: str = ""
    email_to: str = ""
    webhook_secret_ref: str = ""


@dataclass
class APIConfig:
    """Health/status API configuration."""

    enabled: bool = True
    port: int = 8080


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class DiffWatchConfig:
    """Top-level diffwatch configuration."""

    resources: ResourceConfig = field(default_factory=ResourceConfig)
    namespaces: NamespacesConfig = field(default_factory=NamespacesConfig)
    diff: DiffConfig = field(default_factory=DiffConfig)
    controller: ControllerConfig = field(default_factory=ControllerConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log: LogConfig = field(default_factory=LogConfig)
