"""preview-gc configuration management.

Configuration sources (in priority order):
1. Environment variables (PREVIEW_GC_ prefix, "__" for nesting)
2. Config file (config.yaml)
3. Defaults
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DNSZoneConfig(BaseModel):
    """Cloud DNS zone holding one backend's preview records."""

    project: str
    zone: str
    domain: str


class CoreDevConfig(BaseModel):
    """CoreDev (GKE) backend hosting `staging-` namespaces."""

    kubeconfig: str | None = "/workspace/gitpod/kubeconfigs/core-dev"
    # Preview namespaces carry this label; the prefix check is applied after it
    namespace_label_selector: str | None = "preview=true"
    dns: DNSZoneConfig = Field(
        default_factory=lambda: DNSZoneConfig(
            project="gitpod-dev",
            zone="gitpod-dev-com",
            domain="staging.gitpod-dev.com",
        )
    )

    helm_release: str = "gitpod"
    workspace_pod_selector: str = "component=workspace"

    # Cluster credentials installed by `gcloud container clusters get-credentials`.
    # Leave gke_cluster empty to use an already provisioned kubeconfig.
    gke_cluster: str | None = "core-dev"
    gke_zone: str = "europe-west1-b"
    gke_project: str = "gitpod-core-dev"


class HarvesterConfig(BaseModel):
    """Harvester backend hosting `preview-` namespaces with one VM each."""

    kubeconfig: str | None = "/workspace/gitpod/kubeconfigs/harvester"
    dns: DNSZoneConfig = Field(
        default_factory=lambda: DNSZoneConfig(
            project="gitpod-core-dev",
            zone="preview-gitpod-dev-com",
            domain="preview.gitpod-dev.com",
        )
    )

    # Copied to `kubeconfig` during access setup when set
    kubeconfig_source: str | None = "/mnt/secrets/harvester-kubeconfig/harvester-kubeconfig.yml"


class ActivityConfig(BaseModel):
    """Database activity probe for CoreDev previews."""

    lookback_hours: int = 48
    db_pod: str = "mysql-0"
    db_host_template: str = "db.{namespace}.svc.cluster.local"
    db_port: int = 3306
    db_user: str = "root"
    db_name: str = "gitpod"
    password_secret: str = "db-password"
    password_key: str = "mysql-root-password"
    # Previews probed at the same time; each holds a cluster client and a DB connection
    max_concurrent_probes: int = 4


class BranchConfig(BaseModel):
    """Git remote whose branches back preview environments."""

    repo_path: str = "."
    remote: str = "origin"
    fetch: bool = True
    stale_after_days: int = 5
    max_concurrent_checks: int = 16


class CertificateConfig(BaseModel):
    """cert-manager Certificates issued per preview on CoreDev."""

    namespace: str = "certs"


class LoadBalancerConfig(BaseModel):
    """Per-preview load balancers running on CoreDev."""

    namespace: str = "loadbalancers"
    label: str = "gitpod.io/lbName"
    name_prefix: str = "lb-"


class AccessConfig(BaseModel):
    """Credentials installed before the first cluster call."""

    enabled: bool = True
    service_account_key: str | None = "/mnt/secrets/gcp-sa/service-account.json"


class GCTaskConfig(BaseModel):
    """GC task-specific configuration."""

    enabled: bool = True


class GCConfig(BaseModel):
    """Garbage collection configuration."""

    # Log "would delete" for every candidate without mutating anything
    dry_run: bool = False

    stale_preview: GCTaskConfig = Field(default_factory=GCTaskConfig)
    orphan_loadbalancer: GCTaskConfig = Field(default_factory=GCTaskConfig)


class LoggingConfig(BaseModel):
    level: str = "info"
    json_format: bool = False


class Settings(BaseSettings):
    """preview-gc settings."""

    model_config = SettingsConfigDict(
        env_prefix="PREVIEW_GC_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    coredev: CoreDevConfig = Field(default_factory=CoreDevConfig)
    harvester: HarvesterConfig = Field(default_factory=HarvesterConfig)
    activity: ActivityConfig = Field(default_factory=ActivityConfig)
    branches: BranchConfig = Field(default_factory=BranchConfig)
    certificates: CertificateConfig = Field(default_factory=CertificateConfig)
    loadbalancers: LoadBalancerConfig = Field(default_factory=LoadBalancerConfig)
    access: AccessConfig = Field(default_factory=AccessConfig)
    gc: GCConfig = Field(default_factory=GCConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # Environment wins over values read from the YAML file
        return env_settings, init_settings, dotenv_settings, file_secret_settings


def _load_config_file() -> dict:
    """Load configuration from YAML file if exists.

    Looks for config file in order:
    1. PREVIEW_GC_CONFIG_FILE environment variable
    2. ./config.yaml
    3. /etc/preview-gc/config.yaml
    """
    config_paths = [
        os.environ.get("PREVIEW_GC_CONFIG_FILE"),
        Path("config.yaml"),
        Path("/etc/preview-gc/config.yaml"),
    ]

    for path in config_paths:
        if path is None:
            continue
        path = Path(path)
        if path.exists():
            with open(path) as f:
                return yaml.safe_load(f) or {}

    return {}


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Configuration is loaded from:
    1. YAML config file (if exists)
    2. Environment variables (override)
    3. Defaults
    """
    file_config = _load_config_file()
    return Settings(**file_config)
