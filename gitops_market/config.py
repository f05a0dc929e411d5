"""Marketplace settings — file-based configuration with environment overrides.

Settings are read from ``<project>/.gitopsi/marketplace.yaml`` when present::

    cache_dir: ~/.gitops_market/cache
    http_timeout: 30
    gitops_tool: argocd
    platform: kubernetes
    environments: [dev, staging]
    registries:
      - name: team
        type: private
        url: https://patterns.example.com
        priority: 50
        auth: {type: token, token: ...}

Then ``GITOPS_MARKET_*`` environment variables override individual values.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from gitops_market.errors import RegistryConfigError
from gitops_market.registry.models import Registry, registry_from_dict

SETTINGS_FILE = Path(".gitopsi") / "marketplace.yaml"


def default_cache_dir() -> Path:
    return Path.home() / ".gitops_market" / "cache"


@dataclass
class MarketplaceSettings:
    project_path: Path = field(default_factory=lambda: Path("."))
    cache_dir: Path = field(default_factory=default_cache_dir)
    state_file: Path | None = None
    http_timeout: float = 30.0
    gitops_tool: str = "argocd"
    platform: str = "kubernetes"
    default_environments: list[str] = field(default_factory=lambda: ["dev"])
    registries: list[Registry] = field(default_factory=list)


def load_settings(
    path: str | Path | None = None,
    project_path: str | Path = ".",
) -> MarketplaceSettings:
    """Build settings from defaults, the settings file, and the environment."""
    project_path = Path(project_path)
    settings = MarketplaceSettings(project_path=project_path)

    settings_path = Path(path) if path else project_path / SETTINGS_FILE
    if settings_path.exists():
        try:
            with open(settings_path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise RegistryConfigError(f"invalid settings file {settings_path}: {e}") from e
        _apply_file(settings, data)

    env = os.environ
    if env.get("GITOPS_MARKET_CACHE_DIR"):
        settings.cache_dir = Path(env["GITOPS_MARKET_CACHE_DIR"]).expanduser()
    if env.get("GITOPS_MARKET_TIMEOUT"):
        settings.http_timeout = float(env["GITOPS_MARKET_TIMEOUT"])
    if env.get("GITOPS_MARKET_GITOPS_TOOL"):
        settings.gitops_tool = env["GITOPS_MARKET_GITOPS_TOOL"]
    if env.get("GITOPS_MARKET_PLATFORM"):
        settings.platform = env["GITOPS_MARKET_PLATFORM"]

    return settings


def _apply_file(settings: MarketplaceSettings, data: dict) -> None:
    if data.get("cache_dir"):
        settings.cache_dir = Path(data["cache_dir"]).expanduser()
    if data.get("state_file"):
        settings.state_file = settings.project_path / data["state_file"]
    if data.get("http_timeout"):
        settings.http_timeout = float(data["http_timeout"])
    settings.gitops_tool = data.get("gitops_tool", settings.gitops_tool)
    settings.platform = data.get("platform", settings.platform)
    if data.get("environments"):
        settings.default_environments = list(data["environments"])
    try:
        settings.registries = [registry_from_dict(r) for r in data.get("registries") or []]
    except ValueError as e:
        raise RegistryConfigError(f"invalid registry in settings: {e}") from e
