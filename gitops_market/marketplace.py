"""Marketplace — the single entry point used by the command layer.

Composes a :class:`RegistryManager` (discovery) and an :class:`Installer`
(local state) for one project. Each ``Marketplace`` owns its registry set
and installed state; nothing is shared between instances.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx
import yaml

from gitops_market.config import MarketplaceSettings
from gitops_market.errors import (
    MarketplaceError,
    NotInstalledError,
    PatternValidationError,
    RegistryConfigError,
)
from gitops_market.install.installer import (
    InstallOptions,
    InstallResult,
    Installer,
    UninstallOptions,
    UpdateOptions,
)
from gitops_market.models.installed import InstalledPattern
from gitops_market.models.pattern import (
    PATTERN_FILE,
    Dependency,
    Pattern,
    PatternCategory,
    load_pattern,
)
from gitops_market.registry.index_builder import generate_index
from gitops_market.registry.manager import RegistryManager
from gitops_market.registry.models import (
    CategoryIndexEntry,
    PatternIndexEntry,
    PatternSearchResult,
    Registry,
    SearchOptions,
    registry_to_dict,
)
from gitops_market.scaffold import scaffold_pattern, validate_pattern_dir

logger = logging.getLogger(__name__)


@dataclass
class PatternInfo:
    """A pattern definition plus registry and local install metadata."""

    pattern: Pattern
    registry: str
    versions: list[str] = field(default_factory=list)
    rating: float = 0.0
    downloads: int = 0
    verified: bool = False
    installed: bool = False
    installed_version: str = ""
    installed_at: str = ""


@dataclass
class PatternSuggestion:
    pattern: str
    reason: str
    category: str
    priority: int  # 1 is most urgent


@dataclass
class Metrics:
    installed_count: int = 0
    registries_count: int = 0
    categories: dict[str, int] = field(default_factory=dict)


# Directory probed under infrastructure/ -> what to suggest when it is absent
_SUGGESTION_PROBES = [
    ("monitoring", "prometheus-stack", "No monitoring stack detected", PatternCategory.OBSERVABILITY, 1),
    ("logging", "loki-stack", "No logging solution detected", PatternCategory.OBSERVABILITY, 2),
    ("ingress", "nginx-ingress", "No ingress controller detected", PatternCategory.NETWORKING, 1),
    ("secrets", "sealed-secrets", "No secrets management detected", PatternCategory.SECURITY, 1),
]


class Marketplace:
    """Search, install, and manage GitOps patterns for a project."""

    def __init__(
        self,
        settings: MarketplaceSettings | None = None,
        registry: RegistryManager | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.settings = settings or MarketplaceSettings()
        self.project_path = Path(self.settings.project_path)
        self.registry = registry or RegistryManager(
            cache_dir=self.settings.cache_dir,
            timeout=self.settings.http_timeout,
            transport=transport,
        )
        for reg in self.settings.registries:
            self.registry.add_registry(reg)

        self.installer = Installer(
            self.registry,
            self.project_path,
            gitops_tool=self.settings.gitops_tool,
            platform=self.settings.platform,
            state_file=self.settings.state_file,
            default_environments=self.settings.default_environments,
        )

    def close(self) -> None:
        self.registry.close()

    def __enter__(self) -> Marketplace:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def search(self, query: str = "", options: SearchOptions | None = None) -> list[PatternSearchResult]:
        results = self.registry.search_patterns(query, options)
        for result in results:
            result.installed = self.installer.is_installed(result.name)
        return results

    def list_categories(self) -> list[CategoryIndexEntry]:
        return self.registry.get_categories()

    def get_pattern_info(self, name: str) -> PatternInfo:
        entry, registry_name = self.registry.find_pattern(name)
        pattern = self.registry.fetch_pattern(registry_name, name, entry.latest)

        info = PatternInfo(
            pattern=pattern,
            registry=registry_name,
            versions=list(entry.versions),
            rating=entry.rating,
            downloads=entry.downloads,
            verified=entry.verified,
        )
        try:
            installed = self.installer.get_installed(name)
        except NotInstalledError:
            return info

        info.installed = True
        info.installed_version = installed.version
        info.installed_at = installed.installed_at
        return info

    def get_dependencies(self, name: str) -> list[Dependency]:
        return self.get_pattern_info(name).pattern.spec.dependencies

    def get_patterns_by_tag(self, tag: str) -> list[PatternSearchResult]:
        return self.search("", SearchOptions(tags=[tag]))

    def get_popular_patterns(self, limit: int = 10) -> list[PatternSearchResult]:
        results = self.search("", SearchOptions(limit=100))
        results.sort(key=lambda r: r.downloads, reverse=True)
        return results[:limit] if limit > 0 else results

    def get_recommended_patterns(self, limit: int = 10) -> list[PatternSearchResult]:
        """Uninstalled patterns in the categories already in use, best rated first."""
        installed = self.installer.list_installed()
        categories = {p.category for p in installed}

        recommended = [
            r for r in self.search("")
            if not r.installed and r.category in categories
        ]
        recommended.sort(key=lambda r: r.rating, reverse=True)
        return recommended[:limit] if limit > 0 else recommended

    def get_recommended_for_category(self, category: str, limit: int = 10) -> list[PatternSearchResult]:
        results = self.search("", SearchOptions(category=category, limit=limit))
        results.sort(key=lambda r: r.rating, reverse=True)
        return results

    def suggest_patterns(self) -> list[PatternSuggestion]:
        """Advisory suggestions from which ``infrastructure/`` directories exist."""
        infra = self.project_path / "infrastructure"
        suggestions = [
            PatternSuggestion(pattern=name, reason=reason, category=category.value, priority=priority)
            for probe, name, reason, category, priority in _SUGGESTION_PROBES
            if not (infra / probe).is_dir()
        ]
        suggestions.sort(key=lambda s: s.priority)
        return suggestions

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def install(self, name: str, options: InstallOptions | None = None) -> InstallResult:
        return self.installer.install(name, options)

    def uninstall(self, name: str, options: UninstallOptions | None = None) -> None:
        self.installer.uninstall(name, options)

    def update(self, name: str, options: UpdateOptions | None = None) -> InstallResult:
        return self.installer.update(name, options)

    def list_installed(self) -> list[InstalledPattern]:
        return self.installer.list_installed()

    def get_status(self) -> dict[str, str]:
        return self.installer.get_status()

    def check_updates(self) -> dict[str, str]:
        return self.installer.check_updates()

    def get_dependency_tree(self, name: str) -> dict[str, list[str]]:
        return self.installer.get_dependency_tree(name)

    def conflict_check(self, name: str) -> list[str]:
        return self.installer.conflict_check(name)

    # ------------------------------------------------------------------
    # Registries
    # ------------------------------------------------------------------

    def add_registry(self, registry: Registry) -> None:
        self.registry.add_registry(registry)

    def remove_registry(self, name: str) -> None:
        self.registry.remove_registry(name)

    def list_registries(self) -> list[Registry]:
        return self.registry.list_registries()

    # ------------------------------------------------------------------
    # Authoring
    # ------------------------------------------------------------------

    def create_pattern(self, name: str, category: str, output_dir: str | Path | None = None) -> Pattern:
        return scaffold_pattern(name, category, output_dir or self.project_path)

    def validate_pattern(self, pattern_dir: str | Path) -> list[str]:
        return validate_pattern_dir(pattern_dir)

    def publish_pattern(self, pattern_dir: str | Path, registry_name: str) -> Pattern:
        """Copy a validated pattern into a local registry and rebuild its index."""
        issues = validate_pattern_dir(pattern_dir)
        if issues:
            raise PatternValidationError(issues)

        reg = self.registry.get_registry(registry_name)
        if not reg.is_local:
            raise RegistryConfigError(
                f"publishing to remote registry '{registry_name}' is not supported"
            )

        pattern_dir = Path(pattern_dir)
        pattern = load_pattern(pattern_dir / PATTERN_FILE)
        registry_root = Path(reg.url)
        dest = registry_root / "patterns" / pattern.metadata.name / pattern.metadata.version

        try:
            shutil.copytree(pattern_dir, dest, dirs_exist_ok=True)
        except OSError as e:
            raise MarketplaceError(f"failed to copy pattern to {dest}: {e}") from e

        generate_index(registry_root / "patterns", registry_root / "index.yaml")
        logger.info("published %s to registry '%s'", pattern.full_name, registry_name)
        return pattern

    # ------------------------------------------------------------------
    # Export / import / metrics
    # ------------------------------------------------------------------

    def export_config(self, output_path: str | Path) -> None:
        """Write ``{patterns: [{name, version, config, environments}]}``."""
        patterns = []
        for record in self.list_installed():
            item: dict[str, Any] = {"name": record.name, "version": record.version}
            if record.config:
                item["config"] = dict(record.config)
            if record.environments:
                item["environments"] = list(record.environments)
            patterns.append(item)

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w") as f:
            yaml.safe_dump({"patterns": patterns}, f, sort_keys=False)

    def import_config(self, config_path: str | Path) -> list[InstallResult]:
        """Install every pattern listed in an exported config.

        Per-pattern failures are reported in the results and do not stop the
        remaining installs.
        """
        try:
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise MarketplaceError(f"failed to read config {config_path}: {e}") from e
        except yaml.YAMLError as e:
            raise MarketplaceError(f"failed to parse config {config_path}: {e}") from e

        results = []
        for item in data.get("patterns") or []:
            name = item.get("name", "")
            options = InstallOptions(
                version=str(item.get("version") or ""),
                config=dict(item.get("config") or {}),
                environments=list(item.get("environments") or []),
            )
            try:
                results.append(self.install(name, options))
            except MarketplaceError as e:
                logger.warning("import of '%s' failed: %s", name, e)
                results.append(InstallResult(pattern=name, success=False, errors=[str(e)]))
        return results

    def get_metrics(self) -> Metrics:
        installed = self.list_installed()
        metrics = Metrics(
            installed_count=len(installed),
            registries_count=len(self.registry.list_registries()),
        )
        for record in installed:
            category = record.category or "other"
            metrics.categories[category] = metrics.categories.get(category, 0) + 1
        return metrics

    def to_yaml(self) -> str:
        state = {
            "projectPath": str(self.project_path),
            "cacheDir": str(self.settings.cache_dir),
            "registries": [registry_to_dict(r) for r in self.registry.list_registries()],
        }
        return yaml.safe_dump(state, sort_keys=False)


def official_patterns() -> list[PatternIndexEntry]:
    """The curated catalog published by the official registry."""
    catalog = [
        ("prometheus-stack", "Complete Prometheus + Grafana monitoring stack", PatternCategory.OBSERVABILITY,
         ["monitoring", "observability", "alerting", "prometheus", "grafana"]),
        ("loki-stack", "Grafana Loki for log aggregation", PatternCategory.OBSERVABILITY,
         ["logging", "observability", "loki", "grafana"]),
        ("cert-manager", "Automatic TLS certificate management", PatternCategory.SECURITY,
         ["certificates", "tls", "security", "letsencrypt"]),
        ("sealed-secrets", "Bitnami Sealed Secrets for GitOps-safe secrets", PatternCategory.SECURITY,
         ["secrets", "encryption", "security"]),
        ("vault-integration", "HashiCorp Vault integration with External Secrets", PatternCategory.SECURITY,
         ["secrets", "vault", "security"]),
        ("nginx-ingress", "NGINX Ingress Controller", PatternCategory.NETWORKING,
         ["ingress", "networking", "nginx"]),
        ("istio-mesh", "Istio Service Mesh with Kiali and Jaeger", PatternCategory.NETWORKING,
         ["service-mesh", "istio", "networking", "security"]),
        ("postgresql-operator", "CloudNativePG PostgreSQL Operator", PatternCategory.DATA,
         ["database", "postgresql", "operator"]),
        ("redis-operator", "Redis Operator for high availability Redis", PatternCategory.DATA,
         ["cache", "redis", "operator"]),
        ("kyverno-policies", "Kyverno policy engine with best practice policies", PatternCategory.SECURITY,
         ["policies", "security", "compliance", "kyverno"]),
        ("tekton-pipelines", "Tekton Pipelines for CI/CD", PatternCategory.CICD,
         ["ci", "cd", "pipelines", "tekton"]),
        ("external-dns", "External DNS for automatic DNS management", PatternCategory.NETWORKING,
         ["dns", "networking"]),
    ]
    return [
        PatternIndexEntry(
            name=name,
            description=description,
            category=category.value,
            tags=tags,
            versions=["1.0.0"],
            latest="1.0.0",
            verified=True,
        )
        for name, description, category, tags in catalog
    ]
