"""Tests for the marketplace facade, authoring, and settings."""

from pathlib import Path

import pytest
import yaml

from gitops_market.config import MarketplaceSettings, load_settings
from gitops_market.errors import (
    NotInstalledError,
    PatternValidationError,
    RegistryConfigError,
)
from gitops_market.marketplace import Marketplace, official_patterns
from gitops_market.registry.manager import RegistryManager
from gitops_market.registry.models import Registry, RegistryAuth, RegistryType
from tests.helpers import local_registry, make_pattern, write_local_registry


CATALOG = [
    make_pattern("prometheus-stack", tags=["monitoring"]),
    make_pattern("loki-stack", tags=["logging"]),
    make_pattern("tempo", tags=["tracing"]),
    make_pattern("cert-manager", category="security", tags=["tls"]),
]

STATS = {
    "prometheus-stack": {"rating": 4.8, "downloads": 5000},
    "loki-stack": {"rating": 4.1, "downloads": 3000},
    "tempo": {"rating": 4.5, "downloads": 100},
    "cert-manager": {"rating": 4.9, "downloads": 9000},
}


def _market(tmp_path, project="project", registries=None) -> Marketplace:
    settings = MarketplaceSettings(
        project_path=tmp_path / project,
        cache_dir=tmp_path / "cache",
        registries=registries if registries is not None else [local_registry("local", tmp_path / "registry")],
    )
    manager = RegistryManager(cache_dir=settings.cache_dir, include_default=False)
    return Marketplace(settings, registry=manager)


@pytest.fixture
def market(tmp_path):
    write_local_registry(tmp_path / "registry", CATALOG, stats=STATS)
    with _market(tmp_path) as m:
        yield m


# --- Discovery ---


def test_search_marks_installed(market):
    market.install("loki-stack")
    results = {r.name: r for r in market.search("stack")}
    assert results["loki-stack"].installed
    assert not results["prometheus-stack"].installed


def test_get_pattern_info(market):
    info = market.get_pattern_info("tempo")
    assert info.registry == "local"
    assert info.versions == ["1.0.0"]
    assert info.rating == 4.5
    assert not info.installed

    market.install("tempo")
    info = market.get_pattern_info("tempo")
    assert info.installed
    assert info.installed_version == "1.0.0"
    assert info.installed_at


def test_patterns_by_tag_and_popularity(market):
    assert [r.name for r in market.get_patterns_by_tag("tls")] == ["cert-manager"]
    assert [r.name for r in market.get_popular_patterns(limit=2)] == ["cert-manager", "prometheus-stack"]


def test_recommendations_follow_installed_categories(market):
    assert market.get_recommended_patterns() == []

    market.install("loki-stack")
    assert [r.name for r in market.get_recommended_patterns()] == ["prometheus-stack", "tempo"]
    assert [r.name for r in market.get_recommended_for_category("observability")] == [
        "prometheus-stack",
        "tempo",
        "loki-stack",
    ]


def test_list_categories(market):
    assert {c.name: c.count for c in market.list_categories()} == {"observability": 3, "security": 1}


def test_suggest_patterns(market, tmp_path):
    assert [s.pattern for s in market.suggest_patterns()] == [
        "prometheus-stack",
        "nginx-ingress",
        "sealed-secrets",
        "loki-stack",
    ]

    (tmp_path / "project" / "infrastructure" / "monitoring").mkdir(parents=True)
    assert "prometheus-stack" not in [s.pattern for s in market.suggest_patterns()]


# --- Lifecycle through the facade ---


def test_lifecycle_and_metrics(market):
    market.install("prometheus-stack")
    market.install("cert-manager")

    metrics = market.get_metrics()
    assert metrics.installed_count == 2
    assert metrics.registries_count == 1
    assert metrics.categories == {"observability": 1, "security": 1}
    assert market.get_status() == {"cert-manager": "healthy", "prometheus-stack": "healthy"}

    market.uninstall("cert-manager")
    assert [p.name for p in market.list_installed()] == ["prometheus-stack"]
    with pytest.raises(NotInstalledError):
        market.update("cert-manager")


def test_export_then_import(market, tmp_path):
    from gitops_market.install.installer import InstallOptions

    market.install("loki-stack", InstallOptions(environments=["prod"], config={"retention": "30d"}))
    market.export_config(tmp_path / "export.yaml")

    exported = yaml.safe_load((tmp_path / "export.yaml").read_text())
    assert exported == {
        "patterns": [
            {"name": "loki-stack", "version": "1.0.0", "config": {"retention": "30d"}, "environments": ["prod"]},
        ]
    }

    exported["patterns"].append({"name": "ghost"})
    (tmp_path / "export.yaml").write_text(yaml.safe_dump(exported))

    with _market(tmp_path, project="other") as other:
        results = other.import_config(tmp_path / "export.yaml")
        assert [r.success for r in results] == [True, False]
        assert "ghost" in results[1].errors[0]
        record = other.installer.get_installed("loki-stack")
        assert record.environments == ["prod"]
        assert record.config == {"retention": "30d"}


# --- Registries ---


def test_registry_management(market):
    market.add_registry(Registry(name="team", url="https://team.example.com", priority=50))
    assert [r.name for r in market.list_registries()] == ["team", "local"]

    market.remove_registry("team")
    assert [r.name for r in market.list_registries()] == ["local"]


def test_to_yaml_hides_credentials(market):
    market.add_registry(Registry(
        name="private",
        type=RegistryType.PRIVATE,
        url="https://p.example.com",
        auth=RegistryAuth(type="basic", username="bot", password="hunter2"),
    ))
    dumped = market.to_yaml()
    assert "hunter2" not in dumped
    assert "private" in dumped


# --- Authoring ---


def test_create_validate_publish(market, tmp_path):
    (tmp_path / "mine").mkdir()
    market.add_registry(local_registry("mine", tmp_path / "mine"))

    pattern = market.create_pattern("redis-ha", "data", tmp_path / "src")
    assert pattern.full_name == "redis-ha@0.1.0"
    assert (tmp_path / "src" / "redis-ha" / "README.md").read_text().startswith("# redis-ha")
    assert market.validate_pattern(tmp_path / "src" / "redis-ha") == []

    market.publish_pattern(tmp_path / "src" / "redis-ha", "mine")
    assert (tmp_path / "mine" / "patterns" / "redis-ha" / "0.1.0" / "pattern.yaml").exists()

    results = market.search("redis")
    assert [(r.name, r.registry) for r in results] == [("redis-ha", "mine")]


def test_validate_reports_problems(market, tmp_path):
    assert market.validate_pattern(tmp_path / "nothing") == ["pattern.yaml is missing"]

    market.create_pattern("broken", "data", tmp_path / "src")
    pattern_dir = tmp_path / "src" / "broken"
    (pattern_dir / "README.md").unlink()
    data = yaml.safe_load((pattern_dir / "pattern.yaml").read_text())
    data["spec"]["components"][0]["type"] = "bogus"
    (pattern_dir / "pattern.yaml").write_text(yaml.safe_dump(data))

    issues = market.validate_pattern(pattern_dir)
    assert "README.md is recommended but missing" in issues
    assert "component 'broken' has invalid type 'bogus'" in issues


def test_publish_rejects_invalid_and_remote(market, tmp_path):
    with pytest.raises(PatternValidationError):
        market.publish_pattern(tmp_path / "nothing", "local")

    market.create_pattern("ok", "data", tmp_path / "src")
    market.add_registry(Registry(name="remote", url="https://r.example.com"))
    with pytest.raises(RegistryConfigError):
        market.publish_pattern(tmp_path / "src" / "ok", "remote")


def test_official_catalog():
    catalog = official_patterns()
    assert len(catalog) == 12
    assert all(entry.verified for entry in catalog)
    assert {e.category for e in catalog} >= {"observability", "security", "networking", "data", "cicd"}


# --- Settings ---


def test_load_settings_defaults(tmp_path, monkeypatch):
    for var in ("GITOPS_MARKET_CACHE_DIR", "GITOPS_MARKET_TIMEOUT", "GITOPS_MARKET_GITOPS_TOOL", "GITOPS_MARKET_PLATFORM"):
        monkeypatch.delenv(var, raising=False)

    settings = load_settings(project_path=tmp_path)
    assert settings.gitops_tool == "argocd"
    assert settings.http_timeout == 30.0
    assert settings.default_environments == ["dev"]
    assert settings.registries == []


def test_load_settings_file_and_env(tmp_path, monkeypatch):
    settings_dir = tmp_path / ".gitopsi"
    settings_dir.mkdir()
    (settings_dir / "marketplace.yaml").write_text(yaml.safe_dump({
        "gitops_tool": "argocd",
        "platform": "openshift",
        "environments": ["dev", "prod"],
        "state_file": "state/patterns.yaml",
        "registries": [
            {"name": "team", "type": "private", "url": "https://team.example.com", "priority": 50,
             "auth": {"type": "token", "token": "abc"}},
        ],
    }))
    monkeypatch.setenv("GITOPS_MARKET_GITOPS_TOOL", "flux")
    monkeypatch.setenv("GITOPS_MARKET_TIMEOUT", "5")
    monkeypatch.setenv("GITOPS_MARKET_CACHE_DIR", str(tmp_path / "c"))
    monkeypatch.delenv("GITOPS_MARKET_PLATFORM", raising=False)

    settings = load_settings(project_path=tmp_path)
    assert settings.gitops_tool == "flux"
    assert settings.platform == "openshift"
    assert settings.http_timeout == 5.0
    assert settings.cache_dir == tmp_path / "c"
    assert settings.state_file == tmp_path / "state" / "patterns.yaml"
    assert settings.default_environments == ["dev", "prod"]
    [team] = settings.registries
    assert team.type == RegistryType.PRIVATE
    assert team.auth.token == "abc"


def test_load_settings_rejects_bad_files(tmp_path):
    bad_yaml = tmp_path / "bad.yaml"
    bad_yaml.write_text("registries: [\n")
    with pytest.raises(RegistryConfigError):
        load_settings(bad_yaml, project_path=tmp_path)

    bad_registry = tmp_path / "bad-registry.yaml"
    bad_registry.write_text(yaml.safe_dump({"registries": [{"name": "x", "type": "bogus"}]}))
    with pytest.raises(RegistryConfigError):
        load_settings(bad_registry, project_path=tmp_path)


def test_marketplace_applies_settings(tmp_path):
    settings = MarketplaceSettings(
        project_path=tmp_path / "project",
        cache_dir=tmp_path / "cache",
        state_file=tmp_path / "state.yaml",
        gitops_tool="flux",
    )
    with Marketplace(settings, registry=RegistryManager(include_default=False)) as m:
        assert m.installer.gitops_tool == "flux"
        assert m.installer.store.state_file == tmp_path / "state.yaml"
        assert Path(m.installer.project_path) == tmp_path / "project"
