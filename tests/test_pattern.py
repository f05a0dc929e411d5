"""Tests for the pattern model and its validation rules."""

import tempfile
from pathlib import Path

import pytest

from gitops_market.errors import ConfigValidationError, PatternValidationError
from gitops_market.models.pattern import (
    Component,
    ConfigItem,
    Dependency,
    Pattern,
    PlatformRequirement,
    ToolRequirement,
    all_categories,
    category_description,
    category_info,
    load_pattern,
    new_pattern,
    parse_pattern,
)
from gitops_market.utils.validator import (
    merge_config_with_defaults,
    validate_config,
    validate_pattern,
)
from tests.helpers import make_pattern


def _configured_pattern() -> Pattern:
    pattern = new_pattern("prometheus-stack", "1.0.0", "Monitoring")
    pattern.spec.config = {
        "replicas": ConfigItem(type="integer", default=2, min=1, max=5),
        "retention": ConfigItem(type="string", default="15d"),
        "storage_class": ConfigItem(type="string", required=True),
        "mode": ConfigItem(type="string", enum=["ha", "single"]),
        "alerts": ConfigItem(type="boolean"),
        "receivers": ConfigItem(type="array"),
        "admin_password": ConfigItem(type="secret"),
    }
    return pattern


def test_new_pattern_defaults():
    pattern = new_pattern("test-pattern", "1.0.0", "A test pattern")
    assert pattern.api_version == "gitopsi.io/v1"
    assert pattern.kind == "Pattern"
    assert pattern.metadata.license == "MIT"
    assert pattern.full_name == "test-pattern@1.0.0"
    assert validate_pattern(pattern) == []


def test_validate_reports_every_issue():
    pattern = Pattern(api_version="", kind="Wrong")
    pattern.spec.components = [Component(name="", type="")]
    pattern.spec.config = {"size": ConfigItem(type="")}

    issues = validate_pattern(pattern)
    assert "apiVersion is required" in issues
    assert "kind must be 'Pattern'" in issues
    assert any("name" in i for i in issues)
    assert any("version" in i for i in issues)
    assert any("description" in i for i in issues)
    assert "components[0].name is required" in issues
    assert "components[0].type is required" in issues
    assert "config.size.type is required" in issues


def test_validate_missing_name_raises():
    pattern = new_pattern("", "1.0.0", "nameless")
    with pytest.raises(PatternValidationError) as exc_info:
        pattern.validate()
    assert any("name" in issue for issue in exc_info.value.issues)


def test_save_and_load_round_trip():
    pattern = make_pattern(
        "loki-stack",
        dependencies=[Dependency(name="prometheus-stack", optional=True, reason="dashboards")],
        config={"replicas": ConfigItem(type="integer", default=1, min=1)},
        tags=["logging", "observability"],
    )
    pattern.spec.components.append(
        Component(name="promtail", type="kustomize", path="./promtail", labels={"app": "promtail"})
    )
    pattern.spec.platforms = [PlatformRequirement(name="kubernetes", min_version="1.27")]
    pattern.spec.hooks.post_install = "hooks/post-install.sh"

    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "loki" / "pattern.yaml"
        pattern.save(path)
        loaded = load_pattern(path)

    assert loaded.metadata == pattern.metadata
    assert loaded.spec.components == pattern.spec.components
    assert loaded.spec.dependencies == pattern.spec.dependencies
    assert loaded.spec.config == pattern.spec.config
    assert loaded.spec.platforms == pattern.spec.platforms
    assert loaded.spec.hooks.post_install == "hooks/post-install.sh"


def test_load_rejects_invalid_definition():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "pattern.yaml"
        path.write_text("apiVersion: gitopsi.io/v1\nkind: Pattern\nmetadata:\n  version: 1.0.0\n")
        with pytest.raises(PatternValidationError) as exc_info:
            load_pattern(path)
    assert "metadata.name is required" in exc_info.value.issues
    assert "metadata.description is required" in exc_info.value.issues


def test_parse_rejects_non_mapping():
    with pytest.raises(PatternValidationError):
        parse_pattern("- just\n- a list\n")


def test_parse_rejects_malformed_sections():
    text = """\
apiVersion: gitopsi.io/v1
kind: Pattern
metadata: {name: x, version: 1.0.0, description: X}
spec:
  components: [not-a-mapping]
"""
    with pytest.raises(PatternValidationError) as exc_info:
        parse_pattern(text, source="x.yaml")
    assert "malformed x.yaml" in exc_info.value.issues[0]


def test_validate_config_requires_declared_keys():
    pattern = _configured_pattern()
    issues = validate_config(pattern, {})
    assert issues == ["required config 'storage_class' is missing"]

    assert validate_config(pattern, {"storage_class": "gp3"}) == []


def test_validate_config_type_and_range_checks():
    pattern = _configured_pattern()
    issues = validate_config(pattern, {
        "storage_class": 3,
        "replicas": 9,
        "alerts": "yes",
        "receivers": "slack",
        "mode": "cluster",
    })
    assert "storage_class must be a string" in issues
    assert "replicas must be at most 5" in issues
    assert "alerts must be a boolean" in issues
    assert "receivers must be an array" in issues
    assert any(i.startswith("mode must be one of") for i in issues)

    assert "replicas must be at least 1" in validate_config(pattern, {"storage_class": "x", "replicas": 0})


def test_validate_config_booleans_are_not_integers():
    pattern = _configured_pattern()
    issues = validate_config(pattern, {"storage_class": "gp3", "replicas": True})
    assert issues == ["replicas must be an integer"]


def test_validate_config_passes_unknown_keys_through():
    pattern = _configured_pattern()
    assert validate_config(pattern, {"storage_class": "gp3", "experimental": {"x": 1}}) == []


def test_check_config_raises_aggregated():
    pattern = _configured_pattern()
    with pytest.raises(ConfigValidationError) as exc_info:
        pattern.check_config({"replicas": "two"})
    assert len(exc_info.value.issues) == 2


def test_merge_config_supplied_values_win():
    pattern = _configured_pattern()
    merged = merge_config_with_defaults(pattern, {"replicas": 3, "extra": True})
    assert merged == {"replicas": 3, "retention": "15d", "extra": True}


def test_merge_config_is_idempotent():
    pattern = _configured_pattern()
    once = pattern.merge_config({"storage_class": "gp3"})
    twice = pattern.merge_config(once)
    assert once == twice


def test_compatibility_checks():
    pattern = new_pattern("x", "1.0.0", "x")
    assert pattern.is_compatible_with_platform("openshift")
    assert pattern.is_compatible_with_tool("flux")

    pattern.spec.platforms = [PlatformRequirement(name="Kubernetes")]
    pattern.spec.gitops_tools = [ToolRequirement(name="ArgoCD")]
    assert pattern.is_compatible_with_platform("kubernetes")
    assert not pattern.is_compatible_with_platform("openshift")
    assert pattern.is_compatible_with_tool("argocd")
    assert not pattern.is_compatible_with_tool("flux")


def test_dependency_helpers():
    pattern = make_pattern("app", dependencies=[Dependency(name="cert-manager", version="1.0.0")])
    assert pattern.has_dependency("cert-manager")
    assert pattern.get_dependency("cert-manager").version == "1.0.0"
    assert pattern.get_dependency("vault") is None


def test_required_config():
    assert _configured_pattern().required_config() == ["storage_class"]


def test_category_lookup():
    assert category_description("security").startswith("Secrets management")
    assert category_description("unknown") == ""
    assert category_info("unknown") == ("📦", "Other patterns")
    assert category_info("Networking")[0] == "🌐"
    assert "cicd" in all_categories()
