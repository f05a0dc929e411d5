"""Pattern data model — the schema of a ``pattern.yaml`` definition.

A pattern is a versioned bundle of deployable components (helm charts,
kustomizations, raw manifests, operators) plus a configuration schema, a
dependency list, post-install validation checks, docs links, and lifecycle
hooks. Once published, ``(name, version)`` identifies it uniquely within a
registry.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from gitops_market.errors import (
    ConfigValidationError,
    PatternValidationError,
    TransportError,
)
from gitops_market.utils.validator import (
    PATTERN_KIND,
    merge_config_with_defaults,
    validate_config,
    validate_pattern,
)

API_VERSION = "gitopsi.io/v1"
PATTERN_FILE = "pattern.yaml"


class PatternCategory(Enum):
    """Top-level grouping shown in the marketplace."""

    INFRASTRUCTURE = "infrastructure"
    OBSERVABILITY = "observability"
    SECURITY = "security"
    NETWORKING = "networking"
    DATA = "data"
    CICD = "cicd"
    PLATFORMS = "platforms"
    ENTERPRISE = "enterprise"


class ComponentType(Enum):
    HELM = "helm"
    KUSTOMIZE = "kustomize"
    MANIFEST = "manifest"
    OPERATOR = "operator"


class ConfigType(Enum):
    STRING = "string"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    SECRET = "secret"
    ARRAY = "array"
    OBJECT = "object"


_CATEGORY_INFO: dict[str, tuple[str, str]] = {
    "infrastructure": ("🏗️", "Networking, security, storage, and compute infrastructure"),
    "observability": ("📊", "Monitoring, logging, tracing, and dashboards"),
    "security": ("🔐", "Secrets management, policies, scanning, and certificates"),
    "networking": ("🌐", "Ingress controllers, service mesh, and DNS"),
    "data": ("💾", "Databases, caching, messaging, and storage"),
    "cicd": ("🚀", "Pipelines, workflows, and testing"),
    "platforms": ("📱", "Platform-specific patterns (OpenShift, AWS, Azure, GCP)"),
    "enterprise": ("🏢", "Multi-tenancy, compliance, and cost management"),
}


def all_categories() -> list[str]:
    return [c.value for c in PatternCategory]


def category_description(category: str) -> str:
    return _CATEGORY_INFO.get(category, ("", ""))[1]


def category_info(category: str) -> tuple[str, str]:
    """Return ``(icon, description)`` for a category, with a generic fallback."""
    return _CATEGORY_INFO.get(category.lower(), ("📦", "Other patterns"))


# --- Metadata ---


@dataclass
class PatternMetadata:
    name: str = ""
    version: str = ""
    description: str = ""
    author: str = ""
    license: str = ""
    repository: str = ""
    tags: list[str] = field(default_factory=list)
    category: str = ""
    icon: str = ""


# --- Spec ---


@dataclass
class PlatformRequirement:
    name: str
    min_version: str = ""
    max_version: str = ""


@dataclass
class ToolRequirement:
    name: str
    min_version: str = ""


@dataclass
class Dependency:
    """A reference to another pattern by name."""

    name: str
    version: str = ""  # exact version or empty for latest
    optional: bool = False
    reason: str = ""


@dataclass
class Component:
    """One deployable unit inside a pattern."""

    name: str
    type: str  # helm | kustomize | manifest | operator
    chart: str = ""
    repository: str = ""
    version: str = ""
    path: str = ""
    values: dict[str, Any] = field(default_factory=dict)
    namespace: str = ""
    labels: dict[str, str] = field(default_factory=dict)


@dataclass
class ConfigItem:
    """One entry of a pattern's configuration schema."""

    type: str  # string | integer | boolean | secret | array | object
    default: Any = None
    description: str = ""
    required: bool = False
    enum: list[str] = field(default_factory=list)
    min: int | None = None
    max: int | None = None
    pattern: str = ""


@dataclass
class ValidationCheck:
    """A post-install readiness check."""

    name: str
    check: str
    timeout: str = ""


@dataclass
class PatternDocs:
    readme: str = ""
    architecture: str = ""
    troubleshooting: str = ""
    changelog: str = ""


@dataclass
class PatternHooks:
    """Script paths run around lifecycle transitions."""

    pre_install: str = ""
    post_install: str = ""
    pre_update: str = ""
    post_update: str = ""
    pre_delete: str = ""
    post_delete: str = ""


@dataclass
class PatternSpec:
    platforms: list[PlatformRequirement] = field(default_factory=list)
    gitops_tools: list[ToolRequirement] = field(default_factory=list)
    dependencies: list[Dependency] = field(default_factory=list)
    components: list[Component] = field(default_factory=list)
    config: dict[str, ConfigItem] = field(default_factory=dict)
    validation: list[ValidationCheck] = field(default_factory=list)
    docs: PatternDocs = field(default_factory=PatternDocs)
    hooks: PatternHooks = field(default_factory=PatternHooks)


# --- The Pattern ---


@dataclass
class Pattern:
    """A GitOps pattern definition."""

    api_version: str = API_VERSION
    kind: str = PATTERN_KIND
    metadata: PatternMetadata = field(default_factory=PatternMetadata)
    spec: PatternSpec = field(default_factory=PatternSpec)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def version(self) -> str:
        return self.metadata.version

    @property
    def full_name(self) -> str:
        return f"{self.metadata.name}@{self.metadata.version}"

    def validate(self) -> None:
        """Raise :class:`PatternValidationError` listing every schema violation."""
        issues = validate_pattern(self)
        if issues:
            raise PatternValidationError(issues)

    def check_config(self, config: dict[str, Any]) -> None:
        """Raise :class:`ConfigValidationError` if *config* violates the schema."""
        issues = validate_config(self, config)
        if issues:
            raise ConfigValidationError(issues)

    def merge_config(self, config: dict[str, Any] | None) -> dict[str, Any]:
        return merge_config_with_defaults(self, config)

    def required_config(self) -> list[str]:
        return sorted(key for key, item in self.spec.config.items() if item.required)

    def has_dependency(self, name: str) -> bool:
        return self.get_dependency(name) is not None

    def get_dependency(self, name: str) -> Dependency | None:
        for dep in self.spec.dependencies:
            if dep.name == name:
                return dep
        return None

    def is_compatible_with_platform(self, platform: str) -> bool:
        """No declared platforms means no restriction."""
        if not self.spec.platforms:
            return True
        return any(req.name.lower() == platform.lower() for req in self.spec.platforms)

    def is_compatible_with_tool(self, tool: str) -> bool:
        if not self.spec.gitops_tools:
            return True
        return any(req.name.lower() == tool.lower() for req in self.spec.gitops_tools)

    def to_dict(self) -> dict:
        return pattern_to_dict(self)

    def to_yaml(self) -> str:
        return yaml.safe_dump(pattern_to_dict(self), sort_keys=False)

    def save(self, path: str | Path) -> None:
        """Write the pattern as YAML, creating parent directories."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            f.write(self.to_yaml())


def new_pattern(name: str, version: str, description: str) -> Pattern:
    """Create a pattern with the standard header and an MIT license."""
    return Pattern(
        metadata=PatternMetadata(
            name=name,
            version=version,
            description=description,
            license="MIT",
        ),
    )


def load_pattern(path: str | Path) -> Pattern:
    """Read, parse, and validate a ``pattern.yaml`` file."""
    path = Path(path)
    try:
        with open(path) as f:
            text = f.read()
    except OSError as e:
        raise TransportError(f"failed to read pattern file {path}: {e}", location=str(path)) from e
    return parse_pattern(text, source=str(path))


def parse_pattern(text: str, source: str = "") -> Pattern:
    """Parse YAML text into a validated :class:`Pattern`."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise PatternValidationError([f"invalid YAML in {source or 'pattern'}: {e}"]) from e
    if not isinstance(data, dict):
        raise PatternValidationError([f"{source or 'pattern'} is not a mapping"])

    try:
        pattern = pattern_from_dict(data)
    except (TypeError, ValueError, AttributeError) as e:
        raise PatternValidationError([f"malformed {source or 'pattern'}: {e}"]) from e
    pattern.validate()
    return pattern


# ---------------------------------------------------------------------------
# YAML mapping
# ---------------------------------------------------------------------------


def _compact(data: dict) -> dict:
    """Drop empty optional values so saved files stay readable."""
    return {k: v for k, v in data.items() if v not in (None, "", [], {}, False)}


def pattern_to_dict(pattern: Pattern) -> dict:
    meta = pattern.metadata
    spec = pattern.spec
    metadata = {
        "name": meta.name,
        "version": meta.version,
        "description": meta.description,
        "author": meta.author,
    }
    metadata.update(_compact({
        "license": meta.license,
        "repository": meta.repository,
        "tags": list(meta.tags),
        "category": meta.category,
        "icon": meta.icon,
    }))

    config = {}
    for key, item in spec.config.items():
        entry = {"type": item.type}
        if item.default is not None:
            entry["default"] = item.default
        entry.update(_compact({
            "description": item.description,
            "required": item.required,
            "enum": list(item.enum),
            "pattern": item.pattern,
        }))
        if item.min is not None:
            entry["min"] = item.min
        if item.max is not None:
            entry["max"] = item.max
        config[key] = entry

    spec_dict = _compact({
        "platforms": [
            {"name": p.name, **_compact({"minVersion": p.min_version, "maxVersion": p.max_version})}
            for p in spec.platforms
        ],
        "gitops_tools": [
            {"name": t.name, **_compact({"minVersion": t.min_version})}
            for t in spec.gitops_tools
        ],
        "dependencies": [
            {"name": d.name, **_compact({"version": d.version, "optional": d.optional, "reason": d.reason})}
            for d in spec.dependencies
        ],
        "components": [
            {
                "name": c.name,
                "type": c.type,
                **_compact({
                    "chart": c.chart,
                    "repository": c.repository,
                    "version": c.version,
                    "path": c.path,
                    "values": dict(c.values),
                    "namespace": c.namespace,
                    "labels": dict(c.labels),
                }),
            }
            for c in spec.components
        ],
        "config": config,
        "validation": [
            {"name": v.name, "check": v.check, **_compact({"timeout": v.timeout})}
            for v in spec.validation
        ],
        "docs": _compact({
            "readme": spec.docs.readme,
            "architecture": spec.docs.architecture,
            "troubleshooting": spec.docs.troubleshooting,
            "changelog": spec.docs.changelog,
        }),
        "hooks": _compact({
            "preInstall": spec.hooks.pre_install,
            "postInstall": spec.hooks.post_install,
            "preUpdate": spec.hooks.pre_update,
            "postUpdate": spec.hooks.post_update,
            "preDelete": spec.hooks.pre_delete,
            "postDelete": spec.hooks.post_delete,
        }),
    })

    return {
        "apiVersion": pattern.api_version,
        "kind": pattern.kind,
        "metadata": metadata,
        "spec": spec_dict,
    }


def pattern_from_dict(data: dict) -> Pattern:
    meta = data.get("metadata") or {}
    spec = data.get("spec") or {}
    docs = spec.get("docs") or {}
    hooks = spec.get("hooks") or {}

    return Pattern(
        api_version=data.get("apiVersion", ""),
        kind=data.get("kind", ""),
        metadata=PatternMetadata(
            name=str(meta.get("name") or ""),
            version=str(meta.get("version") or ""),
            description=meta.get("description") or "",
            author=meta.get("author") or "",
            license=meta.get("license") or "",
            repository=meta.get("repository") or "",
            tags=list(meta.get("tags") or []),
            category=meta.get("category") or "",
            icon=meta.get("icon") or "",
        ),
        spec=PatternSpec(
            platforms=[
                PlatformRequirement(
                    name=p.get("name", ""),
                    min_version=p.get("minVersion", ""),
                    max_version=p.get("maxVersion", ""),
                )
                for p in spec.get("platforms") or []
            ],
            gitops_tools=[
                ToolRequirement(name=t.get("name", ""), min_version=t.get("minVersion", ""))
                for t in spec.get("gitops_tools") or []
            ],
            dependencies=[
                Dependency(
                    name=d.get("name", ""),
                    version=str(d.get("version") or ""),
                    optional=bool(d.get("optional", False)),
                    reason=d.get("reason", ""),
                )
                for d in spec.get("dependencies") or []
            ],
            components=[
                Component(
                    name=c.get("name", ""),
                    type=c.get("type", ""),
                    chart=c.get("chart", ""),
                    repository=c.get("repository", ""),
                    version=str(c.get("version") or ""),
                    path=c.get("path", ""),
                    values=dict(c.get("values") or {}),
                    namespace=c.get("namespace", ""),
                    labels=dict(c.get("labels") or {}),
                )
                for c in spec.get("components") or []
            ],
            config={
                key: ConfigItem(
                    type=(item or {}).get("type", ""),
                    default=(item or {}).get("default"),
                    description=(item or {}).get("description", ""),
                    required=bool((item or {}).get("required", False)),
                    enum=[str(e) for e in (item or {}).get("enum") or []],
                    min=(item or {}).get("min"),
                    max=(item or {}).get("max"),
                    pattern=(item or {}).get("pattern", ""),
                )
                for key, item in (spec.get("config") or {}).items()
            },
            validation=[
                ValidationCheck(name=v.get("name", ""), check=v.get("check", ""), timeout=v.get("timeout", ""))
                for v in spec.get("validation") or []
            ],
            docs=PatternDocs(
                readme=docs.get("readme", ""),
                architecture=docs.get("architecture", ""),
                troubleshooting=docs.get("troubleshooting", ""),
                changelog=docs.get("changelog", ""),
            ),
            hooks=PatternHooks(
                pre_install=hooks.get("preInstall", ""),
                post_install=hooks.get("postInstall", ""),
                pre_update=hooks.get("preUpdate", ""),
                post_update=hooks.get("postUpdate", ""),
                pre_delete=hooks.get("preDelete", ""),
                post_delete=hooks.get("postDelete", ""),
            ),
        ),
    )
