"""Manifest generator — render the GitOps tree for an installed pattern.

Layout inside the project::

    infrastructure/<category>/<pattern>/base/          component manifests + kustomization
    infrastructure/<category>/<pattern>/overlays/<env>/ per-environment kustomization
    <gitops_tool>/applications/<pattern>-<env>.yaml     one application per environment

Nothing is applied to a cluster; files are only written.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from gitops_market.errors import PatternValidationError
from gitops_market.models.pattern import Component, Pattern
from gitops_market.utils.validator import check_path_segment


def install_path(project_path: str | Path, category: str, pattern_name: str) -> Path:
    return Path(project_path) / "infrastructure" / (category or "other").lower() / pattern_name


def merge_values(component_values: dict[str, Any], config: dict[str, Any]) -> dict[str, Any]:
    merged = dict(component_values)
    merged.update(config)
    return merged


class ManifestGenerator:
    """Renders and writes the files for one pattern installation."""

    def __init__(self, project_path: str | Path, gitops_tool: str = "argocd"):
        self.project_path = Path(project_path)
        self.gitops_tool = gitops_tool

    def plan(self, pattern: Pattern, config: dict[str, Any], environments: list[str]) -> list[str]:
        """Paths :meth:`generate` would write, without touching the disk."""
        return [str(path) for path, _ in self.render(pattern, config, environments)]

    def generate(self, pattern: Pattern, config: dict[str, Any], environments: list[str]) -> list[str]:
        written: list[str] = []
        for path, document in self.render(pattern, config, environments):
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w") as f:
                if isinstance(document, str):
                    f.write(document)
                else:
                    yaml.safe_dump(document, f, sort_keys=False)
            written.append(str(path))
        return written

    def render(
        self, pattern: Pattern, config: dict[str, Any], environments: list[str]
    ) -> list[tuple[Path, dict | str]]:
        meta = pattern.metadata
        self._check_segments(pattern, environments)
        base_path = install_path(self.project_path, meta.category, meta.name)
        base_dir = base_path / "base"

        files: list[tuple[Path, dict | str]] = []
        resources: list[str] = []
        for comp in pattern.spec.components:
            for filename, document in _render_component(comp, config):
                files.append((base_dir / filename, document))
                resources.append(filename)

        files.append((
            base_dir / "kustomization.yaml",
            {
                "apiVersion": "kustomize.config.k8s.io/v1beta1",
                "kind": "Kustomization",
                "resources": resources,
            },
        ))

        for env in environments:
            files.append((
                base_path / "overlays" / env / "kustomization.yaml",
                {
                    "apiVersion": "kustomize.config.k8s.io/v1beta1",
                    "kind": "Kustomization",
                    "resources": ["../../base"],
                    "commonLabels": {"environment": env},
                },
            ))

        app_dir = self.project_path / self.gitops_tool / "applications"
        for env in environments:
            app_name = f"{meta.name}-{env}"
            overlay = f"infrastructure/{(meta.category or 'other').lower()}/{meta.name}/overlays/{env}"
            files.append((app_dir / f"{app_name}.yaml", self._application(app_name, overlay, meta.name)))

        root = self.project_path.resolve()
        escaped = [str(path) for path, _ in files if not path.resolve().is_relative_to(root)]
        if escaped:
            raise PatternValidationError([f"path '{p}' is outside the project" for p in escaped])
        return files

    def _check_segments(self, pattern: Pattern, environments: list[str]) -> None:
        """Everything joined into a generated path must be a single path component."""
        candidates = [
            ("category", pattern.metadata.category or "other"),
            ("pattern name", pattern.metadata.name),
            ("gitops tool", self.gitops_tool),
        ]
        candidates += [("component name", c.name) for c in pattern.spec.components]
        candidates += [("environment", env) for env in environments]

        issues = []
        for label, value in candidates:
            issue = check_path_segment(label, value)
            if issue:
                issues.append(issue)
        if issues:
            raise PatternValidationError(issues)

    def _application(self, app_name: str, overlay: str, namespace: str) -> dict:
        if self.gitops_tool == "flux":
            return {
                "apiVersion": "kustomize.toolkit.fluxcd.io/v1",
                "kind": "Kustomization",
                "metadata": {"name": app_name, "namespace": "flux-system"},
                "spec": {
                    "interval": "10m",
                    "path": f"./{overlay}",
                    "prune": True,
                    "sourceRef": {"kind": "GitRepository", "name": "flux-system"},
                    "targetNamespace": namespace,
                },
            }
        return {
            "apiVersion": "argoproj.io/v1alpha1",
            "kind": "Application",
            "metadata": {"name": app_name},
            "spec": {
                "project": "default",
                "source": {
                    "repoURL": "{{ .RepoURL }}",
                    "targetRevision": "HEAD",
                    "path": overlay,
                },
                "destination": {
                    "server": "https://kubernetes.default.svc",
                    "namespace": namespace,
                },
                "syncPolicy": {"automated": {"prune": True, "selfHeal": True}},
            },
        }


def _render_component(comp: Component, config: dict[str, Any]) -> list[tuple[str, dict | str]]:
    if comp.type == "helm":
        repo = {
            "apiVersion": "source.toolkit.fluxcd.io/v1beta2",
            "kind": "HelmRepository",
            "metadata": {"name": comp.name},
            "spec": {"interval": "1h", "url": comp.repository},
        }
        release = {
            "apiVersion": "helm.toolkit.fluxcd.io/v2beta1",
            "kind": "HelmRelease",
            "metadata": {"name": comp.name},
            "spec": {
                "interval": "5m",
                "chart": {
                    "spec": {
                        "chart": comp.chart,
                        "version": comp.version,
                        "sourceRef": {"kind": "HelmRepository", "name": comp.name},
                    },
                },
                "values": merge_values(comp.values, config),
            },
        }
        if comp.namespace:
            repo["metadata"]["namespace"] = comp.namespace
            release["metadata"]["namespace"] = comp.namespace
        return [(f"{comp.name}-repo.yaml", repo), (f"{comp.name}-release.yaml", release)]

    if comp.type == "kustomize":
        return [(
            f"{comp.name}-kustomization.yaml",
            {
                "apiVersion": "kustomize.toolkit.fluxcd.io/v1",
                "kind": "Kustomization",
                "metadata": {"name": comp.name},
                "spec": {"interval": "5m", "path": comp.path, "prune": True},
            },
        )]

    if comp.type == "operator":
        return [(
            f"{comp.name}-subscription.yaml",
            {
                "apiVersion": "operators.coreos.com/v1alpha1",
                "kind": "Subscription",
                "metadata": {"name": comp.name, "namespace": comp.namespace or "operators"},
                "spec": {
                    "name": comp.chart or comp.name,
                    "channel": comp.version or "stable",
                    "source": comp.repository or "operatorhubio-catalog",
                    "sourceNamespace": "olm",
                },
            },
        )]

    if comp.type == "manifest":
        return [(f"{comp.name}.yaml", f"# Manifest for {comp.name}\n")]

    return []
