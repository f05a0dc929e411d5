"""Installer — the install / update / uninstall lifecycle for one project.

Per pattern name the lifecycle is ``absent -> installed -> updated* -> absent``.
The in-memory ``installed`` mapping mirrors the state file and is written
back after every change. The installer is not thread-safe; callers must
serialize access.
"""

from __future__ import annotations

import logging
import os
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from gitops_market.errors import (
    DependencyError,
    MarketplaceError,
    NotInstalledError,
    StatePersistenceError,
)
from gitops_market.install.conflicts import ConflictPolicy, default_policies, evaluate
from gitops_market.install.generator import ManifestGenerator
from gitops_market.install.state import InstallStateStore
from gitops_market.models.installed import InstalledPattern
from gitops_market.models.pattern import Dependency, Pattern
from gitops_market.registry.manager import RegistryManager

logger = logging.getLogger(__name__)


@dataclass
class InstallOptions:
    version: str = ""  # empty means latest
    config: dict[str, Any] = field(default_factory=dict)
    environments: list[str] = field(default_factory=list)
    dry_run: bool = False
    force: bool = False
    skip_deps: bool = False


@dataclass
class UpdateOptions:
    version: str = ""
    force: bool = False


@dataclass
class UninstallOptions:
    force: bool = False
    keep_files: bool = False


@dataclass
class DependencyResult:
    name: str
    version: str = ""
    status: str = ""  # installed | skipped | failed
    optional: bool = False
    message: str = ""


@dataclass
class InstallResult:
    pattern: str
    version: str = ""
    success: bool = False
    message: str = ""
    generated_paths: list[str] = field(default_factory=list)
    dependencies: list[DependencyResult] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Installer:
    """Installs patterns from a :class:`RegistryManager` into a project."""

    def __init__(
        self,
        registry: RegistryManager,
        project_path: str | Path,
        gitops_tool: str = "argocd",
        platform: str = "kubernetes",
        state_file: str | Path | None = None,
        policies: list[ConflictPolicy] | None = None,
        default_environments: list[str] | None = None,
    ):
        self.registry = registry
        self.project_path = Path(project_path)
        self.gitops_tool = gitops_tool
        self.platform = platform
        self.store = InstallStateStore(self.project_path, state_file)
        self.generator = ManifestGenerator(self.project_path, gitops_tool)
        self.policies = policies if policies is not None else default_policies()
        self.default_environments = default_environments or ["dev"]
        self.installed: dict[str, InstalledPattern] = {}
        self._resolving: set[str] = set()
        self.load_state()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def load_state(self) -> None:
        self.installed = self.store.load()

    def save_state(self) -> None:
        self.store.save(self.installed)

    def is_installed(self, name: str) -> bool:
        return name in self.installed

    def list_installed(self) -> list[InstalledPattern]:
        return [self.installed[name] for name in sorted(self.installed)]

    def get_installed(self, name: str) -> InstalledPattern:
        record = self.installed.get(name)
        if record is None:
            raise NotInstalledError(name)
        return record

    def _commit(self, name: str, record: InstalledPattern | None) -> None:
        """Apply one change to the mapping and persist it, rolling back on failure."""
        previous = self.installed.get(name)
        if record is None:
            self.installed.pop(name, None)
        else:
            self.installed[name] = record
        try:
            self.save_state()
        except StatePersistenceError:
            if previous is None:
                self.installed.pop(name, None)
            else:
                self.installed[name] = previous
            raise

    # ------------------------------------------------------------------
    # Install
    # ------------------------------------------------------------------

    def install(self, name: str, options: InstallOptions | None = None) -> InstallResult:
        """Resolve, validate, generate, and record a pattern.

        Re-installing an installed pattern requires ``force``; without it the
        result reports the existing version and nothing changes.
        """
        options = options or InstallOptions()
        existing = self.installed.get(name)
        if existing is not None and not options.force:
            return InstallResult(
                pattern=name,
                version=existing.version,
                message=(
                    f"Pattern '{name}' is already installed (version {existing.version}). "
                    "Use --force to reinstall."
                ),
            )

        entry, registry_name = self.registry.find_pattern(name)
        version = options.version or entry.latest
        pattern = self.registry.fetch_pattern(registry_name, name, version)

        result = InstallResult(pattern=name, version=version)
        self._check_compatibility(pattern, result)

        if not options.skip_deps:
            self._resolving.add(name)
            try:
                for dep in pattern.spec.dependencies:
                    dep_result = self._install_dependency(dep, options)
                    result.dependencies.append(dep_result)
                    if dep_result.status == "failed":
                        if not dep.optional:
                            raise DependencyError(
                                f"required dependency '{dep.name}' of '{name}' failed to install: "
                                f"{dep_result.message}"
                            )
                        result.warnings.append(
                            f"optional dependency '{dep.name}' failed: {dep_result.message}"
                        )
            finally:
                self._resolving.discard(name)

        config = pattern.merge_config(options.config)
        pattern.check_config(config)

        environments = list(options.environments or self.default_environments)

        if options.dry_run:
            result.generated_paths = self.generator.plan(pattern, config, environments)
            result.success = True
            result.message = "Dry run - no changes made"
            return result

        try:
            paths = self.generator.generate(pattern, config, environments)
        except OSError as e:
            raise MarketplaceError(f"failed to generate pattern '{name}': {e}") from e
        result.generated_paths = paths

        record = InstalledPattern(
            pattern=pattern,
            installed_at=_now(),
            config=config,
            environments=environments,
            status="installed",
            paths=paths,
        )
        if existing is not None:
            record.installed_at = existing.installed_at
            record.updated_at = _now()
            record.annotations = dict(existing.annotations)

        self._commit(name, record)
        if existing is not None:
            # Only after the new record is durable
            self._remove_files([p for p in existing.paths if p not in set(paths)], force=True)
        logger.info("installed pattern %s from registry '%s'", pattern.full_name, registry_name)

        result.success = True
        result.message = f"Pattern '{name}' version {version} installed successfully"
        return result

    def _check_compatibility(self, pattern: Pattern, result: InstallResult) -> None:
        if not pattern.is_compatible_with_platform(self.platform):
            result.warnings.append(
                f"Pattern may not be fully compatible with platform '{self.platform}'"
            )
        if not pattern.is_compatible_with_tool(self.gitops_tool):
            result.warnings.append(
                f"Pattern may not be fully compatible with GitOps tool '{self.gitops_tool}'"
            )

    def _install_dependency(self, dep: Dependency, options: InstallOptions) -> DependencyResult:
        result = DependencyResult(name=dep.name, version=dep.version, optional=dep.optional)

        existing = self.installed.get(dep.name)
        if existing is not None:
            result.status = "skipped"
            result.message = f"already installed (v{existing.version})"
            return result

        if dep.name in self._resolving:
            result.status = "skipped"
            result.message = "dependency cycle"
            return result

        dep_options = InstallOptions(version=dep.version, dry_run=options.dry_run)
        try:
            dep_install = self.install(dep.name, dep_options)
        except MarketplaceError as e:
            result.status = "failed"
            result.message = str(e)
            return result

        result.status = "installed"
        result.version = dep_install.version
        result.message = "installed successfully"
        return result

    # ------------------------------------------------------------------
    # Update / uninstall
    # ------------------------------------------------------------------

    def update(self, name: str, options: UpdateOptions | None = None) -> InstallResult:
        options = options or UpdateOptions()
        installed = self.get_installed(name)

        target = options.version
        if not target:
            entry, _ = self.registry.find_pattern(name)
            target = entry.latest

        if installed.version == target and not options.force:
            return InstallResult(
                pattern=name,
                version=target,
                success=True,
                message="Already at target version",
            )

        logger.info("updating pattern %s from %s to %s", name, installed.version, target)
        return self.install(
            name,
            InstallOptions(
                version=target,
                config=dict(installed.config),
                environments=list(installed.environments),
                force=True,
            ),
        )

    def uninstall(self, name: str, options: UninstallOptions | None = None) -> None:
        options = options or UninstallOptions()
        installed = self.get_installed(name)

        if not options.keep_files:
            self._remove_files(installed.paths, force=options.force)

        self._commit(name, None)
        logger.info("uninstalled pattern %s", installed.pattern.full_name)

    @staticmethod
    def _remove_files(paths: list[str], force: bool) -> None:
        for path in paths:
            try:
                os.remove(path)
            except FileNotFoundError:
                continue
            except OSError as e:
                if not force:
                    raise MarketplaceError(f"failed to remove {path}: {e}") from e
                logger.warning("could not remove %s: %s", path, e)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def get_status(self) -> dict[str, str]:
        """``healthy`` when every generated file still exists, else ``degraded``."""
        status = {}
        for name, record in sorted(self.installed.items()):
            healthy = all(Path(p).exists() for p in record.paths)
            status[name] = "healthy" if healthy else "degraded"
        return status

    def check_updates(self) -> dict[str, str]:
        """Map installed pattern name to the newer version its registry lists."""
        updates = {}
        for name, record in sorted(self.installed.items()):
            try:
                entry, _ = self.registry.find_pattern(name)
            except MarketplaceError as e:
                logger.warning("cannot check updates for '%s': %s", name, e)
                continue
            if entry.latest and entry.latest != record.version:
                updates[name] = entry.latest
        return updates

    def _resolve_latest(self, name: str, version: str = "") -> Pattern:
        entry, registry_name = self.registry.find_pattern(name)
        return self.registry.fetch_pattern(registry_name, name, version or entry.latest)

    def get_dependency_tree(self, name: str) -> dict[str, list[str]]:
        """Map each reachable pattern to the names of its declared dependencies.

        Every pattern is expanded at most once, so cycles terminate.
        Dependencies that cannot be resolved appear as names but are not
        expanded. This is informational; no version solving happens.
        """
        tree: dict[str, list[str]] = {}
        root = self._resolve_latest(name)
        queue: deque[Pattern] = deque([root])

        while queue:
            pattern = queue.popleft()
            if pattern.metadata.name in tree:
                continue
            tree[pattern.metadata.name] = [d.name for d in pattern.spec.dependencies]

            for dep in pattern.spec.dependencies:
                if dep.name in tree:
                    continue
                try:
                    queue.append(self._resolve_latest(dep.name, dep.version))
                except MarketplaceError as e:
                    logger.warning("cannot resolve dependency '%s': %s", dep.name, e)

        return tree

    def conflict_check(self, name: str) -> list[str]:
        candidate = self._resolve_latest(name)
        return evaluate(self.policies, candidate, self.installed)
