"""Conflict policies — detect overlap between a candidate and installed patterns.

Each policy inspects the candidate pattern against the installed set and
returns human-readable conflict descriptions. The installer evaluates every
policy it was given and concatenates the results.
"""

from __future__ import annotations

from typing import Protocol

from gitops_market.models.installed import InstalledPattern
from gitops_market.models.pattern import Pattern


class ConflictPolicy(Protocol):
    name: str

    def check(self, candidate: Pattern, installed: dict[str, InstalledPattern]) -> list[str]: ...


class NamespaceConflictPolicy:
    """Two patterns deploying components into the same namespace."""

    name = "namespace"

    def check(self, candidate: Pattern, installed: dict[str, InstalledPattern]) -> list[str]:
        conflicts = []
        namespaces = {c.namespace for c in candidate.spec.components if c.namespace}
        for installed_name, record in sorted(installed.items()):
            if installed_name == candidate.metadata.name:
                continue
            shared = namespaces & {c.namespace for c in record.pattern.spec.components if c.namespace}
            for ns in sorted(shared):
                conflicts.append(
                    f"namespace conflict with '{installed_name}': both use namespace '{ns}'"
                )
        return conflicts


class ComponentNameConflictPolicy:
    """Two patterns declaring a component with the same name."""

    name = "component"

    def check(self, candidate: Pattern, installed: dict[str, InstalledPattern]) -> list[str]:
        conflicts = []
        names = {c.name for c in candidate.spec.components}
        for installed_name, record in sorted(installed.items()):
            if installed_name == candidate.metadata.name:
                continue
            shared = names & {c.name for c in record.pattern.spec.components}
            for comp in sorted(shared):
                conflicts.append(
                    f"component name conflict with '{installed_name}': both have component '{comp}'"
                )
        return conflicts


def default_policies() -> list[ConflictPolicy]:
    return [NamespaceConflictPolicy(), ComponentNameConflictPolicy()]


def evaluate(
    policies: list[ConflictPolicy],
    candidate: Pattern,
    installed: dict[str, InstalledPattern],
) -> list[str]:
    conflicts: list[str] = []
    for policy in policies:
        conflicts.extend(policy.check(candidate, installed))
    return conflicts
