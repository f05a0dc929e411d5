"""Installed-pattern state, persisted as YAML inside the project.

The state file is the only record of what is installed. It is read on
demand and rewritten in full after every change. Unlike the index cache,
failing to write it is an error the caller must see.
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path

import yaml

from gitops_market.errors import StatePersistenceError
from gitops_market.models.installed import (
    InstalledPattern,
    installed_from_dict,
    installed_to_dict,
)

STATE_VERSION = "1.0"


class InstallStateStore:
    """Reads and writes ``<project>/.gitopsi/patterns.yaml``."""

    STATE_DIR = ".gitopsi"
    STATE_FILE = "patterns.yaml"

    def __init__(self, project_path: str | Path, state_file: str | Path | None = None):
        self.project_path = Path(project_path)
        if state_file:
            self.state_file = Path(state_file)
        else:
            self.state_file = self.project_path / self.STATE_DIR / self.STATE_FILE

    def load(self) -> dict[str, InstalledPattern]:
        """Return the installed patterns keyed by name. A missing file is empty state."""
        if not self.state_file.exists():
            return {}

        try:
            with open(self.state_file) as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise StatePersistenceError(f"failed to read state file {self.state_file}: {e}") from e
        except yaml.YAMLError as e:
            raise StatePersistenceError(f"failed to parse state file {self.state_file}: {e}") from e

        patterns = data.get("patterns") or {}
        return {name: installed_from_dict(record) for name, record in patterns.items()}

    def save(self, installed: dict[str, InstalledPattern]) -> None:
        state = {
            "version": STATE_VERSION,
            "updated": datetime.now(timezone.utc).isoformat(),
            "patterns": {name: installed_to_dict(rec) for name, rec in sorted(installed.items())},
        }

        tmp_path = self.state_file.with_suffix(".yaml.tmp")
        try:
            self.state_file.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w") as f:
                yaml.safe_dump(state, f, sort_keys=False, allow_unicode=True)
            os.replace(tmp_path, self.state_file)
        except (OSError, yaml.YAMLError) as e:
            raise StatePersistenceError(f"failed to write state file {self.state_file}: {e}") from e
