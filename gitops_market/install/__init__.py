"""Installation — local install state and the install/update/uninstall lifecycle.

This package provides:
- State: the project's record of installed patterns
- Generation: GitOps manifests written for an installed pattern
- Conflicts: pluggable checks against already-installed patterns
- Installer: the lifecycle operations tying them together
"""
