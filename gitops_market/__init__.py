"""gitops-market — discover, install, and track reusable GitOps patterns."""

__version__ = "0.1.0"
