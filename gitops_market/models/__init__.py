"""Data models — pattern definitions and local installation records."""
