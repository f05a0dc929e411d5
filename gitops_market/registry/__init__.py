"""Registry — pattern sources, their indexes, and cross-registry discovery.

The registry layer provides:
- Sources: local directory trees and remote HTTP endpoints
- Indexes: the catalog each source publishes, with an on-disk fallback cache
- Discovery: priority-ordered search, lookup, and category summaries
"""
