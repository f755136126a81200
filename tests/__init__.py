"""
Firepouch Test Suite.

This package contains:
- unit/: Unit tests (no external services)
- integration/: Backup/restore flows over SQLite stores and in-memory remotes
"""
