"""
DocDB Test Suite.

This package contains:
- unit/: Unit tests (no external dependencies, no data directory)
- integration/: Integration tests (SQLite store, service, HTTP app)
"""
