"""
duckvault Test Suite.

This package contains:
- unit/: Unit tests (no external dependencies)
- integration/: Integration tests (DuckDB files, in-memory object store)
- e2e/: End-to-end tests (S3-compatible endpoint such as MinIO)
"""
