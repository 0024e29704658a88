"""
Tools for duckvault.

This module provides:
- sample: create the sample users database
- demo: run the store/retrieve/verify round trip

Invariants:
    - Tools only use the public SnapshotStore and Verifier APIs
    - Operations are logged
"""

from .demo import DemoResult, DemoTool
from .sample import SAMPLE_USERS, create_sample_database, sample_users

__all__ = ["DemoTool", "DemoResult", "SAMPLE_USERS", "create_sample_database", "sample_users"]
