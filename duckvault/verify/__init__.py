"""
Verification module for duckvault.

Confirms that a retrieved snapshot is semantically intact by opening it
through DuckDB and counting the rows of an expected relation.
"""

from .verifier import VerificationResult, Verifier, verify_database

__all__ = ["Verifier", "VerificationResult", "verify_database"]
