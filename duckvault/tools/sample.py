"""
Sample DuckDB database for demos and tests.

Creates a ``users`` table with a few rows so a stored and retrieved
snapshot has something the Verifier can count.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

import duckdb

from ..errors import DestinationError

logger = logging.getLogger(__name__)

SAMPLE_USERS: tuple[tuple[int, str], ...] = (
    (1, "Alice"),
    (2, "Bob"),
    (3, "Charlie"),
)


def sample_users(count: int) -> list[tuple[int, str]]:
    """Return count users, starting with the SAMPLE_USERS names."""
    if count < 0:
        raise ValueError("count must not be negative")
    users = list(SAMPLE_USERS[:count])
    users.extend((i, f"user_{i}") for i in range(len(users) + 1, count + 1))
    return users


def create_sample_database(
    db_path: str | Path,
    users: Sequence[tuple[int, str]] = SAMPLE_USERS,
) -> int:
    """Create (or replace) the sample users table in a DuckDB file.

    Args:
        db_path: Database file, parent directories are created
        users: (id, name) rows to insert

    Returns:
        Number of rows in the users table

    Raises:
        DestinationError: If the file or its directory cannot be created
    """
    path = Path(db_path)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        count = _populate(path, users)
    except (OSError, duckdb.Error) as e:
        raise DestinationError(
            f"Failed to create sample database: {e}", path=str(path), operation="create"
        ) from e

    logger.info("Created sample database", extra={"path": str(path), "row_count": count})
    return count


def _populate(path: Path, users: Sequence[tuple[int, str]]) -> int:
    conn = duckdb.connect(str(path))
    try:
        conn.execute("""
            CREATE OR REPLACE TABLE users (
                id INTEGER PRIMARY KEY,
                name VARCHAR,
                created_at TIMESTAMP
            )
        """)
        if users:
            conn.executemany(
                "INSERT INTO users (id, name, created_at) VALUES (?, ?, CURRENT_TIMESTAMP)",
                [list(user) for user in users],
            )
        row = conn.execute("SELECT COUNT(*) FROM users").fetchone()
    finally:
        conn.close()

    return int(row[0]) if row else 0
