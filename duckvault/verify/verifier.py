"""
Round-trip verification for retrieved DuckDB files.

The Verifier opens a database file through DuckDB in read-only mode and
counts the rows of an expected relation. A file that cannot be opened, or
that lacks the relation, indicates a corrupted transfer or a store/retrieve
defect and is always raised to the caller.

Invariants:
    - The file is opened read-only; verification never mutates it
    - Open failures raise EngineOpenError, query failures raise QueryError
    - A row count that differs from the expectation raises
      VerificationMismatchError (a QueryError)

How to change safely:
    - Keep the table name quoted; it comes from configuration
    - Keep blocking DuckDB calls off the event loop (verify_async)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

import duckdb

from ..errors import EngineOpenError, QueryError, VerificationMismatchError

logger = logging.getLogger(__name__)


def _quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


@dataclass(frozen=True)
class VerificationResult:
    """Result of a verification run.

    Attributes:
        path: Verified database file
        table: Relation that was counted
        row_count: Rows found
        expected_rows: Expected rows (None if only reported)
    """

    path: str
    table: str
    row_count: int
    expected_rows: int | None = None

    @property
    def matched(self) -> bool:
        return self.expected_rows is None or self.row_count == self.expected_rows


class Verifier:
    """Checks that a database file opens and contains the expected rows.

    Attributes:
        table: Relation counted by the verification query
        expected_rows: Row count to require (None = report only)

    Example:
        >>> verifier = Verifier(table="users", expected_rows=3)
        >>> result = verifier.verify("./tmp/mydb_retrieved.db")
        >>> result.row_count
        3
    """

    def __init__(self, table: str = "users", expected_rows: int | None = None) -> None:
        if not table:
            raise ValueError("table must not be empty")
        self.table = table
        self.expected_rows = expected_rows

    @property
    def query(self) -> str:
        return f"SELECT COUNT(*) FROM {_quote_identifier(self.table)}"

    def verify(self, db_path: str | Path) -> VerificationResult:
        """Open the database read-only and run the verification query.

        Args:
            db_path: Local database file

        Returns:
            VerificationResult with the row count

        Raises:
            EngineOpenError: If the file is missing or not a DuckDB database
            QueryError: If the relation is absent or the query fails
            VerificationMismatchError: If the row count differs from expected_rows
        """
        path = Path(db_path)
        if not path.is_file():
            raise EngineOpenError(f"Database file does not exist: {path}", path=str(path))

        try:
            conn = duckdb.connect(str(path), read_only=True)
        except duckdb.Error as e:
            raise EngineOpenError(f"Failed to connect to database: {e}", path=str(path)) from e

        try:
            row = conn.execute(self.query).fetchone()
        except duckdb.Error as e:
            raise QueryError(
                f"Failed to query database: {e}", path=str(path), query=self.query
            ) from e
        finally:
            conn.close()

        count = int(row[0]) if row else 0
        if self.expected_rows is not None and count != self.expected_rows:
            raise VerificationMismatchError(
                path=str(path), query=self.query, expected=self.expected_rows, actual=count
            )

        logger.info(
            "Database verified",
            extra={"path": str(path), "table": self.table, "row_count": count},
        )
        return VerificationResult(
            path=str(path),
            table=self.table,
            row_count=count,
            expected_rows=self.expected_rows,
        )

    async def verify_async(self, db_path: str | Path) -> VerificationResult:
        """Run verify() in the default executor."""
        return await asyncio.get_running_loop().run_in_executor(None, self.verify, db_path)


def verify_database(
    db_path: str | Path,
    table: str = "users",
    expected_rows: int | None = None,
) -> VerificationResult:
    """Verify a database file with a one-off Verifier."""
    return Verifier(table=table, expected_rows=expected_rows).verify(db_path)
