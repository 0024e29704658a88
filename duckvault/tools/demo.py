"""
Round-trip demo for duckvault.

Runs the full snapshot lifecycle against the configured object store:
1. Create a sample DuckDB database
2. Store it in the object store
3. Read back its metadata
4. Retrieve it to a new path
5. Verify the retrieved copy through DuckDB
6. Delete the snapshot (unless keep=True)

Usage:
    duckvault demo [--data-dir <path>] [--keep]

Invariants:
    - Every step is logged with its outcome
    - The first failing step stops the run and is named in the result
    - The demo never deletes the bucket
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path

from ..config import VaultConfig
from ..errors import VaultError
from ..objectstore.base import ObjectStore
from ..snapshot import open_snapshot_store
from ..verify import Verifier
from .sample import SAMPLE_USERS, create_sample_database

logger = logging.getLogger(__name__)


@dataclass
class DemoResult:
    """Result of a demo run.

    Attributes:
        success: Whether every step succeeded
        size_bytes: Stored snapshot size
        row_count: Rows found by the verifier
        deleted: Whether the snapshot was deleted at the end
        duration_ms: Total duration
        failed_step: Step that failed, if any
        error: Error message if failed
    """

    success: bool
    size_bytes: int | None = None
    row_count: int | None = None
    deleted: bool = False
    duration_ms: int = 0
    failed_step: str | None = None
    error: str | None = None


class DemoTool:
    """Runs the store/retrieve/verify round trip.

    Example:
        >>> tool = DemoTool(VaultConfig.from_env())
        >>> result = await tool.run()
        >>> print(f"Verified {result.row_count} users")
    """

    def __init__(
        self,
        config: VaultConfig,
        data_dir: str | None = None,
        keep: bool = False,
        object_store: ObjectStore | None = None,
    ) -> None:
        """Initialize the demo tool.

        Args:
            config: duckvault configuration
            data_dir: Directory for the local files (defaults to config.storage.data_dir)
            keep: Leave the snapshot in the object store afterwards
            object_store: Backend to use instead of one created from config
        """
        self.config = config
        self.data_dir = Path(data_dir or config.storage.data_dir)
        self.keep = keep
        self.object_store = object_store

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.config.snapshot.name

    @property
    def retrieved_path(self) -> Path:
        stem = Path(self.config.snapshot.name)
        return self.data_dir / f"{stem.stem}_retrieved{stem.suffix}"

    async def run(self) -> DemoResult:
        """Execute the demo.

        Returns:
            DemoResult indicating success/failure
        """
        start_time = time.time()
        result = DemoResult(success=False)
        step = "create"

        try:
            logger.info("Creating sample database", extra={"path": str(self.db_path)})
            create_sample_database(self.db_path)

            step = "open"
            async with open_snapshot_store(self.config, self.object_store) as store:
                step = "store"
                logger.info("Storing database", extra={"bucket": store.bucket})
                await store.store(self.db_path)

                step = "info"
                info = await store.info()
                result.size_bytes = info.size_bytes
                logger.info(
                    f"Database stored: Size={info.size_bytes} bytes, ModTime={info.modified_at}"
                )

                step = "retrieve"
                logger.info("Retrieving database", extra={"path": str(self.retrieved_path)})
                await store.retrieve(self.retrieved_path)

                step = "verify"
                verifier = Verifier(
                    table=self.config.verifier.table,
                    expected_rows=self.config.verifier.expected_rows
                    if self.config.verifier.expected_rows is not None
                    else len(SAMPLE_USERS),
                )
                verification = await verifier.verify_async(self.retrieved_path)
                result.row_count = verification.row_count

                if not self.keep:
                    step = "delete"
                    await store.delete()
                    result.deleted = True

            result.success = True

        except VaultError as e:
            logger.error(f"Demo failed at {step}: {e}", exc_info=True)
            result.failed_step = step
            result.error = str(e)

        result.duration_ms = int((time.time() - start_time) * 1000)
        return result
