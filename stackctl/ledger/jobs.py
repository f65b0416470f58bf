"""
Typed view over the ledger for reserved job snapshots.
"""

import logging

from pydantic import ValidationError

from stackctl.constants import JOB_KEY_PREFIX
from stackctl.exceptions import LedgerCorruptError
from stackctl.ledger.store import Ledger
from stackctl.types.job import JobSnapshot

logger = logging.getLogger(__name__)


class JobLedger:
    """
    Stores JobSnapshot records keyed by job id.

    Entries are advisory: they record what this controller believes it has
    reserved, but the upstream queue stays the authority on ownership.
    """

    def __init__(self, ledger: Ledger, ttl_seconds: float = 0):
        """
        Initialize the job ledger.

        Args:
            ledger: Backing store.
            ttl_seconds: TTL applied to every snapshot written.
        """
        self._ledger = ledger
        self._ttl_seconds = ttl_seconds

    @property
    def store(self) -> Ledger:
        return self._ledger

    @staticmethod
    def _key(job_id: str) -> str:
        return f"{JOB_KEY_PREFIX}{job_id}"

    def set(self, job_id: str, snapshot: JobSnapshot) -> None:
        """
        Record a snapshot.

        Raises:
            LedgerFullError: If the ledger has no room for a new job.
        """
        self._ledger.set(
            self._key(job_id),
            snapshot.model_dump_json(),
            self._ttl_seconds,
        )
        logger.info("Stored job", extra={"job_id": job_id})

    def get(self, job_id: str) -> tuple[JobSnapshot | None, bool]:
        """
        Read a snapshot.

        Returns:
            Tuple of (snapshot, found).

        Raises:
            LedgerCorruptError: If the stored value is not a valid snapshot.
        """
        raw, found = self._ledger.get(self._key(job_id))
        if not found:
            return None, False

        try:
            return JobSnapshot.model_validate_json(raw), True
        except ValidationError as e:
            raise LedgerCorruptError(
                f"ledger entry for job {job_id} is corrupt: {e.error_count()} validation error(s)"
            ) from e

    def delete(self, job_id: str) -> None:
        """Remove a snapshot."""
        self._ledger.delete(self._key(job_id))
        logger.info("Deleted job", extra={"job_id": job_id})

    def __len__(self) -> int:
        return len(self._ledger)
