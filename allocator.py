"""Sequential index-number allocation.

Index numbers come from a single counter document,
``metadata/user_counter = {"current": <last issued>}``. Each allocation is one
read-modify-write applied through ``DocumentStore.transact``; when another
registration commits first the whole step is retried.
"""

import logging
import random
import time
from typing import Optional

from config import ALLOCATION_BACKOFF_SECONDS, ALLOCATION_MAX_RETRIES, INDEX_ORIGIN
from database import DocumentStore
from exceptions import AllocationConflictError, AllocationFailedError

logger = logging.getLogger(__name__)

COUNTER_COLLECTION = "metadata"
COUNTER_KEY = "user_counter"


class IndexAllocator:
    """Hands out strictly increasing, collision-free index numbers."""

    def __init__(
        self,
        store: DocumentStore,
        origin: int = INDEX_ORIGIN,
        max_retries: int = ALLOCATION_MAX_RETRIES,
        backoff_seconds: float = ALLOCATION_BACKOFF_SECONDS,
    ):
        """Initialize IndexAllocator.

        Args:
            store: Document store holding the counter document.
            origin: Value issued by the very first allocation.
            max_retries: Attempts before AllocationFailedError is raised.
            backoff_seconds: Upper bound of the random sleep between attempts.
        """
        self.store = store
        self.origin = origin
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds

    def _bump(self, doc: Optional[dict]) -> dict:
        if doc is None:
            return {"current": self.origin}
        return {"current": int(doc["current"]) + 1}

    def current(self) -> Optional[int]:
        """Return the last issued index number, or None before the first one."""
        doc = self.store.get(COUNTER_COLLECTION, COUNTER_KEY)
        return None if doc is None else int(doc["current"])

    def allocate(self) -> int:
        """Issue the next index number.

        Returns:
            The issued number. Its counter write has already committed.

        Raises:
            AllocationFailedError: If every attempt lost to a concurrent writer.
        """
        for attempt in range(1, self.max_retries + 1):
            try:
                committed = self.store.transact(
                    COUNTER_COLLECTION, COUNTER_KEY, self._bump
                )
            except AllocationConflictError:
                logger.debug("Index counter contended (attempt %d)", attempt)
                if attempt < self.max_retries and self.backoff_seconds > 0:
                    time.sleep(random.uniform(0, self.backoff_seconds))
                continue
            index = int(committed["current"])
            logger.info("Allocated index number %d", index)
            return index

        logger.error("Index allocation failed after %d attempts", self.max_retries)
        raise AllocationFailedError(self.max_retries)
