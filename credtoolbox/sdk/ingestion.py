"""Raw usage statistics ingestion.

Wallets send their whole usage report in one block, but the two halves are
stored differently:

- owned credentials: the wallet always sends its complete current list, so
  the stored list is overwritten
- used credentials: the wallet sends then forgets them, so stored entries
  are appended, skipping those already received (same ``usedAt``)
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from pymongo.errors import DuplicateKeyError

from credtoolbox.sdk.errors import Outcome, internal_server_error, success
from credtoolbox.sdk.models import RawUsageSnapshot, UsedCredential, utc_now
from credtoolbox.sdk.store import DocumentCollection

logger = logging.getLogger(__name__)


class StatsIngestion:
    """Persists per-user usage snapshots into the raw statistics collection."""

    def __init__(self, collection: DocumentCollection, clock: Callable[[], float] = utc_now):
        if collection is None:
            raise ValueError("Raw statistics collection is required")

        self.collection = collection
        self.clock = clock

    def ingest(self, snapshot: RawUsageSnapshot) -> Outcome[None]:
        """Store a usage snapshot for its user."""
        try:
            self._ingest(snapshot)
        except Exception as e:
            return internal_server_error(e)
        return success()

    def _ingest(self, snapshot: RawUsageSnapshot) -> None:
        user_filter = {"userId": snapshot.user_id}

        if self.collection.find_one(user_filter) is None:
            document = snapshot.to_document()
            document["createdAt"] = self.clock()
            try:
                self.collection.insert_one(document)
                logger.info("Stored first usage snapshot for user %s", snapshot.user_id)
                return
            except DuplicateKeyError:
                logger.info("Usage snapshot for user %s inserted concurrently, merging", snapshot.user_id)

        self.collection.update_one(
            user_filter,
            {"$set": {"ownedCredentials": [owned.to_document() for owned in snapshot.owned_credentials]}},
        )

        appended = sum(1 for used in snapshot.used_credentials if self._append_used(snapshot.user_id, used))
        logger.info(
            "Updated usage snapshot for user %s: %d owned, %d new used entries",
            snapshot.user_id, len(snapshot.owned_credentials), appended,
        )

    def _append_used(self, user_id: str, used: UsedCredential) -> bool:
        """Append a used entry unless one with the same ``usedAt`` is stored."""
        result = self.collection.update_one(
            {"userId": user_id, "usedCredentials.usedAt": {"$ne": used.used_at}},
            {"$push": {"usedCredentials": used.to_document()}},
        )
        return result.matched_count > 0
