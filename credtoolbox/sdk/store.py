"""Document store capability consumed by the core.

The core talks to MongoDB collections through the small subset of the
pymongo ``Collection`` API described by ``DocumentCollection``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Protocol

from pymongo import ASCENDING, IndexModel

CREDENTIAL_TYPES_COLLECTION = "credential_types"
RAW_STATS_COLLECTION = "raw-statistics"


class DocumentCollection(Protocol):
    """Subset of ``pymongo.collection.Collection`` used by the core."""

    def find_one(self, filter: Mapping[str, Any] | None = None, *args: Any, **kwargs: Any) -> Mapping[str, Any] | None:
        ...

    def find(self, filter: Mapping[str, Any] | None = None, *args: Any, **kwargs: Any) -> Iterable[Mapping[str, Any]]:
        ...

    def insert_one(self, document: Any, *args: Any, **kwargs: Any) -> Any:
        ...

    def update_one(self, filter: Mapping[str, Any], update: Any, *args: Any, **kwargs: Any) -> Any:
        ...


def credential_type_indexes() -> Sequence[IndexModel]:
    return [
        IndexModel([("context", ASCENDING), ("shortType", ASCENDING)], unique=True, name="context_short_type"),
        IndexModel([("keywords", ASCENDING)], name="keywords"),
    ]


def raw_stats_indexes() -> Sequence[IndexModel]:
    return [
        IndexModel([("userId", ASCENDING)], unique=True, name="user_id"),
        IndexModel([("createdAt", ASCENDING)], name="created_at"),
    ]


def ensure_indexes(db: Any) -> None:
    """Create the indexes both collections rely on. Idempotent."""
    db[CREDENTIAL_TYPES_COLLECTION].create_indexes(list(credential_type_indexes()))
    db[RAW_STATS_COLLECTION].create_indexes(list(raw_stats_indexes()))
