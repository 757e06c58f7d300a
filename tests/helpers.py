"""Test helper functions for DRY code and simplified test patterns.

Provides an in-memory stand-in for the subset of the pymongo collection API
used by the toolbox, plus builders for common test documents.
"""

from __future__ import annotations

import copy
import itertools
import re
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from pymongo.errors import DuplicateKeyError

from credtoolbox.sdk.models import (
    CredentialTypeWithContext,
    OwnedCredential,
    RawUsageSnapshot,
    UsedCredential,
)

_MISSING = object()


@dataclass
class InsertOneResult:
    inserted_id: int


@dataclass
class UpdateResult:
    matched_count: int
    modified_count: int


class MemoryCollection:
    """In-memory document collection with pymongo-like semantics.

    Supports equality on (dotted, array-traversing) paths, ``$gte``, ``$ne``,
    ``$regex``/``$options``, sorting with missing values lowest, ``limit``,
    and ``$set``/``$push`` updates. ``unique`` lists field groups that behave
    like unique indexes.
    """

    def __init__(self, unique: Sequence[Sequence[str]] = ()):
        self.documents: list[dict[str, Any]] = []
        self.unique = [tuple(fields) for fields in unique]
        self._ids = itertools.count(1)
        self.indexes: list[Any] = []

    def find_one(self, filter: Mapping[str, Any] | None = None) -> dict[str, Any] | None:
        for document in self.documents:
            if _matches(document, filter or {}):
                return copy.deepcopy(document)
        return None

    def find(
        self,
        filter: Mapping[str, Any] | None = None,
        sort: Sequence[tuple[str, int]] | None = None,
        limit: int = 0,
    ) -> Iterator[dict[str, Any]]:
        results = [copy.deepcopy(d) for d in self.documents if _matches(d, filter or {})]
        for path, direction in reversed(list(sort or [])):
            results.sort(key=lambda d, p=path: _sort_key(d, p), reverse=direction < 0)
        if limit:
            results = results[:limit]
        return iter(results)

    def insert_one(self, document: Mapping[str, Any]) -> InsertOneResult:
        stored = copy.deepcopy(dict(document))
        for fields in self.unique:
            key = {f: stored.get(f) for f in fields}
            if self.find_one(key) is not None:
                raise DuplicateKeyError(f"duplicate key {key}")
        stored.setdefault("_id", next(self._ids))
        self.documents.append(stored)
        return InsertOneResult(inserted_id=stored["_id"])

    def update_one(self, filter: Mapping[str, Any], update: Mapping[str, Any]) -> UpdateResult:
        for document in self.documents:
            if not _matches(document, filter):
                continue
            for path, value in update.get("$set", {}).items():
                _set_path(document, path, copy.deepcopy(value))
            for path, value in update.get("$push", {}).items():
                document.setdefault(path, []).append(copy.deepcopy(value))
            return UpdateResult(matched_count=1, modified_count=1)
        return UpdateResult(matched_count=0, modified_count=0)

    def create_indexes(self, indexes: list[Any]) -> list[str]:
        self.indexes.extend(indexes)
        return [getattr(index, "document", {}).get("name", "") for index in indexes]


def _resolve(value: Any, parts: list[str]) -> list[Any]:
    """Values reachable at a dotted path, traversing arrays like MongoDB."""
    if not parts:
        if isinstance(value, list):
            return list(value) + [value]
        return [value]
    if isinstance(value, list):
        return [v for item in value for v in _resolve(item, parts)]
    if isinstance(value, dict) and parts[0] in value:
        return _resolve(value[parts[0]], parts[1:])
    return []


def _matches(document: Mapping[str, Any], filter: Mapping[str, Any]) -> bool:
    for path, condition in filter.items():
        candidates = _resolve(document, path.split("."))
        if isinstance(condition, dict) and any(k.startswith("$") for k in condition):
            if not _matches_operators(candidates, condition):
                return False
        elif condition not in candidates:
            return False
    return True


def _matches_operators(candidates: list[Any], condition: Mapping[str, Any]) -> bool:
    for operator, operand in condition.items():
        if operator == "$gte":
            if not any(isinstance(c, (int, float)) and c >= operand for c in candidates):
                return False
        elif operator == "$ne":
            if operand in candidates:
                return False
        elif operator == "$regex":
            flags = re.IGNORECASE if "i" in condition.get("$options", "") else 0
            pattern = re.compile(operand, flags)
            if not any(isinstance(c, str) and pattern.search(c) for c in candidates):
                return False
        elif operator == "$options":
            continue
        else:
            raise NotImplementedError(operator)
    return True


def _sort_key(document: Mapping[str, Any], path: str) -> tuple[int, Any]:
    value: Any = document
    for part in path.split("."):
        if not isinstance(value, dict) or part not in value:
            return (0, 0)
        value = value[part]
    return (1, value)


def _set_path(document: dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    target = document
    for part in parts[:-1]:
        target = target.setdefault(part, {})
    target[parts[-1]] = value


def credential_types_collection() -> MemoryCollection:
    return MemoryCollection(unique=[("context", "shortType")])


def raw_stats_collection() -> MemoryCollection:
    return MemoryCollection(unique=[("userId",)])


def type_ref(context: str, short_type: str) -> CredentialTypeWithContext:
    return CredentialTypeWithContext(context=context, short_type=short_type)


def owned(issuance_date: float, *types: CredentialTypeWithContext, issuer: str | None = None) -> OwnedCredential:
    return OwnedCredential(issuance_date=issuance_date, issuer=issuer, types=list(types))


def used(
    used_at: float, *types: CredentialTypeWithContext, app_did: str | None = None, operation: str = "request"
) -> UsedCredential:
    return UsedCredential(operation=operation, used_at=used_at, types=list(types), app_did=app_did)  # type: ignore[arg-type]


def snapshot(
    user_id: str,
    owned_credentials: list[OwnedCredential] | None = None,
    used_credentials: list[UsedCredential] | None = None,
) -> RawUsageSnapshot:
    return RawUsageSnapshot(
        user_id=user_id,
        owned_credentials=owned_credentials or [],
        used_credentials=used_credentials or [],
    )


class FakeClock:
    """Settable clock returning unix timestamps."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
