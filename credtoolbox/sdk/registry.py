"""Credential type registry.

The ``credential_types`` collection is a searchable cache of credential type
definitions. It is populated from several origins:

- preloaded HTTPS contexts fetched at setup
- types created by users and published on the identity chain
- EID chain types registered from their DID document service entry

Each (context, short type) pair maps to exactly one record. Publishing a
modified definition appends a new payload version to that record.
"""

from __future__ import annotations

import json
import logging
import re
import urllib.error
import urllib.request
from collections.abc import Callable
from typing import Any

from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError

from credtoolbox.sdk.builtins import PRELOADED_TYPES, get_built_in_description
from credtoolbox.sdk.eid import (
    ContextCredentialResolver,
    is_eid_chain_context,
    service_id_to_context,
    service_id_to_publisher_did,
    service_id_to_short_type,
)
from credtoolbox.sdk.errors import (
    ErrorType,
    Outcome,
    internal_server_error,
    invalid_param_error,
    state_error,
    success,
)
from credtoolbox.sdk.keywords import extract_keywords
from credtoolbox.sdk.models import (
    CredentialType,
    CredentialTypeAggregatedStats,
    CredentialTypeMedium,
    PreloadReport,
    utc_now,
)
from credtoolbox.sdk.store import DocumentCollection

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 30
FETCH_TIMEOUT_SECONDS = 30

ContextFetcher = Callable[[str], dict[str, Any]]


def canonical_payload(payload: dict[str, Any]) -> str:
    """Serialize a payload deterministically for storage and comparison."""
    return json.dumps(payload, sort_keys=True, separators=(',', ':'), ensure_ascii=False)


def fetch_context_json(url: str) -> dict[str, Any]:
    """Download a JSON-LD context document."""
    req = urllib.request.Request(url, headers={"Accept": "application/json"})
    try:
        with urllib.request.urlopen(req, timeout=FETCH_TIMEOUT_SECONDS) as resp:
            data = json.loads(resp.read().decode("utf-8"))
    except urllib.error.HTTPError as e:
        raise ValueError(f"HTTP {e.code} fetching {url}")
    except urllib.error.URLError as e:
        raise ValueError(f"Cannot reach {url}: {e.reason}")
    if not isinstance(data, dict):
        raise ValueError(f"Context at {url} is not a JSON object")
    return data


class TypeRegistry:
    """Upsert, lookup and search of credential types."""

    def __init__(self, collection: DocumentCollection, clock: Callable[[], float] = utc_now):
        """Initialize registry.

        Args:
            collection: The ``credential_types`` document collection
            clock: Returns the current unix timestamp
        """
        if collection is None:
            raise ValueError("Credential types collection is required")

        self.collection = collection
        self.clock = clock

    def upsert(
        self,
        context: str,
        short_type: str,
        payload: dict[str, Any],
        description: str = "",
        publisher_did: str | None = None,
    ) -> Outcome[CredentialType]:
        """Create a credential type, or append a new version of its payload.

        Fails with STATE_ERROR when the exact same payload is already stored
        for this type.
        """
        if not context or not short_type:
            return invalid_param_error("Context and short type are required")
        if not isinstance(payload, dict):
            return invalid_param_error("Credential type payload must be a JSON object")

        logger.info("Upserting credential type %s %s (publisher %s)", context, short_type, publisher_did)
        try:
            return self._upsert(context, short_type, payload, description or "", publisher_did)
        except Exception as e:
            return internal_server_error(e)

    def _upsert(
        self,
        context: str,
        short_type: str,
        payload: dict[str, Any],
        description: str,
        publisher_did: str | None,
    ) -> Outcome[CredentialType]:
        keywords = self._build_keywords(context, short_type, payload, publisher_did)
        payload_str = canonical_payload(payload)
        now = self.clock()

        existing = self.collection.find_one({"context": context, "shortType": short_type})
        if existing is None:
            logger.info("Credential type doesn't exist, creating a new entry")
            document = self._new_document(context, short_type, payload_str, description, keywords, publisher_did, now)
            try:
                self.collection.insert_one(document)
                return success(self._load(context, short_type))
            except DuplicateKeyError:
                logger.info("Credential type %s %s inserted concurrently, appending instead", context, short_type)

        return self._append_version(context, short_type, payload_str, description, keywords, now)

    def _append_version(
        self,
        context: str,
        short_type: str,
        payload_str: str,
        description: str,
        keywords: list[str],
        now: float,
    ) -> Outcome[CredentialType]:
        """Append a payload version unless an identical one is already stored.

        The duplicate check is part of the update filter, so the check and the
        append happen in one single-document write.
        """
        result = self.collection.update_one(
            {
                "context": context,
                "shortType": short_type,
                "contextPayloads.payload": {"$ne": payload_str},
            },
            {
                "$push": {"contextPayloads": {"insertDate": now, "payload": payload_str}},
                "$set": {"description": description, "keywords": keywords},
            },
        )
        if result.matched_count == 0:
            return state_error(f"Credential type already exists - {context} - {short_type}")

        logger.info("Appended a new version to credential type %s %s", context, short_type)
        return success(self._load(context, short_type))

    def _new_document(
        self,
        context: str,
        short_type: str,
        payload_str: str,
        description: str,
        keywords: list[str],
        publisher_did: str | None,
        now: float,
    ) -> dict[str, Any]:
        document: dict[str, Any] = {
            "context": context,
            "shortType": short_type,
            "description": description,
            "contextPayloads": [{"insertDate": now, "payload": payload_str}],
            "creationDate": now,
            "keywords": keywords,
        }
        if is_eid_chain_context(context):
            document["medium"] = CredentialTypeMedium.EID_CHAIN.value
            document["elastosEIDChain"] = {"publisher": publisher_did}
        else:
            document["medium"] = CredentialTypeMedium.HTTPS.value
        return document

    def _build_keywords(
        self, context: str, short_type: str, payload: dict[str, Any], publisher_did: str | None
    ) -> list[str]:
        keywords = extract_keywords(payload)
        keywords.update([context, short_type])
        if publisher_did:
            keywords.add(publisher_did)
        return sorted(keywords)

    def _load(self, context: str, short_type: str) -> CredentialType | None:
        document = self.collection.find_one({"context": context, "shortType": short_type})
        if document is None:
            return None
        return CredentialType.model_validate(document)

    def get_by_context_and_type(self, context: str, short_type: str | None = None) -> Outcome[CredentialType | None]:
        """Find a credential type. Without ``short_type``, any type of the context matches."""
        if not context:
            return invalid_param_error("Context is required")

        query: dict[str, Any] = {"context": context}
        if short_type:
            query["shortType"] = short_type

        try:
            document = self.collection.find_one(query)
            if document is None:
                return success(None)
            credential_type = CredentialType.model_validate(document)
            self.apply_fallback_description(credential_type)
        except Exception as e:
            return internal_server_error(e)

        return success(credential_type)

    def search(self, query: str = "", limit: int = DEFAULT_SEARCH_LIMIT) -> Outcome[list[CredentialType]]:
        """Search types by keyword, most used first.

        ``query`` matches any keyword as a case-insensitive substring; an
        empty query matches every type.
        """
        if limit <= 0:
            return invalid_param_error("Search limit must be positive")

        mongo_filter: dict[str, Any] = {}
        if query:
            mongo_filter["keywords"] = {"$regex": re.escape(query), "$options": "i"}

        try:
            cursor = self.collection.find(
                mongo_filter,
                sort=[("lastMonthStats.totalUsers", DESCENDING), ("lastMonthStats.totalCredentials", DESCENDING)],
                limit=limit,
            )
            credential_types = [CredentialType.model_validate(doc) for doc in cursor]
        except Exception as e:
            return internal_server_error(e)

        for credential_type in credential_types:
            self.apply_fallback_description(credential_type)
        return success(credential_types)

    def apply_fallback_description(self, credential_type: CredentialType | None) -> None:
        """Fill a missing description from the built-in table (display only, never saved)."""
        if credential_type is None or credential_type.description:
            return
        builtin = get_built_in_description(credential_type.context, credential_type.short_type)
        if builtin:
            credential_type.description = builtin

    def set_stats(self, context: str, short_type: str, stats: CredentialTypeAggregatedStats) -> bool:
        """Replace the aggregated statistics of a type. Returns False if the type is unknown."""
        result = self.collection.update_one(
            {"context": context, "shortType": short_type},
            {"$set": {"lastMonthStats": stats.to_document()}},
        )
        return result.matched_count > 0

    def preload(self, fetch: ContextFetcher | None = None) -> PreloadReport:
        """Import the built-in HTTPS types, fetching each context URL."""
        fetch = fetch or fetch_context_json
        logger.info("Refreshing preloaded types, fetching context urls")
        report = PreloadReport()

        for context, short_type in PRELOADED_TYPES:
            label = f"{context}#{short_type}"
            try:
                logger.info("Fetching %s", context)
                payload = fetch(context)
            except Exception as e:
                logger.warning("Could not fetch %s: %s", context, e)
                report.failed.append(label)
                continue

            outcome = self.upsert(context, short_type, payload)
            if outcome.ok:
                report.imported.append(label)
            elif outcome.error is not None and outcome.error.error_type == ErrorType.STATE_ERROR:
                report.unchanged.append(label)
            else:
                report.failed.append(label)

        logger.info(
            "Preloaded types refresh completed: %d imported, %d unchanged, %d failed",
            len(report.imported), len(report.unchanged), len(report.failed),
        )
        return report

    def register_eid_type(self, service_id: str, resolver: ContextCredentialResolver) -> Outcome[CredentialType]:
        """Register a type published on the EID chain from its DID service id.

        ``resolver`` looks up the context credential the service points to and
        returns its subject properties: the JSON-LD ``definition`` and an
        optional ``description``. It is supplied by the identity chain layer
        (DID resolution is not done here) when a user publishes a type.
        """
        publisher_did = service_id_to_publisher_did(service_id)
        short_type = service_id_to_short_type(service_id)
        context = service_id_to_context(service_id)
        if not publisher_did or not short_type or not context:
            return invalid_param_error(f"Invalid service id {service_id}")

        try:
            properties = resolver(service_id)
        except Exception as e:
            return internal_server_error(e)

        if properties is None:
            return invalid_param_error(f"Credential for {service_id} not found on the EID chain")

        definition = properties.get("definition")
        if not isinstance(definition, dict):
            return invalid_param_error("Context payload not found in DID document")

        description = properties.get("description")
        if not isinstance(description, str):
            description = ""

        return self.upsert(context, short_type, definition, description, publisher_did)
