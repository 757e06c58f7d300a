"""Test the credential type registry.

Uses the in-memory collection from tests.helpers, no MongoDB required.
"""

from __future__ import annotations

from unittest.mock import Mock

import pytest
from pymongo.errors import PyMongoError

from credtoolbox.sdk.builtins import PRELOADED_TYPES, W3C_CREDENTIALS_V1, get_built_in_description
from credtoolbox.sdk.errors import INTERNAL_ERROR_MESSAGE, ErrorType
from credtoolbox.sdk.models import CredentialTypeAggregatedStats, CredentialTypeMedium
from credtoolbox.sdk.registry import TypeRegistry, canonical_payload
from tests.helpers import FakeClock, MemoryCollection, credential_types_collection

CONTEXT = "https://ex.org/v1"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(1000.0)


@pytest.fixture
def collection() -> MemoryCollection:
    return credential_types_collection()


@pytest.fixture
def registry(collection: MemoryCollection, clock: FakeClock) -> TypeRegistry:
    return TypeRegistry(collection, clock=clock)


def _add_with_stats(registry: TypeRegistry, short_type: str, users: int | None, credentials: int = 0) -> None:
    registry.upsert(CONTEXT, short_type, {short_type.lower(): {}})
    if users is not None:
        stats = CredentialTypeAggregatedStats(total_users=users, total_credentials=credentials)
        assert registry.set_stats(CONTEXT, short_type, stats)


def test_registry_init_validation() -> None:
    """Test TypeRegistry initialization validation."""
    with pytest.raises(ValueError, match="collection is required"):
        TypeRegistry(None)  # type: ignore[arg-type]


def test_upsert_creates_https_type(registry: TypeRegistry) -> None:
    """Test first upsert creates a record with one version."""
    outcome = registry.upsert(CONTEXT, "Diploma", {"grade": {}}, "School diploma")

    assert outcome.ok
    credential_type = outcome.data
    assert credential_type.medium == CredentialTypeMedium.HTTPS
    assert credential_type.elastos_eid_chain is None
    assert credential_type.creation_date == 1000.0
    assert credential_type.description == "School diploma"
    assert len(credential_type.context_payloads) == 1
    assert credential_type.context_payloads[0].payload == canonical_payload({"grade": {}})
    assert {"grade", CONTEXT, "Diploma"} <= set(credential_type.keywords)


def test_upsert_creates_eid_chain_type(registry: TypeRegistry) -> None:
    """Test DID contexts are stored with the EID chain medium and publisher."""
    context = "did://elastos/insTmxdDDuS9wHHfeYD1h5C2onEHh3D8Vq/Diploma"
    publisher = "did:elastos:insTmxdDDuS9wHHfeYD1h5C2onEHh3D8Vq"

    outcome = registry.upsert(context, "Diploma", {"grade": {}}, publisher_did=publisher)

    assert outcome.ok
    assert outcome.data.medium == CredentialTypeMedium.EID_CHAIN
    assert outcome.data.elastos_eid_chain.publisher == publisher
    assert publisher in outcome.data.keywords


def test_upsert_appends_versions_and_rejects_duplicates(registry: TypeRegistry, clock: FakeClock) -> None:
    """Test distinct payloads append versions and a repeated payload is rejected."""
    first = registry.upsert(CONTEXT, "Diploma", {"grade": {}})
    clock.advance(60)
    second = registry.upsert(CONTEXT, "Diploma", {"grade": {}, "school": {}}, "v2")

    assert first.ok and second.ok
    assert len(second.data.context_payloads) == 2
    assert second.data.context_payloads[1].insert_date == 1060.0
    assert second.data.creation_date == 1000.0

    third = registry.upsert(CONTEXT, "Diploma", {"grade": {}, "school": {}})

    assert not third.ok
    assert third.error.error_type == ErrorType.STATE_ERROR
    assert "already exists" in third.error.message
    stored = registry.get_by_context_and_type(CONTEXT, "Diploma").data
    assert len(stored.context_payloads) == 2
    assert stored.description == "v2"


def test_upsert_rejects_any_earlier_version(registry: TypeRegistry) -> None:
    """Test republishing an older version is a duplicate too."""
    registry.upsert(CONTEXT, "Diploma", {"grade": {}})
    registry.upsert(CONTEXT, "Diploma", {"school": {}})

    outcome = registry.upsert(CONTEXT, "Diploma", {"grade": {}})

    assert outcome.error is not None
    assert outcome.error.error_type == ErrorType.STATE_ERROR


def test_upsert_replaces_keywords(registry: TypeRegistry) -> None:
    """Test keywords reflect only the newest payload."""
    registry.upsert(CONTEXT, "Diploma", {"grade": {}})
    outcome = registry.upsert(CONTEXT, "Diploma", {"school": {}})

    assert "school" in outcome.data.keywords
    assert "grade" not in outcome.data.keywords


def test_upsert_keeps_one_record_per_key(registry: TypeRegistry, collection: MemoryCollection) -> None:
    """Test (context, short type) stays a primary key."""
    registry.upsert(CONTEXT, "Diploma", {"grade": {}})
    registry.upsert(CONTEXT, "Diploma", {"school": {}})
    registry.upsert(CONTEXT, "Transcript", {"grade": {}})

    assert len(collection.documents) == 2


def test_upsert_insert_race_falls_back_to_append(collection: MemoryCollection, clock: FakeClock) -> None:
    """Test a concurrent first insert ends up appending a version."""
    registry = TypeRegistry(collection, clock=clock)
    registry.upsert(CONTEXT, "Diploma", {"grade": {}})
    real_find_one = collection.find_one
    calls = {"count": 0}

    def stale_find_one(filter=None):  # type: ignore[no-untyped-def]
        calls["count"] += 1
        return None if calls["count"] == 1 else real_find_one(filter)

    collection.find_one = stale_find_one  # type: ignore[method-assign]
    outcome = registry.upsert(CONTEXT, "Diploma", {"school": {}})

    assert outcome.ok
    assert len(outcome.data.context_payloads) == 2
    assert len(collection.documents) == 1


def test_upsert_validation(registry: TypeRegistry) -> None:
    """Test upsert parameter validation."""
    outcome = registry.upsert("", "Diploma", {})
    assert outcome.error.error_type == ErrorType.INVALID_PARAMETER

    outcome = registry.upsert(CONTEXT, "Diploma", ["not", "an", "object"])  # type: ignore[arg-type]
    assert outcome.error.error_type == ErrorType.INVALID_PARAMETER


def test_upsert_storage_fault_is_server_error() -> None:
    """Test storage exceptions become SERVER_ERROR without details."""
    collection = Mock()
    collection.find_one.side_effect = PyMongoError("connection refused at 10.0.0.3")
    registry = TypeRegistry(collection)

    outcome = registry.upsert(CONTEXT, "Diploma", {"grade": {}})

    assert outcome.error.error_type == ErrorType.SERVER_ERROR
    assert outcome.error.message == INTERNAL_ERROR_MESSAGE


def test_get_by_context_and_type(registry: TypeRegistry) -> None:
    """Test lookup with and without a short type."""
    registry.upsert(CONTEXT, "Diploma", {"grade": {}})

    assert registry.get_by_context_and_type(CONTEXT, "Diploma").data.short_type == "Diploma"
    assert registry.get_by_context_and_type(CONTEXT).data.short_type == "Diploma"

    missing = registry.get_by_context_and_type(CONTEXT, "Transcript")
    assert missing.ok
    assert missing.data is None


def test_get_malformed_record_is_server_error(registry: TypeRegistry, collection: MemoryCollection) -> None:
    """Test a stored record missing required fields becomes SERVER_ERROR."""
    collection.insert_one({"context": CONTEXT, "shortType": "Diploma"})

    outcome = registry.get_by_context_and_type(CONTEXT, "Diploma")

    assert outcome.error.error_type == ErrorType.SERVER_ERROR
    assert outcome.error.message == INTERNAL_ERROR_MESSAGE


def test_get_applies_fallback_description(registry: TypeRegistry, collection: MemoryCollection) -> None:
    """Test built-in descriptions are shown but never saved."""
    registry.upsert(W3C_CREDENTIALS_V1, "VerifiableCredential", {"@context": {"VerifiableCredential": {}}})

    credential_type = registry.get_by_context_and_type(W3C_CREDENTIALS_V1, "VerifiableCredential").data

    assert credential_type.description == get_built_in_description(W3C_CREDENTIALS_V1, "VerifiableCredential")
    assert collection.documents[0]["description"] == ""


def test_fallback_keeps_existing_description(registry: TypeRegistry) -> None:
    """Test a record's own description wins over the built-in one."""
    registry.upsert(W3C_CREDENTIALS_V1, "VerifiableCredential", {"a": {}}, "Custom")

    credential_type = registry.get_by_context_and_type(W3C_CREDENTIALS_V1, "VerifiableCredential").data

    assert credential_type.description == "Custom"


def test_search_is_case_insensitive_substring(registry: TypeRegistry) -> None:
    """Test search matches keyword substrings regardless of case."""
    registry.upsert(CONTEXT, "Diploma", {"graduationDate": {}})
    registry.upsert(CONTEXT, "Passport", {"nationality": {}})

    results = registry.search("GRADUATION").data

    assert [ct.short_type for ct in results] == ["Diploma"]


def test_search_escapes_regex_characters(registry: TypeRegistry) -> None:
    """Test the query is matched literally."""
    registry.upsert("https://ex.org/a+b", "Thing", {"field": {}})
    registry.upsert(CONTEXT, "Other", {"aab": {}})

    results = registry.search("a+b").data

    assert [ct.short_type for ct in results] == ["Thing"]


def test_search_empty_orders_by_usage(registry: TypeRegistry) -> None:
    """Test ordering by users, then credentials, with unranked types last."""
    _add_with_stats(registry, "NoStats", None)
    _add_with_stats(registry, "Few", 1, 10)
    _add_with_stats(registry, "ManyLowCreds", 5, 5)
    _add_with_stats(registry, "ManyHighCreds", 5, 9)

    results = registry.search("").data

    assert [ct.short_type for ct in results] == ["ManyHighCreds", "ManyLowCreds", "Few", "NoStats"]


def test_search_limit(registry: TypeRegistry) -> None:
    """Test results are capped, 30 by default."""
    for i in range(35):
        registry.upsert(CONTEXT, f"Type{i}", {f"field{i}": {}})

    assert len(registry.search("").data) == 30
    assert len(registry.search("", limit=5).data) == 5
    assert registry.search("", limit=0).error.error_type == ErrorType.INVALID_PARAMETER


def test_set_stats_unknown_type(registry: TypeRegistry) -> None:
    """Test stats are not written for unknown types."""
    assert registry.set_stats(CONTEXT, "Unknown", CredentialTypeAggregatedStats()) is False


def test_set_stats_touches_only_stats(registry: TypeRegistry) -> None:
    """Test stats replacement leaves versions, keywords and description alone."""
    before = registry.upsert(CONTEXT, "Diploma", {"grade": {}}, "desc").data

    registry.set_stats(CONTEXT, "Diploma", CredentialTypeAggregatedStats(total_users=3))
    after = registry.get_by_context_and_type(CONTEXT, "Diploma").data

    assert after.last_month_stats.total_users == 3
    assert after.context_payloads == before.context_payloads
    assert after.keywords == before.keywords
    assert after.description == "desc"


def test_preload(registry: TypeRegistry) -> None:
    """Test preloading imports fetched contexts and reports failures."""
    failing = PRELOADED_TYPES[0][0]

    def fetch(url: str) -> dict:
        if url == failing:
            raise ValueError("HTTP 500")
        return {"@context": {"field": {"@id": url}}}

    report = registry.preload(fetch=fetch)

    assert f"{failing}#{PRELOADED_TYPES[0][1]}" in report.failed
    assert len(report.imported) == len(PRELOADED_TYPES) - 1 - len(report.unchanged)

    again = registry.preload(fetch=fetch)
    assert again.imported == []
    assert len(again.unchanged) == len(PRELOADED_TYPES) - 1


def test_register_eid_type(registry: TypeRegistry) -> None:
    """Test registering a type from its DID service id."""
    service_id = "did:elastos:insTmxdDDuS9wHHfeYD1h5C2onEHh3D8Vq#Diploma"
    resolver = Mock(return_value={"definition": {"grade": {}}, "description": "A diploma"})

    outcome = registry.register_eid_type(service_id, resolver)

    resolver.assert_called_once_with(service_id)
    assert outcome.ok
    assert outcome.data.context == "did://elastos/insTmxdDDuS9wHHfeYD1h5C2onEHh3D8Vq/Diploma"
    assert outcome.data.medium == CredentialTypeMedium.EID_CHAIN
    assert outcome.data.elastos_eid_chain.publisher == "did:elastos:insTmxdDDuS9wHHfeYD1h5C2onEHh3D8Vq"
    assert outcome.data.description == "A diploma"


def test_register_eid_type_failures(registry: TypeRegistry) -> None:
    """Test EID registration errors."""
    service_id = "did:elastos:insTmxdDDuS9wHHfeYD1h5C2onEHh3D8Vq#Diploma"

    assert registry.register_eid_type("https://ex.org", Mock()).error.error_type == ErrorType.INVALID_PARAMETER
    assert registry.register_eid_type(service_id, Mock(return_value=None)).error.error_type == ErrorType.INVALID_PARAMETER
    no_definition = registry.register_eid_type(service_id, Mock(return_value={"description": "x"}))
    assert no_definition.error.error_type == ErrorType.INVALID_PARAMETER
    broken = registry.register_eid_type(service_id, Mock(side_effect=RuntimeError("chain down")))
    assert broken.error.error_type == ErrorType.SERVER_ERROR
