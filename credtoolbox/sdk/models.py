"""Pydantic models for credential types and usage statistics.

Python attributes are snake_case; documents persisted in the store and
payloads exchanged with callers use the camelCase aliases.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# lastCreated / lastUsed value when nothing was seen in the window
NEVER = 0.0


def utc_now() -> float:
    """Current unix timestamp in seconds."""
    return datetime.now(timezone.utc).timestamp()


class StoreModel(BaseModel):
    """Base model mapping snake_case attributes to camelCase documents."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict[str, Any]:
        """Serialize to the persisted (aliased) form."""
        return self.model_dump(by_alias=True, exclude_none=True)


class CredentialTypeMedium(str, Enum):
    """Origin of a credential type's context URL."""
    HTTPS = "https"
    EID_CHAIN = "eid_chain"


class CredentialTypeWithContext(StoreModel):
    """A (context, shortType) pair as referenced by usage statistics."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    context: str
    short_type: str


class ContextPayload(StoreModel):
    """One stored version of a credential type's JSON-LD payload."""

    insert_date: float = Field(..., description="Unix timestamp of this version")
    payload: str = Field(..., description="Serialized JSON-LD payload")


class ElastosEIDChainInfo(StoreModel):
    publisher: str | None = Field(default=None, description="DID of the publishing user")


class UsageCount(StoreModel):
    """Distinct users seen for an application or an issuer."""

    did: str
    users: int
    name: str | None = None
    icon: str | None = None


class CredentialTypeAggregatedStats(StoreModel):
    """Rolling-window statistics attached to a credential type."""

    top_using_apps: list[UsageCount] = Field(default_factory=list)
    top_issuers: list[UsageCount] = Field(default_factory=list)
    total_users: int = 0
    total_credentials: int = 0
    last_created: float = NEVER
    last_used: float = NEVER


class CredentialType(StoreModel):
    """Cached, searchable credential type record."""

    medium: CredentialTypeMedium
    context: str = Field(..., description="Context URL, unique together with short_type")
    short_type: str = Field(..., description="Type name defined inside the context")
    description: str | None = None
    context_payloads: list[ContextPayload] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    creation_date: float
    elastos_eid_chain: ElastosEIDChainInfo | None = Field(default=None, alias="elastosEIDChain")
    last_month_stats: CredentialTypeAggregatedStats | None = None

    @property
    def latest_payload(self) -> str | None:
        """Most recently appended payload version."""
        if not self.context_payloads:
            return None
        return self.context_payloads[-1].payload


class OwnedCredential(StoreModel):
    issuance_date: float
    issuer: str | None = None
    types: list[CredentialTypeWithContext] = Field(default_factory=list)


class UsedCredential(StoreModel):
    operation: Literal["request", "import"]
    used_at: float
    types: list[CredentialTypeWithContext] = Field(default_factory=list)
    app_did: str | None = None


class RawUsageSnapshot(StoreModel):
    """One user's complete usage report, as submitted by a wallet."""

    user_id: str = Field(..., min_length=1)
    owned_credentials: list[OwnedCredential] = Field(default_factory=list)
    used_credentials: list[UsedCredential] = Field(default_factory=list)


class StoredUsageSnapshot(RawUsageSnapshot):
    created_at: float


class AggregationReport(BaseModel):
    """Outcome of one aggregation pass, for operational visibility."""

    processed_snapshots: int = 0
    updated_types: int = 0
    skipped_types: list[CredentialTypeWithContext] = Field(default_factory=list)
    failed_types: list[CredentialTypeWithContext] = Field(default_factory=list)


class PreloadReport(BaseModel):
    imported: list[str] = Field(default_factory=list)
    unchanged: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
