"""Helpers for credential types published on the Elastos identity chain.

EID chain types are referenced two ways:

- as a context URL: ``did://elastos/<did-identifier>/<ShortType>``
- as a DID document service id: ``did:elastos:<did-identifier>#<ShortType>``
"""

from __future__ import annotations

import re
from typing import Any, Protocol

DID_PREFIX = "did:"
ELASTOS_DID_PREFIX = "did:elastos:"
ELASTOS_CONTEXT_PREFIX = "did://elastos/"

_CONTEXT_PATTERN = re.compile(r"^did://elastos/([a-zA-Z0-9]+)/([a-zA-Z0-9]+)#?")


class ContextCredentialResolver(Protocol):
    """Identity chain lookup for published credential type definitions."""

    def __call__(self, service_id: str) -> dict[str, Any] | None:
        """Return the credential subject properties behind ``service_id``, or None."""
        ...


def is_eid_chain_context(context: str) -> bool:
    return context.startswith(DID_PREFIX)


def context_to_service_id(context: str) -> str | None:
    """did://elastos/abcdef/MyCred -> did:elastos:abcdef#MyCred"""
    match = _CONTEXT_PATTERN.match(context or "")
    if not match:
        return None
    return f"{ELASTOS_DID_PREFIX}{match.group(1)}#{match.group(2)}"


def service_id_to_publisher_did(service_id: str) -> str | None:
    """did:elastos:abcdef#MyCred -> did:elastos:abcdef"""
    if not service_id or not service_id.startswith(ELASTOS_DID_PREFIX):
        return None
    return service_id.split("#", 1)[0]


def service_id_to_short_type(service_id: str) -> str | None:
    """did:elastos:abcdef#MyCred -> MyCred"""
    if not service_id or not service_id.startswith(ELASTOS_DID_PREFIX):
        return None
    _, _, fragment = service_id.partition("#")
    return fragment or None


def service_id_to_context(service_id: str) -> str | None:
    """did:elastos:abcdef#MyCred -> did://elastos/abcdef/MyCred"""
    publisher = service_id_to_publisher_did(service_id)
    short_type = service_id_to_short_type(service_id)
    if not publisher or not short_type:
        return None
    identifier = publisher[len(ELASTOS_DID_PREFIX):]
    return f"{ELASTOS_CONTEXT_PREFIX}{identifier}/{short_type}"
