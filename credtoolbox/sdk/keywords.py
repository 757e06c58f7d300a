"""Keyword extraction from JSON-LD context payloads.

Keywords are the property names a credential type defines, so that types
can be searched by the fields they carry.
"""

from __future__ import annotations

from typing import Any

# JSON-LD structural terms, never useful as search terms
EXCLUDED_WORDS = frozenset([
    "@context", "id", "type", "credentialSubject", "@id",
    "@type", "schema", "dc", "sec", "xsd", "@version",
])

# UI-only sub-objects, skipped entirely
EXCLUDED_OBJECTS = frozenset(["displayable"])


def extract_keywords(payload: dict[str, Any]) -> set[str]:
    """Return the searchable terms of a JSON-LD payload.

    Property names are collected recursively through nested objects. The
    ``credentialSubject.id`` value, when present, is added as well so types
    can be found by subject identifier.
    """
    keywords: set[str] = set()
    _collect_keys(payload, keywords)

    subject = payload.get("credentialSubject")
    if isinstance(subject, dict) and "id" in subject:
        keywords.add(str(subject["id"]))

    return keywords


def _collect_keys(node: dict[str, Any], keywords: set[str]) -> None:
    """Add the keys of ``node`` and of its nested objects to ``keywords``."""
    for key, value in node.items():
        if key in EXCLUDED_OBJECTS:
            continue
        if key not in EXCLUDED_WORDS:
            keywords.add(key)
        if isinstance(value, dict):
            _collect_keys(value, keywords)
        elif isinstance(value, list):
            # array-valued @context: ["https://.../v1", {definitions}]
            for item in value:
                if isinstance(item, dict):
                    _collect_keys(item, keywords)
