"""JCS canonicalization and document serialization.

Uses RFC 8785 JSON Canonicalization Scheme for a stable fingerprint of a
document, independent of key order or whitespace. The published file itself
is pretty-printed with insertion order preserved.
"""

import hashlib
import json

import canonicaljson

from did_web.errors import SerializationError


def canonicalize(value: dict) -> bytes:
    """Canonicalize a dict using JCS (RFC 8785)."""
    try:
        return canonicaljson.encode_canonical_json(value)
    except Exception as exc:
        raise SerializationError(f"JCS canonicalization failed: {exc}") from exc


def hash_canonical(value: dict) -> bytes:
    """SHA-256 hash of canonical JSON."""
    canonical = canonicalize(value)
    return hashlib.sha256(canonical).digest()


def dumps_document(value: dict) -> str:
    """Serialize a document the way it is published: 2-space indent."""
    try:
        return json.dumps(value, indent=2, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise SerializationError(f"JSON encoding failed: {exc}") from exc
