from __future__ import annotations
import hashlib
import json


def canonical_dumps(obj) -> str:
    """Serialize to canonical JSON (sorted keys, minimal whitespace)."""
    return json.dumps(obj, ensure_ascii=False, sort_keys=True, separators=(",", ":"))


def sha256_hex_bytes(b: bytes) -> str:
    return hashlib.sha256(b).hexdigest()


def sha256_hex_canonical_json(obj) -> str:
    """SHA-256 of the canonical JSON form of obj."""
    return sha256_hex_bytes(canonical_dumps(obj).encode("utf-8"))
