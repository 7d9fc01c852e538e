"""SHA-256 helpers for node hashes and payload fingerprints.

Provides:
    - sha256_string(): digest of a text key
    - hash_dict(): digest of a JSON-serializable mapping, key order ignored
    - fingerprint(): short stand-in for bulky payloads (length + prefix)

Node hashes built from these are cache keys, not a security boundary.

Usage:
    from plotflow.utils import hashing
    key = hashing.hash_dict({"kind": "circle", "params": {...}})

Note: module named ``hashing`` to avoid shadowing builtin ``hash()``.
"""

import hashlib
import json


def sha256_string(s: str) -> str:
    """Hex SHA-256 digest (64 characters) of the UTF-8 encoding of ``s``."""
    return hashlib.sha256(s.encode("utf-8")).hexdigest()


def hash_dict(d: dict) -> str:
    """Digest of ``d`` serialized canonically.

    Parameters
    ----------
    d : dict
        JSON-serializable mapping.

    Returns
    -------
    str
        Hex SHA-256 digest.

    Notes
    -----
    Keys are sorted at every nesting level and separators carry no
    whitespace, so two mappings with equal content always hash alike.
    """
    return sha256_string(json.dumps(d, sort_keys=True, separators=(",", ":")))


def fingerprint(payload: str, prefix_length: int = 100) -> str:
    """Short identity for a large string payload: ``"<length>:<prefix>"``."""
    return f"{len(payload)}:{payload[:prefix_length]}"
