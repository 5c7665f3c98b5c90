"""
Canonical serialization and entity fingerprinting.

Provides stable, platform-independent serialization of entity state and the
digest computed over it. The canonicalization ensures:
- Keys are sorted recursively
- Unicode is normalized (NFC)
- No insignificant whitespace
- Sets are emitted in a stable order
- Values with no canonical form are rejected instead of stringified

Entities choose what is hashed through optional hooks, checked in order:
1. ``string_for_fingerprint()``: returned text is hashed verbatim
2. ``canonical_representation_for_sync()``: returned structure is canonicalized
3. otherwise the entity's full public state is canonicalized
"""

import dataclasses
import hashlib
import json
import unicodedata
from collections.abc import Mapping
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Set
from uuid import UUID

from .core.exceptions import FingerprintSerializationError, SyncConfigError
from .core.models import Fingerprint


DEFAULT_ALGORITHM = "sha256"

STRING_HOOK = "string_for_fingerprint"
REPRESENTATION_HOOK = "canonical_representation_for_sync"


def canonicalize(obj: Any) -> str:
    """
    Canonicalize a Python object to a stable JSON string.

    Args:
        obj: The object to canonicalize

    Returns:
        Canonical JSON string

    Raises:
        FingerprintSerializationError: If the object has no canonical form
    """
    normalized = _normalize(obj, set())
    try:
        return json.dumps(
            normalized,
            sort_keys=True,
            ensure_ascii=False,
            separators=(",", ":"),
            allow_nan=False,
        )
    except ValueError as e:
        raise FingerprintSerializationError(f"Cannot canonicalize value: {e}") from e


def _normalize(obj: Any, active: Set[int]) -> Any:
    """
    Recursively normalize an object for canonical serialization.

    ``active`` holds the ids of containers on the current path and is used
    to detect cycles.
    """
    if obj is None or isinstance(obj, bool):
        # Handle bool before int (bool is subclass of int)
        return obj

    if isinstance(obj, str):
        return unicodedata.normalize("NFC", obj)

    if isinstance(obj, Enum):
        return _normalize(obj.value, active)

    if isinstance(obj, (int, float)):
        return obj

    if isinstance(obj, Decimal):
        return str(obj)

    if isinstance(obj, (datetime, date, time)):
        return obj.isoformat()

    if isinstance(obj, UUID):
        return str(obj)

    if isinstance(obj, (bytes, bytearray)):
        return bytes(obj).hex()

    marker = id(obj)
    if marker in active:
        raise FingerprintSerializationError(
            f"Cycle detected while canonicalizing {type(obj).__name__}"
        )
    active.add(marker)
    try:
        if isinstance(obj, Mapping):
            return _normalize_mapping(obj, active)

        if isinstance(obj, (list, tuple)):
            return [_normalize(item, active) for item in obj]

        if isinstance(obj, (set, frozenset)):
            items = [_normalize(item, active) for item in obj]
            return sorted(items, key=lambda item: json.dumps(item, sort_keys=True))

        return _normalize_mapping(entity_state(obj), active)
    finally:
        active.discard(marker)


def _normalize_mapping(obj: Mapping, active: Set[int]) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for key, value in obj.items():
        normalized_key = _normalize_key(key)
        if normalized_key in result:
            raise FingerprintSerializationError(
                f"Duplicate key after normalization: {normalized_key!r}"
            )
        result[normalized_key] = _normalize(value, active)
    return result


def _normalize_key(key: Any) -> str:
    """Mapping keys become strings; JSON only allows string keys."""
    if isinstance(key, str):
        return unicodedata.normalize("NFC", key)
    if isinstance(key, Enum):
        return _normalize_key(key.value)
    if key is None or isinstance(key, (bool, int, float)):
        return json.dumps(key)
    if isinstance(key, (Decimal, UUID)):
        return str(key)
    raise FingerprintSerializationError(
        f"Unsupported mapping key type: {type(key).__name__}"
    )


def entity_state(entity: Any) -> Dict[str, Any]:
    """
    Return the full state of an entity as a mapping.

    Dataclasses contribute their fields, objects with ``to_dict()`` their
    dictionary, and plain objects their public instance attributes.

    Raises:
        FingerprintSerializationError: If the entity exposes no state or its
            to_dict() returns something other than a mapping
    """
    if dataclasses.is_dataclass(entity) and not isinstance(entity, type):
        return {
            f.name: getattr(entity, f.name)
            for f in dataclasses.fields(entity)
            if not f.name.startswith("_")
        }

    to_dict = getattr(entity, "to_dict", None)
    if callable(to_dict):
        state = to_dict()
        if not isinstance(state, Mapping):
            raise FingerprintSerializationError(
                f"{type(entity).__name__}.to_dict() must return a mapping, "
                f"got {type(state).__name__}"
            )
        return state

    if isinstance(entity, Mapping):
        return dict(entity)

    attributes = getattr(entity, "__dict__", None)
    if attributes is None or isinstance(entity, type) or callable(entity):
        raise FingerprintSerializationError(
            f"No canonical form for value of type {type(entity).__name__}"
        )
    return {
        name: value
        for name, value in attributes.items()
        if not name.startswith("_")
    }


def fingerprint_input(entity: Any) -> str:
    """
    Build the text that is digested for an entity.

    Applies the hook fallback chain described in the module docstring.
    """
    string_hook = getattr(entity, STRING_HOOK, None)
    if callable(string_hook):
        text = string_hook()
        if not isinstance(text, str):
            raise FingerprintSerializationError(
                f"{type(entity).__name__}.{STRING_HOOK}() must return str, "
                f"got {type(text).__name__}"
            )
        return text

    representation_hook = getattr(entity, REPRESENTATION_HOOK, None)
    if callable(representation_hook):
        return canonicalize(representation_hook())

    return canonicalize(entity_state(entity))


class Fingerprinter:
    """
    Computes entity fingerprints with a fixed digest algorithm.

    Fingerprints are only comparable when produced by the same algorithm,
    so one Fingerprinter configuration should be used per deployment.
    """

    def __init__(self, algorithm: str = DEFAULT_ALGORITHM):
        """
        Initialize the fingerprinter.

        Args:
            algorithm: Any fixed-length hashlib algorithm name

        Raises:
            SyncConfigError: If the algorithm is unknown or variable-length
        """
        try:
            hashlib.new(algorithm, b"").digest()
        except (ValueError, TypeError) as e:
            raise SyncConfigError(f"Unsupported digest algorithm: {algorithm}") from e
        self.algorithm = algorithm

    def compute(self, entity: Any) -> Fingerprint:
        """
        Compute the fingerprint of an entity's current state.

        Args:
            entity: Any object; see module docstring for the hooks honored

        Returns:
            Digest bytes
        """
        text = fingerprint_input(entity)
        return hashlib.new(self.algorithm, text.encode("utf-8")).digest()

    def __repr__(self) -> str:
        return f"Fingerprinter(algorithm={self.algorithm!r})"


def compute_fingerprint(entity: Any, algorithm: str = DEFAULT_ALGORITHM) -> Fingerprint:
    """
    Compute the fingerprint of an entity.

    Args:
        entity: The entity to fingerprint
        algorithm: hashlib algorithm name

    Returns:
        Digest bytes
    """
    return Fingerprinter(algorithm).compute(entity)
