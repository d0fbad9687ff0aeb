"""Snapshot structure and schema enforcement."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from jsonschema import Draft7Validator

from backup.errors import IncompatibleVersion, InvalidFormat, MissingCollection

FORMAT_VERSION = "1.0.0"

# Order matters: the first missing collection in this order is reported.
REQUIRED_COLLECTIONS = ("orders", "inventory", "drivers", "routes", "settings")

COLLECTION_DEFAULTS: Dict[str, Any] = {
    "orders": [],
    "inventory": [],
    "drivers": [],
    "routes": [],
    "settings": {},
}

SNAPSHOT_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["version", "collections"],
    "properties": {
        "version": {"type": "string", "minLength": 1},
        "timestamp": {"type": "string"},
        "collections": {
            "type": "object",
            "required": list(REQUIRED_COLLECTIONS),
        },
    },
}

_validator = Draft7Validator(SNAPSHOT_SCHEMA)


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def validate_snapshot(payload: Any) -> None:
    """
    Check the structure of a parsed snapshot.

    Raises InvalidFormat for a wrong top-level shape and MissingCollection
    naming the first absent collection. Collection contents are not
    inspected.
    """
    errors = list(_validator.iter_errors(payload))
    if not errors:
        return

    missing, structural = [], []
    for error in errors:
        if error.validator == "required" and list(error.path) == ["collections"]:
            missing.append(error)
        else:
            structural.append(error)

    if structural:
        structural.sort(key=lambda e: [str(p) for p in e.path])
        messages = ", ".join(error.message for error in structural)
        raise InvalidFormat(f"snapshot validation failed: {messages}")

    collections = missing[0].instance
    for name in REQUIRED_COLLECTIONS:
        if name not in collections:
            raise MissingCollection(name)


def major_version(version: str) -> Optional[int]:
    head = version.strip().lstrip("vV").split(".", 1)[0]
    return int(head) if head.isdigit() else None


def check_version(version: str, supported: str = FORMAT_VERSION) -> None:
    """Reject snapshots whose major version differs from the engine's."""
    found_major = major_version(version)
    if found_major is None or found_major != major_version(supported):
        raise IncompatibleVersion(version, supported)


@dataclass(frozen=True)
class Snapshot:
    collections: Dict[str, Any]
    version: str = FORMAT_VERSION
    timestamp: str = field(default_factory=utc_timestamp)

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "version": self.version,
            "timestamp": self.timestamp,
            "collections": {name: self.collections[name] for name in REQUIRED_COLLECTIONS},
        }
        validate_snapshot(payload)
        return payload

    def to_text(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Snapshot":
        validate_snapshot(data)
        return cls(
            collections={name: data["collections"][name] for name in REQUIRED_COLLECTIONS},
            version=data["version"],
            timestamp=data.get("timestamp", ""),
        )
