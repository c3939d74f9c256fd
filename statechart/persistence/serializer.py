# statechart/persistence/serializer.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
In-memory snapshot contract and its JSON text form. Durable storage is left
to the caller.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from statechart.core.errors import RestoreError

SNAPSHOT_VERSION = 1


@dataclass(frozen=True)
class Snapshot:
    """
    Active configuration by dotted leaf path, plus a deep copy of the context.
    Timer delays are not stored; they are recomputed on restore.
    """

    active: Tuple[str, ...]
    context: Any = None
    version: int = field(default=SNAPSHOT_VERSION)

    def to_dict(self) -> Dict[str, Any]:
        return {"version": self.version, "active": list(self.active), "context": self.context}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Snapshot":
        """
        :raises RestoreError: If the mapping is not a snapshot this version understands.
        """
        if not isinstance(data, Mapping):
            raise RestoreError("A snapshot must be a mapping")
        version = data.get("version", SNAPSHOT_VERSION)
        if version != SNAPSHOT_VERSION:
            raise RestoreError(f"Unsupported snapshot version {version!r}")
        active = data.get("active")
        if isinstance(active, str) or not isinstance(active, (list, tuple)):
            raise RestoreError("Snapshot 'active' must be a list of state paths")
        if not all(isinstance(path, str) for path in active):
            raise RestoreError("Snapshot 'active' entries must be strings")
        return cls(active=tuple(active), context=data.get("context"), version=version)


class Serializer:
    """Converts snapshots to and from JSON text."""

    def __init__(self, indent: Optional[int] = None) -> None:
        self._indent = indent

    def dumps(self, snapshot: Snapshot) -> str:
        """
        :raises TypeError: If the context holds values JSON cannot encode.
        """
        return json.dumps(snapshot.to_dict(), indent=self._indent)

    def loads(self, text: str) -> Snapshot:
        """
        :raises RestoreError: If ``text`` is not valid snapshot JSON.
        """
        try:
            data = json.loads(text)
        except (TypeError, ValueError) as e:
            raise RestoreError(f"Invalid snapshot JSON: {e}") from e
        return Snapshot.from_dict(data)
