# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Key rotation state types.

KeyRotationState is the single persisted row per provider. Its record form
(``to_record``/``from_record``) is what backends store: camelCase field names
with JSON-encoded ``failedKeys`` and ``failedAt`` columns.
"""

import json
from dataclasses import dataclass, field, replace
from typing import Any


@dataclass(frozen=True)
class KeySelection:
    """A credential chosen for the next request and its position in the key list."""

    key: str
    index: int

    def __repr__(self) -> str:
        # Never put the secret itself in logs or tracebacks
        return f"KeySelection(index={self.index}, key='...{self.key[-4:]}')"


@dataclass(frozen=True)
class KeyRotationState:
    """
    Rotation state for one provider.

    Attributes:
        current_key_index: Index of the credential currently in use
        failed_keys: Indices in cooldown, in the order they failed
        failed_at: Failure time (epoch milliseconds) per failed index
        version: Incremented on every write, used for conditional updates
    """

    current_key_index: int = 0
    failed_keys: tuple[int, ...] = ()
    failed_at: dict[int, int] = field(default_factory=dict)
    version: int = 0

    def is_failed(self, index: int) -> bool:
        return index in self.failed_keys

    def with_failure(self, index: int, failed_at_ms: int) -> "KeyRotationState":
        """Return a copy with ``index`` added to the failed set."""
        failed_at = dict(self.failed_at)
        failed_at[index] = failed_at_ms
        return replace(
            self, failed_keys=(*self.failed_keys, index), failed_at=failed_at
        )

    def without_failures(self, indices: "set[int]") -> "KeyRotationState":
        """Return a copy with ``indices`` removed from the failed set."""
        return replace(
            self,
            failed_keys=tuple(i for i in self.failed_keys if i not in indices),
            failed_at={i: t for i, t in self.failed_at.items() if i not in indices},
        )

    def to_record(self) -> dict[str, Any]:
        """Serialize to the stored row format."""
        return {
            "currentKeyIndex": self.current_key_index,
            "failedKeys": json.dumps(list(self.failed_keys)),
            "failedAt": json.dumps(
                {str(index): ts for index, ts in self.failed_at.items()}
            ),
            "version": self.version,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "KeyRotationState":
        """
        Deserialize from the stored row format.

        Accepts values as returned by Redis (all strings) or as stored in
        memory (native types).

        Raises:
            ValueError: If the record is malformed
        """
        try:
            failed_keys = record.get("failedKeys") or "[]"
            failed_at = record.get("failedAt") or "{}"
            if isinstance(failed_keys, str):
                failed_keys = json.loads(failed_keys)
            if isinstance(failed_at, str):
                failed_at = json.loads(failed_at)
            return cls(
                current_key_index=int(record.get("currentKeyIndex", 0)),
                failed_keys=tuple(int(i) for i in failed_keys),
                failed_at={int(i): int(ts) for i, ts in failed_at.items()},
                version=int(record.get("version", 0)),
            )
        except (TypeError, ValueError, AttributeError) as e:
            raise ValueError(f"Malformed key rotation record: {e}") from e


__all__ = ["KeyRotationState", "KeySelection"]
