# relay/registry.py
"""
Oracle Registry

In-memory table of oracle accounts and the index triplet the contract
assigned each one. Filled once by the bootstrap sequencer, then read by
the dispatcher on every OracleRequest event. Entries are kept in
registration order; there is no removal.
"""

import threading
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple

from relay.errors import DuplicateIdentity


class IdentityStatus(str, Enum):
    UNREGISTERED = "unregistered"
    FEE_PAID_PENDING = "fee-paid-pending"
    REGISTERED = "registered"
    FAILED = "failed"


@dataclass
class OracleIdentity:
    address: str
    status: IdentityStatus = IdentityStatus.UNREGISTERED


class IndexAssignment(NamedTuple):
    first: int
    second: int
    third: int

    @classmethod
    def from_ledger(cls, values) -> "IndexAssignment":
        """Build from the raw getMyIndexes() result; raises ValueError if malformed."""
        values = list(values)
        if len(values) != 3:
            raise ValueError(f"expected 3 indexes, got {len(values)}")
        indexes = []
        for v in values:
            if isinstance(v, bool) or not isinstance(v, int) or v < 0:
                raise ValueError(f"invalid index value: {v!r}")
            indexes.append(v)
        return cls(*indexes)

    def holds(self, index: int) -> bool:
        return index in self


class OracleRegistry:
    def __init__(self):
        self._entries: dict[str, IndexAssignment] = {}
        self._lock = threading.Lock()

    def record(self, identity: str, assignment: IndexAssignment) -> None:
        with self._lock:
            if identity in self._entries:
                raise DuplicateIdentity(identity)
            self._entries[identity] = assignment

    def matching_identities(self, requested_index: int) -> list[str]:
        return [
            identity
            for identity, assignment in self._entries.items()
            if assignment.holds(requested_index)
        ]

    def indexes_for(self, identity: str):
        return self._entries.get(identity)

    def snapshot(self) -> list[dict]:
        return [
            {"oracle": identity, "indexes": list(assignment)}
            for identity, assignment in self._entries.items()
        ]

    def __contains__(self, identity) -> bool:
        return identity in self._entries

    def __len__(self) -> int:
        return len(self._entries)
