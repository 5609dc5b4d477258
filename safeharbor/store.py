"""
SafeHarbor Record Store

The store is the host's exclusive-access capability. A mutation asks for one
address and receives a RecordSlot holding a private working copy of that
record:

    with store.exclusive(address) as slot:
        record = apply_update(slot.record, ...)
        slot.put(record)

Slots on the same address are serialized. On normal exit the staged record
is persisted; if the block raises, nothing is written.

Reads return snapshots and never block a writer for longer than a copy.
"""

import copy
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from .adoption import AdoptionRecord
from .agreement import AgreementRecord
from .pubkey import Pubkey
from .registry import Registry

RECORD_TYPES = {
    Registry.kind: Registry,
    AgreementRecord.kind: AgreementRecord,
    AdoptionRecord.kind: AdoptionRecord,
}


def record_from_dict(data: Dict[str, Any]):
    """Rebuild a stored record from its JSON form, dispatching on `kind`."""
    kind = data.get("kind")
    if kind not in RECORD_TYPES:
        raise ValueError(f"Unknown record kind: {kind}")
    return RECORD_TYPES[kind].from_dict(data)


class RecordSlot:
    """Scoped handle to one record for the duration of one operation."""

    def __init__(self, address: Pubkey, record=None):
        self.address = address
        self.record = record
        self._staged = None
        self._dirty = False

    @property
    def exists(self) -> bool:
        return self.record is not None

    def put(self, record) -> None:
        """Stage `record` to be written when the slot closes cleanly."""
        self._staged = record
        self._dirty = True

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def staged(self):
        return self._staged


class RecordStore(ABC):
    """
    Abstract keyed record storage.

    Implementations must:
    - Serialize exclusive() on the same address
    - Persist only on clean exit (all-or-nothing)
    - Return copies from get(), never live objects
    """

    @abstractmethod
    @contextmanager
    def exclusive(self, address: Pubkey) -> Iterator[RecordSlot]:
        pass

    @abstractmethod
    def get(self, address: Pubkey):
        """Snapshot of the record at `address`, or None."""
        pass

    @abstractmethod
    def list_addresses(self, kind: Optional[str] = None) -> List[Pubkey]:
        pass

    def close(self) -> None:
        pass


class _AddressLock:
    """Re-entrant lock plus the number of slots holding or waiting for it."""

    def __init__(self):
        self.lock = threading.RLock()
        self.users = 0


class MemoryRecordStore(RecordStore):
    """
    In-memory record store for development/testing.

    Not persistent across restarts. Each address has its own re-entrant lock,
    so mutations of different records proceed independently. A lock lives only
    while some slot holds or waits for it.
    """

    def __init__(self):
        self._records: Dict[Pubkey, Any] = {}
        self._locks: Dict[Pubkey, _AddressLock] = {}
        self._guard = threading.Lock()

    @contextmanager
    def _locked(self, address: Pubkey) -> Iterator[None]:
        with self._guard:
            entry = self._locks.get(address)
            if entry is None:
                entry = self._locks[address] = _AddressLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[address]

    @contextmanager
    def exclusive(self, address: Pubkey) -> Iterator[RecordSlot]:
        with self._locked(address):
            with self._guard:
                current = self._records.get(address)
            slot = RecordSlot(address, copy.deepcopy(current))
            yield slot
            if slot.dirty:
                with self._guard:
                    self._records[address] = copy.deepcopy(slot.staged)

    def get(self, address: Pubkey):
        with self._guard:
            record = self._records.get(address)
        return copy.deepcopy(record)

    def list_addresses(self, kind: Optional[str] = None) -> List[Pubkey]:
        with self._guard:
            return [a for a, r in self._records.items() if kind is None or r.kind == kind]

    def __len__(self) -> int:
        with self._guard:
            return len(self._records)
