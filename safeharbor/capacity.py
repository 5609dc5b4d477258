"""
SafeHarbor Capacity Planner

Computes how many storage bytes a record needs in its length-prefixed layout:

    discriminator   8
    Pubkey          32
    int (u64)       8
    bool / enum     1
    str             4 + utf-8 length
    list            4 + sum of items
    dataclass       sum of fields

Dataclass fields marked with metadata={"transient": True} are bookkeeping
(address, allocation) and are not part of the stored layout.
"""

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .constants import (
    BOOL_SIZE,
    DISCRIMINATOR_SIZE,
    ENUM_TAG_SIZE,
    GROWTH_BUFFER,
    GROWTH_DIVISOR,
    LENGTH_PREFIX_SIZE,
    MAX_RECORD_SIZE,
    PUBKEY_SIZE,
    U64_SIZE,
)
from .errors import ErrorKind, fail
from .pubkey import Pubkey


def transient(**kwargs):
    """dataclasses.field() for values that are not stored in the record body."""
    metadata = dict(kwargs.pop("metadata", {}) or {})
    metadata["transient"] = True
    return dataclasses.field(metadata=metadata, **kwargs)


def encoded_size(value: Any) -> int:
    """Bytes `value` occupies in the record layout."""
    if isinstance(value, Pubkey):
        return PUBKEY_SIZE
    if isinstance(value, Enum):
        return ENUM_TAG_SIZE
    if isinstance(value, bool):
        return BOOL_SIZE
    if isinstance(value, int):
        return U64_SIZE
    if isinstance(value, str):
        return LENGTH_PREFIX_SIZE + len(value.encode('utf-8'))
    if isinstance(value, (bytes, bytearray)):
        return LENGTH_PREFIX_SIZE + len(value)
    if isinstance(value, (list, tuple)):
        return LENGTH_PREFIX_SIZE + sum(encoded_size(v) for v in value)
    if dataclasses.is_dataclass(value):
        return sum(
            encoded_size(getattr(value, f.name))
            for f in dataclasses.fields(value)
            if not f.metadata.get("transient")
        )
    raise TypeError(f"No layout for type: {type(value).__name__}")


def record_size(record: Any) -> int:
    """Layout size of a whole record, discriminator included."""
    return DISCRIMINATOR_SIZE + encoded_size(record)


@dataclass(frozen=True)
class CapacityBudget:
    required: int
    allocated: int

    @property
    def headroom(self) -> int:
        return self.allocated - self.required

    def to_dict(self):
        return {"required": self.required, "allocated": self.allocated}


class CapacityPlanner:
    """
    Sizes record allocations and checks that mutations still fit.

    allocated = min(max_size, required + max(required // divisor, buffer))
    """

    def __init__(self, max_size: int = MAX_RECORD_SIZE,
                 growth_buffer: int = GROWTH_BUFFER,
                 growth_divisor: int = GROWTH_DIVISOR):
        self.max_size = max_size
        self.growth_buffer = growth_buffer
        self.growth_divisor = growth_divisor

    def plan(self, record: Any) -> CapacityBudget:
        """
        Budget for a record about to be created or fully overwritten.

        Raises:
            CapacityError: InsufficientCapacity when even the maximum allocation is too small
        """
        required = record_size(record)
        if required > self.max_size:
            raise fail(ErrorKind.INSUFFICIENT_CAPACITY,
                       f"record needs {required} bytes, maximum is {self.max_size}", "capacity")
        headroom = max(required // self.growth_divisor, self.growth_buffer)
        return CapacityBudget(required=required, allocated=min(self.max_size, required + headroom))

    def ensure_fits(self, record: Any, allocated: int) -> CapacityBudget:
        """
        Incremental updates must fit the allocation the record already has.

        Raises:
            CapacityError: InsufficientCapacity
        """
        required = record_size(record)
        if required > allocated:
            raise fail(ErrorKind.INSUFFICIENT_CAPACITY,
                       f"record needs {required} bytes, {allocated} allocated", "capacity")
        return CapacityBudget(required=required, allocated=allocated)

    def resize(self, record: Any, allocated: int) -> CapacityBudget:
        """Full overwrites may grow the allocation; it never shrinks."""
        budget = self.plan(record)
        return CapacityBudget(required=budget.required, allocated=max(allocated, budget.allocated))


DEFAULT_PLANNER = CapacityPlanner()
