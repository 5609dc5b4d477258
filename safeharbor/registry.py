"""
SafeHarbor Registry

The single record holding the set of recognized network identifiers and the
identity allowed to change it. Created once by initialize(); never destroyed.

The functions here operate on a working copy handed out by the record store
and return the record to persist. They never touch storage themselves.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .capacity import DEFAULT_PLANNER, CapacityPlanner, transient
from .constants import (
    BOOL_SIZE,
    DISCRIMINATOR_SIZE,
    LENGTH_PREFIX_SIZE,
    MAX_NETWORK_ID_LEN,
    MAX_REGISTRY_NETWORKS,
    PUBKEY_SIZE,
)
from .errors import ErrorKind, fail
from .pubkey import Pubkey, as_pubkey
from .validation import validate_network_list

logger = logging.getLogger(__name__)

# Worst-case layout: owner, flag, and a full network list at maximum id length.
REGISTRY_MAX_LAYOUT = (
    DISCRIMINATOR_SIZE + PUBKEY_SIZE + BOOL_SIZE + LENGTH_PREFIX_SIZE
    + MAX_REGISTRY_NETWORKS * (LENGTH_PREFIX_SIZE + MAX_NETWORK_ID_LEN)
)


@dataclass
class Registry:
    """
    Recognized-network registry.

    recognized_networks keeps insertion order and never holds duplicates.
    """
    owner: Pubkey
    initialized: bool = False
    recognized_networks: List[str] = field(default_factory=list)
    allocated: int = transient(default=0)

    kind = "registry"

    def is_recognized(self, network_id: str) -> bool:
        return self.initialized and network_id in self.recognized_networks

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "owner": str(self.owner),
            "initialized": self.initialized,
            "recognized_networks": list(self.recognized_networks),
            "allocated": self.allocated,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Registry":
        return cls(
            owner=as_pubkey(data["owner"]),
            initialized=bool(data.get("initialized", False)),
            recognized_networks=list(data.get("recognized_networks", [])),
            allocated=int(data.get("allocated", 0)),
        )


def _require_owner(registry: Optional[Registry], caller: Pubkey) -> Registry:
    if registry is None or not registry.initialized:
        raise fail(ErrorKind.REGISTRY_NOT_INITIALIZED, "registry has not been initialized", "registry")
    if registry.owner != caller:
        raise fail(ErrorKind.NOT_REGISTRY_OWNER, f"{caller} is not the registry owner", "caller")
    return registry


def _check_bound(networks: Sequence[str]) -> None:
    if len(networks) > MAX_REGISTRY_NETWORKS:
        raise fail(ErrorKind.FIELD_LENGTH_EXCEEDED,
                   f"registry holds at most {MAX_REGISTRY_NETWORKS} networks, got {len(networks)}",
                   "networks")


def initialize(current: Optional[Registry], caller: Pubkey, networks: Sequence[str],
               planner: CapacityPlanner = DEFAULT_PLANNER) -> Registry:
    """
    Create the registry owned by `caller` with an initial network set.

    Raises:
        RegistryError: RegistryAlreadyInitialized
        ValidationError: InvalidNetworkId (empty or malformed list), FieldLengthExceeded
    """
    if current is not None and current.initialized:
        raise fail(ErrorKind.REGISTRY_ALREADY_INITIALIZED, "registry is already initialized", "registry")
    if caller.is_default():
        raise fail(ErrorKind.INVALID_ACCOUNT_PARAMS, "owner must not be the default key", "caller")

    unique = validate_network_list(networks)
    _check_bound(unique)

    registry = Registry(owner=caller, initialized=True, recognized_networks=unique)
    budget = planner.plan(registry)
    # Singleton: allocate for a full network list up front.
    registry.allocated = max(budget.allocated, min(REGISTRY_MAX_LAYOUT, planner.max_size))
    logger.debug("registry initialized by %s with %d networks", caller, len(unique))
    return registry


def add_recognized(registry: Optional[Registry], caller: Pubkey, networks: Sequence[str],
                   planner: CapacityPlanner = DEFAULT_PLANNER) -> Registry:
    """Owner-only idempotent union."""
    registry = _require_owner(registry, caller)
    requested = validate_network_list(networks)

    merged = list(registry.recognized_networks)
    for network_id in requested:
        if network_id not in merged:
            merged.append(network_id)
    _check_bound(merged)

    registry.recognized_networks = merged
    planner.ensure_fits(registry, registry.allocated)
    return registry


def remove_recognized(registry: Optional[Registry], caller: Pubkey, networks: Sequence[str]) -> Registry:
    """Owner-only set difference. Ids that are not present are ignored."""
    registry = _require_owner(registry, caller)
    requested = set(validate_network_list(networks))
    registry.recognized_networks = [n for n in registry.recognized_networks if n not in requested]
    return registry
