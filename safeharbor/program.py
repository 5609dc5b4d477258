"""
SafeHarbor Program

The host-side facade exposing the logical operations:

    initialize                   create the registry
    set_recognized_networks      add networks (registry owner only)
    set_unrecognized_networks    remove networks (registry owner only)
    create_or_update_agreement   agreement update-type dispatch
    create_or_update_adoption    adoption update-type dispatch

Each mutation derives the record address, takes exclusive access to that one
record through the RecordStore, runs the dispatcher on a working copy and
stages the result. Any SafeHarborError leaves storage untouched. The returned
event is also handed to the EventSink; sink failures are logged and ignored.
"""

import logging
from contextlib import contextmanager
from typing import Any, Optional, Sequence, Union

from .addressing import (
    DEFAULT_PROGRAM_ID,
    find_adoption_address,
    find_agreement_address,
    find_registry_address,
)
from .adoption import AdoptionRecord, AdoptionUpdateType, apply_adoption_update
from .agreement import AgreementRecord, AgreementUpdateType, apply_agreement_update
from .capacity import DEFAULT_PLANNER, CapacityPlanner
from .errors import ErrorKind, SafeHarborError, fail
from .events import (
    AdoptionUpdated,
    AgreementUpdated,
    EventSink,
    InMemoryEventLog,
    RecognizedNetworksChanged,
    RegistryInitialized,
    SafeHarborAdopted,
)
from .hashing import verify_network_id_hash
from .pubkey import Pubkey, as_pubkey
from . import registry as registry_ops
from .registry import Registry
from .store import MemoryRecordStore, RecordStore
from .validation import DEFAULT_POLICY, ValidationPolicy

logger = logging.getLogger(__name__)

Identity = Union[Pubkey, str, bytes]


class SafeHarborProgram:
    """
    Long-lived handle over one registry, its agreements and adoptions.

    Usage:
        program = SafeHarborProgram()
        program.initialize(owner, ["eip155:1"])
        event = program.create_or_update_agreement(owner, 1, data, owner, "InitializeOrUpdate")
    """

    def __init__(
        self,
        store: Optional[RecordStore] = None,
        events: Optional[EventSink] = None,
        program_id: Pubkey = DEFAULT_PROGRAM_ID,
        policy: ValidationPolicy = DEFAULT_POLICY,
        planner: CapacityPlanner = DEFAULT_PLANNER,
    ):
        self.store = store if store is not None else MemoryRecordStore()
        self.events = events if events is not None else InMemoryEventLog()
        self.program_id = program_id
        self.policy = policy
        self.planner = planner
        self._registry_address, _ = find_registry_address(program_id)

    # ============================================================
    # Addresses and queries
    # ============================================================

    def registry_address(self) -> Pubkey:
        return self._registry_address

    def agreement_address(self, creator: Identity, nonce: int) -> Pubkey:
        address, _ = find_agreement_address(as_pubkey(creator), nonce, self.program_id)
        return address

    def adoption_address(self, adopter: Identity, network_id: str) -> Pubkey:
        address, _ = find_adoption_address(as_pubkey(adopter), network_id, self.program_id)
        return address

    def get_registry(self) -> Optional[Registry]:
        record = self.store.get(self._registry_address)
        return record if isinstance(record, Registry) else None

    def is_recognized(self, network_id: str) -> bool:
        registry = self.get_registry()
        return registry is not None and registry.is_recognized(network_id)

    def get_agreement(self, address: Identity) -> Optional[AgreementRecord]:
        record = self.store.get(as_pubkey(address))
        return record if isinstance(record, AgreementRecord) else None

    def get_adoption(self, address: Identity) -> Optional[AdoptionRecord]:
        record = self.store.get(as_pubkey(address))
        return record if isinstance(record, AdoptionRecord) else None

    # ============================================================
    # Registry
    # ============================================================

    def initialize(self, caller: Identity, networks: Sequence[str]) -> RegistryInitialized:
        caller = as_pubkey(caller)
        with _logged("initialize", caller):
            with self.store.exclusive(self._registry_address) as slot:
                registry = registry_ops.initialize(slot.record, caller, networks, self.planner)
                slot.put(registry)
        event = RegistryInitialized(
            registry=self._registry_address,
            owner=caller,
            networks=list(registry.recognized_networks),
        )
        return self._emit(event)

    def set_recognized_networks(self, caller: Identity, networks: Sequence[str]) -> RecognizedNetworksChanged:
        caller = as_pubkey(caller)
        with _logged("set_recognized_networks", caller):
            with self.store.exclusive(self._registry_address) as slot:
                registry = registry_ops.add_recognized(slot.record, caller, networks, self.planner)
                slot.put(registry)
        return self._emit(RecognizedNetworksChanged(
            registry=self._registry_address,
            owner=caller,
            networks=list(networks),
            recognized=True,
            snapshot=list(registry.recognized_networks),
        ))

    def set_unrecognized_networks(self, caller: Identity, networks: Sequence[str]) -> RecognizedNetworksChanged:
        caller = as_pubkey(caller)
        with _logged("set_unrecognized_networks", caller):
            with self.store.exclusive(self._registry_address) as slot:
                registry = registry_ops.remove_recognized(slot.record, caller, networks)
                slot.put(registry)
        return self._emit(RecognizedNetworksChanged(
            registry=self._registry_address,
            owner=caller,
            networks=list(networks),
            recognized=False,
            snapshot=list(registry.recognized_networks),
        ))

    # ============================================================
    # Agreements
    # ============================================================

    def create_or_update_agreement(
        self,
        caller: Identity,
        nonce: int,
        data: Any,
        owner: Optional[Identity],
        update_type: Any,
        creator: Optional[Identity] = None,
    ) -> AgreementUpdated:
        """
        Create or mutate the agreement at derive(creator, nonce).

        `creator` defaults to the caller. Only `update_type`'s fields are read
        from `data`.
        """
        caller = as_pubkey(caller)
        creator = as_pubkey(creator) if creator is not None else caller
        owner = as_pubkey(owner) if owner is not None else None

        with _logged("create_or_update_agreement", caller):
            address = self.agreement_address(creator, nonce)
            registry = self.get_registry()
            with self.store.exclusive(address) as slot:
                current = slot.record if isinstance(slot.record, AgreementRecord) else None
                record = apply_agreement_update(
                    current, caller, creator, update_type, data, owner, registry,
                    self.policy, self.planner,
                )
                slot.put(record)

        applied = AgreementUpdateType.parse(update_type)
        return self._emit(AgreementUpdated(
            agreement=address,
            owner=record.owner,
            update_type=applied.value,
            data_hash=record.data_hash(),
        ))

    # ============================================================
    # Adoptions
    # ============================================================

    def create_or_update_adoption(
        self,
        caller: Identity,
        network_id: str,
        update_type: Any,
        payload: Any,
        network_id_hash: Union[bytes, str, None] = None,
    ) -> Union[SafeHarborAdopted, AdoptionUpdated]:
        """
        Create or mutate the caller's adoption on `network_id`.

        When `network_id_hash` is given it must equal SHA-256(network_id).
        """
        adopter = as_pubkey(caller)
        with _logged("create_or_update_adoption", adopter):
            if not isinstance(network_id, str):
                raise fail(ErrorKind.INVALID_NETWORK_ID, "network_id must be a string", "network_id")
            verify_network_id_hash(network_id, network_id_hash)
            address = self.adoption_address(adopter, network_id)
            with self.store.exclusive(address) as slot:
                current = slot.record if isinstance(slot.record, AdoptionRecord) else None
                record, old_agreement = apply_adoption_update(
                    current, adopter, network_id, update_type, payload,
                    self.get_agreement, self.planner,
                )
                slot.put(record)

        applied = AdoptionUpdateType.parse(update_type)
        if applied == AdoptionUpdateType.INITIALIZE_OR_UPDATE:
            event = SafeHarborAdopted(
                adopter=adopter,
                adoption=address,
                network_id=network_id,
                old_agreement=old_agreement,
                new_agreement=record.agreement,
                asset_recovery_address=record.asset_recovery_address,
            )
        else:
            event = AdoptionUpdated(
                adopter=adopter,
                adoption=address,
                network_id=network_id,
                update_type=applied.value,
                old_agreement=old_agreement,
                new_agreement=record.agreement,
            )
        return self._emit(event)

    def _emit(self, event):
        try:
            self.events.emit(event)
        except Exception:
            logger.exception("event delivery failed for %s", event.event_type)
        logger.debug("%s accepted", event.event_type)
        return event


@contextmanager
def _logged(operation: str, caller: Pubkey):
    try:
        yield
    except SafeHarborError as e:
        logger.warning("%s rejected for %s: %s", operation, caller, e)
        raise
