"""
SafeHarbor Agreement Records

An agreement holds one protocol's disclosure terms: who to contact, what
bounty a whitehat may keep, where the legal text lives, and which accounts on
which networks are covered.

Mutations go through a closed set of update types. Each type names the payload
fields it needs and touches only those fields:

    InitializeOrUpdate (0)  every field + owner
    ProtocolName       (1)  protocol_name
    ContactDetails     (2)  contact_details
    BountyTerms        (3)  bounty_terms
    AgreementUri       (4)  agreement_uri
    Chains             (5)  chains

Validation always runs on the prospective values. The dispatcher mutates the
working copy it is given and never persists anything itself.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from .capacity import DEFAULT_PLANNER, CapacityPlanner, transient
from .errors import ErrorKind, fail
from .hashing import record_hash
from .pubkey import Pubkey, as_pubkey
from .registry import Registry
from .types import BountyTerms, Chain, Contact, parse_enum, parse_list
from .validation import (
    DEFAULT_POLICY,
    ValidationPolicy,
    validate_agreement_data,
    validate_agreement_uri,
    validate_bounty_terms,
    validate_chains,
    validate_contact_details,
    validate_protocol_name,
)

AGREEMENT_FIELDS = ("protocol_name", "contact_details", "bounty_terms", "agreement_uri", "chains")


class AgreementUpdateType(str, Enum):
    """Declaration order is the wire code."""
    INITIALIZE_OR_UPDATE = "InitializeOrUpdate"
    PROTOCOL_NAME = "ProtocolName"
    CONTACT_DETAILS = "ContactDetails"
    BOUNTY_TERMS = "BountyTerms"
    AGREEMENT_URI = "AgreementUri"
    CHAINS = "Chains"

    @property
    def code(self) -> int:
        return list(type(self)).index(self)

    @classmethod
    def parse(cls, value: Any) -> "AgreementUpdateType":
        return parse_enum(cls, value, ErrorKind.INVALID_UPDATE_TYPE, "update_type")


def _bounty_terms(value):
    return value if isinstance(value, BountyTerms) else BountyTerms.from_dict(value)


_FIELD_PARSERS: Dict[str, Callable[[Any], Any]] = {
    "protocol_name": lambda value: value,
    "contact_details": lambda value: parse_list(
        value, Contact, ErrorKind.INVALID_CONTACT_DETAILS, "contact_details"),
    "bounty_terms": _bounty_terms,
    "agreement_uri": lambda value: value,
    "chains": lambda value: parse_list(value, Chain, ErrorKind.INVALID_ACCOUNT_PARAMS, "chains"),
}


@dataclass
class AgreementData:
    """Full set of agreement terms."""
    protocol_name: str
    contact_details: List[Contact]
    bounty_terms: BountyTerms
    agreement_uri: str
    chains: List[Chain]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "protocol_name": self.protocol_name,
            "contact_details": [c.to_dict() for c in self.contact_details],
            "bounty_terms": self.bounty_terms.to_dict(),
            "agreement_uri": self.agreement_uri,
            "chains": [c.to_dict() for c in self.chains],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AgreementData":
        payload = AgreementPayload.from_dict(data)
        missing = payload.missing(AGREEMENT_FIELDS)
        if missing:
            raise fail(ErrorKind.INVALID_UPDATE_TYPE, f"missing fields: {', '.join(missing)}", missing[0])
        return cls(
            protocol_name=payload.protocol_name,
            contact_details=payload.contact_details,
            bounty_terms=payload.bounty_terms,
            agreement_uri=payload.agreement_uri,
            chains=payload.chains,
        )


@dataclass
class AgreementPayload:
    """
    Request payload for an agreement mutation.

    Any field may be absent (None); the update type decides which are required.
    """
    protocol_name: Optional[str] = None
    contact_details: Optional[List[Contact]] = None
    bounty_terms: Optional[BountyTerms] = None
    agreement_uri: Optional[str] = None
    chains: Optional[List[Chain]] = None

    def missing(self, names) -> List[str]:
        return [n for n in names if getattr(self, n) is None]

    def to_dict(self) -> Dict[str, Any]:
        d = {}
        if self.protocol_name is not None:
            d["protocol_name"] = self.protocol_name
        if self.contact_details is not None:
            d["contact_details"] = [c.to_dict() for c in self.contact_details]
        if self.bounty_terms is not None:
            d["bounty_terms"] = self.bounty_terms.to_dict()
        if self.agreement_uri is not None:
            d["agreement_uri"] = self.agreement_uri
        if self.chains is not None:
            d["chains"] = [c.to_dict() for c in self.chains]
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any], fields=AGREEMENT_FIELDS) -> "AgreementPayload":
        """Parse the named fields; anything else in `data` is ignored."""
        if not isinstance(data, dict):
            raise fail(ErrorKind.INVALID_UPDATE_TYPE, "payload must be an object", "data")
        payload = cls()
        for name in fields:
            if data.get(name) is not None:
                setattr(payload, name, _FIELD_PARSERS[name](data[name]))
        return payload

    @classmethod
    def coerce(cls, value: Union["AgreementPayload", AgreementData, Dict[str, Any], None],
               fields=AGREEMENT_FIELDS) -> "AgreementPayload":
        if isinstance(value, cls):
            return value
        if isinstance(value, AgreementData):
            return cls(**{name: getattr(value, name) for name in AGREEMENT_FIELDS})
        if value is None:
            return cls()
        return cls.from_dict(value, fields)


@dataclass
class AgreementRecord:
    owner: Pubkey
    protocol_name: str
    contact_details: List[Contact]
    bounty_terms: BountyTerms
    agreement_uri: str = ""
    chains: List[Chain] = field(default_factory=list)
    allocated: int = transient(default=0)

    kind = "agreement"

    @property
    def data(self) -> AgreementData:
        return AgreementData(
            protocol_name=self.protocol_name,
            contact_details=self.contact_details,
            bounty_terms=self.bounty_terms,
            agreement_uri=self.agreement_uri,
            chains=self.chains,
        )

    def data_hash(self) -> str:
        return record_hash(self.data.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        d = {"kind": self.kind, "owner": str(self.owner)}
        d.update(self.data.to_dict())
        d["allocated"] = self.allocated
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AgreementRecord":
        terms = AgreementData.from_dict(data)
        return cls(
            owner=as_pubkey(data["owner"]),
            protocol_name=terms.protocol_name,
            contact_details=terms.contact_details,
            bounty_terms=terms.bounty_terms,
            agreement_uri=terms.agreement_uri,
            chains=terms.chains,
            allocated=int(data.get("allocated", 0)),
        )


# ============================================================
# Update-type dispatch
# ============================================================

REQUIRED_FIELDS: Dict[AgreementUpdateType, tuple] = {
    AgreementUpdateType.INITIALIZE_OR_UPDATE: AGREEMENT_FIELDS,
    AgreementUpdateType.PROTOCOL_NAME: ("protocol_name",),
    AgreementUpdateType.CONTACT_DETAILS: ("contact_details",),
    AgreementUpdateType.BOUNTY_TERMS: ("bounty_terms",),
    AgreementUpdateType.AGREEMENT_URI: ("agreement_uri",),
    AgreementUpdateType.CHAINS: ("chains",),
}


def _set_protocol_name(record, payload, registry, policy):
    record.protocol_name = validate_protocol_name(payload.protocol_name)


def _set_contact_details(record, payload, registry, policy):
    record.contact_details = validate_contact_details(payload.contact_details)


def _set_bounty_terms(record, payload, registry, policy):
    record.bounty_terms = validate_bounty_terms(payload.bounty_terms, policy)


def _set_agreement_uri(record, payload, registry, policy):
    record.agreement_uri = validate_agreement_uri(payload.agreement_uri, policy)


def _set_chains(record, payload, registry, policy):
    record.chains = validate_chains(payload.chains, registry)


Handler = Callable[[AgreementRecord, AgreementPayload, Registry, ValidationPolicy], None]

PARTIAL_HANDLERS: Dict[AgreementUpdateType, Handler] = {
    AgreementUpdateType.PROTOCOL_NAME: _set_protocol_name,
    AgreementUpdateType.CONTACT_DETAILS: _set_contact_details,
    AgreementUpdateType.BOUNTY_TERMS: _set_bounty_terms,
    AgreementUpdateType.AGREEMENT_URI: _set_agreement_uri,
    AgreementUpdateType.CHAINS: _set_chains,
}


def apply_agreement_update(
    current: Optional[AgreementRecord],
    caller: Pubkey,
    creator: Pubkey,
    update_type: Any,
    payload: Any,
    owner: Optional[Pubkey],
    registry: Optional[Registry],
    policy: ValidationPolicy = DEFAULT_POLICY,
    planner: CapacityPlanner = DEFAULT_PLANNER,
) -> AgreementRecord:
    """
    Apply one agreement mutation to a working copy.

    Args:
        current: Working copy of the stored record, or None if the slot is empty
        caller: Identity performing the mutation
        creator: Identity the record address was derived from
        update_type: AgreementUpdateType, its name, or its wire code
        payload: AgreementPayload, AgreementData, or the JSON dict form
        owner: New owner; used by InitializeOrUpdate only
        registry: Current registry state (read only)

    Returns:
        The record to persist.

    Raises:
        SafeHarborError with the first failing rule. `current` may have been
        partially modified; callers discard it on error.
    """
    update_type = AgreementUpdateType.parse(update_type)
    payload = AgreementPayload.coerce(payload, REQUIRED_FIELDS[update_type])

    missing = payload.missing(REQUIRED_FIELDS[update_type])
    if missing:
        raise fail(ErrorKind.INVALID_UPDATE_TYPE,
                   f"{update_type.value} requires: {', '.join(missing)}", missing[0])

    if registry is None or not registry.initialized:
        raise fail(ErrorKind.REGISTRY_NOT_INITIALIZED, "registry has not been initialized", "registry")

    if current is None:
        if update_type != AgreementUpdateType.INITIALIZE_OR_UPDATE:
            raise fail(ErrorKind.AGREEMENT_NOT_INITIALIZED,
                       f"{update_type.value} requires an existing agreement", "agreement")
        if caller != creator:
            raise fail(ErrorKind.NOT_AGREEMENT_OWNER, "only the creator can create an agreement", "caller")
    elif current.owner != caller:
        raise fail(ErrorKind.NOT_AGREEMENT_OWNER, f"{caller} does not own this agreement", "caller")

    if update_type == AgreementUpdateType.INITIALIZE_OR_UPDATE:
        if owner is None or as_pubkey(owner).is_default():
            raise fail(ErrorKind.INVALID_ACCOUNT_PARAMS, "owner must be a non-default key", "owner")
        data = AgreementData(
            protocol_name=payload.protocol_name,
            contact_details=payload.contact_details,
            bounty_terms=payload.bounty_terms,
            agreement_uri=payload.agreement_uri,
            chains=payload.chains,
        )
        validate_agreement_data(data, registry, policy)
        record = AgreementRecord(
            owner=as_pubkey(owner),
            protocol_name=data.protocol_name,
            contact_details=list(data.contact_details),
            bounty_terms=data.bounty_terms,
            agreement_uri=data.agreement_uri,
            chains=list(data.chains),
        )
        previous = current.allocated if current is not None else 0
        record.allocated = planner.resize(record, previous).allocated
        return record

    PARTIAL_HANDLERS[update_type](current, payload, registry, policy)
    planner.ensure_fits(current, current.allocated)
    return current
