"""
SafeHarbor Adoption Records

An adoption links an adopter, on one network, to an agreement and lists the
adopter's accounts on that network that the agreement covers. One adopter may
hold one adoption per network; the record address is derived from the adopter
and the SHA-256 of the network id.

Update types (declaration order is the wire code):

    InitializeOrUpdate          (0) agreement, asset_recovery_address, accounts
    ReplaceAll                  (1) agreement, asset_recovery_address, accounts
    AddAccounts                 (2) accounts
    RemoveAccounts              (3) addresses
    UpdateAssetRecoveryAddress  (4) asset_recovery_address
    UpdateAgreement             (5) agreement
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from .agreement import AgreementRecord
from .capacity import DEFAULT_PLANNER, CapacityPlanner, transient
from .constants import MAX_ACCOUNTS_PER_CHAIN
from .errors import ErrorKind, fail
from .pubkey import Pubkey, as_pubkey
from .types import AccountInScope, parse_enum, parse_list
from .validation import (
    validate_account_address,
    validate_network_id,
    validate_recovery_address,
    validate_scoped_accounts,
)


class AdoptionUpdateType(str, Enum):
    INITIALIZE_OR_UPDATE = "InitializeOrUpdate"
    REPLACE_ALL = "ReplaceAll"
    ADD_ACCOUNTS = "AddAccounts"
    REMOVE_ACCOUNTS = "RemoveAccounts"
    UPDATE_ASSET_RECOVERY_ADDRESS = "UpdateAssetRecoveryAddress"
    UPDATE_AGREEMENT = "UpdateAgreement"

    @property
    def code(self) -> int:
        return list(type(self)).index(self)

    @classmethod
    def parse(cls, value: Any) -> "AdoptionUpdateType":
        return parse_enum(cls, value, ErrorKind.INVALID_UPDATE_TYPE, "update_type")


@dataclass
class AdoptionPayload:
    """Request payload; the update type decides which fields are required."""
    agreement: Optional[Pubkey] = None
    asset_recovery_address: Optional[str] = None
    accounts: Optional[List[AccountInScope]] = None
    addresses: Optional[List[str]] = None

    def missing(self, names) -> List[str]:
        return [n for n in names if getattr(self, n) is None]

    def to_dict(self) -> Dict[str, Any]:
        d = {}
        if self.agreement is not None:
            d["agreement"] = str(self.agreement)
        if self.asset_recovery_address is not None:
            d["asset_recovery_address"] = self.asset_recovery_address
        if self.accounts is not None:
            d["accounts"] = [a.to_dict() for a in self.accounts]
        if self.addresses is not None:
            d["addresses"] = list(self.addresses)
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AdoptionPayload":
        if not isinstance(data, dict):
            raise fail(ErrorKind.INVALID_UPDATE_TYPE, "payload must be an object", "payload")
        payload = cls(asset_recovery_address=data.get("asset_recovery_address"))
        if data.get("agreement") is not None:
            try:
                payload.agreement = as_pubkey(data["agreement"])
            except (TypeError, ValueError) as e:
                raise fail(ErrorKind.INVALID_ACCOUNT_PARAMS, str(e), "agreement")
        if data.get("accounts") is not None:
            payload.accounts = parse_list(data["accounts"], AccountInScope,
                                          ErrorKind.INVALID_ACCOUNT_PARAMS, "accounts")
        if data.get("addresses") is not None:
            addresses = data["addresses"]
            if not isinstance(addresses, (list, tuple)) or not all(isinstance(a, str) for a in addresses):
                raise fail(ErrorKind.INVALID_ACCOUNT_PARAMS, "addresses must be a list of strings", "addresses")
            payload.addresses = list(addresses)
        return payload

    @classmethod
    def coerce(cls, value: Union["AdoptionPayload", Dict[str, Any], None]) -> "AdoptionPayload":
        if isinstance(value, cls):
            return value
        if value is None:
            return cls()
        return cls.from_dict(value)


@dataclass
class AdoptionRecord:
    adopter: Pubkey
    network_id: str
    agreement: Pubkey
    asset_recovery_address: str
    accounts: List[AccountInScope] = field(default_factory=list)
    allocated: int = transient(default=0)

    kind = "adoption"

    def account_addresses(self) -> List[str]:
        return [a.address for a in self.accounts]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "adopter": str(self.adopter),
            "network_id": self.network_id,
            "agreement": str(self.agreement),
            "asset_recovery_address": self.asset_recovery_address,
            "accounts": [a.to_dict() for a in self.accounts],
            "allocated": self.allocated,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AdoptionRecord":
        return cls(
            adopter=as_pubkey(data["adopter"]),
            network_id=data["network_id"],
            agreement=as_pubkey(data["agreement"]),
            asset_recovery_address=data["asset_recovery_address"],
            accounts=[AccountInScope.from_dict(a) for a in data.get("accounts", [])],
            allocated=int(data.get("allocated", 0)),
        )


# ============================================================
# Update-type dispatch
# ============================================================

REQUIRED_FIELDS: Dict[AdoptionUpdateType, tuple] = {
    AdoptionUpdateType.INITIALIZE_OR_UPDATE: ("agreement", "asset_recovery_address", "accounts"),
    AdoptionUpdateType.REPLACE_ALL: ("agreement", "asset_recovery_address", "accounts"),
    AdoptionUpdateType.ADD_ACCOUNTS: ("accounts",),
    AdoptionUpdateType.REMOVE_ACCOUNTS: ("addresses",),
    AdoptionUpdateType.UPDATE_ASSET_RECOVERY_ADDRESS: ("asset_recovery_address",),
    AdoptionUpdateType.UPDATE_AGREEMENT: ("agreement",),
}

AgreementLookup = Callable[[Pubkey], Any]


def _check_agreement(agreement: Pubkey, lookup: AgreementLookup) -> Pubkey:
    if agreement.is_default():
        raise fail(ErrorKind.INVALID_ACCOUNT_PARAMS, "agreement must be a non-default key", "agreement")
    if not isinstance(lookup(agreement), AgreementRecord):
        raise fail(ErrorKind.NO_AGREEMENT_FOR_ADOPTER, f"no agreement at {agreement}", "agreement")
    return agreement


def _full_write(current, adopter, network_id, payload, planner) -> AdoptionRecord:
    record = AdoptionRecord(
        adopter=adopter,
        network_id=network_id,
        agreement=payload.agreement,
        asset_recovery_address=validate_recovery_address(payload.asset_recovery_address, network_id),
        accounts=validate_scoped_accounts(payload.accounts, network_id),
    )
    previous = current.allocated if current is not None else 0
    record.allocated = planner.resize(record, previous).allocated
    return record


def _add_accounts(record: AdoptionRecord, payload: AdoptionPayload) -> None:
    merged = list(record.accounts)
    known = set(record.account_addresses())
    for i, account in enumerate(payload.accounts):
        validate_account_address(account.address, record.network_id, field=f"accounts[{i}].address")
        if account.address in known:
            continue
        merged.append(account)
        known.add(account.address)
    if len(merged) > MAX_ACCOUNTS_PER_CHAIN:
        raise fail(ErrorKind.FIELD_LENGTH_EXCEEDED,
                   f"at most {MAX_ACCOUNTS_PER_CHAIN} accounts, would have {len(merged)}", "accounts")
    record.accounts = merged


def _remove_accounts(record: AdoptionRecord, payload: AdoptionPayload) -> None:
    removing = set(payload.addresses)
    record.accounts = [a for a in record.accounts if a.address not in removing]


def apply_adoption_update(
    current: Optional[AdoptionRecord],
    adopter: Pubkey,
    network_id: str,
    update_type: Any,
    payload: Any,
    agreement_lookup: AgreementLookup,
    planner: CapacityPlanner = DEFAULT_PLANNER,
) -> Tuple[AdoptionRecord, Optional[Pubkey]]:
    """
    Apply one adoption mutation to a working copy.

    The caller has already checked the network-id hash and derived the record
    address from `adopter`, so only the adopter can reach its own record.

    Returns:
        (record to persist, agreement referenced before the update or None)
    """
    update_type = AdoptionUpdateType.parse(update_type)
    payload = AdoptionPayload.coerce(payload)

    missing = payload.missing(REQUIRED_FIELDS[update_type])
    if missing:
        raise fail(ErrorKind.INVALID_UPDATE_TYPE,
                   f"{update_type.value} requires: {', '.join(missing)}", missing[0])

    validate_network_id(network_id)

    if current is not None and current.network_id != network_id:
        raise fail(ErrorKind.ADOPTION_ALREADY_EXISTS,
                   f"address holds an adoption for '{current.network_id}'", "network_id")
    if current is None and update_type != AdoptionUpdateType.INITIALIZE_OR_UPDATE:
        raise fail(ErrorKind.ADOPTION_ENTRY_NOT_FOUND,
                   f"{update_type.value} requires an existing adoption", "adoption")

    if payload.agreement is not None and update_type in (
        AdoptionUpdateType.INITIALIZE_OR_UPDATE,
        AdoptionUpdateType.REPLACE_ALL,
        AdoptionUpdateType.UPDATE_AGREEMENT,
    ):
        _check_agreement(payload.agreement, agreement_lookup)

    old_agreement = current.agreement if current is not None else None

    if update_type in (AdoptionUpdateType.INITIALIZE_OR_UPDATE, AdoptionUpdateType.REPLACE_ALL):
        return _full_write(current, adopter, network_id, payload, planner), old_agreement

    if update_type == AdoptionUpdateType.ADD_ACCOUNTS:
        _add_accounts(current, payload)
    elif update_type == AdoptionUpdateType.REMOVE_ACCOUNTS:
        _remove_accounts(current, payload)
    elif update_type == AdoptionUpdateType.UPDATE_ASSET_RECOVERY_ADDRESS:
        current.asset_recovery_address = validate_recovery_address(
            payload.asset_recovery_address, network_id)
    elif update_type == AdoptionUpdateType.UPDATE_AGREEMENT:
        current.agreement = payload.agreement

    planner.ensure_fits(current, current.allocated)
    return current, old_agreement
