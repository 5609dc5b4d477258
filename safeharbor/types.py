"""
SafeHarbor value types.

Plain dataclasses shared by agreement and adoption records. Each type has a
to_dict()/from_dict() pair for the JSON form used by the store, the service
and the CLI. from_dict() only checks shape; range and content rules live in
safeharbor.validation.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List

from .errors import ErrorKind, fail


def parse_enum(enum_cls, value: Any, kind: ErrorKind, field_name: str):
    """Accept an enum member, its value, or its declaration index."""
    if isinstance(value, enum_cls):
        return value
    members = list(enum_cls)
    if isinstance(value, int) and not isinstance(value, bool):
        if 0 <= value < len(members):
            return members[value]
    elif isinstance(value, str):
        for member in members:
            if value == member.value or value == member.name:
                return member
    raise fail(kind, f"unknown {field_name}: {value!r}", field_name)


def _require(d: Dict[str, Any], key: str, kind: ErrorKind, where: str) -> Any:
    if not isinstance(d, dict):
        raise fail(kind, f"{where} must be an object", where)
    if key not in d:
        raise fail(kind, f"{where}.{key} is required", f"{where}.{key}")
    return d[key]


class IdentityRequirement(str, Enum):
    """What a whitehat must reveal to be eligible for the bounty."""
    ANONYMOUS = "Anonymous"
    PSEUDONYMOUS = "Pseudonymous"
    NAMED = "Named"


class ChildContractScope(str, Enum):
    """Coverage of contracts deployed by or related to a scoped account."""
    NONE = "None"
    EXISTING_ONLY = "ExistingOnly"
    ALL = "All"
    FUTURE_ONLY = "FutureOnly"


@dataclass
class Contact:
    name: str
    contact: str

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "contact": self.contact}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Contact":
        kind = ErrorKind.INVALID_CONTACT_DETAILS
        return cls(
            name=_require(d, "name", kind, "contact"),
            contact=_require(d, "contact", kind, "contact"),
        )


@dataclass
class BountyTerms:
    """Reward terms offered to a whitehat who recovers funds."""
    bounty_percentage: int
    bounty_cap_usd: int
    aggregate_bounty_cap_usd: int = 0
    retainable: bool = False
    identity_requirement: IdentityRequirement = IdentityRequirement.ANONYMOUS
    diligence_requirements: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bounty_percentage": self.bounty_percentage,
            "bounty_cap_usd": self.bounty_cap_usd,
            "aggregate_bounty_cap_usd": self.aggregate_bounty_cap_usd,
            "retainable": self.retainable,
            "identity_requirement": self.identity_requirement.value,
            "diligence_requirements": self.diligence_requirements,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "BountyTerms":
        percentage = _require(d, "bounty_percentage", ErrorKind.INVALID_BOUNTY_PERCENTAGE, "bounty_terms")
        cap = _require(d, "bounty_cap_usd", ErrorKind.INVALID_BOUNTY_CAP, "bounty_terms")
        return cls(
            bounty_percentage=percentage,
            bounty_cap_usd=cap,
            aggregate_bounty_cap_usd=d.get("aggregate_bounty_cap_usd", 0),
            retainable=d.get("retainable", False),
            identity_requirement=parse_enum(
                IdentityRequirement,
                d.get("identity_requirement", IdentityRequirement.ANONYMOUS),
                ErrorKind.INVALID_ACCOUNT_PARAMS,
                "identity_requirement",
            ),
            diligence_requirements=d.get("diligence_requirements", ""),
        )


@dataclass
class AccountInScope:
    address: str
    child_contract_scope: ChildContractScope = ChildContractScope.NONE

    def to_dict(self) -> Dict[str, Any]:
        return {"address": self.address, "child_contract_scope": self.child_contract_scope.value}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AccountInScope":
        kind = ErrorKind.INVALID_ACCOUNT_PARAMS
        return cls(
            address=_require(d, "address", kind, "account"),
            child_contract_scope=parse_enum(
                ChildContractScope,
                d.get("child_contract_scope", ChildContractScope.NONE),
                kind,
                "child_contract_scope",
            ),
        )


@dataclass
class Chain:
    """Agreement scope on one network."""
    network_id: str
    asset_recovery_address: str
    accounts: List[AccountInScope] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "network_id": self.network_id,
            "asset_recovery_address": self.asset_recovery_address,
            "accounts": [a.to_dict() for a in self.accounts],
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Chain":
        accounts = d.get("accounts", []) if isinstance(d, dict) else None
        if not isinstance(accounts, list):
            raise fail(ErrorKind.INVALID_ACCOUNT_PARAMS, "chain.accounts must be a list", "chain.accounts")
        return cls(
            network_id=_require(d, "network_id", ErrorKind.INVALID_NETWORK_ID, "chain"),
            asset_recovery_address=_require(d, "asset_recovery_address",
                                            ErrorKind.INVALID_ACCOUNT_PARAMS, "chain"),
            accounts=[AccountInScope.from_dict(a) for a in accounts],
        )


def parse_list(items: Any, item_cls, kind: ErrorKind, field_name: str) -> list:
    """Parse a JSON list of objects into dataclass instances."""
    if not isinstance(items, (list, tuple)):
        raise fail(kind, f"{field_name} must be a list", field_name)
    return [i if isinstance(i, item_cls) else item_cls.from_dict(i) for i in items]
