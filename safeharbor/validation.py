"""
SafeHarbor Validation Engine

Pure, stateless checks on agreement, adoption and registry data.

Design principles:
- Every check runs against the prospective value, never the stored one
- A check returns the validated value or raises SafeHarborError with a
  specific ErrorKind; there is no warning state
- No check reads or writes a record; registry membership is passed in
- Identical inputs always produce identical outcomes
"""

import re
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Sequence

from .constants import (
    EIP155_NAMESPACE,
    MAX_ACCOUNT_ADDR_LEN,
    MAX_ACCOUNTS_PER_CHAIN,
    MAX_AGREEMENT_CHAINS,
    MAX_AGREEMENT_URI_LEN,
    MAX_ASSET_RECOVERY_ADDR_LEN,
    MAX_BOUNTY_PERCENTAGE,
    MAX_CONTACT_INFO_LEN,
    MAX_CONTACT_NAME_LEN,
    MAX_CONTACTS,
    MAX_DILIGENCE_REQUIREMENTS_LEN,
    MAX_NETWORK_ID_LEN,
    MAX_PROTOCOL_NAME_LEN,
    SOLANA_NAMESPACE,
    U64_MAX,
    VALID_URI_SCHEMES,
)
from .errors import ErrorKind, SafeHarborError, fail
from .types import AccountInScope, BountyTerms, Chain, Contact, IdentityRequirement

EIP155_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
SOLANA_ADDRESS_RE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")
U64_RE = re.compile(r"^[0-9]+$")


@dataclass(frozen=True)
class ValidationPolicy:
    """
    Switches for the rules that differ between deployments.

    require_bounty_cap: reject a zero per-incident cap
    enforce_aggregate_floor: aggregate cap, when set, must be >= per-incident cap
    require_uri_scheme: a non-empty URI must use one of VALID_URI_SCHEMES
    """
    require_bounty_cap: bool = False
    enforce_aggregate_floor: bool = True
    require_uri_scheme: bool = True


DEFAULT_POLICY = ValidationPolicy()


def _utf8_len(value: str) -> int:
    return len(value.encode('utf-8'))


def _require_str(value: Any, kind: ErrorKind, field: str) -> str:
    if not isinstance(value, str):
        raise fail(kind, f"{field} must be a string", field)
    return value


def _check_u64(value: Any, kind: ErrorKind, field: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise fail(kind, f"{field} must be an integer", field)
    if value < 0 or value > U64_MAX:
        raise fail(kind, f"{field} out of u64 range: {value}", field)
    return value


def namespace_of(network_id: str) -> str:
    return network_id.split(":", 1)[0]


# ============================================================
# Agreement fields
# ============================================================

def validate_protocol_name(name: Any) -> str:
    name = _require_str(name, ErrorKind.INVALID_PROTOCOL_NAME, "protocol_name")
    if not name.strip():
        raise fail(ErrorKind.INVALID_PROTOCOL_NAME, "must not be empty or whitespace", "protocol_name")
    if _utf8_len(name) > MAX_PROTOCOL_NAME_LEN:
        raise fail(ErrorKind.INVALID_PROTOCOL_NAME,
                   f"longer than {MAX_PROTOCOL_NAME_LEN} bytes", "protocol_name")
    return name


def validate_contact_details(contacts: Sequence[Contact]) -> List[Contact]:
    """At least one contact, at most MAX_CONTACTS; every name and contact non-blank."""
    kind = ErrorKind.INVALID_CONTACT_DETAILS
    if not isinstance(contacts, (list, tuple)):
        raise fail(kind, "contact_details must be a list", "contact_details")
    if not contacts:
        raise fail(kind, "at least one contact is required", "contact_details")
    if len(contacts) > MAX_CONTACTS:
        raise fail(kind, f"at most {MAX_CONTACTS} contacts", "contact_details")
    for i, c in enumerate(contacts):
        where = f"contact_details[{i}]"
        name = _require_str(c.name, kind, f"{where}.name")
        contact = _require_str(c.contact, kind, f"{where}.contact")
        if not name.strip():
            raise fail(kind, "name must not be empty", f"{where}.name")
        if not contact.strip():
            raise fail(kind, "contact must not be empty", f"{where}.contact")
        if _utf8_len(name) > MAX_CONTACT_NAME_LEN:
            raise fail(kind, f"name longer than {MAX_CONTACT_NAME_LEN} bytes", f"{where}.name")
        if _utf8_len(contact) > MAX_CONTACT_INFO_LEN:
            raise fail(kind, f"contact longer than {MAX_CONTACT_INFO_LEN} bytes", f"{where}.contact")
    return list(contacts)


def validate_bounty_terms(terms: BountyTerms, policy: ValidationPolicy = DEFAULT_POLICY) -> BountyTerms:
    pct = _check_u64(terms.bounty_percentage, ErrorKind.INVALID_BOUNTY_PERCENTAGE,
                     "bounty_terms.bounty_percentage")
    if pct > MAX_BOUNTY_PERCENTAGE:
        raise fail(ErrorKind.INVALID_BOUNTY_PERCENTAGE,
                   f"must be 0..={MAX_BOUNTY_PERCENTAGE}, got {pct}", "bounty_terms.bounty_percentage")

    cap = _check_u64(terms.bounty_cap_usd, ErrorKind.INVALID_BOUNTY_CAP, "bounty_terms.bounty_cap_usd")
    aggregate = _check_u64(terms.aggregate_bounty_cap_usd, ErrorKind.INVALID_AGGREGATE_BOUNTY_CAP,
                           "bounty_terms.aggregate_bounty_cap_usd")

    if not isinstance(terms.retainable, bool):
        raise fail(ErrorKind.CONFLICTING_RETAINABLE_AND_AGGREGATE_CAP,
                   "retainable must be a boolean", "bounty_terms.retainable")
    if aggregate > 0 and terms.retainable:
        raise fail(ErrorKind.CONFLICTING_RETAINABLE_AND_AGGREGATE_CAP,
                   "an aggregate cap cannot be combined with retainable bounties",
                   "bounty_terms.aggregate_bounty_cap_usd")

    if policy.require_bounty_cap and cap == 0:
        raise fail(ErrorKind.INVALID_BOUNTY_CAP, "bounty cap must be non-zero", "bounty_terms.bounty_cap_usd")
    if policy.enforce_aggregate_floor and aggregate > 0 and cap > 0 and aggregate < cap:
        raise fail(ErrorKind.INVALID_AGGREGATE_BOUNTY_CAP,
                   f"aggregate cap {aggregate} is below per-incident cap {cap}",
                   "bounty_terms.aggregate_bounty_cap_usd")

    if not isinstance(terms.identity_requirement, IdentityRequirement):
        raise fail(ErrorKind.INVALID_ACCOUNT_PARAMS, "unknown identity requirement",
                   "bounty_terms.identity_requirement")
    diligence = _require_str(terms.diligence_requirements, ErrorKind.FIELD_LENGTH_EXCEEDED,
                             "bounty_terms.diligence_requirements")
    if _utf8_len(diligence) > MAX_DILIGENCE_REQUIREMENTS_LEN:
        raise fail(ErrorKind.FIELD_LENGTH_EXCEEDED,
                   f"longer than {MAX_DILIGENCE_REQUIREMENTS_LEN} bytes",
                   "bounty_terms.diligence_requirements")
    return terms


def validate_agreement_uri(uri: Any, policy: ValidationPolicy = DEFAULT_POLICY) -> str:
    """An empty URI is accepted; a non-empty one must use a known scheme when the policy asks."""
    uri = _require_str(uri, ErrorKind.INVALID_AGREEMENT_URI, "agreement_uri")
    if _utf8_len(uri) > MAX_AGREEMENT_URI_LEN:
        raise fail(ErrorKind.INVALID_AGREEMENT_URI,
                   f"longer than {MAX_AGREEMENT_URI_LEN} bytes", "agreement_uri")
    if uri and policy.require_uri_scheme and not uri.startswith(VALID_URI_SCHEMES):
        raise fail(ErrorKind.INVALID_AGREEMENT_URI,
                   f"scheme must be one of {', '.join(VALID_URI_SCHEMES)}", "agreement_uri")
    return uri


# ============================================================
# Networks
# ============================================================

def validate_network_id(network_id: Any, field: str = "network_id") -> str:
    """
    CAIP-2 identifier: exactly one ':' separating two non-empty parts.

    eip155 references must be unsigned 64-bit integers.
    """
    network_id = _require_str(network_id, ErrorKind.INVALID_NETWORK_ID, field)
    if _utf8_len(network_id) > MAX_NETWORK_ID_LEN:
        raise fail(ErrorKind.FIELD_LENGTH_EXCEEDED,
                   f"network id longer than {MAX_NETWORK_ID_LEN} bytes", field)
    parts = network_id.split(":")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise fail(ErrorKind.INVALID_NETWORK_ID,
                   f"'{network_id}' is not a namespace:reference identifier", field)
    namespace, reference = parts
    if namespace == EIP155_NAMESPACE:
        if not U64_RE.match(reference) or int(reference) > U64_MAX:
            raise fail(ErrorKind.INVALID_NETWORK_ID,
                       f"eip155 reference must be an unsigned integer, got '{reference}'", field)
    return network_id


def validate_network_scope_against_registry(network_ids: Iterable[str], registry) -> None:
    """Every network id must be recognized by the registry."""
    for network_id in network_ids:
        if not registry.is_recognized(network_id):
            raise fail(ErrorKind.NETWORK_NOT_RECOGNIZED,
                       f"'{network_id}' is not a recognized network", "network_id")


def validate_no_duplicates(values: Iterable[str], kind: ErrorKind, field: str) -> None:
    seen = set()
    for value in values:
        if value in seen:
            raise fail(kind, f"duplicate entry '{value}'", field)
        seen.add(value)


# ============================================================
# Addresses and scoped accounts
# ============================================================

def validate_account_address(address: Any, network_id: str,
                             max_len: int = MAX_ACCOUNT_ADDR_LEN,
                             field: str = "address") -> str:
    """
    Namespace-aware address shape check.

    eip155: 0x followed by 40 hex digits
    solana: 32 to 44 base58 characters
    anything else: non-empty, not otherwise checked
    """
    address = _require_str(address, ErrorKind.INVALID_ACCOUNT_PARAMS, field)
    if not address:
        raise fail(ErrorKind.INVALID_ACCOUNT_PARAMS, "address must not be empty", field)
    if _utf8_len(address) > max_len:
        raise fail(ErrorKind.FIELD_LENGTH_EXCEEDED, f"address longer than {max_len} bytes", field)

    namespace = namespace_of(network_id)
    if namespace == EIP155_NAMESPACE and not EIP155_ADDRESS_RE.match(address):
        raise fail(ErrorKind.INVALID_ACCOUNT_PARAMS, f"'{address}' is not an eip155 address", field)
    if namespace == SOLANA_NAMESPACE and not SOLANA_ADDRESS_RE.match(address):
        raise fail(ErrorKind.INVALID_ACCOUNT_PARAMS, f"'{address}' is not a solana address", field)
    return address


def validate_recovery_address(address: Any, network_id: str,
                              field: str = "asset_recovery_address") -> str:
    return validate_account_address(address, network_id, MAX_ASSET_RECOVERY_ADDR_LEN, field)


def validate_scoped_accounts(accounts: Sequence[AccountInScope], network_id: str,
                             field: str = "accounts") -> List[AccountInScope]:
    """Shape, count bound and address uniqueness of one network's account list."""
    if not isinstance(accounts, (list, tuple)):
        raise fail(ErrorKind.INVALID_ACCOUNT_PARAMS, f"{field} must be a list", field)
    if len(accounts) > MAX_ACCOUNTS_PER_CHAIN:
        raise fail(ErrorKind.FIELD_LENGTH_EXCEEDED,
                   f"at most {MAX_ACCOUNTS_PER_CHAIN} accounts, got {len(accounts)}", field)
    for i, account in enumerate(accounts):
        validate_account_address(account.address, network_id, field=f"{field}[{i}].address")
    validate_no_duplicates((a.address for a in accounts), ErrorKind.INVALID_ACCOUNT_PARAMS, field)
    return list(accounts)


def validate_chains(chains: Sequence[Chain], registry=None) -> List[Chain]:
    """
    Validate an agreement's network scope.

    Checks count bound, network id shape, duplicate network ids, recovery
    address and account lists, then registry membership when a registry is given.
    """
    if not isinstance(chains, (list, tuple)):
        raise fail(ErrorKind.INVALID_ACCOUNT_PARAMS, "chains must be a list", "chains")
    if len(chains) > MAX_AGREEMENT_CHAINS:
        raise fail(ErrorKind.FIELD_LENGTH_EXCEEDED,
                   f"at most {MAX_AGREEMENT_CHAINS} chains, got {len(chains)}", "chains")
    for i, chain in enumerate(chains):
        where = f"chains[{i}]"
        validate_network_id(chain.network_id, f"{where}.network_id")
        validate_recovery_address(chain.asset_recovery_address, chain.network_id,
                                  f"{where}.asset_recovery_address")
        validate_scoped_accounts(chain.accounts, chain.network_id, f"{where}.accounts")
    validate_no_duplicates((c.network_id for c in chains), ErrorKind.DUPLICATE_NETWORK_ID, "chains")
    if registry is not None:
        validate_network_scope_against_registry((c.network_id for c in chains), registry)
    return list(chains)


def validate_agreement_data(data, registry=None, policy: ValidationPolicy = DEFAULT_POLICY):
    """
    Run every agreement rule in order: name, contacts, bounty terms, URI, chains.

    `data` is an AgreementData (or anything with the same attributes).
    """
    validate_protocol_name(data.protocol_name)
    validate_contact_details(data.contact_details)
    validate_bounty_terms(data.bounty_terms, policy)
    validate_agreement_uri(data.agreement_uri, policy)
    validate_chains(data.chains, registry)
    return data


def validate_network_list(networks: Any, field: str = "networks") -> List[str]:
    """Registry input: a non-empty list of valid network ids, de-duplicated in order."""
    if not isinstance(networks, (list, tuple)) or not networks:
        raise fail(ErrorKind.INVALID_NETWORK_ID, "at least one network id is required", field)
    result: List[str] = []
    for network_id in networks:
        validate_network_id(network_id, field)
        if network_id not in result:
            result.append(network_id)
    return result


def first_error(check, *args, **kwargs) -> Optional[ErrorKind]:
    """Run a check and return the failing ErrorKind, or None when it passes."""
    try:
        check(*args, **kwargs)
    except SafeHarborError as e:
        return e.kind
    return None
