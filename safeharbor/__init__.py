"""
SafeHarbor Registry

Version: 1.0.0

A keyed record store for safe harbor agreements: the terms under which a
protocol lets whitehats rescue funds during an active exploit, which parties
have adopted which agreement on which network, and a registry of the network
identifiers the system recognizes.

Every record lives at a deterministic address derived from its seeds. Every
mutation names an update type, is validated against the prospective data,
and either fully applies or leaves storage untouched.

Usage:
    from safeharbor import SafeHarborProgram, Keypair

    program = SafeHarborProgram()
    owner = Keypair.generate().pubkey

    program.initialize(owner, ["eip155:1"])

    event = program.create_or_update_agreement(
        caller=owner,
        nonce=1,
        data={
            "protocol_name": "Acme",
            "contact_details": [{"name": "Security", "contact": "security@acme.example"}],
            "bounty_terms": {"bounty_percentage": 10, "bounty_cap_usd": 100000},
            "agreement_uri": "ipfs://Qm...",
            "chains": [],
        },
        owner=owner,
        update_type="InitializeOrUpdate",
    )

    agreement = program.get_agreement(event.agreement)
"""

__version__ = "1.0.0"

# Identities, hashing, canonical JSON
from .pubkey import Pubkey, as_pubkey, b58decode, b58encode
from .canonicalization import canonicalize, canonicalize_str
from .hashing import (
    sha256_digest,
    sha256_hash,
    network_id_hash,
    verify_network_id_hash,
    record_hash,
)

# Errors
from .errors import (
    ErrorKind,
    SafeHarborError,
    RegistryError,
    ValidationError,
    BountyError,
    AuthorizationError,
    AgreementError,
    AdoptionError,
    CapacityError,
    AddressError,
)

# Addressing
from .addressing import (
    DEFAULT_PROGRAM_ID,
    derive_address,
    seed_component,
    find_registry_address,
    find_agreement_address,
    find_adoption_address,
)

# Value types and validation
from .types import (
    Contact,
    BountyTerms,
    IdentityRequirement,
    ChildContractScope,
    AccountInScope,
    Chain,
)
from .validation import (
    ValidationPolicy,
    DEFAULT_POLICY,
    validate_protocol_name,
    validate_contact_details,
    validate_bounty_terms,
    validate_agreement_uri,
    validate_network_id,
    validate_network_scope_against_registry,
    validate_account_address,
    validate_no_duplicates,
    validate_chains,
    validate_agreement_data,
)
from .capacity import CapacityPlanner, CapacityBudget, encoded_size, record_size

# Records
from .registry import Registry
from .agreement import (
    AgreementData,
    AgreementPayload,
    AgreementRecord,
    AgreementUpdateType,
    apply_agreement_update,
)
from .adoption import (
    AdoptionPayload,
    AdoptionRecord,
    AdoptionUpdateType,
    apply_adoption_update,
)

# Events, storage, host facade
from .events import (
    EventSink,
    InMemoryEventLog,
    RegistryInitialized,
    RecognizedNetworksChanged,
    AgreementUpdated,
    SafeHarborAdopted,
    AdoptionUpdated,
)
from .store import RecordStore, RecordSlot, MemoryRecordStore, record_from_dict
from .program import SafeHarborProgram

# Signing
from .signing import Keypair, sign_message, verify_signature, sign_request, request_message


__all__ = [
    "__version__",

    # Identities
    "Pubkey",
    "as_pubkey",
    "b58decode",
    "b58encode",

    # Canonicalization and hashing
    "canonicalize",
    "canonicalize_str",
    "sha256_digest",
    "sha256_hash",
    "network_id_hash",
    "verify_network_id_hash",
    "record_hash",

    # Errors
    "ErrorKind",
    "SafeHarborError",
    "RegistryError",
    "ValidationError",
    "BountyError",
    "AuthorizationError",
    "AgreementError",
    "AdoptionError",
    "CapacityError",
    "AddressError",

    # Addressing
    "DEFAULT_PROGRAM_ID",
    "derive_address",
    "seed_component",
    "find_registry_address",
    "find_agreement_address",
    "find_adoption_address",

    # Types
    "Contact",
    "BountyTerms",
    "IdentityRequirement",
    "ChildContractScope",
    "AccountInScope",
    "Chain",

    # Validation
    "ValidationPolicy",
    "DEFAULT_POLICY",
    "validate_protocol_name",
    "validate_contact_details",
    "validate_bounty_terms",
    "validate_agreement_uri",
    "validate_network_id",
    "validate_network_scope_against_registry",
    "validate_account_address",
    "validate_no_duplicates",
    "validate_chains",
    "validate_agreement_data",

    # Capacity
    "CapacityPlanner",
    "CapacityBudget",
    "encoded_size",
    "record_size",

    # Records
    "Registry",
    "AgreementData",
    "AgreementPayload",
    "AgreementRecord",
    "AgreementUpdateType",
    "apply_agreement_update",
    "AdoptionPayload",
    "AdoptionRecord",
    "AdoptionUpdateType",
    "apply_adoption_update",

    # Events
    "EventSink",
    "InMemoryEventLog",
    "RegistryInitialized",
    "RecognizedNetworksChanged",
    "AgreementUpdated",
    "SafeHarborAdopted",
    "AdoptionUpdated",

    # Storage and host
    "RecordStore",
    "RecordSlot",
    "MemoryRecordStore",
    "record_from_dict",
    "SafeHarborProgram",

    # Signing
    "Keypair",
    "sign_message",
    "verify_signature",
    "sign_request",
    "request_message",
]
