"""
SafeHarbor error taxonomy.

Every rejected operation raises a SafeHarborError carrying a stable ErrorKind.
Kinds are grouped into subclasses so callers can catch a whole category
(e.g. every bounty-terms failure) without matching on individual kinds.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Stable, caller-visible failure kinds."""
    # Registry
    REGISTRY_NOT_INITIALIZED = "RegistryNotInitialized"
    REGISTRY_ALREADY_INITIALIZED = "RegistryAlreadyInitialized"
    NOT_REGISTRY_OWNER = "NotRegistryOwner"

    # Networks
    INVALID_NETWORK_ID = "InvalidNetworkId"
    NETWORK_NOT_RECOGNIZED = "NetworkNotRecognized"
    DUPLICATE_NETWORK_ID = "DuplicateNetworkId"

    # Field validation
    INVALID_PROTOCOL_NAME = "InvalidProtocolName"
    INVALID_CONTACT_DETAILS = "InvalidContactDetails"
    INVALID_AGREEMENT_URI = "InvalidAgreementUri"
    INVALID_ACCOUNT_PARAMS = "InvalidAccountParams"
    INVALID_UPDATE_TYPE = "InvalidUpdateType"
    FIELD_LENGTH_EXCEEDED = "FieldLengthExceeded"

    # Bounty terms
    INVALID_BOUNTY_PERCENTAGE = "InvalidBountyPercentage"
    INVALID_BOUNTY_CAP = "InvalidBountyCap"
    INVALID_AGGREGATE_BOUNTY_CAP = "InvalidAggregateBountyCap"
    CONFLICTING_RETAINABLE_AND_AGGREGATE_CAP = "ConflictingRetainableAndAggregateCap"

    # Agreements
    NOT_AGREEMENT_OWNER = "NotAgreementOwner"
    AGREEMENT_NOT_INITIALIZED = "AgreementNotInitialized"

    # Adoptions
    NO_AGREEMENT_FOR_ADOPTER = "NoAgreementForAdopter"
    ADOPTION_ENTRY_NOT_FOUND = "AdoptionEntryNotFound"
    ADOPTION_ALREADY_EXISTS = "AdoptionAlreadyExists"

    # Storage and addressing
    INSUFFICIENT_CAPACITY = "InsufficientCapacity"
    ADDRESS_HASH_MISMATCH = "AddressHashMismatch"
    ADDRESS_DERIVATION_FAILED = "AddressDerivationFailed"

    # Request authentication (service layer)
    INVALID_SIGNATURE = "InvalidSignature"


class SafeHarborError(Exception):
    """Raised when an operation is rejected. Nothing has been written."""

    def __init__(self, kind: ErrorKind, message: str = "", field: Optional[str] = None):
        self.kind = kind
        self.message = message or kind.value
        self.field = field
        super().__init__(f"{kind.value}: {self.message}")

    def to_dict(self) -> Dict[str, Any]:
        d = {"detail": self.kind.value, "message": self.message}
        if self.field:
            d["field"] = self.field
        return d


class RegistryError(SafeHarborError):
    """Registry lifecycle and ownership failures."""


class ValidationError(SafeHarborError):
    """A field or cross-field rule rejected the prospective data."""


class BountyError(ValidationError):
    """Bounty terms rules."""


class AuthorizationError(SafeHarborError):
    """The caller is not allowed to mutate the record."""


class AgreementError(SafeHarborError):
    """Agreement record lookup failures."""


class AdoptionError(SafeHarborError):
    """Adoption record lookup failures."""


class CapacityError(SafeHarborError):
    """The record would not fit its storage allocation."""


class AddressError(SafeHarborError):
    """Address derivation or address-hash integrity failures."""


_KIND_CLASSES = {
    ErrorKind.REGISTRY_NOT_INITIALIZED: RegistryError,
    ErrorKind.REGISTRY_ALREADY_INITIALIZED: RegistryError,
    ErrorKind.NOT_REGISTRY_OWNER: AuthorizationError,
    ErrorKind.NOT_AGREEMENT_OWNER: AuthorizationError,
    ErrorKind.INVALID_SIGNATURE: AuthorizationError,
    ErrorKind.INVALID_BOUNTY_PERCENTAGE: BountyError,
    ErrorKind.INVALID_BOUNTY_CAP: BountyError,
    ErrorKind.INVALID_AGGREGATE_BOUNTY_CAP: BountyError,
    ErrorKind.CONFLICTING_RETAINABLE_AND_AGGREGATE_CAP: BountyError,
    ErrorKind.AGREEMENT_NOT_INITIALIZED: AgreementError,
    ErrorKind.NO_AGREEMENT_FOR_ADOPTER: AdoptionError,
    ErrorKind.ADOPTION_ENTRY_NOT_FOUND: AdoptionError,
    ErrorKind.ADOPTION_ALREADY_EXISTS: AdoptionError,
    ErrorKind.INSUFFICIENT_CAPACITY: CapacityError,
    ErrorKind.ADDRESS_HASH_MISMATCH: AddressError,
    ErrorKind.ADDRESS_DERIVATION_FAILED: AddressError,
}

# Kinds the HTTP layer reports as 403 / 404 / 409.
FORBIDDEN_KINDS = frozenset({
    ErrorKind.NOT_REGISTRY_OWNER,
    ErrorKind.NOT_AGREEMENT_OWNER,
    ErrorKind.INVALID_SIGNATURE,
})
NOT_FOUND_KINDS = frozenset({
    ErrorKind.AGREEMENT_NOT_INITIALIZED,
    ErrorKind.NO_AGREEMENT_FOR_ADOPTER,
    ErrorKind.ADOPTION_ENTRY_NOT_FOUND,
    ErrorKind.REGISTRY_NOT_INITIALIZED,
})
CONFLICT_KINDS = frozenset({
    ErrorKind.REGISTRY_ALREADY_INITIALIZED,
    ErrorKind.ADOPTION_ALREADY_EXISTS,
})


def fail(kind: ErrorKind, message: str = "", field: Optional[str] = None) -> SafeHarborError:
    """
    Build the error for a kind, picking its category subclass.

    Usage:
        raise fail(ErrorKind.INVALID_PROTOCOL_NAME, "must not be empty", "protocol_name")
    """
    cls = _KIND_CLASSES.get(kind, ValidationError)
    return cls(kind, message, field)
