"""
SafeHarbor Hashing

All hashes use SHA-256. Digests used as address seeds are raw 32-byte values;
digests reported to callers (record and event hashes) are lowercase hex with
an algorithm prefix.
"""

import hashlib
import hmac
from typing import Optional, Union

from .canonicalization import canonicalize
from .errors import ErrorKind, fail


def sha256_digest(data: Union[bytes, str]) -> bytes:
    """Raw 32-byte SHA-256 digest of UTF-8 text or bytes."""
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(data).digest()


def sha256_hash(data: Union[bytes, str]) -> str:
    """
    Compute SHA-256 hash in display format.

    Returns:
        Hash string in format "sha256:abcdef..."
    """
    if isinstance(data, str):
        data = data.encode('utf-8')

    digest = hashlib.sha256(data).hexdigest().lower()
    return f"sha256:{digest}"


def network_id_hash(network_id: str) -> bytes:
    """
    Hash a network identifier for use as an address seed.

    Network identifiers are variable length (CAIP-2 strings can exceed the
    32-byte seed limit), so they are always hashed before derivation.
    """
    return sha256_digest(network_id)


def coerce_hash(value: Union[bytes, str, None]) -> Optional[bytes]:
    """
    Accept a claimed hash as raw bytes or hex text (optionally "sha256:"-prefixed).

    Returns None when no hash was supplied.
    """
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if not isinstance(value, str):
        raise fail(ErrorKind.ADDRESS_HASH_MISMATCH,
                   "network_id_hash must be bytes or hex text", "network_id_hash")
    text = value[len("sha256:"):] if value.startswith("sha256:") else value
    try:
        return bytes.fromhex(text)
    except ValueError:
        raise fail(ErrorKind.ADDRESS_HASH_MISMATCH,
                   "network_id_hash is not valid hex", "network_id_hash")


def verify_network_id_hash(network_id: str, claimed: Union[bytes, str, None]) -> bytes:
    """
    Recompute the network-id hash and compare it with the caller's claim.

    An omitted claim is computed here. A mismatch means the caller asked for an
    address derived from an identifier it did not supply.

    Returns:
        The recomputed 32-byte digest.

    Raises:
        AddressError: AddressHashMismatch
    """
    computed = network_id_hash(network_id)
    claimed_bytes = coerce_hash(claimed)
    if claimed_bytes is None:
        return computed
    if not hmac.compare_digest(computed, claimed_bytes):
        raise fail(ErrorKind.ADDRESS_HASH_MISMATCH,
                   f"network_id_hash does not match '{network_id}'", "network_id_hash")
    return computed


def record_hash(record: dict) -> str:
    """
    Hash a record or payload dict.

    record_hash = SHA-256(canonical JSON(record))
    """
    return sha256_hash(canonicalize(record))


def chain_hash(prev_hash: str, entry_hash: str) -> str:
    """Link an event log entry to its predecessor."""
    return sha256_hash(f"{prev_hash}|{entry_hash}")
