"""
SafeHarbor Address Derivation

Every record lives at an address computed from an ordered list of seed
components and the program id. Anyone who knows the seeds can recompute it.

    candidate = SHA-256(seed_1 || ... || seed_n || bump || program_id || "ProgramDerivedAddress")

The bump is searched from 255 downward; the first candidate that is not a
valid Ed25519 point is the address, so no private key can ever sign for it.
"""

import hashlib
import logging
import struct
from typing import List, Sequence, Tuple, Union

from nacl.bindings import crypto_core_ed25519_is_valid_point

from .constants import (
    ADOPTION_SEED,
    AGREEMENT_SEED,
    MAX_SEED_LEN,
    MAX_SEEDS,
    PDA_MARKER,
    REGISTRY_SEED,
    U64_MAX,
)
from .errors import ErrorKind, fail
from .hashing import network_id_hash, sha256_digest
from .pubkey import Pubkey

logger = logging.getLogger(__name__)

Seed = Union[bytes, str, Pubkey]

# Default program id used when a host does not configure its own.
DEFAULT_PROGRAM_ID = Pubkey(sha256_digest(b"safeharbor.registry.v2"))


def seed_component(value: Seed) -> bytes:
    """
    Normalize a seed to bytes of at most MAX_SEED_LEN.

    Values longer than the limit are replaced by their SHA-256 digest.
    """
    if isinstance(value, Pubkey):
        return value.to_bytes()
    if isinstance(value, str):
        value = value.encode('utf-8')
    if len(value) <= MAX_SEED_LEN:
        return bytes(value)
    return sha256_digest(value)


def is_on_curve(candidate: bytes) -> bool:
    """True when the 32 bytes decode to a valid Ed25519 point."""
    return bool(crypto_core_ed25519_is_valid_point(candidate))


def _check_seeds(seeds: Sequence[bytes]) -> None:
    # bump is appended as one more seed
    if len(seeds) + 1 > MAX_SEEDS:
        raise fail(ErrorKind.FIELD_LENGTH_EXCEEDED,
                   f"at most {MAX_SEEDS - 1} seeds allowed, got {len(seeds)}", "seeds")
    for i, seed in enumerate(seeds):
        if len(seed) > MAX_SEED_LEN:
            raise fail(ErrorKind.FIELD_LENGTH_EXCEEDED,
                       f"seed {i} is {len(seed)} bytes (max {MAX_SEED_LEN})", "seeds")


def _candidate(seeds: Sequence[bytes], bump: int, program_id: Pubkey) -> bytes:
    h = hashlib.sha256()
    for seed in seeds:
        h.update(seed)
    h.update(bytes([bump]))
    h.update(program_id.to_bytes())
    h.update(PDA_MARKER)
    return h.digest()


def create_address(seeds: Sequence[bytes], bump: int, program_id: Pubkey) -> Pubkey:
    """
    Compute the address for one explicit bump.

    Raises AddressDerivationFailed if the candidate lies on the curve.
    """
    seeds = list(seeds)
    _check_seeds(seeds)
    candidate = _candidate(seeds, bump, program_id)
    if is_on_curve(candidate):
        raise fail(ErrorKind.ADDRESS_DERIVATION_FAILED,
                   f"bump {bump} yields an on-curve point", "bump")
    return Pubkey(candidate)


def derive_address(seeds: Sequence[Seed], program_id: Pubkey = DEFAULT_PROGRAM_ID) -> Tuple[Pubkey, int]:
    """
    Find the record address and its bump for a seed list.

    Args:
        seeds: Ordered seed components. Each must already be <= 32 bytes;
               use seed_component() for variable-length values.
        program_id: Namespace the addresses belong to.

    Returns:
        (address, bump)
    """
    raw: List[bytes] = []
    for seed in seeds:
        if isinstance(seed, Pubkey):
            raw.append(seed.to_bytes())
        elif isinstance(seed, str):
            raw.append(seed.encode('utf-8'))
        else:
            raw.append(bytes(seed))
    _check_seeds(raw)

    for bump in range(255, -1, -1):
        candidate = _candidate(raw, bump, program_id)
        if not is_on_curve(candidate):
            return Pubkey(candidate), bump
        logger.debug("bump %d on curve, trying next", bump)
    raise fail(ErrorKind.ADDRESS_DERIVATION_FAILED, "no off-curve bump found", "seeds")


# ============================================================
# Seed tables
# ============================================================

def registry_seeds() -> List[bytes]:
    return [REGISTRY_SEED]


def agreement_seeds(creator: Pubkey, nonce: int) -> List[bytes]:
    if not isinstance(nonce, int) or isinstance(nonce, bool) or not 0 <= nonce <= U64_MAX:
        raise fail(ErrorKind.INVALID_ACCOUNT_PARAMS, f"nonce must be a u64, got {nonce!r}", "nonce")
    return [AGREEMENT_SEED, creator.to_bytes(), struct.pack("<Q", nonce)]


def adoption_seeds(adopter: Pubkey, network_id: str) -> List[bytes]:
    return [ADOPTION_SEED, adopter.to_bytes(), network_id_hash(network_id)]


def find_registry_address(program_id: Pubkey = DEFAULT_PROGRAM_ID) -> Tuple[Pubkey, int]:
    return derive_address(registry_seeds(), program_id)


def find_agreement_address(creator: Pubkey, nonce: int,
                           program_id: Pubkey = DEFAULT_PROGRAM_ID) -> Tuple[Pubkey, int]:
    return derive_address(agreement_seeds(creator, nonce), program_id)


def find_adoption_address(adopter: Pubkey, network_id: str,
                          program_id: Pubkey = DEFAULT_PROGRAM_ID) -> Tuple[Pubkey, int]:
    """Adoption address for one adopter on one network (seeded by the network-id hash)."""
    return derive_address(adoption_seeds(adopter, network_id), program_id)
