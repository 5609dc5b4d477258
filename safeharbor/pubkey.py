"""
SafeHarbor identities.

An identity (record owner, adopter, record address) is a 32-byte value.
Its text form is base58 with the Bitcoin alphabet, the same encoding wallets
use for Ed25519 public keys.
"""

from typing import Union

from .constants import PUBKEY_SIZE


B58_ALPHABET = b"123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
B58_MAP = {c: i for i, c in enumerate(B58_ALPHABET)}


def b58decode(s: Union[str, bytes]) -> bytes:
    if isinstance(s, str):
        s_bytes = s.encode("ascii")
    else:
        s_bytes = s
    num = 0
    for c in s_bytes:
        if c not in B58_MAP:
            raise ValueError("Invalid base58 character")
        num = num * 58 + B58_MAP[c]
    # Leading '1's encode leading zero bytes
    n_pad = 0
    for c in s_bytes:
        if c == B58_ALPHABET[0]:
            n_pad += 1
        else:
            break
    full = num.to_bytes((num.bit_length() + 7) // 8, "big") if num else b""
    return b"\x00" * n_pad + full


def b58encode(b: bytes) -> str:
    n_pad = 0
    for c in b:
        if c == 0:
            n_pad += 1
        else:
            break
    num = int.from_bytes(b, "big")
    out = bytearray()
    while num > 0:
        num, rem = divmod(num, 58)
        out.append(B58_ALPHABET[rem])
    out.extend(B58_ALPHABET[0] for _ in range(n_pad))
    out.reverse()
    return out.decode("ascii")


class Pubkey:
    """Immutable 32-byte identity."""

    __slots__ = ("_key",)

    def __init__(self, key: bytes):
        if not isinstance(key, (bytes, bytearray)):
            raise TypeError(f"Pubkey requires bytes, got {type(key).__name__}")
        if len(key) != PUBKEY_SIZE:
            raise ValueError(f"Pubkey must be {PUBKEY_SIZE} bytes, got {len(key)}")
        self._key = bytes(key)

    @classmethod
    def from_string(cls, value: str) -> "Pubkey":
        """Parse the base58 text form."""
        try:
            raw = b58decode(value)
        except (ValueError, UnicodeEncodeError) as e:
            raise ValueError(f"Invalid pubkey '{value}': {e}") from e
        return cls(raw)

    @classmethod
    def default(cls) -> "Pubkey":
        """The all-zero key, used as 'unset'."""
        return cls(bytes(PUBKEY_SIZE))

    def is_default(self) -> bool:
        return self._key == bytes(PUBKEY_SIZE)

    def to_bytes(self) -> bytes:
        return self._key

    def __bytes__(self) -> bytes:
        return self._key

    def __str__(self) -> str:
        return b58encode(self._key)

    def __repr__(self) -> str:
        return f"Pubkey({self})"

    def __eq__(self, other) -> bool:
        if isinstance(other, Pubkey):
            return self._key == other._key
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._key)

    def __deepcopy__(self, memo) -> "Pubkey":
        return self


def as_pubkey(value: Union["Pubkey", str, bytes]) -> Pubkey:
    """Coerce a Pubkey, its base58 text form, or raw bytes."""
    if isinstance(value, Pubkey):
        return value
    if isinstance(value, str):
        return Pubkey.from_string(value)
    return Pubkey(value)
