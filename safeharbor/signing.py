"""
SafeHarbor Request Signing

Uses Ed25519 (RFC 8032). An identity's Pubkey is its Ed25519 verify key, so a
signature proves the caller holds the identity it claims.

Signed request envelope:

    {
      "signer":    <base58 pubkey>,
      "issued_at": <ISO-8601 UTC>,
      "sig_b64":   <base64 signature>,
      "payload":   {...}
    }

The signature covers canonical JSON of {operation, signer, issued_at, payload},
so a signature for one operation cannot be replayed against another.
"""

import base64
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey

from .canonicalization import canonicalize
from .pubkey import Pubkey


@dataclass
class Keypair:
    """Ed25519 key pair; `pubkey` is the identity."""
    signing_key: bytes
    pubkey: Pubkey

    @classmethod
    def generate(cls) -> "Keypair":
        key = SigningKey.generate()
        return cls(signing_key=bytes(key), pubkey=Pubkey(bytes(key.verify_key)))

    @classmethod
    def from_seed(cls, seed: bytes) -> "Keypair":
        """Deterministic key pair from a 32-byte seed."""
        key = SigningKey(seed)
        return cls(signing_key=bytes(key), pubkey=Pubkey(bytes(key.verify_key)))

    def sign(self, data: bytes) -> bytes:
        return sign_message(data, self.signing_key)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pubkey": str(self.pubkey),
            "secret_b64": base64.b64encode(self.signing_key).decode('utf-8'),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Keypair":
        return cls.from_seed(base64.b64decode(data["secret_b64"]))


def sign_message(data: bytes, signing_key: bytes) -> bytes:
    """Sign data with an Ed25519 signing key (32-byte seed)."""
    return SigningKey(signing_key).sign(data).signature


def verify_signature(data: bytes, signature: bytes, pubkey: Pubkey) -> bool:
    """Verify an Ed25519 signature against an identity."""
    try:
        VerifyKey(pubkey.to_bytes()).verify(data, signature)
        return True
    except (BadSignatureError, ValueError):
        return False


def request_message(operation: str, signer: str, issued_at: str, payload: Dict[str, Any]) -> bytes:
    """Bytes covered by a request signature."""
    return canonicalize({
        "operation": operation,
        "signer": signer,
        "issued_at": issued_at,
        "payload": payload,
    })


def sign_request(operation: str, payload: Dict[str, Any], keypair: Keypair,
                 issued_at: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Build a signed request envelope.

    Args:
        operation: Operation name, e.g. "create_or_update_agreement"
        payload: JSON-compatible request body
        keypair: Caller identity
        issued_at: Signing time (default: now, UTC)
    """
    issued_at = issued_at or datetime.now(timezone.utc)
    issued = issued_at.isoformat().replace("+00:00", "Z")
    signer = str(keypair.pubkey)
    signature = keypair.sign(request_message(operation, signer, issued, payload))
    return {
        "signer": signer,
        "issued_at": issued,
        "sig_b64": base64.b64encode(signature).decode('utf-8'),
        "payload": payload,
    }
