"""
Security module for the SafeHarbor service.

Authenticates signed request envelopes. The envelope's signer becomes the
caller identity for the operation, so every check here fails closed with
InvalidSignature.
"""

from typing import Optional

from safeharbor.errors import ErrorKind, SafeHarborError, fail
from safeharbor.hashing import sha256_hash
from safeharbor.pubkey import Pubkey
from safeharbor.signing import request_message, verify_signature

from .config import MAX_CLOCK_SKEW_SECONDS
from .db import Database
from .logging_config import audit_log
from .models import SignedRequest
from .util import b64d, mask_sensitive, now_epoch, parse_timestamp


def _reject(operation: str, envelope: SignedRequest, reason: str) -> SafeHarborError:
    audit_log.security_event(
        "invalid_signature",
        severity="medium",
        operation=operation,
        signer=envelope.signer,
        sig=mask_sensitive(envelope.sig_b64),
        reason=reason,
    )
    return fail(ErrorKind.INVALID_SIGNATURE, reason, "sig_b64")


def authenticate(
    operation: str,
    envelope: SignedRequest,
    max_skew: int = MAX_CLOCK_SKEW_SECONDS,
    now: Optional[int] = None,
    db: Optional[Database] = None
) -> Pubkey:
    """
    Verify a signed envelope for `operation` and return the signer.

    A replayed envelope is rejected while it is still inside the skew window;
    after that the timestamp check rejects it.

    Args:
        operation: Operation name the signature must cover
        envelope: The request as received
        max_skew: Allowed distance between issued_at and now, in seconds
        now: Current time (default: wall clock)
        db: Nonce store; when given, each envelope is accepted at most once

    Returns:
        The authenticated caller identity

    Raises:
        AuthorizationError: InvalidSignature
    """
    try:
        signer = Pubkey.from_string(envelope.signer)
    except ValueError:
        raise _reject(operation, envelope, "signer is not a valid identity")

    try:
        issued_at = parse_timestamp(envelope.issued_at)
    except ValueError:
        raise _reject(operation, envelope, "issued_at is not an ISO-8601 timestamp")

    now = now_epoch() if now is None else now
    if abs(now - issued_at) > max_skew:
        raise _reject(operation, envelope, "issued_at is outside the allowed clock skew")

    try:
        signature = b64d(envelope.sig_b64)
    except ValueError:
        raise _reject(operation, envelope, "sig_b64 is not valid base64")

    message = request_message(operation, envelope.signer, envelope.issued_at, envelope.payload)
    if not verify_signature(message, signature, signer):
        raise _reject(operation, envelope, "signature does not verify")

    # The signed message is the nonce; it stays live until the skew window closes
    if db is not None and not db.insert_nonce(sha256_hash(message), issued_at + max_skew, now):
        raise _reject(operation, envelope, "request has already been used")

    return signer
