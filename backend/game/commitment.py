"""
Commit-reveal digests for hidden coin choices.

A player commits to sha256(sha256(tag || padding || secret)) before any
choice is public, then later opens it with (choice, secret).
"""
import hashlib
import hmac
import secrets as _secrets

from database.models import CoinSide
from .errors import ValidationError

DIGEST_SIZE = 32
ZERO_DIGEST = bytes(DIGEST_SIZE)
U64_MAX = 2**64 - 1
WEAK_SECRETS = (0, 1, U64_MAX)


def double_sha256(data: bytes) -> bytes:
    """sha256 applied twice."""
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def validate_secret(secret: int):
    """Reject non-integers, out of range values and degenerate secrets.

    Raises:
        ValidationError: If secret is weak or not an unsigned 64-bit int
    """
    if isinstance(secret, bool) or not isinstance(secret, int):
        raise ValidationError("Secret must be an integer", code="invalid_secret")
    if secret < 0 or secret > U64_MAX:
        raise ValidationError("Secret must fit in 64 unsigned bits", code="invalid_secret")
    if secret in WEAK_SECRETS:
        raise ValidationError("Secret value is too weak, use a strong random value", code="weak_secret")


def validate_digest(digest: bytes):
    """Reject malformed or all-zero digests.

    Raises:
        ValidationError: If digest is not 32 bytes or is all zeros
    """
    if not isinstance(digest, (bytes, bytearray)) or len(digest) != DIGEST_SIZE:
        raise ValidationError(f"Commitment must be {DIGEST_SIZE} bytes", code="invalid_commitment")
    if bytes(digest) == ZERO_DIGEST:
        raise ValidationError("Commitment cannot be empty", code="invalid_commitment")


def _payload(choice: CoinSide, secret: int) -> bytes:
    # tag byte, 7 bytes of padding, secret little-endian
    return bytes([choice.tag]) + bytes(7) + secret.to_bytes(8, "little")


def commit(choice: CoinSide, secret: int) -> bytes:
    """Build the commitment digest for a choice and secret.

    Args:
        choice: HEADS or TAILS
        secret: Player's random 64-bit secret

    Returns:
        32-byte digest

    Raises:
        ValidationError: If the choice is not a CoinSide or the secret is weak
    """
    if not isinstance(choice, CoinSide):
        raise ValidationError("Choice must be HEADS or TAILS", code="invalid_choice")
    validate_secret(secret)
    return double_sha256(_payload(choice, secret))


def verify(digest: bytes, choice: CoinSide, secret: int) -> bool:
    """Check that (choice, secret) opens digest. Never raises for bad input."""
    try:
        expected = commit(choice, secret)
    except ValidationError:
        return False
    if not isinstance(digest, (bytes, bytearray)):
        return False
    return hmac.compare_digest(expected, bytes(digest))


def generate_secret() -> int:
    """Generate a strong random secret suitable for commit()."""
    while True:
        value = _secrets.randbits(64)
        if value not in WEAK_SECRETS:
            return value
