"""
Authority signature verification.
Checks RSA-SHA256 (PKCS#1 v1.5) signatures issued by the timestamping authority.

The signed message is the ASCII hex of the pre-signature digest,
sha256(previousHash + timestamp + data), exactly as it was submitted to the
authority. It never includes the signature, so it is the same in both hash
modes, while the SIGNED-mode block hash additionally covers the signature.
"""

import logging

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from .core import Block
from .exceptions import AuthorityKeyError

logger = logging.getLogger(__name__)

# Hex-encoded DER public key of the itislabs.ru timestamping authority.
DEFAULT_AUTHORITY_KEY = (
    "30819f300d06092a864886f70d010101050003818d0030818902818100a811365d2f3642952751029edf87c8fa2aeb6e0"
    "feafcf800190a7dd2cf750c63262f6abd8ef52b251c0e10291d5e2f7e6682de1aae1d64d4f9b242050f898744ca300a44c"
    "4d8fc8af0e7a1c7fd9b606d7bde304b29bec01fbef554df6ba1b7b1ec355e1ff68bd37f3d40fb27d1aa233fe3dd6b63f72"
    "41e734739851ce8c590f70203010001"
)


def load_authority_key(key_hex: str) -> rsa.RSAPublicKey:
    """
    Decode a hex-encoded DER RSA public key.

    Both PKCS#1 RSAPublicKey and SubjectPublicKeyInfo encodings are accepted.

    Raises:
        AuthorityKeyError: If the key is not hex, not DER, or not RSA
    """
    try:
        der = bytes.fromhex(key_hex.strip())
    except ValueError as e:
        raise AuthorityKeyError(f"Authority key is not valid hex: {e}") from e

    try:
        public_key = serialization.load_der_public_key(der)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise AuthorityKeyError(f"Authority key is not a DER public key: {e}") from e

    if not isinstance(public_key, rsa.RSAPublicKey):
        raise AuthorityKeyError(f"Authority key must be RSA, got {type(public_key).__name__}")
    return public_key


class SignatureVerifier:
    """
    Verifies block signatures against one authority key.

    The key is fixed for the lifetime of the verifier; build a new verifier
    to check against a different or revoked key.
    """

    def __init__(self, authority_key: str = DEFAULT_AUTHORITY_KEY):
        self.authority_key_hex = authority_key
        self.public_key = load_authority_key(authority_key)

    @staticmethod
    def signing_payload(block: Block) -> bytes:
        """Bytes the authority signed: the block's pre-signature digest."""
        return block.signing_digest().encode("utf-8")

    def is_verified(self, block: Block) -> bool:
        """
        Check the block's signature.

        Returns:
            True if the signature verifies, False if it is missing, malformed,
            or does not match the block's current fields
        """
        if not block.signature:
            return False

        try:
            signature = bytes.fromhex(block.signature)
        except ValueError:
            logger.debug("[VERIFY] Signature on block %s... is not hex", block.hash[:8])
            return False

        try:
            self.public_key.verify(
                signature,
                self.signing_payload(block),
                padding.PKCS1v15(),
                hashes.SHA256()
            )
        except InvalidSignature:
            logger.debug("[VERIFY] Signature mismatch on block %s...", block.hash[:8])
            return False
        return True
