import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from chainseal.core import HashMode, create_genesis_block, next_block
from chainseal.log import Blockchain, ChainStore
from chainseal.validator import ChainValidator
from chainseal.verify import SignatureVerifier


class LocalAuthority:
    """Stands in for the timestamping authority: signs digests with a local RSA key."""

    def __init__(self, key_size=2048):
        self.private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
        self.calls = []

    @property
    def public_key_hex(self):
        return self.private_key.public_key().public_bytes(
            serialization.Encoding.DER,
            serialization.PublicFormat.PKCS1
        ).hex()

    @property
    def spki_key_hex(self):
        return self.private_key.public_key().public_bytes(
            serialization.Encoding.DER,
            serialization.PublicFormat.SubjectPublicKeyInfo
        ).hex()

    def sign(self, digest):
        return self.private_key.sign(
            digest.encode("utf-8"),
            padding.PKCS1v15(),
            hashes.SHA256()
        ).hex()

    async def __call__(self, digest):
        self.calls.append(digest)
        return self.sign(digest)


@pytest.fixture(scope="session")
def authority():
    return LocalAuthority()


@pytest.fixture(scope="session")
def other_authority():
    return LocalAuthority()


@pytest.fixture
def verifier(authority):
    return SignatureVerifier(authority.public_key_hex)


@pytest.fixture
def chain_file(tmp_path):
    return tmp_path / "blockchain.json"


@pytest.fixture
def content_chain(chain_file):
    return Blockchain.load_or_init(ChainStore(chain_file), mode=HashMode.CONTENT)


@pytest.fixture
def signed_chain(chain_file, authority, verifier):
    return Blockchain.load_or_init(
        ChainStore(chain_file),
        mode=HashMode.SIGNED,
        signer=authority,
        validator=ChainValidator(HashMode.SIGNED, verifier),
    )


def build_blocks(payloads, mode=HashMode.CONTENT, sign=None, start=1_700_000_000_000):
    """Genesis followed by one block per payload, linked and sealed like append_block does."""
    blocks = [create_genesis_block(timestamp=start, mode=mode)]
    for offset, data in enumerate(payloads, start=1):
        block = next_block(blocks[-1], data, timestamp=start + offset, mode=mode)
        if sign is not None:
            block = block.with_signature(sign(block.signing_digest()), mode=mode)
        blocks.append(block)
    return blocks


@pytest.fixture(scope="session")
def make_blocks():
    return build_blocks
