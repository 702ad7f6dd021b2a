"""chainseal: tamper-evident block chain with optional authority timestamping."""

from .core import (
    Block,
    HashMode,
    calculate_hash,
    signing_digest,
    create_genesis_block,
    next_block,
    serialize_chain,
)

from .exceptions import (
    ChainError,
    MalformedSnapshotError,
    BlockIndexError,
    TimestampError,
    AuthorityKeyError,
    ConfigError,
)
from .verify import SignatureVerifier, DEFAULT_AUTHORITY_KEY
from .validator import ChainValidator, Verdict, BlockReport
from .log import Blockchain, ChainStore
from .timestamp import TimestampClient
from .config import Settings

__version__ = "1.0.0"
__all__ = [
    "Block",
    "HashMode",
    "calculate_hash",
    "signing_digest",
    "create_genesis_block",
    "next_block",
    "serialize_chain",
    "ChainError",
    "MalformedSnapshotError",
    "BlockIndexError",
    "TimestampError",
    "AuthorityKeyError",
    "ConfigError",
    "SignatureVerifier",
    "DEFAULT_AUTHORITY_KEY",
    "ChainValidator",
    "Verdict",
    "BlockReport",
    "Blockchain",
    "ChainStore",
    "TimestampClient",
    "Settings",
]
