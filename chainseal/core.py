#!/usr/bin/env python3
"""
chainseal core
Block hashing, block construction and canonical serialization.
"""

import enum
import hashlib
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

try:
    import jcs
except ImportError:
    raise ImportError("Install jcs: pip install jcs")

from .exceptions import MalformedSnapshotError

__version__ = "1.0.0"

GENESIS_PREVIOUS_HASH = ""
GENESIS_DATA = "Genesis"


class HashMode(str, enum.Enum):
    """Which fields feed a block hash."""

    CONTENT = "content"  # previousHash || timestamp || data
    SIGNED = "signed"    # previousHash || timestamp || data || signature


def _sha256_hex(*parts: str) -> str:
    # No delimiters between fields; the concatenation order is part of the chain format.
    return hashlib.sha256("".join(parts).encode("utf-8")).hexdigest()


def signing_digest(previous_hash: str, timestamp: int, data: str) -> str:
    """
    Digest submitted to the timestamping authority for signing.

    Args:
        previous_hash: Hash of the preceding block (sentinel for genesis)
        timestamp: Creation instant in epoch milliseconds
        data: Block payload

    Returns:
        Hex-encoded SHA-256 of previous_hash || timestamp || data
    """
    return _sha256_hex(previous_hash, str(timestamp), data)


def calculate_hash(
    previous_hash: str,
    timestamp: int,
    data: str,
    signature: Optional[str] = None,
    mode: HashMode = HashMode.SIGNED
) -> str:
    """
    Compute a block hash.

    In SIGNED mode the signature is appended to the hashed fields, so a
    signed block's final hash is only known after signing. An absent
    signature contributes nothing, which makes the hash of an unsigned block
    identical in both modes.

    Args:
        previous_hash: Hash of the preceding block
        timestamp: Creation instant in epoch milliseconds
        data: Block payload
        signature: Hex signature from the authority, if any
        mode: HashMode selecting the hashed fields

    Returns:
        Hex-encoded SHA-256 digest
    """
    if HashMode(mode) is HashMode.SIGNED:
        return _sha256_hex(previous_hash, str(timestamp), data, signature or "")
    return _sha256_hex(previous_hash, str(timestamp), data)


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class Block:
    """
    One entry of the chain.

    A block is sealed when created: `hash` is computed from the other fields
    once and never recomputed behind the caller's back. Changing `data`
    afterwards goes through force_edit_data, which leaves the stored hash
    stale.
    """

    previous_hash: str
    timestamp: int
    data: str
    hash: str
    signature: Optional[str] = None

    @classmethod
    def create(
        cls,
        previous_hash: str,
        timestamp: int,
        data: str,
        signature: Optional[str] = None,
        hash: Optional[str] = None,
        mode: HashMode = HashMode.SIGNED
    ) -> "Block":
        """Seal a block, computing its hash unless one is supplied."""
        if hash is None:
            hash = calculate_hash(previous_hash, timestamp, data, signature, mode)
        return cls(
            previous_hash=previous_hash,
            timestamp=timestamp,
            data=data,
            hash=hash,
            signature=signature,
        )

    def signing_digest(self) -> str:
        return signing_digest(self.previous_hash, self.timestamp, self.data)

    def recompute_hash(self, mode: HashMode = HashMode.SIGNED) -> str:
        """Hash implied by the block's current fields."""
        return calculate_hash(self.previous_hash, self.timestamp, self.data, self.signature, mode)

    def is_previous_block(self, block: "Block") -> bool:
        return block.hash == self.previous_hash

    def with_signature(self, signature: str, mode: HashMode = HashMode.SIGNED) -> "Block":
        """Return a new sealed block carrying `signature`, with the final hash for `mode`."""
        return Block.create(self.previous_hash, self.timestamp, self.data, signature=signature, mode=mode)

    def force_edit_data(self, new_data: str) -> None:
        """
        Overwrite the stored payload without rehashing.

        Administrative operation used to simulate tampering; the block will
        fail validation afterwards.
        """
        self.data = new_data

    def to_dict(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {
            "previousHash": self.previous_hash,
            "timestamp": self.timestamp,
            "data": self.data,
            "hash": self.hash,
        }
        if self.signature is not None:
            record["signature"] = self.signature
        return record

    @classmethod
    def from_dict(cls, record: Any) -> "Block":
        """
        Build a block from a persisted record.

        Raises:
            MalformedSnapshotError: If the record is not an object, a required
                field is missing, or a field has the wrong type
        """
        if not isinstance(record, dict):
            raise MalformedSnapshotError(f"Block record must be an object, got {type(record).__name__}")

        required_fields = {"previousHash", "timestamp", "data", "hash"}
        missing = required_fields - record.keys()
        if missing:
            raise MalformedSnapshotError(f"Block record missing required fields: {sorted(missing)}")

        for field in ("previousHash", "data", "hash"):
            if not isinstance(record[field], str):
                raise MalformedSnapshotError(f"Field {field!r} must be a string")

        timestamp = record["timestamp"]
        if isinstance(timestamp, bool) or not isinstance(timestamp, int):
            raise MalformedSnapshotError("Field 'timestamp' must be an integer")

        signature = record.get("signature")
        if signature is not None and not isinstance(signature, str):
            raise MalformedSnapshotError("Field 'signature' must be a string")

        return cls(
            previous_hash=record["previousHash"],
            timestamp=timestamp,
            data=record["data"],
            hash=record["hash"],
            signature=signature,
        )


def create_genesis_block(timestamp: Optional[int] = None, mode: HashMode = HashMode.SIGNED) -> Block:
    """First block of a new chain. It is never signed."""
    return Block.create(
        GENESIS_PREVIOUS_HASH,
        now_ms() if timestamp is None else timestamp,
        GENESIS_DATA,
        mode=mode,
    )


def next_block(
    previous_block: Block,
    data: str,
    timestamp: Optional[int] = None,
    mode: HashMode = HashMode.SIGNED
) -> Block:
    """
    Build the unsigned successor of `previous_block`.

    To sign it, the caller obtains a signature for block.signing_digest()
    and finalizes with block.with_signature(), in either mode.
    """
    return Block.create(
        previous_block.hash,
        now_ms() if timestamp is None else timestamp,
        data,
        mode=mode,
    )


def chain_records(blocks: Iterable[Block]) -> List[Dict[str, Any]]:
    return [block.to_dict() for block in blocks]


def serialize_chain(blocks: Iterable[Block]) -> bytes:
    """Serialize chain records using JCS (RFC 8785)"""
    return jcs.canonicalize(chain_records(blocks))
