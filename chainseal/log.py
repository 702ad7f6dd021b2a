#!/usr/bin/env python3
"""
Append-only block chain with a JSON snapshot store.
Provides the tamper-evident chain and its administrative operations.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from .core import (
    Block,
    HashMode,
    chain_records,
    create_genesis_block,
    next_block,
    serialize_chain,
)
from .exceptions import BlockIndexError, ChainError, MalformedSnapshotError
from .validator import BlockReport, ChainValidator, Verdict

logger = logging.getLogger(__name__)

Signer = Callable[[str], Awaitable[str]]


class ChainStore:
    """
    Whole-chain JSON snapshot on disk.

    The file holds an array of block records in chain order. An optional
    `index` field per record is derived from array position; when present
    it must agree with that position.
    """

    def __init__(self, path: Union[str, Path] = "blockchain.json", persist_index: bool = False):
        self.path = Path(path)
        self.persist_index = persist_index

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> List[Block]:
        """
        Read the snapshot.

        Raises:
            MalformedSnapshotError: If the file is not a JSON array of valid
                block records
        """
        try:
            text = self.path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise MalformedSnapshotError(f"{self.path} is not valid UTF-8: {e}") from e
        except OSError as e:
            raise MalformedSnapshotError(f"{self.path} cannot be read: {e}") from e

        try:
            records = json.loads(text)
        except json.JSONDecodeError as e:
            raise MalformedSnapshotError(f"{self.path} is not valid JSON: {e}") from e

        if not isinstance(records, list):
            raise MalformedSnapshotError(f"{self.path} must contain a JSON array of blocks")

        blocks = []
        for position, record in enumerate(records):
            try:
                block = Block.from_dict(record)
            except MalformedSnapshotError as e:
                raise MalformedSnapshotError(f"Block #{position}: {e}") from e
            index = record.get("index", position)
            if isinstance(index, bool) or not isinstance(index, int) or index != position:
                raise MalformedSnapshotError(
                    f"Block #{position}: stored index {index!r} does not match its position"
                )
            blocks.append(block)

        logger.debug("[CHAIN] Loaded %d blocks from %s", len(blocks), self.path)
        return blocks

    def save(self, blocks: List[Block]) -> None:
        records: List[Dict[str, Any]] = []
        for position, record in enumerate(chain_records(blocks)):
            if self.persist_index:
                record = {"index": position, **record}
            records.append(record)
        # Write beside the snapshot, then swap it in whole.
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            tmp_path.write_text(json.dumps(records, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise
        logger.debug("[CHAIN] Saved %d blocks to %s", len(blocks), self.path)


class Blockchain:
    """
    The in-memory chain, persisted through a ChainStore after every mutation.

    When a `signer` is configured (an async callable taking the signing
    digest and returning a hex signature) every new block is counter-signed
    before it is appended. The hash mode decides whether the signature is
    part of the final block hash.
    """

    def __init__(
        self,
        store: ChainStore,
        blocks: Optional[List[Block]] = None,
        mode: HashMode = HashMode.SIGNED,
        signer: Optional[Signer] = None,
        validator: Optional[ChainValidator] = None
    ):
        self.store = store
        self.blocks: List[Block] = list(blocks or [])
        self.mode = HashMode(mode)
        self.signer = signer
        self.validator = validator or ChainValidator(self.mode)

    @classmethod
    def load_or_init(
        cls,
        store: ChainStore,
        mode: HashMode = HashMode.SIGNED,
        signer: Optional[Signer] = None,
        validator: Optional[ChainValidator] = None
    ) -> "Blockchain":
        """
        Restore the chain from `store`, or start a new one seeded with genesis.

        Raises:
            MalformedSnapshotError: If the stored snapshot is invalid
        """
        if store.exists():
            return cls(store, store.load(), mode=mode, signer=signer, validator=validator)

        chain = cls(store, [create_genesis_block(mode=mode)], mode=mode, signer=signer, validator=validator)
        chain.save()
        logger.info("[CHAIN] Created new chain at %s", store.path)
        return chain

    @property
    def signing(self) -> bool:
        return self.signer is not None

    def save(self) -> None:
        self.store.save(self.blocks)

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self.blocks):
            raise BlockIndexError(index, len(self.blocks))

    async def append_block(self, data: str) -> Block:
        """
        Build, sign if configured, append and persist a new block.

        Returns:
            The appended block

        Raises:
            TimestampError: If signing fails; the chain is left unchanged
        """
        if not self.blocks:
            raise ChainError("Cannot append to an empty chain")

        block = next_block(self.blocks[-1], data, mode=self.mode)
        if self.signing:
            signature = await self.signer(block.signing_digest())
            block = block.with_signature(signature, mode=self.mode)

        self.blocks.append(block)
        self.save()
        logger.info("[CHAIN] Block #%d (%s) added", len(self.blocks) - 1, block.hash[:5])
        return block

    def remove_block_at(self, index: int) -> Block:
        """
        Remove the block at `index` and persist.

        Raises:
            BlockIndexError: If index is out of range; nothing is changed
        """
        self._check_index(index)
        removed = self.blocks.pop(index)
        self.save()
        logger.info("[CHAIN] Block #%d removed", index)
        return removed

    def edit_block_data_at(self, index: int, new_data: str) -> Block:
        """
        Overwrite a block's data without rehashing and persist.

        Raises:
            BlockIndexError: If index is out of range; nothing is changed
        """
        self._check_index(index)
        block = self.blocks[index]
        block.force_edit_data(new_data)
        self.save()
        logger.info("[CHAIN] Block #%d modified", index)
        return block

    def reports(self) -> List[BlockReport]:
        return list(self.validator.scan(self.blocks))

    def validate(self) -> List[Verdict]:
        return self.validator.validate(self.blocks)

    def export_transcript(self, output_file: Optional[Path] = None) -> dict:
        """
        Export the chain with its validation summary.

        Returns:
            Dictionary with the mode, length, latest hash, validity and records
        """
        verdicts = self.validate()
        transcript = {
            "version": "1.0",
            "mode": self.mode.value,
            "chain_valid": Verdict.INVALID not in verdicts,
            "block_count": len(self.blocks),
            "latest_hash": self.blocks[-1].hash if self.blocks else None,
            "verdicts": [v.value for v in verdicts],
            "blocks": chain_records(self.blocks),
        }

        if output_file:
            Path(output_file).write_text(json.dumps(transcript, indent=2))

        return transcript

    def serialize(self) -> bytes:
        return serialize_chain(self.blocks)

    def __len__(self):
        return len(self.blocks)

    def __iter__(self):
        return iter(self.blocks)

    def __getitem__(self, index: int) -> Block:
        return self.blocks[index]
