"""
Chain validation with cascading invalidation.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Tuple

from .core import Block, HashMode
from .verify import SignatureVerifier

logger = logging.getLogger(__name__)


class Verdict(str, enum.Enum):
    GENESIS = "genesis"
    CONFIRMED = "confirmed"
    INVALID = "invalid"
    ABOVE_INVALID = "above invalid"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class BlockReport:
    """Verdict for one chain position, with the failed checks for an invalid block."""

    index: int
    block: Block
    verdict: Verdict
    reasons: Tuple[str, ...] = ()

    @property
    def label(self) -> str:
        return self.verdict.value


class ChainValidator:
    """
    Scans a chain in order and labels every block.

    Block 0 is always genesis. Each later block must link to its predecessor,
    match its recomputed hash and, when a verifier is configured, carry a
    valid authority signature. The first failure marks that block invalid
    and every block after it "above invalid", whatever its own state.
    """

    def __init__(self, mode: HashMode = HashMode.SIGNED, verifier: Optional[SignatureVerifier] = None):
        self.mode = HashMode(mode)
        self.verifier = verifier

    def check_block(self, block: Block, previous: Block) -> Tuple[str, ...]:
        """Run every check on one block and return the names of those that failed."""
        failed = []
        if not block.is_previous_block(previous):
            failed.append("linkage")
        if block.recompute_hash(self.mode) != block.hash:
            failed.append("hash")
        # Evaluated even when the hash already failed; the checks are independent.
        if self.verifier is not None and not self.verifier.is_verified(block):
            failed.append("signature")
        return tuple(failed)

    def scan(self, blocks: Sequence[Block]) -> Iterator[BlockReport]:
        already_broken = False
        for i, block in enumerate(blocks):
            if i == 0:
                yield BlockReport(i, block, Verdict.GENESIS)
            elif already_broken:
                yield BlockReport(i, block, Verdict.ABOVE_INVALID)
            else:
                reasons = self.check_block(block, blocks[i - 1])
                if reasons:
                    already_broken = True
                    logger.info("[CHAIN] Block #%d failed: %s", i, ", ".join(reasons))
                    yield BlockReport(i, block, Verdict.INVALID, reasons)
                else:
                    yield BlockReport(i, block, Verdict.CONFIRMED)

    def validate(self, blocks: Sequence[Block]) -> List[Verdict]:
        """
        Label every block of the chain.

        Returns:
            One Verdict per block, in chain order
        """
        return [report.verdict for report in self.scan(blocks)]

    def is_valid(self, blocks: Sequence[Block]) -> bool:
        return all(v is not Verdict.INVALID for v in self.validate(blocks))
