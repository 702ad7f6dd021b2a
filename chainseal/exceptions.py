"""
Exception hierarchy for chainseal.

Verification failures are not exceptions: a broken chain is reported as
validator verdicts. These classes cover the conditions that abort an
operation.
"""


class ChainError(Exception):
    """Base class for every error raised by chainseal."""


class MalformedSnapshotError(ChainError):
    """The persisted chain cannot be parsed or has structurally invalid records."""


class BlockIndexError(ChainError, IndexError):
    """A positional operation referenced an index outside the chain."""

    def __init__(self, index: int, length: int):
        self.index = index
        self.length = length
        super().__init__(f"Block index {index} out of range for chain of length {length}")


class TimestampError(ChainError):
    """The timestamping authority could not be reached or returned an unusable response."""


class AuthorityKeyError(ChainError):
    """The authority public key could not be decoded."""


class ConfigError(ChainError):
    """A configuration value is invalid."""
