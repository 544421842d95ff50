"""Anchor commitment — the compact payload recorded on the public ledger.

A commitment binds the chain's genesis block digest, the block index and
the digest of the block being anchored:

    key     = compact(first_block_digest + str(block_index))
    value   = compact(block_digest)
    payload = key + value

The commitment is deterministic: anyone holding the chained records can
rebuild it and compare it with the ledger's data output.
"""

from __future__ import annotations

from dataclasses import dataclass

from logchain.crypto.digest import compact


@dataclass(frozen=True)
class AnchorCommitment:
    """The values an anchor is derived from, captured at finalization time."""
    stream: str
    first_digest: str
    last_digest: str
    block_index: int

    @property
    def key(self) -> str:
        return compact(self.first_digest + str(self.block_index))

    @property
    def value(self) -> str:
        return compact(self.last_digest)

    @property
    def payload(self) -> str:
        """Hex payload submitted to the ledger (80 hex chars)."""
        return self.key + self.value


def commitment_payload(first_digest: str, last_digest: str, block_index: int) -> str:
    """Build the ledger payload without a stream context."""
    return AnchorCommitment(
        stream="",
        first_digest=first_digest,
        last_digest=last_digest,
        block_index=block_index,
    ).payload
