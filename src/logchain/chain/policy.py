"""Block boundary policy — links a finished batch into the chain and decides anchoring.

Finalization is the single serialization point per stream key: it runs
entirely under the stream's BlockState lock. The ledger call is not made
here. When an anchor is due the policy returns the commitment values
captured under the lock, and the caller submits them after release.

Modes:
- ``count``: anchor after every ``interval`` finalized blocks.
- ``time``: anchor when the batch's event time reaches the last anchor
  boundary plus ``interval`` seconds; the boundary then advances by
  exactly one interval.
- unset: never anchor. Blocks are still chained.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from logchain.crypto.commitment import AnchorCommitment
from logchain.crypto.digest import fold
from logchain.models.chain import BlockOutcome, BlockState, IntervalMode

logger = logging.getLogger("logchain.chain")


class BlockBoundaryPolicy:
    """Applies the configured interval mode to each finished batch."""

    def __init__(
        self,
        mode: Optional[IntervalMode] = None,
        interval: int = 1000,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"Anchor interval must be positive, got {interval}")
        self._mode = IntervalMode(mode) if mode is not None else None
        self._interval = interval
        self._clock = clock

    @property
    def mode(self) -> Optional[IntervalMode]:
        return self._mode

    @property
    def interval(self) -> int:
        return self._interval

    def finalize(
        self,
        state: BlockState,
        stream: str,
        block_id: int,
        running_digest: str,
        event_time: float,
    ) -> tuple[BlockOutcome, Optional[AnchorCommitment]]:
        """Link a batch's running digest into *stream*'s chain.

        Returns the block outcome (anchor not yet attempted) and the
        commitment to submit, or None if no anchor is due.
        """
        with state.lock:
            if not state.initialized:
                state.initialized = True
                state.last_digest = ""
                state.block_counter = 0
                state.interval_counter = self._clock() if self._mode is IntervalMode.TIME else 0

            prev_digest = state.last_digest
            state.last_digest = fold(prev_digest, running_digest)
            if state.first_digest is None:
                state.first_digest = state.last_digest

            block_index = state.block_counter
            commitment: Optional[AnchorCommitment] = None
            if self._anchor_due(state, event_time):
                commitment = AnchorCommitment(
                    stream=stream,
                    first_digest=state.first_digest,
                    last_digest=state.last_digest,
                    block_index=block_index,
                )
                state.block_counter += 1

            outcome = BlockOutcome(
                stream=stream,
                block_id=block_id,
                running_digest=running_digest,
                prev_digest=prev_digest,
                block_digest=state.last_digest,
                block_index=block_index,
            )

        logger.debug(
            "Finalized stream %s block_id %d (block_index %d, anchor due: %s)",
            stream, block_id, block_index, commitment is not None,
        )
        return outcome, commitment

    def _anchor_due(self, state: BlockState, event_time: float) -> bool:
        """Advance the interval counter; True when this block must be anchored."""
        if self._mode is IntervalMode.COUNT:
            state.interval_counter += 1
            if state.interval_counter == self._interval:
                state.interval_counter = 0
                return True
            return False
        if self._mode is IntervalMode.TIME:
            expiry = state.interval_counter + self._interval
            if event_time >= expiry:
                state.interval_counter = expiry
                return True
            return False
        return False
