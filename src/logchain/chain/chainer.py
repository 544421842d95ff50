"""Event chainer — folds one batch of events into a block of a stream's chain.

For each batch the chainer:
1. Takes the next batch sequence ID for the stream.
2. Canonicalizes every record (minus its chain metadata). Records that
   cannot be canonicalized are reported as per-event errors and dropped
   from the batch; they never touch the running digest.
3. Folds the accepted records, in arrival order, into a running digest
   and attaches position metadata to each.
4. Finalizes the block on the last accepted record, then submits the
   anchor, if one is due, outside the stream's lock. Anchors for one
   stream are submitted in block index order.

Records are enriched in place and returned in the BatchResult.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from itertools import islice
from typing import Any, Iterable, Iterator, Optional

from logchain.chain.policy import BlockBoundaryPolicy
from logchain.chain.state_store import ChainStateRegistry
from logchain.crypto.anchor import AnchorSubmitter
from logchain.crypto.canonical import CanonicalizationError, canonicalize
from logchain.crypto.digest import fold
from logchain.models.chain import Anchored, BlockOutcome, ChainMetadata, Unanchored

logger = logging.getLogger("logchain.chain")

DEFAULT_METADATA_KEY = ".chain"

Event = tuple[float, dict[str, Any]]


@dataclass(frozen=True)
class EventError:
    """An event rejected from its batch."""
    position: int  # Position in the batch as delivered
    time: float
    record: Any
    error: Exception


@dataclass
class BatchResult:
    """Outcome of chaining one batch."""
    stream: str
    events: list[Event] = field(default_factory=list)
    errors: list[EventError] = field(default_factory=list)
    block: Optional[BlockOutcome] = None  # None if no event was accepted


def batched(events: Iterable[Event], size: int) -> Iterator[list[Event]]:
    """Split a possibly unbounded event stream into batches of at most *size*."""
    if size <= 0:
        raise ValueError(f"Batch size must be positive, got {size}")
    it = iter(events)
    while True:
        batch = list(islice(it, size))
        if not batch:
            return
        yield batch


def strip_metadata(record: dict[str, Any], metadata_key: str = DEFAULT_METADATA_KEY) -> dict[str, Any]:
    """Copy of *record* without its chain metadata."""
    return {k: v for k, v in record.items() if k != metadata_key}


class EventChainer:
    """Chains event batches for any number of streams.

    Usage:
        chainer = EventChainer(
            ChainStateRegistry(),
            BlockBoundaryPolicy(IntervalMode.COUNT, interval=100),
            submitter=AnchorSubmitter(ledger),
        )
        result = chainer.chain_batch("app.access", [(time, record), ...])
    """

    def __init__(
        self,
        registry: ChainStateRegistry,
        policy: BlockBoundaryPolicy,
        submitter: Optional[AnchorSubmitter] = None,
        metadata_key: str = DEFAULT_METADATA_KEY,
    ) -> None:
        self._registry = registry
        self._policy = policy
        self._submitter = submitter
        self._metadata_key = metadata_key

    @property
    def registry(self) -> ChainStateRegistry:
        return self._registry

    @property
    def metadata_key(self) -> str:
        return self._metadata_key

    def chain_batch(self, stream: str, events: Iterable[Event]) -> BatchResult:
        """Chain one batch for *stream*. The batch is materialized first."""
        batch = list(events)
        block_id = self._registry.next_block_id(stream)
        result = BatchResult(stream=stream)

        accepted: list[tuple[float, dict[str, Any], str]] = []
        for position, (event_time, record) in enumerate(batch):
            try:
                if not isinstance(record, dict):
                    raise CanonicalizationError(
                        f"Record must be a mapping, got {type(record).__name__}"
                    )
                canonical = canonicalize(strip_metadata(record, self._metadata_key))
            except CanonicalizationError as exc:
                logger.debug("Rejected event %d of stream %s: %s", position, stream, exc)
                result.errors.append(EventError(position, event_time, record, exc))
                continue
            accepted.append((event_time, record, canonical))

        if not accepted:
            return result

        running_digest = ""
        last: Optional[ChainMetadata] = None
        for index, (event_time, record, canonical) in enumerate(accepted):
            running_digest = fold(running_digest, canonical)
            last = ChainMetadata(
                index=index,
                exec_id=self._registry.execution_id,
                block_id=block_id,
            )
            record[self._metadata_key] = last.to_dict()
            result.events.append((event_time, record))

        last_time, last_record = result.events[-1]
        last.digest = running_digest
        last.stream = stream
        result.block = self._finalize(stream, block_id, running_digest, last_time, last)
        last_record[self._metadata_key] = last.to_dict()
        return result

    def _finalize(
        self,
        stream: str,
        block_id: int,
        running_digest: str,
        event_time: float,
        meta: ChainMetadata,
    ) -> BlockOutcome:
        state = self._registry.block_state(stream)
        outcome, commitment = self._policy.finalize(
            state,
            stream,
            block_id,
            running_digest,
            event_time,
        )
        meta.prev_digest = outcome.prev_digest
        meta.block_index = outcome.block_index
        if commitment is None:
            return outcome

        # Anchors reach the ledger in chain order, one per stream at a time
        with state.anchor_turn:
            state.anchor_turn.wait_for(lambda: state.anchors_done == commitment.block_index)
        try:
            if self._submitter is None:
                anchor = Unanchored(commitment.block_index, "no anchor service configured")
            else:
                anchor = self._submitter.submit(commitment)
        finally:
            with state.anchor_turn:
                state.anchors_done += 1
                state.anchor_turn.notify_all()
        if isinstance(anchor, Anchored):
            meta.anchor_block_index = anchor.block_index
            meta.anchor_tx = anchor.tx_ref
            meta.anchor_received = anchor.confirmed_at
        return dataclasses.replace(outcome, anchor=anchor)
