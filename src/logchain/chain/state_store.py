"""Chain state registry — per-stream accumulators with their own locks.

The registry maps stream keys to a BlockState and a SequenceState. Both
maps only grow. The registry lock is taken only to insert a key seen for
the first time; after that every access for the key goes through the
state's own lock, so streams never block each other.

Each registry has one execution ID. A new registry (for example after a
process restart) starts new chains under a new execution ID.
"""

from __future__ import annotations

import threading
import time
import uuid
from typing import Callable, Optional, TypeVar

from logchain.models.chain import BlockState, SequenceState

_S = TypeVar("_S")


def new_execution_id() -> str:
    """Identifier for one process run, e.g. ``logchain-1760000000-1a2b3c4d``."""
    return f"logchain-{int(time.time())}-{uuid.uuid4().hex[:8]}"


class ChainStateRegistry:
    """Process-scoped store of chain state, one entry per stream key."""

    def __init__(self, execution_id: Optional[str] = None) -> None:
        self._lock = threading.Lock()
        self._blocks: dict[str, BlockState] = {}
        self._sequences: dict[str, SequenceState] = {}
        self._execution_id = execution_id or new_execution_id()

    @property
    def execution_id(self) -> str:
        return self._execution_id

    def block_state(self, stream: str) -> BlockState:
        """Get or lazily create the block accumulator for *stream*."""
        return self._get_or_create(self._blocks, stream, BlockState)

    def sequence_state(self, stream: str) -> SequenceState:
        """Get or lazily create the batch sequence counter for *stream*."""
        return self._get_or_create(self._sequences, stream, SequenceState)

    def next_block_id(self, stream: str) -> int:
        """Take the next batch sequence ID for *stream*."""
        state = self.sequence_state(stream)
        with state.lock:
            block_id = state.next_block_id
            state.next_block_id += 1
        return block_id

    def streams(self) -> list[str]:
        """Stream keys that have finalized at least one block."""
        with self._lock:
            return sorted(self._blocks)

    def _get_or_create(
        self,
        table: dict[str, _S],
        stream: str,
        factory: Callable[[], _S],
    ) -> _S:
        state = table.get(stream)
        if state is not None:
            return state
        with self._lock:
            state = table.get(stream)
            if state is None:
                state = factory()
                table[stream] = state
            return state
