"""Chain metadata and per-stream chain state.

Every chained record carries a ChainMetadata block under the reserved
metadata key. Ordinary events carry only their position and batch
identity; the last event of a batch also carries the block fields
(running digest, previous block digest, block index) and, when the block
was anchored, the ledger reference.

BlockState and SequenceState are the mutable per-stream accumulators.
Each owns its own lock; callers must hold it while reading or writing
the other fields.
"""

from __future__ import annotations

import enum
import threading
from dataclasses import dataclass, field
from typing import Any, Optional, Union


class IntervalMode(str, enum.Enum):
    """How the block boundary policy decides an anchor is due."""
    COUNT = "count"  # Every N finalized blocks
    TIME = "time"  # Every N seconds of event time


_INT_FIELDS = frozenset({"index", "block_id", "block_index", "anchor_block_index"})


@dataclass
class ChainMetadata:
    """Chain fields attached to a single record."""
    index: int
    exec_id: str
    block_id: int
    # Block fields, last event of a batch only
    digest: Optional[str] = None
    stream: Optional[str] = None
    prev_digest: Optional[str] = None
    block_index: Optional[int] = None
    # Anchor fields, anchored blocks only
    anchor_block_index: Optional[int] = None
    anchor_tx: Optional[str] = None
    anchor_received: Optional[str] = None

    _WIRE_NAMES = (
        ("index", "index"),
        ("exec_id", "exec"),
        ("block_id", "block_id"),
        ("digest", "digest"),
        ("stream", "stream"),
        ("prev_digest", "prev_digest"),
        ("block_index", "block_index"),
        ("anchor_block_index", "anchor_block_index"),
        ("anchor_tx", "anchor_tx"),
        ("anchor_received", "anchor_received"),
    )

    @property
    def is_block_end(self) -> bool:
        return self.digest is not None

    @property
    def is_anchored(self) -> bool:
        return self.anchor_tx is not None

    def to_dict(self) -> dict[str, Any]:
        """Wire form; unset optional fields are omitted."""
        out: dict[str, Any] = {}
        for attr, name in self._WIRE_NAMES:
            value = getattr(self, attr)
            if value is not None:
                out[name] = value
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChainMetadata:
        """Parse the wire form.

        Raises ValueError on missing required fields or on a field of the
        wrong JSON type.
        """
        missing = [n for n in ("index", "exec", "block_id") if data.get(n) is None]
        if missing:
            raise ValueError(f"Chain metadata missing fields: {', '.join(missing)}")
        kwargs = {attr: data.get(name) for attr, name in cls._WIRE_NAMES}
        for attr, name in cls._WIRE_NAMES:
            value = kwargs[attr]
            if value is None:
                continue
            if name in _INT_FIELDS:
                valid = isinstance(value, int) and not isinstance(value, bool)
            else:
                valid = isinstance(value, str)
            if not valid:
                expected = "an integer" if name in _INT_FIELDS else "a string"
                raise ValueError(f"Chain metadata field {name!r} must be {expected}, got {value!r}")
        return cls(**kwargs)


@dataclass
class BlockState:
    """Block accumulator for one stream key.

    ``interval_counter`` counts finalized blocks since the last anchor in
    count mode and holds the last anchor boundary (unix seconds) in time
    mode.

    ``anchor_turn`` orders anchor submissions: the commitment for block
    index N is submitted only once ``anchors_done == N``. Both are used
    outside ``lock``; ledger calls never run under it.
    """
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)
    initialized: bool = False
    last_digest: str = ""
    first_digest: Optional[str] = None
    block_counter: int = 0
    interval_counter: float = 0
    anchor_turn: threading.Condition = field(default_factory=threading.Condition, repr=False, compare=False)
    anchors_done: int = 0


@dataclass
class SequenceState:
    """Batch sequence counter for one stream key."""
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)
    next_block_id: int = 0


@dataclass(frozen=True)
class Anchored:
    """The block's commitment was recorded on the ledger."""
    block_index: int
    tx_ref: str
    confirmed_at: str


@dataclass(frozen=True)
class Unanchored:
    """An anchor was due but could not be recorded. The block is still chained."""
    block_index: int
    reason: str


AnchorOutcome = Union[Anchored, Unanchored]


@dataclass(frozen=True)
class BlockOutcome:
    """Result of finalizing one batch as a block."""
    stream: str
    block_id: int
    running_digest: str
    prev_digest: str
    block_digest: str
    block_index: int
    anchor: Optional[AnchorOutcome] = None  # None when no anchor was due
