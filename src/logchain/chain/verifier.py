"""Chain verifier — replays a stream of chained records and proves it intact.

Verification walks the records from newest to oldest, the direction in
which an append-only log is trusted: the most recent anchored block
fixes everything before it. For each block (the events between two
``index == 0`` boundaries) it checks that:

1. The block is well formed: contiguous indices, one batch ID, one
   execution ID, block fields on the last event, one stream label.
2. Re-canonicalizing and folding the events reproduces the stored
   running digest.
3. The block digest equals the previous-block digest claimed by the next
   newer block.
4. Block indices step down by 0 or 1 per block.
5. Anchored blocks carry ``anchor_block_index == block_index``, and the
   anchored indices fall by exactly one per anchor boundary. A boundary
   whose anchor was missed is noted, not failed.
6. With a ledger: the ledger's confirmation time matches the stored one
   exactly, confirmation times never increase walking backwards, and the
   ledger payload equals the recomputed commitment.

Failures are collected, never raised. The verifier does not repair.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Optional

from logchain.chain.chainer import DEFAULT_METADATA_KEY, strip_metadata
from logchain.crypto.canonical import CanonicalizationError, canonicalize
from logchain.crypto.commitment import commitment_payload
from logchain.crypto.digest import fold
from logchain.crypto.ledger import AnchorService, LedgerError, parse_confirmed_at
from logchain.models.chain import ChainMetadata


@dataclass(frozen=True)
class VerificationFailure:
    """One failed comparison."""
    stream: str
    block_id: Optional[int]
    check: str
    detail: str

    def __str__(self) -> str:
        return f"[{self.stream} block {self.block_id}] {self.check}: {self.detail}"


@dataclass
class VerificationReport:
    """Outcome of verifying one stream's records."""
    failures: list[VerificationFailure] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    blocks_checked: int = 0
    anchors_checked: int = 0
    anchors_unchecked: int = 0

    @property
    def success(self) -> bool:
        return not self.failures

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "blocks_checked": self.blocks_checked,
            "anchors_checked": self.anchors_checked,
            "anchors_unchecked": self.anchors_unchecked,
            "failures": [
                {"stream": f.stream, "block_id": f.block_id, "check": f.check, "detail": f.detail}
                for f in self.failures
            ],
            "notes": list(self.notes),
        }


@dataclass
class _Block:
    events: list[tuple[dict[str, Any], ChainMetadata]]  # Oldest first

    @property
    def end(self) -> ChainMetadata:
        return self.events[-1][1]


class ChainVerifier:
    """Verifies chained records for a single stream.

    Usage:
        report = ChainVerifier().verify(records, ledger=BlockCypherLedger(...))
        if not report.success:
            for failure in report.failures:
                print(failure)
    """

    def __init__(self, metadata_key: str = DEFAULT_METADATA_KEY) -> None:
        self._metadata_key = metadata_key

    def verify(
        self,
        records: Iterable[dict[str, Any]],
        newest_first: bool = False,
        ledger: Optional[AnchorService] = None,
        first_block_digest: Optional[str] = None,
    ) -> VerificationReport:
        """Verify *records* (all from one stream).

        ``first_block_digest`` is the chain's genesis block digest. If not
        given it is derived from the oldest block, which must then be the
        first block of its chain (empty previous digest).
        """
        report = VerificationReport()
        ordered = list(records)
        if not newest_first:
            ordered.reverse()

        blocks = self._split_blocks(ordered, report)
        if not blocks:
            return report

        if first_block_digest is None:
            oldest = blocks[-1].end
            if oldest.prev_digest == "" and oldest.digest is not None:
                first_block_digest = fold("", oldest.digest)

        stream: Optional[str] = None
        expected_digest: Optional[str] = None
        newer_index: Optional[int] = None
        last_anchor_index: Optional[int] = None
        last_confirmed: Optional[datetime] = None
        missed_boundaries = 0

        for block in blocks:
            end = block.end
            label = end.stream or stream or "?"
            fail = _failure_sink(report, label, end.block_id)
            report.blocks_checked += 1

            if stream is None:
                stream = end.stream
            elif end.stream != stream:
                fail("stream_label", f"expected {stream!r}, found {end.stream!r}")

            self._check_structure(block, fail)
            if end.digest is None or end.prev_digest is None:
                expected_digest = None
                newer_index = end.block_index
                continue

            running = self._replay(block, fail)
            if running is not None and running != end.digest:
                fail("running_digest", f"recomputed {running}, stored {end.digest}")

            block_digest = fold(end.prev_digest, end.digest)
            if expected_digest is not None and block_digest != expected_digest:
                fail("chain_link", f"block digest {block_digest}, newer block expects {expected_digest}")
            expected_digest = end.prev_digest

            is_boundary = False
            if end.block_index is None:
                fail("block_index", "missing block_index")
            elif newer_index is not None:
                step = newer_index - end.block_index
                if step not in (0, 1):
                    fail("block_index", f"steps from {newer_index} to {end.block_index}")
                is_boundary = step == 1
            newer_index = end.block_index

            if not end.is_anchored:
                if is_boundary:
                    missed_boundaries += 1
                    report.notes.append(
                        f"[{label} block {end.block_id}] anchor boundary "
                        f"(block_index {end.block_index}) was not anchored; chain-internal validity only"
                    )
                continue

            if end.anchor_block_index != end.block_index:
                fail(
                    "anchor_block_index",
                    f"anchor_block_index {end.anchor_block_index} != block_index {end.block_index}",
                )
            if last_anchor_index is not None and end.anchor_block_index is not None:
                expected_index = last_anchor_index - 1 - missed_boundaries
                if end.anchor_block_index != expected_index:
                    fail(
                        "anchor_block_index",
                        f"expected {expected_index} after anchor {last_anchor_index}, "
                        f"found {end.anchor_block_index}",
                    )
            last_anchor_index = end.anchor_block_index
            missed_boundaries = 0

            if ledger is None:
                report.anchors_unchecked += 1
                continue
            last_confirmed = self._check_ledger(
                ledger, end, block_digest, first_block_digest, last_confirmed, fail,
            )
            report.anchors_checked += 1

        return report

    def _split_blocks(
        self,
        ordered: list[dict[str, Any]],
        report: VerificationReport,
    ) -> list[_Block]:
        """Group newest-first records into blocks, each oldest-first."""
        blocks: list[_Block] = []
        buffer: list[tuple[dict[str, Any], ChainMetadata]] = []
        for position, record in enumerate(ordered):
            raw = record.get(self._metadata_key) if isinstance(record, dict) else None
            try:
                if not isinstance(raw, dict):
                    raise ValueError("no chain metadata")
                meta = ChainMetadata.from_dict(raw)
            except (TypeError, ValueError) as exc:
                report.failures.append(
                    VerificationFailure("?", None, "metadata", f"record {position} from newest: {exc}")
                )
                continue
            buffer.append((record, meta))
            if meta.index == 0:
                blocks.append(_Block(events=list(reversed(buffer))))
                buffer = []
        if buffer:
            report.notes.append(
                f"{len(buffer)} record(s) before the first block start were not verified"
            )
        return blocks

    @staticmethod
    def _check_structure(block: _Block, fail) -> None:
        end = block.end
        if not end.is_block_end:
            fail("block_end", "last event of the block carries no running digest")
        elif end.prev_digest is None:
            fail("block_end", "last event of the block carries no previous block digest")
        indices = [meta.index for _, meta in block.events]
        if indices != list(range(len(indices))):
            fail("sequence_index", f"indices {indices} are not contiguous from 0")
        if any(meta.block_id != end.block_id for _, meta in block.events):
            fail("block_id", "events of one block carry different batch IDs")
        if any(meta.exec_id != end.exec_id for _, meta in block.events):
            fail("exec_id", "events of one block carry different execution IDs")
        if any(meta.is_block_end for _, meta in block.events[:-1]):
            fail("block_end", "running digest found before the last event of the block")

    def _replay(self, block: _Block, fail) -> Optional[str]:
        running = ""
        for record, _ in block.events:
            try:
                running = fold(running, canonicalize(strip_metadata(record, self._metadata_key)))
            except CanonicalizationError as exc:
                fail("canonicalize", str(exc))
                return None
        return running

    @staticmethod
    def _check_ledger(
        ledger: AnchorService,
        end: ChainMetadata,
        block_digest: str,
        first_block_digest: Optional[str],
        last_confirmed: Optional[datetime],
        fail,
    ) -> Optional[datetime]:
        """Cross-check one anchored block; returns its confirmation time."""
        try:
            txn = ledger.fetch(end.anchor_tx)
        except LedgerError as exc:
            fail("ledger_fetch", str(exc))
            return last_confirmed
        except Exception as exc:
            fail("ledger_fetch", f"{type(exc).__name__}: {exc}")
            return last_confirmed

        if txn.confirmed_at != end.anchor_received:
            fail("anchor_received", f"ledger says {txn.confirmed_at}, record says {end.anchor_received}")

        try:
            confirmed = parse_confirmed_at(txn.confirmed_at)
        except ValueError as exc:
            fail("anchor_received", f"unparseable ledger time {txn.confirmed_at!r}: {exc}")
            confirmed = None
        if confirmed is not None and last_confirmed is not None and confirmed > last_confirmed:
            fail("confirmation_order", f"confirmed {confirmed.isoformat()} after newer anchor {last_confirmed.isoformat()}")

        data_hex = txn.null_data_hex()
        if data_hex is None:
            fail("ledger_payload", f"transaction {end.anchor_tx} has no data output")
        elif first_block_digest is None:
            fail("first_block_digest", "genesis block digest unknown; pass first_block_digest")
        else:
            expected = commitment_payload(first_block_digest, block_digest, end.anchor_block_index)
            if data_hex.lower() != expected.lower():
                fail("ledger_payload", f"ledger holds {data_hex}, recomputed {expected}")

        return confirmed if confirmed is not None else last_confirmed


def _failure_sink(report: VerificationReport, stream: str, block_id: Optional[int]):
    def fail(check: str, detail: str) -> None:
        report.failures.append(VerificationFailure(stream, block_id, check, detail))
    return fail
