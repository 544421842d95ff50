"""Anchor submission — best-effort external attestation of a finished block.

Anchoring records a compact commitment to the chain on a public ledger,
giving anyone a timestamped proof that the block existed, unaltered, no
later than the ledger's confirmation time.

Anchoring never fails the event pipeline. Any error from the ledger
service is logged and turned into an ``Unanchored`` outcome; the block
remains chain-linked and verifiable, just without external attestation.
"""

from __future__ import annotations

import logging

from logchain.crypto.commitment import AnchorCommitment
from logchain.crypto.ledger import AnchorService, LedgerError
from logchain.models.chain import Anchored, AnchorOutcome, Unanchored

logger = logging.getLogger("logchain.anchor")


class AnchorSubmitter:
    """Submits commitments to an AnchorService and confirms them.

    Usage:
        submitter = AnchorSubmitter(BlockCypherLedger("bcy/test", token))
        outcome = submitter.submit(commitment)
        if isinstance(outcome, Anchored):
            ...
    """

    def __init__(self, service: AnchorService) -> None:
        self._service = service

    def submit(self, commitment: AnchorCommitment) -> AnchorOutcome:
        payload = commitment.payload
        try:
            tx_ref = self._service.submit(payload)
            txn = self._service.fetch(tx_ref)
        except LedgerError as exc:
            logger.warning(
                "Anchor failed for stream %s block %d: %s",
                commitment.stream, commitment.block_index, exc,
            )
            return Unanchored(block_index=commitment.block_index, reason=str(exc))
        except Exception as exc:
            # Third-party AnchorService implementations may raise anything
            logger.warning(
                "Anchor failed for stream %s block %d: %s: %s",
                commitment.stream, commitment.block_index, type(exc).__name__, exc,
            )
            return Unanchored(block_index=commitment.block_index, reason=f"{type(exc).__name__}: {exc}")

        logger.info(
            "Anchored stream %s block %d in %s (confirmed %s)",
            commitment.stream, commitment.block_index, tx_ref, txn.confirmed_at,
        )
        return Anchored(
            block_index=commitment.block_index,
            tx_ref=tx_ref,
            confirmed_at=txn.confirmed_at,
        )
