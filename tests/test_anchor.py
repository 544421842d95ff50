"""Tests for the anchor submitter — best-effort, never raises."""

import logging

from conftest import FakeLedger
from logchain.crypto.anchor import AnchorSubmitter
from logchain.crypto.commitment import AnchorCommitment
from logchain.crypto.ledger import LedgerError
from logchain.models.chain import Anchored, Unanchored

COMMITMENT = AnchorCommitment(stream="s1", first_digest="a" * 64, last_digest="b" * 64, block_index=2)


class FetchFailsLedger(FakeLedger):
    def fetch(self, tx_ref: str):
        raise LedgerError("timeout")


class TestAnchorSubmitter:
    def test_success(self, ledger: FakeLedger) -> None:
        outcome = AnchorSubmitter(ledger).submit(COMMITMENT)
        assert isinstance(outcome, Anchored)
        assert outcome.block_index == 2
        assert outcome.tx_ref == "tx0000"
        assert outcome.confirmed_at == ledger.transactions["tx0000"].confirmed_at
        assert ledger.submitted == [COMMITMENT.payload]

    def test_submit_failure_is_logged(self, ledger: FakeLedger, caplog) -> None:
        ledger.fail_submit = True
        with caplog.at_level(logging.WARNING, logger="logchain.anchor"):
            outcome = AnchorSubmitter(ledger).submit(COMMITMENT)
        assert isinstance(outcome, Unanchored)
        assert outcome.block_index == 2
        assert "Anchor failed for stream s1 block 2" in caplog.text

    def test_fetch_failure(self) -> None:
        outcome = AnchorSubmitter(FetchFailsLedger()).submit(COMMITMENT)
        assert isinstance(outcome, Unanchored)
        assert outcome.reason == "timeout"

    def test_unexpected_exception_is_contained(self, caplog) -> None:
        class TimingOutLedger(FakeLedger):
            def submit(self, payload: str) -> str:
                raise TimeoutError("read timed out")

        with caplog.at_level(logging.WARNING, logger="logchain.anchor"):
            outcome = AnchorSubmitter(TimingOutLedger()).submit(COMMITMENT)
        assert isinstance(outcome, Unanchored)
        assert outcome.reason == "TimeoutError: read timed out"
        assert "Anchor failed for stream s1 block 2" in caplog.text

    def test_unexpected_fetch_exception_is_contained(self) -> None:
        class BrokenFetchLedger(FakeLedger):
            def fetch(self, tx_ref: str):
                raise KeyError("timestamp")

        outcome = AnchorSubmitter(BrokenFetchLedger()).submit(COMMITMENT)
        assert isinstance(outcome, Unanchored)
        assert outcome.reason.startswith("KeyError")
