"""Shared fixtures: an in-memory ledger and the standard event batches."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

import pytest

from logchain.chain.chainer import EventChainer
from logchain.chain.policy import BlockBoundaryPolicy
from logchain.chain.state_store import ChainStateRegistry
from logchain.crypto.anchor import AnchorSubmitter
from logchain.crypto.ledger import LedgerError, LedgerOutput, LedgerTransaction
from logchain.models.chain import IntervalMode

BASE_TIME = 1_700_000_000


class FakeLedger:
    """In-memory AnchorService. Each submission confirms one minute after the last."""

    def __init__(self, start: datetime = datetime(2026, 1, 1, tzinfo=timezone.utc)) -> None:
        self.transactions: dict[str, LedgerTransaction] = {}
        self.submitted: list[str] = []
        self.fail_submit = False
        self.fail_on: set[int] = set()  # 0-based submission attempts that fail
        self._attempts = 0
        self._start = start
        self._lock = threading.Lock()

    def submit(self, payload: str) -> str:
        with self._lock:
            attempt = self._attempts
            self._attempts += 1
            if self.fail_submit or attempt in self.fail_on:
                raise LedgerError("ledger unavailable")
            tx_ref = f"tx{len(self.submitted):04d}"
            confirmed = self._start + timedelta(minutes=len(self.submitted))
            self.submitted.append(payload)
            self.transactions[tx_ref] = LedgerTransaction(
                tx_ref=tx_ref,
                confirmed_at=confirmed.strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
                outputs=(
                    LedgerOutput(script_type="pay-to-pubkey-hash"),
                    LedgerOutput(script_type="null-data", data_hex=payload),
                ),
            )
            return tx_ref

    def fetch(self, tx_ref: str) -> LedgerTransaction:
        try:
            return self.transactions[tx_ref]
        except KeyError:
            raise LedgerError(f"unknown transaction {tx_ref}") from None


def messages(time: int) -> list[tuple[int, dict]]:
    return [
        (time, {"foo": "bar", "message": "hello world"}),
        (time + 10, {"foo": "bar", "message": "hash chains"}),
        (time + 20, {"foo": "bar", "message": "are"}),
        (time + 30, {"foo": "bar", "message": "super useful"}),
    ]


def push_events(chainer: EventChainer, tag: str, start: int = BASE_TIME) -> list[dict]:
    """Four batches of four events, 100 seconds apart. Returns records oldest first."""
    records: list[dict] = []
    for offset in (0, 100, 200, 300):
        result = chainer.chain_batch(tag, messages(start + offset))
        records.extend(record for _, record in result.events)
    return records


def make_chainer(
    mode: IntervalMode | None = None,
    interval: int = 1000,
    ledger: FakeLedger | None = None,
    registry: ChainStateRegistry | None = None,
) -> EventChainer:
    return EventChainer(
        registry or ChainStateRegistry(),
        BlockBoundaryPolicy(mode, interval, clock=lambda: float(BASE_TIME)),
        submitter=AnchorSubmitter(ledger) if ledger is not None else None,
    )


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def registry() -> ChainStateRegistry:
    return ChainStateRegistry(execution_id="logchain-test")
