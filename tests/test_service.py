"""Tests for LogChainService — proves the facade wires config to chainer and verifier."""

import logging

from conftest import BASE_TIME, FakeLedger, messages
from logchain.config import ChainConfig
from logchain.crypto.ledger import BlockCypherLedger, EthereumLedger
from logchain.models.chain import Anchored, Unanchored
from logchain.service import LogChainService, build_ledger


def _push(service: LogChainService, tag: str = "s1") -> list[dict]:
    records = []
    for offset in (0, 100, 200, 300):
        result = service.chain_batch(tag, messages(BASE_TIME + offset))
        records.extend(record for _, record in result.events)
    return records


class TestBuildLedger:
    def test_no_credentials(self) -> None:
        assert build_ledger(ChainConfig()) is None

    def test_blockcypher(self) -> None:
        ledger = build_ledger(ChainConfig(coinnet="btc/test3", coinnet_token="t"))
        assert isinstance(ledger, BlockCypherLedger)
        assert ledger.coinnet == "btc/test3"

    def test_ethereum(self) -> None:
        config = ChainConfig(ledger="ethereum", rpc_url="http://127.0.0.1:8545", private_key="0x" + "11" * 32)
        assert isinstance(build_ledger(config), EthereumLedger)


class TestService:
    def test_chain_and_verify(self) -> None:
        ledger = FakeLedger()
        config = ChainConfig(interval_type="count", action_interval=2)
        service = LogChainService(config, ledger=ledger, clock=lambda: float(BASE_TIME))
        records = _push(service)
        assert len(ledger.submitted) == 2

        report = service.verify(records, check_ledger=True)
        assert report.success, report.failures
        assert report.anchors_checked == 2

    def test_verify_without_ledger_check(self) -> None:
        service = LogChainService(ChainConfig(interval_type="count", action_interval=2), ledger=FakeLedger())
        report = service.verify(_push(service))
        assert report.anchors_unchecked == 2

    def test_anchoring_without_credentials(self, caplog) -> None:
        with caplog.at_level(logging.WARNING, logger="logchain.service"):
            service = LogChainService(ChainConfig(interval_type="count", action_interval=1))
        assert "no blockcypher credentials" in caplog.text
        result = service.chain_batch("s1", messages(BASE_TIME))
        assert isinstance(result.block.anchor, Unanchored)
        assert service.verify([r for _, r in result.events]).success

    def test_anchored_outcome(self) -> None:
        service = LogChainService(ChainConfig(interval_type="count", action_interval=1), ledger=FakeLedger())
        result = service.chain_batch("s1", messages(BASE_TIME))
        assert isinstance(result.block.anchor, Anchored)

    def test_custom_metadata_key(self) -> None:
        service = LogChainService(ChainConfig(metadata_key="_audit"))
        records = _push(service)
        assert "_audit" in records[0]
        assert service.verify(records).success

    def test_status(self) -> None:
        service = LogChainService(ChainConfig(interval_type="time", action_interval=60))
        service.chain_batch("b", messages(BASE_TIME))
        service.chain_batch("a", messages(BASE_TIME))
        status = service.status()
        assert status["interval_type"] == "time"
        assert status["ledger"] is None
        assert status["streams"] == ["a", "b"]
        assert status["execution_id"] == service.registry.execution_id
