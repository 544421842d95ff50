"""LogChain service — facade wiring configuration to the chainer and verifier.

Usage:
    config = ChainConfig.from_env(Path(".env"))
    service = LogChainService(config)

    result = service.chain_batch("app.access", [(time, record), ...])
    report = service.verify(records, check_ledger=True)
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Iterable, Optional

from logchain.chain.chainer import BatchResult, Event, EventChainer
from logchain.chain.policy import BlockBoundaryPolicy
from logchain.chain.state_store import ChainStateRegistry
from logchain.chain.verifier import ChainVerifier, VerificationReport
from logchain.config import ChainConfig
from logchain.crypto.anchor import AnchorSubmitter
from logchain.crypto.ledger import AnchorService, BlockCypherLedger, EthereumLedger

logger = logging.getLogger("logchain.service")


def build_ledger(config: ChainConfig) -> Optional[AnchorService]:
    """Ledger backend for *config*, or None if credentials are missing."""
    if not config.has_ledger_credentials:
        return None
    if config.ledger == "ethereum":
        return EthereumLedger(
            private_key=config.private_key,
            rpc_url=config.rpc_url,
            chain_id=config.chain_id,
            timeout=config.timeout_seconds,
        )
    return BlockCypherLedger(
        coinnet=config.coinnet,
        token=config.coinnet_token,
        timeout=config.timeout_seconds,
    )


class LogChainService:
    """Chains batches and verifies chained records under one configuration."""

    def __init__(
        self,
        config: ChainConfig,
        ledger: Optional[AnchorService] = None,
        registry: Optional[ChainStateRegistry] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._ledger = ledger if ledger is not None else build_ledger(config)
        if config.anchoring_enabled and self._ledger is None:
            logger.warning(
                "Anchoring mode %s is set but no %s credentials are configured; "
                "blocks will be chained without anchors",
                config.interval_type.value, config.ledger,
            )
        self._registry = registry or ChainStateRegistry()
        self._chainer = EventChainer(
            self._registry,
            BlockBoundaryPolicy(config.interval_type, config.action_interval, clock=clock),
            submitter=AnchorSubmitter(self._ledger) if self._ledger is not None else None,
            metadata_key=config.metadata_key,
        )
        self._verifier = ChainVerifier(metadata_key=config.metadata_key)

    @property
    def config(self) -> ChainConfig:
        return self._config

    @property
    def registry(self) -> ChainStateRegistry:
        return self._registry

    def chain_batch(self, stream: str, events: Iterable[Event]) -> BatchResult:
        return self._chainer.chain_batch(stream, events)

    def verify(
        self,
        records: Iterable[dict[str, Any]],
        newest_first: bool = False,
        check_ledger: bool = False,
        first_block_digest: Optional[str] = None,
    ) -> VerificationReport:
        """Verify one stream's records, optionally against the ledger."""
        return self._verifier.verify(
            records,
            newest_first=newest_first,
            ledger=self._ledger if check_ledger else None,
            first_block_digest=first_block_digest,
        )

    def status(self) -> dict[str, Any]:
        mode = self._config.interval_type
        return {
            "execution_id": self._registry.execution_id,
            "interval_type": mode.value if mode is not None else None,
            "action_interval": self._config.action_interval,
            "ledger": self._config.ledger if self._ledger is not None else None,
            "streams": self._registry.streams(),
        }
