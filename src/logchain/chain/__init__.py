"""Per-stream hash chaining of event batches, and replay verification."""

from logchain.chain.chainer import BatchResult, EventChainer, EventError, batched
from logchain.chain.policy import BlockBoundaryPolicy
from logchain.chain.state_store import ChainStateRegistry
from logchain.chain.verifier import ChainVerifier, VerificationFailure, VerificationReport

__all__ = [
    "BatchResult",
    "BlockBoundaryPolicy",
    "ChainStateRegistry",
    "ChainVerifier",
    "EventChainer",
    "EventError",
    "VerificationFailure",
    "VerificationReport",
    "batched",
]
