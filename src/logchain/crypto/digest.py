"""Digest primitives shared by the chainer, the anchor submitter and the verifier.

``fold`` is the chaining step: SHA-256 applied twice, the inner digest
kept binary and the outer one hex encoded. It folds events into a running
digest and running digests into the block chain.

``compact`` is a single RIPEMD-160 pass, used only to shrink the anchor
commitment so it fits in a ledger data output.
"""

from __future__ import annotations

import hashlib

from Crypto.Hash import RIPEMD160


def fold(previous: str, data: str) -> str:
    """Fold *data* onto *previous*: ``hex(sha256(sha256(previous + data)))``."""
    inner = hashlib.sha256((previous + data).encode("utf-8")).digest()
    return hashlib.sha256(inner).hexdigest()


def compact(value: str) -> str:
    """Compute the 160-bit hex digest of *value*."""
    return RIPEMD160.new(value.encode("utf-8")).hexdigest()
