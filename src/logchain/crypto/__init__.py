"""Cryptographic primitives — canonical form, digests, commitments, ledger anchoring."""

from logchain.crypto.anchor import AnchorSubmitter
from logchain.crypto.canonical import CanonicalizationError, canonicalize
from logchain.crypto.commitment import AnchorCommitment
from logchain.crypto.digest import compact, fold

__all__ = [
    "AnchorCommitment",
    "AnchorSubmitter",
    "CanonicalizationError",
    "canonicalize",
    "compact",
    "fold",
]
