"""LogChain — tamper-evident hash chaining of log streams with public ledger anchoring."""

__version__ = "0.1.0"
