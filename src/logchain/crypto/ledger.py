"""Public ledger backends — where anchor commitments are recorded.

The ledger is a witness, not a participant: it stores an opaque data
payload in a transaction and reports when that transaction was
confirmed. Nothing executes on-chain.

Two backends are provided:

- BlockCypherLedger embeds the payload in a null-data output through the
  BlockCypher REST API (``bcy/test``, ``btc/main``, ``btc/test3``, ...).
- EthereumLedger sends a 0-value self-transaction with the payload in the
  data field, as the constitution anchoring tool does.

Both raise LedgerError for every failure so the caller can handle one
exception type.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

import requests

BLOCKCYPHER_API_ROOT = "https://api.blockcypher.com/v1/"
NULL_DATA = "null-data"


class LedgerError(RuntimeError):
    """A ledger call failed: transport, HTTP status or malformed response."""


@dataclass(frozen=True)
class LedgerOutput:
    """One transaction output as reported by the ledger."""
    script_type: str
    data_hex: Optional[str] = None


@dataclass(frozen=True)
class LedgerTransaction:
    """A fetched ledger transaction."""
    tx_ref: str
    confirmed_at: str
    outputs: tuple[LedgerOutput, ...] = ()

    def null_data_hex(self) -> Optional[str]:
        """The first embedded data payload, or None if the transaction has none."""
        for output in self.outputs:
            if output.script_type == NULL_DATA and output.data_hex is not None:
                return output.data_hex
        return None


class AnchorService(Protocol):
    """What the anchor submitter and the verifier need from a ledger."""

    def submit(self, payload: str) -> str:
        """Record *payload* (hex) and return the transaction reference."""
        ...

    def fetch(self, tx_ref: str) -> LedgerTransaction:
        """Look up a previously submitted transaction."""
        ...


class BlockCypherLedger:
    """Anchors payloads as BlockCypher data transactions.

    Usage:
        ledger = BlockCypherLedger("bcy/test", token="...")
        tx_ref = ledger.submit(payload)
        txn = ledger.fetch(tx_ref)
    """

    def __init__(
        self,
        coinnet: str = "bcy/test",
        token: Optional[str] = None,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._coinnet = coinnet.strip("/")
        self._token = token
        self._timeout = timeout
        self._session = session or requests.Session()

    @property
    def coinnet(self) -> str:
        return self._coinnet

    def tx_url(self, tx_ref: str) -> str:
        return f"{BLOCKCYPHER_API_ROOT}{self._coinnet}/txs/{tx_ref}"

    def submit(self, payload: str) -> str:
        if not self._token:
            raise LedgerError("BlockCypher data transactions require an access token")
        body = self._request(
            "POST",
            f"{BLOCKCYPHER_API_ROOT}{self._coinnet}/txs/data",
            params={"token": self._token},
            json={"data": payload},
        )
        tx_ref = body.get("hash")
        if not isinstance(tx_ref, str) or not tx_ref:
            raise LedgerError(f"BlockCypher response has no transaction hash: {body!r}")
        return tx_ref

    def fetch(self, tx_ref: str) -> LedgerTransaction:
        body = self._request("GET", self.tx_url(tx_ref))
        received = body.get("received")
        if not isinstance(received, str):
            raise LedgerError(f"BlockCypher transaction {tx_ref} has no received time")
        outputs = tuple(
            LedgerOutput(
                script_type=str(out.get("script_type", "")),
                data_hex=out.get("data_hex"),
            )
            for out in body.get("outputs") or ()
            if isinstance(out, dict)
        )
        return LedgerTransaction(tx_ref=tx_ref, confirmed_at=received, outputs=outputs)

    def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = self._session.request(method, url, timeout=self._timeout, **kwargs)
            response.raise_for_status()
            body = response.json()
        except requests.RequestException as exc:
            raise LedgerError(f"BlockCypher {method} {url.split('?')[0]} failed: {exc}") from exc
        except ValueError as exc:
            raise LedgerError(f"BlockCypher returned invalid JSON: {exc}") from exc
        if not isinstance(body, dict):
            raise LedgerError(f"BlockCypher returned unexpected body: {body!r}")
        return body


class EthereumLedger:
    """Anchors payloads in the data field of a 0-ETH self-send.

    ``w3`` may be injected; otherwise an HTTP provider is built from
    ``rpc_url``.
    """

    def __init__(
        self,
        private_key: str,
        rpc_url: Optional[str] = None,
        chain_id: int = 11155111,  # Sepolia
        gas: int = 30_000,
        gas_price_gwei: str = "2",
        timeout: float = 120.0,
        w3: Any = None,
    ) -> None:
        from eth_account import Account
        from web3 import Web3, HTTPProvider

        if w3 is None:
            if not rpc_url:
                raise LedgerError("EthereumLedger needs an rpc_url or a Web3 instance")
            w3 = Web3(HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))
        self._w3 = w3
        self._account = Account.from_key(private_key)
        self._chain_id = chain_id
        self._gas = gas
        self._gas_price_wei = Web3.to_wei(gas_price_gwei, "gwei")
        self._timeout = timeout

    @property
    def address(self) -> str:
        return self._account.address

    def submit(self, payload: str) -> str:
        from web3 import Web3
        from web3.exceptions import Web3Exception

        try:
            data = bytes.fromhex(payload)
        except ValueError as exc:
            raise LedgerError(f"Anchor payload is not hex: {payload!r}") from exc

        try:
            nonce = self._w3.eth.get_transaction_count(self._account.address)
            tx = {
                "to": self._account.address,  # self-send, 0 ETH
                "value": 0,
                "gas": self._gas,
                "gasPrice": self._gas_price_wei,
                "nonce": nonce,
                "chainId": self._chain_id,
                "data": data,
            }
            signed = self._account.sign_transaction(tx)
            tx_hash = self._w3.eth.send_raw_transaction(signed.raw_transaction)
            self._w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self._timeout)
        except (Web3Exception, requests.RequestException, ValueError) as exc:
            raise LedgerError(f"Ethereum anchor transaction failed: {exc}") from exc
        return Web3.to_hex(tx_hash)

    def fetch(self, tx_ref: str) -> LedgerTransaction:
        from web3 import Web3
        from web3.exceptions import Web3Exception

        try:
            tx = self._w3.eth.get_transaction(tx_ref)
            block_number = tx["blockNumber"]
            if block_number is None:
                raise LedgerError(f"Transaction {tx_ref} is not confirmed yet")
            block = self._w3.eth.get_block(block_number)
            confirmed = datetime.fromtimestamp(block["timestamp"], tz=timezone.utc)
            data_hex = Web3.to_hex(tx["input"]).removeprefix("0x")
        except (Web3Exception, requests.RequestException, ValueError, KeyError, TypeError) as exc:
            raise LedgerError(f"Ethereum lookup of {tx_ref} failed: {exc}") from exc

        return LedgerTransaction(
            tx_ref=tx_ref,
            confirmed_at=confirmed.strftime("%Y-%m-%dT%H:%M:%SZ"),
            outputs=(LedgerOutput(script_type=NULL_DATA, data_hex=data_hex),),
        )


def parse_confirmed_at(value: str) -> datetime:
    """Parse a ledger RFC 3339 timestamp ("...Z", up to nanosecond fractions)."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    if "." in text:
        head, _, rest = text.partition(".")
        digits = ""
        while rest and rest[0].isdigit():
            digits, rest = digits + rest[0], rest[1:]
        text = f"{head}.{digits[:6].ljust(6, '0')}{rest}" if digits else head + rest
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
