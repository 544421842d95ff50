"""Runtime configuration for chaining and anchoring.

Configuration comes from a JSON file or from ``LOGCHAIN_*`` environment
variables, optionally read from a ``.env`` file. Secrets (ledger token,
signing key) are expected in the environment.

    interval_type    "count" | "time" | unset (never anchor)
    action_interval  blocks per anchor (count) or seconds (time)
    ledger           "blockcypher" | "ethereum"
    coinnet          BlockCypher coin/network: bcy/test, btc/main, btc/test3
    coinnet_token    BlockCypher access token
    rpc_url          Ethereum RPC endpoint
    private_key      Ethereum signing key
    chain_id         Ethereum chain ID (default Sepolia)
    metadata_key     record key holding chain metadata
    timeout_seconds  bound on each ledger call
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping, Optional

from dotenv import dotenv_values

from logchain.models.chain import IntervalMode

LEDGERS = ("blockcypher", "ethereum")
ENV_PREFIX = "LOGCHAIN_"


class ConfigError(ValueError):
    """Invalid configuration value."""


@dataclass(frozen=True)
class ChainConfig:
    interval_type: Optional[IntervalMode] = None
    action_interval: int = 1000
    ledger: str = "blockcypher"
    coinnet: str = "bcy/test"
    coinnet_token: Optional[str] = field(default=None, repr=False)
    rpc_url: Optional[str] = None
    private_key: Optional[str] = field(default=None, repr=False)
    chain_id: int = 11155111
    metadata_key: str = ".chain"
    timeout_seconds: float = 30.0

    def __post_init__(self) -> None:
        if self.interval_type is not None and not isinstance(self.interval_type, IntervalMode):
            try:
                object.__setattr__(self, "interval_type", IntervalMode(self.interval_type))
            except ValueError:
                raise ConfigError(
                    f"interval_type must be one of {[m.value for m in IntervalMode]} "
                    f"or unset, got {self.interval_type!r}"
                ) from None
        if not isinstance(self.action_interval, int) or self.action_interval <= 0:
            raise ConfigError(f"action_interval must be a positive integer, got {self.action_interval!r}")
        if self.ledger not in LEDGERS:
            raise ConfigError(f"ledger must be one of {list(LEDGERS)}, got {self.ledger!r}")
        if not self.metadata_key:
            raise ConfigError("metadata_key must not be empty")
        if (
            isinstance(self.timeout_seconds, bool)
            or not isinstance(self.timeout_seconds, (int, float))
            or self.timeout_seconds <= 0
        ):
            raise ConfigError(f"timeout_seconds must be a positive number, got {self.timeout_seconds!r}")

    @property
    def anchoring_enabled(self) -> bool:
        return self.interval_type is not None

    @property
    def has_ledger_credentials(self) -> bool:
        if self.ledger == "ethereum":
            return bool(self.rpc_url and self.private_key)
        return bool(self.coinnet_token)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ChainConfig:
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")
        values = dict(data)
        if values.get("interval_type") in ("", "none", "None"):
            values["interval_type"] = None
        return cls(**values)

    @classmethod
    def from_json(cls, path: Path) -> ChainConfig:
        """Load configuration from a JSON object file."""
        try:
            with Path(path).open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigError(f"Cannot read config {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"Config {path} must hold a JSON object")
        return cls.from_dict(data)

    @classmethod
    def from_env(
        cls,
        env_file: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> ChainConfig:
        """Load configuration from ``LOGCHAIN_*`` variables.

        Values in the process environment override values from *env_file*.
        """
        merged: dict[str, Optional[str]] = {}
        if env_file is not None and Path(env_file).exists():
            merged.update(dotenv_values(env_file))
        merged.update(os.environ if environ is None else environ)

        data: dict[str, Any] = {}
        for f in fields(cls):
            raw = merged.get(ENV_PREFIX + f.name.upper())
            if raw is None or raw == "":
                continue
            data[f.name] = _coerce(f.name, raw)
        return cls.from_dict(data)


def _coerce(name: str, raw: str) -> Any:
    try:
        if name in ("action_interval", "chain_id"):
            return int(raw)
        if name == "timeout_seconds":
            return float(raw)
    except ValueError:
        raise ConfigError(f"{ENV_PREFIX}{name.upper()} is not a number: {raw!r}") from None
    return raw
