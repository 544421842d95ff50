"""LogChain CLI — chain and verify JSONL event streams.

Usage:
    python -m logchain.cli chain --tag app.access --input events.jsonl --output chained.jsonl
    python -m logchain.cli verify --input chained.jsonl
    python -m logchain.cli verify --input chained.jsonl --ledger
    python -m logchain.cli commitment --first <digest> --last <digest> --index 3
    python -m logchain.cli status

Configuration is read from --config (JSON) or from LOGCHAIN_* variables
and the --env-file (default: .env).
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Iterator, Optional

from logchain.chain.chainer import batched
from logchain.config import ChainConfig
from logchain.crypto.commitment import AnchorCommitment
from logchain.models.chain import Anchored
from logchain.persistence.event_stream import read_events, write_events
from logchain.service import LogChainService


DEFAULT_ENV_FILE = Path(".env")


def _load_config(args: argparse.Namespace) -> ChainConfig:
    if args.config is not None:
        return ChainConfig.from_json(args.config)
    return ChainConfig.from_env(args.env_file)


@contextmanager
def _open(path: Optional[Path], mode: str, default: IO[str]) -> Iterator[IO[str]]:
    if path is None:
        yield default
        return
    with path.open(mode, encoding="utf-8") as handle:
        yield handle


def cmd_chain(args: argparse.Namespace) -> int:
    service = LogChainService(_load_config(args))
    chained = errors = blocks = anchors = 0
    with _open(args.input, "r", sys.stdin) as src, _open(args.output, "w", sys.stdout) as dst:
        for batch in batched(read_events(src), args.batch_size):
            result = service.chain_batch(args.tag, batch)
            chained += write_events(dst, result.events)
            errors += len(result.errors)
            for err in result.errors:
                print(f"Rejected event {err.position}: {err.error}", file=sys.stderr)
            if result.block is not None:
                blocks += 1
                if isinstance(result.block.anchor, Anchored):
                    anchors += 1
    print(
        f"Chained {chained} events into {blocks} blocks ({anchors} anchored, {errors} rejected)",
        file=sys.stderr,
    )
    return 0 if errors == 0 else 2


def cmd_verify(args: argparse.Namespace) -> int:
    service = LogChainService(_load_config(args))
    with _open(args.input, "r", sys.stdin) as src:
        records = [record for _, record in read_events(src)]
    report = service.verify(
        records,
        newest_first=args.newest_first,
        check_ledger=args.ledger,
        first_block_digest=args.first_digest,
    )
    print(json.dumps(report.to_dict(), indent=2))
    return 0 if report.success else 1


def cmd_commitment(args: argparse.Namespace) -> int:
    commitment = AnchorCommitment(
        stream="",
        first_digest=args.first,
        last_digest=args.last,
        block_index=args.index,
    )
    print(json.dumps({
        "key": commitment.key,
        "value": commitment.value,
        "payload": commitment.payload,
    }, indent=2))
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    service = LogChainService(_load_config(args))
    print(json.dumps(service.status(), indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="logchain",
        description="Tamper-evident hash chaining and ledger anchoring for log streams",
    )
    parser.add_argument("--config", type=Path, help="JSON config file (overrides environment)")
    parser.add_argument(
        "--env-file",
        type=Path,
        default=DEFAULT_ENV_FILE,
        help="dotenv file with LOGCHAIN_* settings (default: .env)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command")

    # chain
    p_chain = sub.add_parser("chain", help="Chain a JSONL event stream")
    p_chain.add_argument("--tag", required=True, help="Stream key")
    p_chain.add_argument("--input", type=Path, help="Input JSONL (default: stdin)")
    p_chain.add_argument("--output", type=Path, help="Output JSONL (default: stdout)")
    p_chain.add_argument("--batch-size", type=int, default=100, help="Events per block (default: 100)")

    # verify
    p_verify = sub.add_parser("verify", help="Verify a chained JSONL event stream")
    p_verify.add_argument("--input", type=Path, help="Chained JSONL (default: stdin)")
    p_verify.add_argument("--newest-first", action="store_true", help="Input is newest first")
    p_verify.add_argument("--ledger", action="store_true", help="Cross-check anchors on the ledger")
    p_verify.add_argument("--first-digest", help="Genesis block digest, if the input starts mid-chain")

    # commitment
    p_commit = sub.add_parser("commitment", help="Compute an anchor payload")
    p_commit.add_argument("--first", required=True, help="First block digest")
    p_commit.add_argument("--last", required=True, help="Anchored block digest")
    p_commit.add_argument("--index", required=True, type=int, help="Block index")

    # status
    sub.add_parser("status", help="Show configuration status")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "chain": cmd_chain,
        "verify": cmd_verify,
        "commitment": cmd_commitment,
        "status": cmd_status,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    try:
        return handler(args)
    except ValueError as exc:
        print(f"Failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
