"""Command-line entrypoint for wasm migration checks.

Subcommands:
  snapshot     capture smart-query responses of migration targets
  diff         compare two snapshot files
  upload       store a wasm binary
  instantiate  instantiate a stored code id
  execute      execute a message against a contract

Importing this module has no side effects; all behavior is opt-in.
"""

from __future__ import annotations

import argparse
import json
import sys
import time
from typing import Any, List, Optional

from wasm_client import DEFAULT_CHAIN_ID, DEFAULT_RPC, RPC_TIMEOUT, connect
from wasm_diff import diff_snapshots, has_regressions
from wasm_envelope import DEFAULT_DENOM
from wasm_member import UnresolvedMember
from wasm_ops import (
    code_id_from_events,
    contract_address_from_events,
    execute_contract,
    instantiate_contract,
    upload_contract,
)
from wasm_snapshot import (
    capture,
    load_query_sets,
    load_targets,
    snapshot_from_json,
    snapshot_to_json,
)
from wasm_types import Coin, FinalityRecord, WasmToolError

MAX_PREVIEW = 20


# --- helpers ---------------------------------------------------------------


def load_json(path: str) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        print(f"❌ Failed to load JSON from {path}: {e}", file=sys.stderr)
        sys.exit(2)


def parse_json_arg(value: str) -> Any:
    """Accept inline JSON or `@path/to/file.json`."""
    if value.startswith("@"):
        return load_json(value[1:])
    try:
        return json.loads(value)
    except ValueError as e:
        print(f"❌ Invalid JSON message: {e}", file=sys.stderr)
        sys.exit(2)


def parse_funds(values: Optional[List[str]]) -> Optional[List[Coin]]:
    if not values:
        return None
    try:
        return [Coin.parse(v) for v in values]
    except ValueError as e:
        print(f"❌ {e}", file=sys.stderr)
        sys.exit(2)


def emit(doc: Any, raw: bool = False, sort_keys: bool = True) -> None:
    if raw:
        print(json.dumps(doc, separators=(",", ":"), sort_keys=sort_keys, ensure_ascii=False))
    else:
        print(json.dumps(doc, indent=2, sort_keys=sort_keys, ensure_ascii=False))


def report_tx(record: FinalityRecord, quiet: bool) -> None:
    if quiet:
        return
    print(f"✅ Tx {record.tx_hash} included at height {record.height}", file=sys.stderr)
    print(f"   gas used={record.gas_used}  wanted={record.gas_wanted}", file=sys.stderr)
    code_id = code_id_from_events(record)
    if code_id is not None:
        print(f"🧱 Code id: {code_id}", file=sys.stderr)
    addr = contract_address_from_events(record)
    if addr:
        print(f"🏷️ Contract: {addr}", file=sys.stderr)


# --- CLI -------------------------------------------------------------------

# Example:
#   python app.py snapshot --targets targets.json --queries queries.json --out before.json
#   python app.py diff before.json after.json --strict


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(
        description="Upload/instantiate/execute CosmWasm contracts and snapshot their query surface across migrations.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    ap.add_argument("--rpc", default=DEFAULT_RPC, help="Node URL (default from RPC_URL)")
    ap.add_argument("--chain-id", default=DEFAULT_CHAIN_ID, help="Chain id (default from CHAIN_ID)")
    ap.add_argument("--denom", default=DEFAULT_DENOM, help="Fee denom (default from FEE_DENOM)")
    ap.add_argument("--timeout", type=int, default=RPC_TIMEOUT, help="Query timeout in seconds")
    ap.add_argument("--quiet", action="store_true", help="Suppress human-readable logs on stderr")
    ap.add_argument("--raw-json", action="store_true", help="Emit compact JSON (no pretty-printing)")
    sub = ap.add_subparsers(dest="command", required=True)

    snap = sub.add_parser("snapshot", help="Capture query responses of migration targets")
    snap.add_argument("--targets", required=True, help="JSON file: [{name, address: [...]}, ...]")
    snap.add_argument("--queries", required=True, help="JSON file: [{contract, queries: [...]}, ...]")
    snap.add_argument("--out", help="Write the snapshot here instead of stdout")

    diff = sub.add_parser("diff", help="Compare two snapshot files")
    diff.add_argument("before", help="Snapshot taken before the migration")
    diff.add_argument("after", help="Snapshot taken after the migration")
    diff.add_argument(
        "--strict",
        action="store_true",
        help="Exit with code 2 if responses changed, queries vanished or started failing",
    )

    up = sub.add_parser("upload", help="Store a wasm binary")
    up.add_argument("--sender", required=True, help="Sender address")
    up.add_argument("wasm", help="Path to the .wasm file")

    inst = sub.add_parser("instantiate", help="Instantiate a stored code id")
    inst.add_argument("--sender", required=True, help="Sender address")
    inst.add_argument("--label", default="contract", help="Contract label")
    inst.add_argument("--admin", help="Address allowed to migrate the contract")
    inst.add_argument(
        "--funds", action="append", help="Coin to attach, e.g. 100untrn (repeatable)"
    )
    inst.add_argument("code_id", type=int, help="Code id")
    inst.add_argument("msg", help="Init message as JSON or @file.json")

    ex = sub.add_parser("execute", help="Execute a message against a contract")
    ex.add_argument("--sender", required=True, help="Sender address")
    ex.add_argument(
        "--funds", action="append", help="Coin to attach, e.g. 100untrn (repeatable)"
    )
    ex.add_argument("contract", help="Contract address")
    ex.add_argument("msg", help="Execute message as JSON or @file.json")

    return ap.parse_args(argv)


def run_snapshot(args: argparse.Namespace) -> int:
    try:
        targets = load_targets(load_json(args.targets))
        query_sets = load_query_sets(load_json(args.queries))
    except ValueError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 2

    client = connect(args.rpc, args.chain_id, args.denom, args.timeout)
    t0 = time.monotonic()
    snapshot = capture(client, targets, query_sets, quiet=args.quiet)
    doc = snapshot_to_json(snapshot)

    if args.out:
        with open(args.out, "w", encoding="utf-8") as f:
            json.dump(doc, f, indent=2, ensure_ascii=False)
        if not args.quiet:
            print(f"💾 Snapshot written to {args.out}", file=sys.stderr)
    else:
        # query bodies keep their key order, same as the --out file
        emit(doc, args.raw_json, sort_keys=False)

    if not args.quiet:
        print(f"⏱️  Elapsed: {time.monotonic() - t0:.2f}s", file=sys.stderr)
    return 0


def run_diff(args: argparse.Namespace) -> int:
    try:
        before = snapshot_from_json(load_json(args.before))
        after = snapshot_from_json(load_json(args.after))
    except ValueError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 2
    delta = diff_snapshots(before, after)

    if not args.quiet:
        print("🔍 Snapshot diff", file=sys.stderr)
        for key in ("changed", "removed", "added", "newErrors", "fixedErrors"):
            items = delta[key]
            print(f"  {key + ':':<13}{len(items)}", file=sys.stderr)
            for item in items[:MAX_PREVIEW]:
                print(f"    {item['contract']} {item['address']} {item['id'][:12]}", file=sys.stderr)
            if len(items) > MAX_PREVIEW:
                print("    …", file=sys.stderr)
        print(f"  {'unchanged:':<13}{len(delta['unchanged'])}", file=sys.stderr)

    emit(delta, args.raw_json)

    if args.strict and has_regressions(delta):
        return 2
    return 0


def run_tx(args: argparse.Namespace) -> int:
    client = connect(args.rpc, args.chain_id, args.denom, args.timeout)
    member = UnresolvedMember(address=args.sender, client=client)

    if args.command == "upload":
        record = upload_contract(member, args.wasm, denom=args.denom)
    elif args.command == "instantiate":
        msg = parse_json_arg(args.msg)
        record = instantiate_contract(
            member,
            args.code_id,
            msg,
            args.label,
            parse_funds(args.funds),
            args.admin,
            denom=args.denom,
        )
    else:
        msg = parse_json_arg(args.msg)
        record = execute_contract(
            member, args.contract, msg, parse_funds(args.funds), denom=args.denom
        )

    report_tx(record, args.quiet)
    emit(record.to_dict(), args.raw_json)
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    try:
        if args.command == "snapshot":
            code = run_snapshot(args)
        elif args.command == "diff":
            code = run_diff(args)
        else:
            code = run_tx(args)
    except WasmToolError as e:
        print(f"❌ {e}", file=sys.stderr)
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
