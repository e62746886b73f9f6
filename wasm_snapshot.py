"""Capture smart-query responses of deployed contracts for migration checks.

- Walks migration targets (contract kind -> deployed addresses).
- Runs every query of the kind's query set against every address.
- Keys each result by keccak(query JSON), so a later run can be matched
  query-for-query against an earlier one.

A failing query is recorded in place and capture continues; a target
without a query set aborts the whole run before any query is sent.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from eth_utils import keccak

from wasm_types import (
    ChainClient,
    NoQueriesDefinedError,
    QueryExecutionError,
    to_json_bytes,
)

QueryId = str  # 64 lowercase hex chars, no 0x

__all__ = [
    "QueryId",
    "MigrationTarget",
    "QuerySet",
    "QueryResult",
    "SnapshotGroup",
    "Snapshot",
    "query_id",
    "capture",
    "load_targets",
    "load_query_sets",
    "snapshot_to_json",
    "snapshot_from_json",
]


# --- model -----------------------------------------------------------------


@dataclass(frozen=True)
class MigrationTarget:
    name: str
    addresses: Tuple[str, ...]


@dataclass(frozen=True)
class QuerySet:
    contract: str
    queries: Tuple[Any, ...]


@dataclass(frozen=True)
class QueryResult:
    """
    Outcome of one query: a response or an error, never both.

    A success may carry a `None` response, since `null` is a valid
    smart-query answer; `error` alone tells the two cases apart.
    """

    id: QueryId
    query: Any
    response: Any = None
    error: Optional[Dict[str, str]] = None

    def __post_init__(self) -> None:
        if self.error is not None and self.response is not None:
            raise ValueError(f"Query result {self.id} has both a response and an error")

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, qid: QueryId, query: Any, response: Any) -> "QueryResult":
        return cls(id=qid, query=query, response=response)

    @classmethod
    def failure(cls, qid: QueryId, query: Any, error: QueryExecutionError) -> "QueryResult":
        return cls(id=qid, query=query, error=error.to_dict())

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"id": self.id, "query": self.query}
        if self.ok:
            out["response"] = self.response
        else:
            out["error"] = self.error
        return out


@dataclass(frozen=True)
class SnapshotGroup:
    contract: str
    address: str
    results: Tuple[QueryResult, ...] = field(default_factory=tuple)


Snapshot = List[SnapshotGroup]


# --- helpers ---------------------------------------------------------------


def query_id(query: Any) -> QueryId:
    """Keccak-256 of the compact JSON form of `query`, as lowercase hex."""
    return keccak(to_json_bytes(query)).hex()


def _log(msg: str, quiet: bool) -> None:
    if not quiet:
        print(msg, file=sys.stderr)


def _match_query_sets(
    targets: Sequence[MigrationTarget], query_sets: Sequence[QuerySet]
) -> List[Tuple[MigrationTarget, QuerySet]]:
    by_name: Dict[str, QuerySet] = {}
    for qs in query_sets:
        by_name.setdefault(qs.contract, qs)  # first declaration wins
    plan = []
    for target in targets:
        found = by_name.get(target.name)
        if found is None:
            raise NoQueriesDefinedError(target.name)
        plan.append((target, found))
    return plan


def _run_query(client: ChainClient, address: str, query: Any) -> QueryResult:
    qid = query_id(query)
    try:
        resp = client.query_contract_smart(address, query)
    except Exception as e:  # any node/contract error becomes part of the snapshot
        return QueryResult.failure(qid, query, QueryExecutionError(address, query, e))
    return QueryResult.success(qid, query, resp)


# --- core logic ------------------------------------------------------------


def capture(
    client: ChainClient,
    targets: Sequence[MigrationTarget],
    query_sets: Sequence[QuerySet],
    *,
    quiet: bool = False,
) -> Snapshot:
    """
    Run every query of each target's kind against each of its addresses.

    Groups come out in declaration order (targets, then addresses), and
    results in query-set order.
    """
    plan = _match_query_sets(targets, query_sets)
    snapshot: Snapshot = []

    _log("📸 Generating snapshot...", quiet)
    for target, found in plan:
        _log(f"📦 Processing {target.name}...", quiet)
        for address in target.addresses:
            _log(f"=> CONTRACT: {address}", quiet)
            results = []
            for query in found.queries:
                _log(f"==> QUERYING: {to_json_bytes(query).decode('utf-8')}", quiet)
                result = _run_query(client, address, query)
                if not result.ok:
                    _log(f"   ⚠️  {result.error['type']}: {result.error['message']}", quiet)
                results.append(result)
            snapshot.append(
                SnapshotGroup(contract=target.name, address=address, results=tuple(results))
            )

    failed = sum(1 for g in snapshot for r in g.results if not r.ok)
    total = sum(len(g.results) for g in snapshot)
    _log(f"✅ Captured {total} results across {len(snapshot)} contracts ({failed} failed)", quiet)
    return snapshot


# --- (de)serialization -----------------------------------------------------


def _require_list(data: Any, what: str) -> List[Any]:
    if not isinstance(data, list):
        raise ValueError(f"{what} must be a JSON array, got {type(data).__name__}")
    for entry in data:
        if not isinstance(entry, dict):
            raise ValueError(f"{what} entries must be objects: {entry!r}")
    return data


def load_targets(data: Any) -> List[MigrationTarget]:
    """
    Parse `[{"name": "warp", "address": ["neutron1...", ...]}, ...]`.

    A single address string is accepted in place of the list.
    """
    targets = []
    for entry in _require_list(data, "Migration targets"):
        name = entry.get("name")
        addrs = entry.get("address", entry.get("addresses"))
        if not isinstance(name, str):
            raise ValueError(f"Migration target without a name: {entry!r}")
        if isinstance(addrs, str):
            addrs = [addrs]
        if not isinstance(addrs, list) or not all(isinstance(a, str) for a in addrs):
            raise ValueError(f"Migration target {name!r} needs an address list")
        targets.append(MigrationTarget(name=name, addresses=tuple(addrs)))
    return targets


def load_query_sets(data: Any) -> List[QuerySet]:
    """Parse `[{"contract": "warp", "queries": [{...}, ...]}, ...]`."""
    sets = []
    for entry in _require_list(data, "Query sets"):
        contract = entry.get("contract")
        queries = entry.get("queries")
        if not isinstance(contract, str) or not isinstance(queries, list):
            raise ValueError(f"Query set needs 'contract' and a 'queries' list: {entry!r}")
        sets.append(QuerySet(contract=contract, queries=tuple(queries)))
    return sets


def snapshot_to_json(snapshot: Snapshot) -> List[Dict[str, Any]]:
    return [
        {
            "contract": g.contract,
            "address": g.address,
            "results": [r.to_json() for r in g.results],
        }
        for g in snapshot
    ]


def _result_from_json(r: Any) -> QueryResult:
    if not isinstance(r, dict) or "query" not in r:
        raise ValueError(f"Snapshot result needs a 'query': {r!r}")
    query = r["query"]
    qid = r.get("id") or query_id(query)
    err = r.get("error")
    if err is None:
        return QueryResult(id=qid, query=query, response=r.get("response"))
    if not isinstance(err, dict):
        err = {"type": "Error", "message": str(err)}
    return QueryResult(id=qid, query=query, error=err)


def snapshot_from_json(data: Any) -> Snapshot:
    """Rebuild a snapshot from its persisted form; malformed input raises ValueError."""
    snapshot: Snapshot = []
    for g in _require_list(data, "Snapshot"):
        contract = g.get("contract")
        address = g.get("address")
        results = g.get("results", [])
        if not isinstance(contract, str) or not isinstance(address, str):
            raise ValueError(f"Snapshot group needs 'contract' and 'address': {g!r}")
        if not isinstance(results, list):
            raise ValueError(f"Snapshot group {contract}/{address} needs a 'results' list")
        snapshot.append(
            SnapshotGroup(
                contract=contract,
                address=address,
                results=tuple(_result_from_json(r) for r in results),
            )
        )
    return snapshot
