"""Compare two snapshots taken before and after a contract migration.

- Groups are matched by (contract, address).
- Results are matched by query id, so reordering queries does not show up.
- Reports changed / unchanged / added / removed queries plus error flips.
"""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

from wasm_snapshot import QueryResult, Snapshot

__all__ = ["diff_snapshots", "has_regressions"]

GroupKey = Tuple[str, str]


def _index(snapshot: Snapshot) -> Dict[GroupKey, Dict[str, QueryResult]]:
    out: Dict[GroupKey, Dict[str, QueryResult]] = {}
    for g in snapshot:
        bucket = out.setdefault((g.contract, g.address), {})
        for r in g.results:
            bucket[r.id] = r
    return out


def _entry(key: GroupKey, qid: str, query: Any) -> Dict[str, Any]:
    return {"contract": key[0], "address": key[1], "id": qid, "query": query}


def diff_snapshots(before: Snapshot, after: Snapshot) -> Dict[str, List[Dict[str, Any]]]:
    """
    Compare `before` against `after`.

    Keys of the returned dict:
      - changed:     both succeeded, responses differ (with before/after)
      - unchanged:   both succeeded with equal responses, or both failed
      - added / removed: query present on one side only
      - newErrors:   succeeded before, fails after
      - fixedErrors: failed before, succeeds after
    """
    a = _index(before)
    b = _index(after)
    delta: Dict[str, List[Dict[str, Any]]] = {
        "changed": [],
        "unchanged": [],
        "added": [],
        "removed": [],
        "newErrors": [],
        "fixedErrors": [],
    }

    keys = list(a) + [k for k in b if k not in a]
    for key in keys:
        prev = a.get(key, {})
        curr = b.get(key, {})
        for qid, old in prev.items():
            new = curr.get(qid)
            if new is None:
                delta["removed"].append(_entry(key, qid, old.query))
            elif old.ok and new.ok:
                if old.response == new.response:
                    delta["unchanged"].append(_entry(key, qid, old.query))
                else:
                    item = _entry(key, qid, old.query)
                    item.update(before=old.response, after=new.response)
                    delta["changed"].append(item)
            elif old.ok:
                item = _entry(key, qid, old.query)
                item.update(before=old.response, error=new.error)
                delta["newErrors"].append(item)
            elif new.ok:
                item = _entry(key, qid, old.query)
                item.update(error=old.error, after=new.response)
                delta["fixedErrors"].append(item)
            else:
                delta["unchanged"].append(_entry(key, qid, old.query))
        for qid, new in curr.items():
            if qid not in prev:
                delta["added"].append(_entry(key, qid, new.query))
    return delta


def has_regressions(delta: Dict[str, List[Dict[str, Any]]]) -> bool:
    """True if anything a migration should preserve went away or broke."""
    return bool(delta["changed"] or delta["removed"] or delta["newErrors"])
