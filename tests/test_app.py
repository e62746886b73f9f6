"""
CLI tests: subcommands run end-to-end against an in-memory chain client.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import pytest

import app

Q1 = {"ownable": {"get_owner": {}}}


@pytest.fixture
def run(monkeypatch, client) -> Callable[..., int]:
    """Invoke app.main with the fake client wired in; return the exit code."""
    monkeypatch.setattr(app, "connect", lambda *a, **kw: client)

    def _run(*args: str) -> int:
        with pytest.raises(SystemExit) as exc:
            app.main(list(args))
        return exc.value.code

    return _run


def _write(path: Path, doc: Any) -> str:
    path.write_text(json.dumps(doc), encoding="utf-8")
    return str(path)


class TestSnapshotCommand:
    def test_writes_snapshot(self, run, client, tmp_path: Path, capsys) -> None:
        targets = _write(tmp_path / "t.json", [{"name": "A", "address": ["addr1"]}])
        queries = _write(tmp_path / "q.json", [{"contract": "A", "queries": [Q1]}])
        out = tmp_path / "snap.json"

        assert run("--quiet", "snapshot", "--targets", targets, "--queries", queries, "--out", str(out)) == 0

        doc = json.loads(out.read_text(encoding="utf-8"))
        assert doc[0]["contract"] == "A"
        assert doc[0]["results"][0]["response"] == {"echo": Q1}

    def test_stdout(self, run, tmp_path: Path, capsys) -> None:
        targets = _write(tmp_path / "t.json", [{"name": "A", "address": ["addr1"]}])
        queries = _write(tmp_path / "q.json", [{"contract": "A", "queries": [Q1]}])
        assert run("--quiet", "snapshot", "--targets", targets, "--queries", queries) == 0
        doc = json.loads(capsys.readouterr().out)
        assert doc[0]["address"] == "addr1"

    def test_missing_query_set_is_fatal(self, run, tmp_path: Path, capsys) -> None:
        targets = _write(tmp_path / "t.json", [{"name": "B", "address": ["addr1"]}])
        queries = _write(tmp_path / "q.json", [{"contract": "A", "queries": [Q1]}])
        assert run("snapshot", "--targets", targets, "--queries", queries) == 1
        assert "No queries found for B" in capsys.readouterr().err

    def test_bad_targets_file(self, run, tmp_path: Path) -> None:
        bad = tmp_path / "t.json"
        bad.write_text("{not json", encoding="utf-8")
        queries = _write(tmp_path / "q.json", [])
        assert run("snapshot", "--targets", str(bad), "--queries", queries) == 2


class TestDiffCommand:
    def _snap(self, tmp_path: Path, name: str, resp: Any) -> str:
        return _write(
            tmp_path / name,
            [{"contract": "A", "address": "addr1", "results": [{"query": Q1, "response": resp}]}],
        )

    def test_strict_flags_changes(self, run, tmp_path: Path, capsys) -> None:
        before = self._snap(tmp_path, "a.json", {"owner": "x"})
        after = self._snap(tmp_path, "b.json", {"owner": "y"})
        assert run("--quiet", "diff", before, after, "--strict") == 2
        delta = json.loads(capsys.readouterr().out)
        assert len(delta["changed"]) == 1

    def test_no_changes(self, run, tmp_path: Path) -> None:
        before = self._snap(tmp_path, "a.json", {"owner": "x"})
        assert run("diff", before, before, "--strict") == 0


class TestTxCommands:
    def test_instantiate(self, run, client, capsys) -> None:
        client.final_events = {"instantiate": {"_contract_address": "neutron1new"}}
        assert run("instantiate", "--sender", "addr1", "--label", "hook", "7", '{"owner":"addr1"}') == 0
        captured = capsys.readouterr()
        assert json.loads(captured.out)["code"] == 0
        assert "neutron1new" in captured.err
        assert len(client.broadcasts) == 1

    def test_execute_failure_exits_nonzero(self, run, client, capsys) -> None:
        client.final_code = 5
        client.final_log = "Unauthorized"
        assert run("execute", "--sender", "addr1", "c1", '{"ping":{}}', "--funds", "10untrn") == 1
        assert "Unauthorized" in capsys.readouterr().err

    def test_unknown_sender(self, run, client, capsys) -> None:
        assert run("execute", "--sender", "ghost", "c1", "{}") == 1
        assert "Account ghost has no pubkey" in capsys.readouterr().err
        assert client.broadcasts == []

    def test_upload(self, run, client, tmp_path: Path) -> None:
        wasm = tmp_path / "c.wasm"
        wasm.write_bytes(b"\x00asm")
        client.final_events = {"store_code": {"code_id": "3"}}
        assert run("--quiet", "upload", "--sender", "addr1", str(wasm)) == 0


class TestMalformedFiles:
    def test_diff_group_without_contract(self, run, tmp_path: Path, capsys) -> None:
        snap = _write(tmp_path / "s.json", [{"address": "a", "results": []}])
        assert run("diff", snap, snap) == 2
        assert "contract" in capsys.readouterr().err

    def test_diff_object_instead_of_list(self, run, tmp_path: Path) -> None:
        snap = _write(tmp_path / "s.json", {"contract": "A", "address": "a", "results": []})
        assert run("diff", snap, snap) == 2

    def test_snapshot_targets_object(self, run, client, tmp_path: Path, capsys) -> None:
        targets = _write(tmp_path / "t.json", {"name": "A", "address": ["addr1"]})
        queries = _write(tmp_path / "q.json", [{"contract": "A", "queries": [Q1]}])
        assert run("snapshot", "--targets", targets, "--queries", queries) == 2
        assert "JSON array" in capsys.readouterr().err
        assert client.queries == []

    def test_snapshot_queries_object(self, run, tmp_path: Path) -> None:
        targets = _write(tmp_path / "t.json", [{"name": "A", "address": ["addr1"]}])
        queries = _write(tmp_path / "q.json", {"contract": "A", "queries": [Q1]})
        assert run("snapshot", "--targets", targets, "--queries", queries) == 2


class TestOutputConsistency:
    def test_stdout_matches_out_file(self, run, tmp_path: Path, capsys) -> None:
        query = {"zeta": {}, "alpha": {"b": 1, "a": 2}}
        targets = _write(tmp_path / "t.json", [{"name": "A", "address": ["addr1"]}])
        queries = _write(tmp_path / "q.json", [{"contract": "A", "queries": [query]}])
        out = tmp_path / "snap.json"

        assert run("--quiet", "snapshot", "--targets", targets, "--queries", queries) == 0
        printed = capsys.readouterr().out
        assert run("--quiet", "snapshot", "--targets", targets, "--queries", queries, "--out", str(out)) == 0

        from_stdout = json.loads(printed)[0]["results"][0]["query"]
        from_file = json.loads(out.read_text(encoding="utf-8"))[0]["results"][0]["query"]
        assert list(from_stdout) == ["zeta", "alpha"]
        assert list(from_stdout["alpha"]) == ["b", "a"]
        assert list(from_file) == list(from_stdout)


class TestTxFlags:
    def test_funds_before_positionals(self, run, client) -> None:
        from cosmpy.protos.cosmos.tx.v1beta1.tx_pb2 import TxBody, TxRaw
        from cosmpy.protos.cosmwasm.wasm.v1.tx_pb2 import MsgExecuteContract

        code = run(
            "--quiet", "execute", "--sender", "addr1",
            "--funds", "10untrn", "--funds", "5uatom",
            "c1", '{"ping":{}}',
        )
        assert code == 0
        body = TxBody.FromString(TxRaw.FromString(client.broadcasts[-1]).body_bytes)
        msg = MsgExecuteContract.FromString(body.messages[0].value)
        assert msg.contract == "c1"
        assert [(c.amount, c.denom) for c in msg.funds] == [("10", "untrn"), ("5", "uatom")]

    def test_instantiate_admin(self, run, client) -> None:
        from cosmpy.protos.cosmos.tx.v1beta1.tx_pb2 import TxBody, TxRaw
        from cosmpy.protos.cosmwasm.wasm.v1.tx_pb2 import MsgInstantiateContract

        assert run("--quiet", "instantiate", "--sender", "addr1", "--admin", "addr1", "7", "{}") == 0
        body = TxBody.FromString(TxRaw.FromString(client.broadcasts[-1]).body_bytes)
        assert MsgInstantiateContract.FromString(body.messages[0].value).admin == "addr1"
