"""
Shared fixtures: an in-memory chain client standing in for a node.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Optional

import pytest

from wasm_member import UnresolvedMember
from wasm_types import AccountRecord, BroadcastResult, FinalityRecord

PUBKEY = bytes.fromhex("02" + "11" * 32)


class FakeChainClient:
    """Records every call; behavior is tuned through plain attributes."""

    def __init__(self) -> None:
        self.accounts: Dict[str, AccountRecord] = {}
        self.responses: Dict[str, Dict[str, Any]] = {}
        self.failing: Dict[str, set] = {}
        self.broadcasts: List[bytes] = []
        self.account_lookups: List[str] = []
        self.queries: List[tuple] = []
        self.accept_code = 0
        self.final_code = 0
        self.final_log = "[]"
        self.final_events: Dict[str, Dict[str, str]] = {}
        self.on_wait: Optional[Callable[[str], None]] = None

    def add_account(self, address: str, pubkey: Optional[bytes] = PUBKEY) -> None:
        self.accounts[address] = AccountRecord(address=address, pubkey=pubkey)

    def set_response(self, address: str, query: Any, response: Any) -> None:
        self.responses.setdefault(address, {})[json.dumps(query, sort_keys=True)] = response

    def fail_query(self, address: str, query: Any) -> None:
        self.failing.setdefault(address, set()).add(json.dumps(query, sort_keys=True))

    # --- ChainClient -------------------------------------------------------

    def get_account(self, address: str) -> Optional[AccountRecord]:
        self.account_lookups.append(address)
        return self.accounts.get(address)

    def broadcast_tx(self, tx_bytes: bytes) -> BroadcastResult:
        self.broadcasts.append(tx_bytes)
        return BroadcastResult(
            tx_hash=f"HASH{len(self.broadcasts)}",
            code=self.accept_code,
            raw_log="rejected" if self.accept_code else "",
        )

    def wait_tx(self, tx_hash: str) -> FinalityRecord:
        if self.on_wait is not None:
            self.on_wait(tx_hash)
        return FinalityRecord(
            tx_hash=tx_hash,
            code=self.final_code,
            raw_log=self.final_log,
            height=42,
            gas_wanted=2_000_000,
            gas_used=150_000,
            events=self.final_events,
        )

    def query_contract_smart(self, address: str, query: Any) -> Any:
        self.queries.append((address, query))
        key = json.dumps(query, sort_keys=True)
        if key in self.failing.get(address, set()):
            raise RuntimeError(f"unknown variant for {key}")
        return self.responses.get(address, {}).get(key, {"echo": query})


@pytest.fixture
def client() -> FakeChainClient:
    c = FakeChainClient()
    c.add_account("addr1")
    return c


@pytest.fixture
def member(client: FakeChainClient) -> UnresolvedMember:
    return UnresolvedMember(address="addr1", client=client)


@pytest.fixture
def pubkey() -> bytes:
    return PUBKEY
