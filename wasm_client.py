"""Chain client backed by cosmpy's `LedgerClient`.

Implements the four capabilities the toolkit consumes: account lookup,
raw broadcast, inclusion wait and smart queries.
"""

from __future__ import annotations

import json
import os
from typing import Any, Optional

import grpc
from cosmpy.aerial.client import LedgerClient, NetworkConfig
from cosmpy.protos.cosmos.auth.v1beta1.auth_pb2 import BaseAccount
from cosmpy.protos.cosmos.auth.v1beta1.query_pb2 import QueryAccountRequest
from cosmpy.protos.cosmos.crypto.secp256k1.keys_pb2 import PubKey
from cosmpy.protos.cosmos.tx.v1beta1.service_pb2 import (
    BroadcastMode,
    BroadcastTxRequest,
)
from cosmpy.protos.cosmwasm.wasm.v1.query_pb2 import QuerySmartContractStateRequest

from wasm_envelope import DEFAULT_DENOM
from wasm_types import AccountRecord, BroadcastResult, FinalityRecord, to_json_bytes

DEFAULT_RPC = os.getenv("RPC_URL", "grpc+http://localhost:9090")
DEFAULT_CHAIN_ID = os.getenv("CHAIN_ID", "localneutron-1")
RPC_TIMEOUT = int(os.getenv("RPC_TIMEOUT", "30"))

__all__ = ["DEFAULT_RPC", "DEFAULT_CHAIN_ID", "RPC_TIMEOUT", "CosmpyChainClient", "connect"]


class CosmpyChainClient:
    def __init__(self, ledger: LedgerClient):
        self.ledger = ledger

    def get_account(self, address: str) -> Optional[AccountRecord]:
        try:
            resp = self.ledger.auth.Account(QueryAccountRequest(address=address))
        except grpc.RpcError as e:
            if e.code() == grpc.StatusCode.NOT_FOUND:
                return None
            raise

        account = BaseAccount()
        if not resp.account.Is(BaseAccount.DESCRIPTOR):
            raise RuntimeError(f"Unexpected account type for {address}: {resp.account.type_url}")
        resp.account.Unpack(account)

        pubkey = None
        if account.HasField("pub_key") and account.pub_key.value:
            pubkey = PubKey.FromString(account.pub_key.value).key
        return AccountRecord(
            address=address,
            pubkey=pubkey,
            account_number=account.account_number,
            sequence=account.sequence,
        )

    def broadcast_tx(self, tx_bytes: bytes) -> BroadcastResult:
        req = BroadcastTxRequest(tx_bytes=tx_bytes, mode=BroadcastMode.BROADCAST_MODE_SYNC)
        resp = self.ledger.txs.BroadcastTx(req)
        return BroadcastResult(
            tx_hash=resp.tx_response.txhash,
            code=resp.tx_response.code,
            raw_log=resp.tx_response.raw_log,
        )

    def wait_tx(self, tx_hash: str) -> FinalityRecord:
        # Polling interval and timeout come from the LedgerClient settings.
        resp = self.ledger.wait_for_query_tx(tx_hash)
        return FinalityRecord(
            tx_hash=resp.hash,
            code=resp.code,
            raw_log=resp.raw_log,
            height=resp.height,
            gas_wanted=resp.gas_wanted,
            gas_used=resp.gas_used,
            events=dict(resp.events),
        )

    def query_contract_smart(self, address: str, query: Any) -> Any:
        req = QuerySmartContractStateRequest(address=address, query_data=to_json_bytes(query))
        resp = self.ledger.wasm.SmartContractState(req)
        return json.loads(resp.data)


def connect(
    rpc: str = DEFAULT_RPC,
    chain_id: str = DEFAULT_CHAIN_ID,
    denom: str = DEFAULT_DENOM,
    timeout: int = RPC_TIMEOUT,
) -> CosmpyChainClient:
    cfg = NetworkConfig(
        chain_id=chain_id,
        url=rpc,
        fee_minimum_gas_price=0,
        fee_denomination=denom,
        staking_denomination=denom,
    )
    return CosmpyChainClient(LedgerClient(cfg, query_timeout_secs=timeout))
