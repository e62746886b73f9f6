"""Shared types for the CosmWasm transaction pipeline and snapshot tooling.

- Coins and the three wasm operation descriptors (store / instantiate / execute).
- Account, acceptance and finality records returned by a chain client.
- The error taxonomy raised across the toolkit.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple, Union

from google.protobuf.any_pb2 import Any as AnyProto
from cosmpy.protos.cosmos.base.v1beta1.coin_pb2 import Coin as CoinProto
from cosmpy.protos.cosmwasm.wasm.v1.tx_pb2 import (
    MsgExecuteContract,
    MsgInstantiateContract,
    MsgStoreCode,
)

__all__ = [
    "STORE_CODE_TYPE_URL",
    "INSTANTIATE_TYPE_URL",
    "EXECUTE_TYPE_URL",
    "to_json_bytes",
    "Coin",
    "StoreCode",
    "Instantiate",
    "Execute",
    "Operation",
    "AccountRecord",
    "BroadcastResult",
    "FinalityRecord",
    "ChainClient",
    "WasmToolError",
    "AccountNotFoundError",
    "TxFailedError",
    "NoQueriesDefinedError",
    "QueryExecutionError",
    "MemberConsumedError",
]

STORE_CODE_TYPE_URL = "/cosmwasm.wasm.v1.MsgStoreCode"
INSTANTIATE_TYPE_URL = "/cosmwasm.wasm.v1.MsgInstantiateContract"
EXECUTE_TYPE_URL = "/cosmwasm.wasm.v1.MsgExecuteContract"


def _js_number(x: float) -> str:
    """Render a float the way ECMAScript `Number.prototype.toString` does."""
    if math.isnan(x) or math.isinf(x):
        return "null"  # JSON.stringify maps non-finite numbers to null
    if x == 0:
        return "0"
    sign = "-" if x < 0 else ""
    # repr gives the shortest round-tripping digits, same as JS
    _, digits_t, exp = Decimal(repr(abs(x))).normalize().as_tuple()
    digits = "".join(str(d) for d in digits_t)
    k = len(digits)
    n = k + exp  # value = 0.digits * 10**n
    if k <= n <= 21:
        body = digits + "0" * (n - k)
    elif 0 < n <= 21:
        body = digits[:n] + "." + digits[n:]
    elif -6 < n <= 0:
        body = "0." + "0" * (-n) + digits
    else:
        e = n - 1
        mantissa = digits if k == 1 else digits[0] + "." + digits[1:]
        body = f"{mantissa}e{'+' if e > 0 else '-'}{abs(e)}"
    return sign + body


def _to_json(doc: Any) -> str:
    if isinstance(doc, dict):
        return "{" + ",".join(f"{_to_json(str(k))}:{_to_json(v)}" for k, v in doc.items()) + "}"
    if isinstance(doc, (list, tuple)):
        return "[" + ",".join(_to_json(v) for v in doc) + "]"
    if isinstance(doc, float):
        return _js_number(doc)
    return json.dumps(doc, ensure_ascii=False)


def to_json_bytes(doc: Any) -> bytes:
    """
    Compact JSON bytes for a message or query document.

    Same byte form as JS `JSON.stringify`: no whitespace, keys kept in
    insertion order, non-ASCII left unescaped, and numbers formatted as
    JS prints them (`1.0` -> `1`, `1e-7` -> `1e-7`, `1e21` -> `1e+21`).
    """
    return _to_json(doc).encode("utf-8")


def _pack(msg: Any, type_url: str) -> AnyProto:
    return AnyProto(type_url=type_url, value=msg.SerializeToString(deterministic=True))


# --- coins -----------------------------------------------------------------


@dataclass(frozen=True)
class Coin:
    amount: Union[int, str]
    denom: str

    def to_proto(self) -> CoinProto:
        return CoinProto(amount=str(self.amount), denom=self.denom)

    def to_dict(self) -> Dict[str, str]:
        return {"amount": str(self.amount), "denom": self.denom}

    @classmethod
    def parse(cls, text: str) -> "Coin":
        """Parse `1000000untrn` style strings."""
        digits = ""
        for ch in text.strip():
            if not ch.isdigit():
                break
            digits += ch
        denom = text.strip()[len(digits):]
        if not digits or not denom:
            raise ValueError(f"Invalid coin: {text!r}")
        return cls(amount=int(digits), denom=denom)


def _coins(funds: Optional[Sequence[Coin]]) -> List[CoinProto]:
    return [c.to_proto() for c in (funds or ())]


# --- operation descriptors -------------------------------------------------


@dataclass(frozen=True)
class StoreCode:
    sender: str
    wasm_byte_code: bytes
    type_url: str = field(default=STORE_CODE_TYPE_URL, init=False)

    def to_proto(self) -> MsgStoreCode:
        return MsgStoreCode(sender=self.sender, wasm_byte_code=self.wasm_byte_code)

    def to_any(self) -> AnyProto:
        return _pack(self.to_proto(), self.type_url)


@dataclass(frozen=True)
class Instantiate:
    sender: str
    code_id: int
    msg: Any
    label: str = "contract"
    funds: Tuple[Coin, ...] = ()
    admin: Optional[str] = None
    type_url: str = field(default=INSTANTIATE_TYPE_URL, init=False)

    def to_proto(self) -> MsgInstantiateContract:
        return MsgInstantiateContract(
            sender=self.sender,
            admin=self.admin or "",
            code_id=int(self.code_id),
            label=self.label,
            msg=to_json_bytes(self.msg),
            funds=_coins(self.funds),
        )

    def to_any(self) -> AnyProto:
        return _pack(self.to_proto(), self.type_url)


@dataclass(frozen=True)
class Execute:
    sender: str
    contract: str
    msg: Any
    funds: Optional[Tuple[Coin, ...]] = None  # None: no funds attached
    type_url: str = field(default=EXECUTE_TYPE_URL, init=False)

    def to_proto(self) -> MsgExecuteContract:
        return MsgExecuteContract(
            sender=self.sender,
            contract=self.contract,
            msg=to_json_bytes(self.msg),
            funds=_coins(self.funds),
        )

    def to_any(self) -> AnyProto:
        return _pack(self.to_proto(), self.type_url)


Operation = Union[StoreCode, Instantiate, Execute]


# --- chain records ---------------------------------------------------------


@dataclass(frozen=True)
class AccountRecord:
    address: str
    pubkey: Optional[bytes] = None  # raw compressed secp256k1 key
    account_number: int = 0
    sequence: int = 0


@dataclass(frozen=True)
class BroadcastResult:
    """Acceptance record: the node took the bytes, nothing is included yet."""

    tx_hash: str
    code: int = 0
    raw_log: str = ""


@dataclass(frozen=True)
class FinalityRecord:
    tx_hash: str
    code: int
    raw_log: str = ""
    height: int = 0
    gas_wanted: int = 0
    gas_used: int = 0
    events: Dict[str, Dict[str, str]] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.code == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "txHash": self.tx_hash,
            "code": self.code,
            "rawLog": self.raw_log,
            "height": self.height,
            "gasWanted": self.gas_wanted,
            "gasUsed": self.gas_used,
            "events": self.events,
        }


class ChainClient(Protocol):
    """Capabilities the toolkit needs from a node connection."""

    def get_account(self, address: str) -> Optional[AccountRecord]: ...

    def broadcast_tx(self, tx_bytes: bytes) -> BroadcastResult: ...

    def wait_tx(self, tx_hash: str) -> FinalityRecord: ...

    def query_contract_smart(self, address: str, query: Any) -> Any: ...


# --- errors ----------------------------------------------------------------


class WasmToolError(Exception):
    """Base class for failures that should stop the invoking command."""


class AccountNotFoundError(WasmToolError):
    def __init__(self, address: str):
        self.address = address
        super().__init__(f"Account {address} has no pubkey")


class TxFailedError(WasmToolError):
    def __init__(self, code: int, raw_log: str, tx_hash: Optional[str] = None):
        self.code = code
        self.raw_log = raw_log
        self.tx_hash = tx_hash
        super().__init__(f"Tx failed (code {code}): {raw_log}")


class NoQueriesDefinedError(WasmToolError):
    def __init__(self, contract: str):
        self.contract = contract
        super().__init__(f"No queries found for {contract}")


class QueryExecutionError(WasmToolError):
    """A single smart query failed. Recorded in snapshots, never raised by capture."""

    def __init__(self, address: str, query: Any, cause: BaseException):
        self.address = address
        self.query = query
        self.cause = cause
        super().__init__(f"{type(cause).__name__}: {cause}")

    def to_dict(self) -> Dict[str, str]:
        return {"type": type(self.cause).__name__, "message": str(self.cause)}


class MemberConsumedError(WasmToolError):
    def __init__(self, address: str):
        self.address = address
        super().__init__(
            f"Member {address} already has a transaction in flight; "
            "sequence is fixed so sends must be serialized per member"
        )
