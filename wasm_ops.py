"""Single-operation helpers: upload code, instantiate and execute contracts.

Each helper builds a one-operation transaction with the fixed fee/gas
policy, broadcasts it and waits for finality. Failures raise; the
finality record is returned on success.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence, Set, Union

from wasm_broadcast import await_finality, send
from wasm_envelope import (
    DEFAULT_DENOM,
    DEFAULT_FEE_AMOUNT,
    DEFAULT_GAS_LIMIT,
    DEFAULT_SEQUENCE,
    build_envelope,
)
from wasm_member import Member
from wasm_types import (
    Coin,
    Execute,
    FinalityRecord,
    Instantiate,
    MemberConsumedError,
    Operation,
    StoreCode,
)

__all__ = [
    "send_tx",
    "upload_contract",
    "instantiate_contract",
    "execute_contract",
    "code_id_from_events",
    "contract_address_from_events",
]

# Addresses with an unacknowledged tx. The sequence is fixed, so a second
# send from the same address before finality would collide.
_IN_FLIGHT: Set[str] = set()
_IN_FLIGHT_LOCK = threading.Lock()


def _acquire(address: str) -> None:
    with _IN_FLIGHT_LOCK:
        if address in _IN_FLIGHT:
            raise MemberConsumedError(address)
        _IN_FLIGHT.add(address)


def _release(address: str) -> None:
    with _IN_FLIGHT_LOCK:
        _IN_FLIGHT.discard(address)


def send_tx(
    member: Member,
    operations: Sequence[Operation],
    *,
    fee_amount: int = DEFAULT_FEE_AMOUNT,
    gas_limit: int = DEFAULT_GAS_LIMIT,
    denom: str = DEFAULT_DENOM,
    sequence: int = DEFAULT_SEQUENCE,
) -> FinalityRecord:
    """Build, broadcast and await a transaction carrying `operations`."""
    envelope = build_envelope(
        member, operations, fee_amount, gas_limit, sequence=sequence, denom=denom
    )
    _acquire(member.address)
    try:
        tx_hash = send(envelope)
        return await_finality(envelope, tx_hash)
    finally:
        _release(member.address)


def _read_code(source: Union[str, Path, bytes, bytearray]) -> bytes:
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    return Path(source).read_bytes()


def upload_contract(
    member: Member,
    source: Union[str, Path, bytes, bytearray],
    *,
    denom: str = DEFAULT_DENOM,
) -> FinalityRecord:
    op = StoreCode(sender=member.address, wasm_byte_code=_read_code(source))
    return send_tx(member, [op], denom=denom)


def instantiate_contract(
    member: Member,
    code_id: int,
    msg: Any,
    label: str = "contract",
    funds: Optional[Iterable[Coin]] = None,
    admin: Optional[str] = None,
    *,
    denom: str = DEFAULT_DENOM,
) -> FinalityRecord:
    op = Instantiate(
        sender=member.address,
        code_id=code_id,
        msg=msg,
        label=label,
        funds=tuple(funds or ()),
        admin=admin,
    )
    return send_tx(member, [op], denom=denom)


def execute_contract(
    member: Member,
    contract: str,
    msg: Any,
    funds: Optional[Iterable[Coin]] = None,
    *,
    denom: str = DEFAULT_DENOM,
) -> FinalityRecord:
    op = Execute(
        sender=member.address,
        contract=contract,
        msg=msg,
        funds=tuple(funds) if funds is not None else None,
    )
    return send_tx(member, [op], denom=denom)


# --- event helpers ---------------------------------------------------------


def code_id_from_events(record: FinalityRecord) -> Optional[int]:
    """Code id assigned by a store-code tx, if the record carries it."""
    value = record.events.get("store_code", {}).get("code_id")
    return int(value) if value is not None else None


def contract_address_from_events(record: FinalityRecord) -> Optional[str]:
    return record.events.get("instantiate", {}).get("_contract_address")
