"""Submit envelopes and wait for their inclusion."""

from __future__ import annotations

from wasm_envelope import UnsignedEnvelope
from wasm_types import FinalityRecord, TxFailedError

__all__ = ["send", "await_finality"]


def send(envelope: UnsignedEnvelope) -> str:
    """
    Broadcast the envelope and return its hash once the node accepts it.

    Acceptance is not inclusion. A rejection at acceptance time (non-zero
    code) raises `TxFailedError`; transport errors propagate as-is.
    """
    client = envelope.sender.client
    result = client.broadcast_tx(envelope.to_bytes())
    if result.code != 0:
        raise TxFailedError(result.code, result.raw_log, result.tx_hash)
    return result.tx_hash


def await_finality(envelope: UnsignedEnvelope, tx_hash: str) -> FinalityRecord:
    """Block until `tx_hash` is included; raise `TxFailedError` if it failed."""
    record = envelope.sender.client.wait_tx(tx_hash)
    if not record.ok:
        raise TxFailedError(record.code, record.raw_log, record.tx_hash or tx_hash)
    return record
