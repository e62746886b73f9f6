"""Build unsigned transaction envelopes for wasm operations.

- Packs operations into a `TxBody`, preserving the order they were given.
- Builds `AuthInfo` from the sender's pubkey, an explicit sequence, fee and gas.
- Wraps both into `TxRaw` with an empty signature list.

The envelope is broadcast in stub form: the node is expected to accept
it as-is, or an external signer adds the signature via `attach_signature`
before broadcast.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Sequence, Tuple

from cosmpy.protos.cosmos.base.v1beta1.coin_pb2 import Coin as CoinProto
from cosmpy.protos.cosmos.tx.signing.v1beta1.signing_pb2 import SignMode
from cosmpy.protos.cosmos.tx.v1beta1.tx_pb2 import (
    AuthInfo,
    Fee,
    ModeInfo,
    SignerInfo,
    TxBody,
    TxRaw,
)

from wasm_member import Member, ResolvedMember, ensure_resolved
from wasm_types import Operation

DEFAULT_DENOM = os.getenv("FEE_DENOM", "untrn")
DEFAULT_FEE_AMOUNT = 1_000_000
DEFAULT_GAS_LIMIT = 2_000_000
# Nonces are not tracked across calls; see wasm_ops for the per-member guard.
DEFAULT_SEQUENCE = 0

__all__ = [
    "DEFAULT_DENOM",
    "DEFAULT_FEE_AMOUNT",
    "DEFAULT_GAS_LIMIT",
    "DEFAULT_SEQUENCE",
    "UnsignedEnvelope",
    "encode_body",
    "encode_auth_info",
    "build_envelope",
    "attach_signature",
]


@dataclass(frozen=True)
class UnsignedEnvelope:
    sender: ResolvedMember
    body_bytes: bytes
    auth_info_bytes: bytes
    signatures: Tuple[bytes, ...] = ()

    @property
    def body(self) -> TxBody:
        return TxBody.FromString(self.body_bytes)

    @property
    def auth_info(self) -> AuthInfo:
        return AuthInfo.FromString(self.auth_info_bytes)

    def to_bytes(self) -> bytes:
        raw = TxRaw(
            body_bytes=self.body_bytes,
            auth_info_bytes=self.auth_info_bytes,
            signatures=list(self.signatures),
        )
        return raw.SerializeToString(deterministic=True)


def encode_body(operations: Sequence[Operation]) -> bytes:
    body = TxBody(messages=[op.to_any() for op in operations])
    return body.SerializeToString(deterministic=True)


def encode_auth_info(
    sender: ResolvedMember,
    fee_amount: int,
    gas_limit: int,
    denom: str,
    sequence: int,
) -> bytes:
    signer = SignerInfo(
        public_key=sender.pubkey,
        mode_info=ModeInfo(single=ModeInfo.Single(mode=SignMode.SIGN_MODE_DIRECT)),
        sequence=sequence,
    )
    fee = Fee(
        amount=[CoinProto(amount=str(fee_amount), denom=denom)],
        gas_limit=gas_limit,
    )
    return AuthInfo(signer_infos=[signer], fee=fee).SerializeToString(deterministic=True)


def build_envelope(
    sender: Member,
    operations: Sequence[Operation],
    fee_amount: int = DEFAULT_FEE_AMOUNT,
    gas_limit: int = DEFAULT_GAS_LIMIT,
    *,
    sequence: int,
    denom: str = DEFAULT_DENOM,
) -> UnsignedEnvelope:
    """
    Build the unsigned envelope for `operations`, sent by `sender`.

    An address-only member is resolved first (the caller's value is left
    untouched; the resolved one is available as `envelope.sender`).
    Identical inputs always produce byte-identical envelopes.
    """
    if not operations:
        raise ValueError("A transaction needs at least one operation")
    if sequence < 0:
        raise ValueError(f"Invalid sequence: {sequence}")

    resolved = ensure_resolved(sender)
    return UnsignedEnvelope(
        sender=resolved,
        body_bytes=encode_body(operations),
        auth_info_bytes=encode_auth_info(resolved, fee_amount, gas_limit, denom, sequence),
    )


def attach_signature(envelope: UnsignedEnvelope, signature: bytes) -> UnsignedEnvelope:
    """Return a copy of `envelope` carrying a signature produced out of band."""
    return replace(envelope, signatures=envelope.signatures + (bytes(signature),))
