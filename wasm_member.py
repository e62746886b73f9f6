"""Transaction senders: address-only members and members with resolved keys."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from google.protobuf.any_pb2 import Any as AnyProto
from cosmpy.protos.cosmos.crypto.secp256k1.keys_pb2 import PubKey

from wasm_types import AccountNotFoundError, ChainClient

__all__ = [
    "SECP256K1_TYPE_URL",
    "UnresolvedMember",
    "ResolvedMember",
    "Member",
    "encode_pubkey",
    "resolve",
    "ensure_resolved",
]

SECP256K1_TYPE_URL = "/cosmos.crypto.secp256k1.PubKey"


@dataclass(frozen=True)
class UnresolvedMember:
    address: str
    client: ChainClient


@dataclass(frozen=True)
class ResolvedMember:
    address: str
    client: ChainClient
    pubkey: AnyProto


Member = Union[UnresolvedMember, ResolvedMember]


def encode_pubkey(raw: bytes) -> AnyProto:
    """Pack a compressed secp256k1 key the way auth info expects it."""
    return AnyProto(
        type_url=SECP256K1_TYPE_URL,
        value=PubKey(key=raw).SerializeToString(deterministic=True),
    )


def resolve(client: ChainClient, address: str) -> ResolvedMember:
    """
    Look up `address` on chain and return a member carrying its pubkey.

    Accounts only get a pubkey recorded after their first transaction, so
    a funded-but-unused address fails here just like an unknown one.
    """
    account = client.get_account(address)
    if account is None or not account.pubkey:
        raise AccountNotFoundError(address)
    return ResolvedMember(address=address, client=client, pubkey=encode_pubkey(account.pubkey))


def ensure_resolved(member: Member) -> ResolvedMember:
    if isinstance(member, ResolvedMember):
        return member
    return resolve(member.client, member.address)
