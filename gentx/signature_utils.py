"""Utilities for Ed25519 keys, signatures and their bech32 encodings."""

from __future__ import annotations

import base64
import binascii
import hashlib

from bech32 import bech32_decode, bech32_encode, convertbits
from nacl import signing
from nacl.exceptions import BadSignatureError

from .config import ACCOUNT_PREFIX, CONSPUB_PREFIX, VALOPER_PREFIX

# Amino registration prefix of ``tendermint/PubKeyEd25519`` plus the length byte.
_ED25519_AMINO_PREFIX = bytes.fromhex("1624de6420")
ED25519_PUBKEY_TYPE = "tendermint/PubKeyEd25519"
ED25519_PRIVKEY_TYPE = "tendermint/PrivKeyEd25519"
ADDRESS_LENGTH = 20


def public_key_for(private_key: str) -> str:
    """Return the base64 public key belonging to ``private_key``."""
    signing_key = signing.SigningKey(base64.b64decode(private_key))
    return base64.b64encode(signing_key.verify_key.encode()).decode("ascii")


def sign_data(data: bytes, private_key: str) -> str:
    """Return a base64 signature for ``data`` using ``private_key``."""
    key_bytes = base64.b64decode(private_key)
    signing_key = signing.SigningKey(key_bytes)
    signed = signing_key.sign(data)
    return base64.b64encode(signed.signature).decode("ascii")


def verify_signature(data: bytes, signature: str, public_key: str) -> bool:
    """Return whether base64 ``signature`` over ``data`` was made by ``public_key``.

    Undecodable signatures or keys count as not verifying.
    """
    try:
        verify_key = signing.VerifyKey(base64.b64decode(public_key, validate=True))
        verify_key.verify(data, base64.b64decode(signature, validate=True))
    except (BadSignatureError, binascii.Error, ValueError, TypeError):
        return False
    return True


def address_bytes(public_key: bytes) -> bytes:
    """Return the 20 byte address of a raw public key."""
    return hashlib.sha256(public_key).digest()[:ADDRESS_LENGTH]


def node_id_from_pubkey(public_key: bytes) -> str:
    """Return the hex node ID for a raw node public key."""
    return address_bytes(public_key).hex()


def to_bech32(hrp: str, payload: bytes) -> str:
    data = convertbits(payload, 8, 5)
    return bech32_encode(hrp, data)


def from_bech32(value: str, hrp: str) -> bytes:
    """Decode ``value`` and check its prefix, raising ``ValueError`` if invalid."""
    decoded_hrp, data = bech32_decode(value)
    if decoded_hrp is None or data is None:
        raise ValueError(f"invalid bech32 string {value!r}")
    if decoded_hrp != hrp:
        raise ValueError(f"invalid bech32 prefix: expected {hrp}, got {decoded_hrp}")
    payload = convertbits(data, 5, 8, False)
    if payload is None:
        raise ValueError(f"invalid bech32 payload in {value!r}")
    return bytes(payload)


def account_address(public_key: bytes) -> str:
    return to_bech32(ACCOUNT_PREFIX, address_bytes(public_key))


def valoper_address(account: str) -> str:
    """Return the operator address sharing the bytes of ``account``."""
    return to_bech32(VALOPER_PREFIX, from_bech32(account, ACCOUNT_PREFIX))


def is_account_address(value: str) -> bool:
    try:
        return len(from_bech32(value, ACCOUNT_PREFIX)) == ADDRESS_LENGTH
    except ValueError:
        return False


def encode_cons_pubkey(public_key: bytes) -> str:
    """Return the bech32 consensus public key string for an Ed25519 key."""
    return to_bech32(CONSPUB_PREFIX, _ED25519_AMINO_PREFIX + public_key)


def decode_cons_pubkey(value: str) -> bytes:
    """Parse a bech32 consensus public key into raw Ed25519 key bytes."""
    payload = from_bech32(value, CONSPUB_PREFIX)
    if not payload.startswith(_ED25519_AMINO_PREFIX):
        raise ValueError("unsupported consensus public key type")
    key = payload[len(_ED25519_AMINO_PREFIX):]
    if len(key) != 32:
        raise ValueError(f"invalid Ed25519 public key length {len(key)}")
    return key


__all__ = [
    "public_key_for",
    "sign_data",
    "verify_signature",
    "address_bytes",
    "node_id_from_pubkey",
    "account_address",
    "valoper_address",
    "is_account_address",
    "encode_cons_pubkey",
    "decode_cons_pubkey",
    "ED25519_PUBKEY_TYPE",
    "ED25519_PRIVKEY_TYPE",
]
