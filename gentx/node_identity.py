"""Node identity: the node ID and the consensus public key of a validator."""

from __future__ import annotations

import base64
import json
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from nacl import signing

from . import signature_utils
from .config import GentxConfig
from .errors import InputError, InvalidPubKeyError

logger = logging.getLogger(__name__)

_NODE_ID_RE = re.compile(r"^[0-9a-f]{40}$")


@dataclass(frozen=True)
class NodeIdentity:
    node_id: str
    consensus_pubkey: bytes

    @property
    def bech32_pubkey(self) -> str:
        return signature_utils.encode_cons_pubkey(self.consensus_pubkey)


def _key_entry(key_type: str, raw: bytes) -> Dict[str, str]:
    return {"type": key_type, "value": base64.b64encode(raw).decode("ascii")}


def _write_key_file(path: Path, data: Dict[str, Any]) -> None:
    path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
    fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as fh:
        json.dump(data, fh, indent=2)


def _read_private_key(path: Path) -> signing.SigningKey:
    with open(path, "r", encoding="utf-8") as fh:
        data = json.load(fh)
    try:
        raw = base64.b64decode(data["priv_key"]["value"])
    except (KeyError, TypeError, ValueError) as exc:
        raise ValueError(f"malformed key file {path}: {exc}") from exc
    # Tendermint stores seed + public key; PyNaCl wants the 32 byte seed.
    return signing.SigningKey(raw[:32])


def load_node_key(path: Path) -> signing.SigningKey:
    return _read_private_key(Path(path))


def load_priv_validator_key(path: Path) -> signing.SigningKey:
    return _read_private_key(Path(path))


def _generate_node_key(path: Path) -> signing.SigningKey:
    key = signing.SigningKey.generate()
    _write_key_file(
        path,
        {"priv_key": _key_entry(signature_utils.ED25519_PRIVKEY_TYPE, key.encode() + key.verify_key.encode())},
    )
    logger.info("generated node key at %s", path)
    return key


def _generate_priv_validator_key(path: Path) -> signing.SigningKey:
    key = signing.SigningKey.generate()
    pub = key.verify_key.encode()
    _write_key_file(
        path,
        {
            "address": signature_utils.address_bytes(pub).hex().upper(),
            "pub_key": _key_entry(signature_utils.ED25519_PUBKEY_TYPE, pub),
            "priv_key": _key_entry(signature_utils.ED25519_PRIVKEY_TYPE, key.encode() + pub),
        },
    )
    logger.info("generated validator key at %s", path)
    return key


def initialize_node_validator_files(config: GentxConfig) -> NodeIdentity:
    """Load the node and validator keys under ``config.home``, creating them if absent.

    Existing files are reused, so calling this repeatedly returns the same
    identity.
    """
    node_key_file = config.node_key_file
    if node_key_file.exists():
        node_key = load_node_key(node_key_file)
    else:
        node_key = _generate_node_key(node_key_file)

    pv_file = config.priv_validator_key_file
    if pv_file.exists():
        pv_key = load_priv_validator_key(pv_file)
    else:
        pv_key = _generate_priv_validator_key(pv_file)

    node_id = signature_utils.node_id_from_pubkey(node_key.verify_key.encode())
    return NodeIdentity(node_id=node_id, consensus_pubkey=pv_key.verify_key.encode())


def parse_pubkey_override(config: GentxConfig) -> Optional[bytes]:
    """Return the raw consensus key given in ``config``, or None if not overridden."""
    if not config.pubkey:
        return None
    try:
        return signature_utils.decode_cons_pubkey(config.pubkey)
    except ValueError as exc:
        raise InvalidPubKeyError(str(exc)) from exc


def parse_node_id_override(config: GentxConfig) -> str:
    node_id = config.node_id
    if node_id and not _NODE_ID_RE.match(node_id):
        raise InputError(f"invalid node ID {node_id!r}: expected 40 lowercase hex characters")
    return node_id


def parse_overrides(config: GentxConfig) -> Tuple[str, Optional[bytes]]:
    """Validate the node ID and consensus key overrides of ``config``.

    Returns ``(node_id, pubkey)`` where empty values mean "not overridden".
    """
    pubkey = parse_pubkey_override(config)
    return parse_node_id_override(config), pubkey


def apply_overrides(identity: NodeIdentity, node_id: str, pubkey: Optional[bytes]) -> NodeIdentity:
    """Return ``identity`` with each non-empty override replacing its field."""
    return NodeIdentity(
        node_id=node_id or identity.node_id,
        consensus_pubkey=pubkey if pubkey is not None else identity.consensus_pubkey,
    )


def resolve_node_identity(config: GentxConfig) -> NodeIdentity:
    """Return the identity to register, honouring the overrides in ``config``."""
    node_id, pubkey = parse_overrides(config)
    identity = initialize_node_validator_files(config)
    return apply_overrides(identity, node_id, pubkey)


__all__ = [
    "NodeIdentity",
    "initialize_node_validator_files",
    "load_node_key",
    "load_priv_validator_key",
    "parse_overrides",
    "parse_pubkey_override",
    "parse_node_id_override",
    "apply_overrides",
    "resolve_node_identity",
]
