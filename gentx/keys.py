"""Read-only access to the client key store.

Each key lives in ``<client-home>/keys/<name>.json``::

    {"name": "validator1", "type": "local", "address": "cosmos1...",
     "public": "<base64>", "private": "<base64>"}

Only ``local`` keys carry a ``private`` entry.  ``multi`` keys may list their
member keys under ``pubkeys`` and a ``threshold``.
"""

from __future__ import annotations

import base64
import binascii
import enum
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Tuple

from . import signature_utils
from .config import KEYS_DIR
from .errors import KeybaseUnavailableError, KeyNotFoundError, SigningError

logger = logging.getLogger(__name__)


class KeyType(enum.Enum):
    LOCAL = "local"
    OFFLINE = "offline"
    MULTI = "multi"
    LEDGER = "ledger"

    @property
    def can_sign_locally(self) -> bool:
        return self is KeyType.LOCAL


@dataclass(frozen=True)
class KeyRecord:
    name: str
    address: str
    pubkey: str
    key_type: KeyType


class Keybase:
    """Key store rooted at a directory of JSON key files."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    @classmethod
    def from_dir(cls, client_home: Path) -> "Keybase":
        directory = Path(client_home) / KEYS_DIR
        if not directory.is_dir():
            raise KeybaseUnavailableError(f"key store directory {directory} does not exist")
        return cls(directory)

    def _path(self, name: str) -> Path:
        if not name or "/" in name or "\\" in name or name.startswith("."):
            raise KeyNotFoundError(f"invalid key name {name!r}")
        return self.directory / f"{name}.json"

    def _load(self, name: str) -> Dict[str, Any]:
        path = self._path(name)
        if not path.exists():
            raise KeyNotFoundError(f"key {name} not found")
        try:
            with open(path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            raise KeybaseUnavailableError(f"cannot read key {name}: {exc}") from exc
        if not isinstance(data, dict):
            raise KeybaseUnavailableError(f"key file for {name} is malformed")
        return data

    def _record(self, name: str, data: Dict[str, Any]) -> KeyRecord:
        try:
            key_type = KeyType(data.get("type", KeyType.LOCAL.value))
        except ValueError as exc:
            raise KeybaseUnavailableError(f"key {name} has unknown type {data.get('type')!r}") from exc
        pubkey = data.get("public", "")
        address = data.get("address", "")
        if not address:
            if not pubkey:
                raise KeybaseUnavailableError(f"key {name} has neither address nor public key")
            try:
                address = signature_utils.account_address(base64.b64decode(pubkey, validate=True))
            except (binascii.Error, ValueError, TypeError) as exc:
                raise KeybaseUnavailableError(f"key {name} has a malformed public key: {exc}") from exc
        return KeyRecord(name=name, address=address, pubkey=pubkey, key_type=key_type)

    def get(self, name: str) -> KeyRecord:
        """Return the record stored under ``name``."""
        return self._record(name, self._load(name))

    def list(self) -> List[KeyRecord]:
        records = []
        for path in sorted(self.directory.glob("*.json")):
            records.append(self.get(path.stem))
        return records

    def sign(self, name: str, data: bytes) -> Tuple[str, str]:
        """Sign ``data`` with key ``name``; return ``(signature, public_key)``.

        Both values are base64.  Only local keys can sign.
        """
        raw = self._load(name)
        record = self._record(name, raw)
        if record.key_type is KeyType.LEDGER:
            raise SigningError(f"key {name} is stored on a ledger device, which is not supported")
        if not record.key_type.can_sign_locally:
            raise SigningError(f"key {name} is of type {record.key_type.value} and cannot sign locally")
        priv = raw.get("private")
        if not priv:
            raise KeybaseUnavailableError(f"key {name} has no private key material")
        try:
            pub = signature_utils.public_key_for(priv)
            signature = signature_utils.sign_data(data, priv)
        except (ValueError, TypeError) as exc:
            raise SigningError(f"signing with key {name} failed: {exc}") from exc
        if record.pubkey and record.pubkey != pub:
            raise KeybaseUnavailableError(f"key {name}: private key does not match public key")
        logger.debug("signed %d bytes with key %s", len(data), name)
        return signature, pub


__all__ = ["KeyType", "KeyRecord", "Keybase"]
