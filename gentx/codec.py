"""JSON wire codec for transactions and the messages they carry."""

from __future__ import annotations

import json
from typing import Any, Dict, Type

from .errors import DecodeError
from .staking import MsgCreateValidator


def canonical_json(data: Any) -> bytes:
    """Encode ``data`` as compact JSON with sorted keys."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


class Codec:
    """Registry mapping message type names to message classes.

    Messages are encoded as ``{"type": <name>, "value": <fields>}``.  Message
    classes provide ``type_name``, ``to_dict`` and ``from_dict``.
    """

    def __init__(self) -> None:
        self._types: Dict[str, Type[Any]] = {}

    def register(self, msg_cls: Type[Any]) -> None:
        name = msg_cls.type_name
        if name in self._types and self._types[name] is not msg_cls:
            raise ValueError(f"message type {name} already registered")
        self._types[name] = msg_cls

    def encode_msg(self, msg: Any) -> Dict[str, Any]:
        if self._types.get(msg.type_name) is not type(msg):
            raise DecodeError(f"message type {msg.type_name} is not registered")
        return {"type": msg.type_name, "value": msg.to_dict()}

    def decode_msg(self, data: Any) -> Any:
        if not isinstance(data, dict) or "type" not in data or "value" not in data:
            raise DecodeError("message must be an object with type and value")
        msg_cls = self._types.get(data["type"])
        if msg_cls is None:
            raise DecodeError(f"unknown message type {data['type']!r}")
        try:
            return msg_cls.from_dict(data["value"])
        except (KeyError, TypeError, ValueError, ArithmeticError) as exc:
            raise DecodeError(f"malformed {data['type']} message: {exc}") from exc

    def marshal_json(self, tx: Any) -> bytes:
        """Encode a transaction (anything with ``to_dict(codec)``)."""
        return canonical_json(tx.to_dict(self))

    def unmarshal_json(self, data: bytes) -> Any:
        try:
            return json.loads(data)
        except ValueError as exc:
            raise DecodeError(f"invalid transaction JSON: {exc}") from exc


def default_codec() -> Codec:
    codec = Codec()
    codec.register(MsgCreateValidator)
    return codec


__all__ = ["Codec", "canonical_json", "default_codec"]
