"""Standard transactions: building, encoding and signing."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, IO, List, Sequence

from .codec import Codec, canonical_json
from .coins import Coin, coins_from_list
from .config import DEFAULT_GAS
from .errors import DecodeError, SigningError
from .keys import Keybase
from .signature_utils import ED25519_PUBKEY_TYPE


@dataclass(frozen=True)
class StdFee:
    amount: List[Coin] = field(default_factory=list)
    gas: int = DEFAULT_GAS

    def to_dict(self) -> Dict[str, Any]:
        return {"amount": [c.to_dict() for c in self.amount], "gas": str(self.gas)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StdFee":
        return cls(amount=coins_from_list(data.get("amount") or []), gas=int(data["gas"]))


@dataclass(frozen=True)
class StdSignature:
    pub_key: str
    signature: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pub_key": {"type": ED25519_PUBKEY_TYPE, "value": self.pub_key},
            "signature": self.signature,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StdSignature":
        return cls(pub_key=data["pub_key"]["value"], signature=data["signature"])


@dataclass(frozen=True)
class StdTx:
    msgs: List[Any]
    fee: StdFee
    signatures: List[StdSignature] = field(default_factory=list)
    memo: str = ""

    type_name = "cosmos-sdk/StdTx"

    def to_dict(self, codec: Codec) -> Dict[str, Any]:
        return {
            "type": self.type_name,
            "value": {
                "msg": [codec.encode_msg(m) for m in self.msgs],
                "fee": self.fee.to_dict(),
                # Unsigned transactions carry an explicit null.
                "signatures": [s.to_dict() for s in self.signatures] or None,
                "memo": self.memo,
            },
        }

    @classmethod
    def from_dict(cls, data: Any, codec: Codec) -> "StdTx":
        if not isinstance(data, dict) or data.get("type") != cls.type_name:
            raise DecodeError(f"expected a {cls.type_name} document")
        value = data.get("value")
        if not isinstance(value, dict):
            raise DecodeError("transaction value must be an object")
        try:
            msgs = [codec.decode_msg(m) for m in value["msg"]]
            fee = StdFee.from_dict(value["fee"])
            signatures = [StdSignature.from_dict(s) for s in value.get("signatures") or []]
            memo = value.get("memo", "")
        except (KeyError, TypeError, ValueError) as exc:
            raise DecodeError(f"malformed transaction: {exc}") from exc
        return cls(msgs=msgs, fee=fee, signatures=signatures, memo=memo)


def encode_tx(codec: Codec, tx: StdTx) -> bytes:
    return codec.marshal_json(tx)


def decode_tx(codec: Codec, data: bytes) -> StdTx:
    return StdTx.from_dict(codec.unmarshal_json(data), codec)


def std_sign_bytes(
    codec: Codec,
    chain_id: str,
    account_number: int,
    sequence: int,
    fee: StdFee,
    msgs: Sequence[Any],
    memo: str,
) -> bytes:
    """Return the canonical bytes a signer commits to."""
    return canonical_json(
        {
            "account_number": str(account_number),
            "chain_id": chain_id,
            "fee": fee.to_dict(),
            "memo": memo,
            "msgs": [codec.encode_msg(m) for m in msgs],
            "sequence": str(sequence),
        }
    )


@dataclass
class TxBuilder:
    """Carries the signing context; accounts are new at genesis so both counters are zero."""

    codec: Codec
    chain_id: str
    keybase: Keybase
    gas: int = DEFAULT_GAS
    fees: List[Coin] = field(default_factory=list)
    memo: str = ""
    account_number: int = 0
    sequence: int = 0

    def build_unsigned(self, msgs: Sequence[Any]) -> StdTx:
        if not msgs:
            raise ValueError("transaction must carry at least one message")
        return StdTx(msgs=list(msgs), fee=StdFee(amount=list(self.fees), gas=self.gas), memo=self.memo)

    def sign_bytes(self, tx: StdTx) -> bytes:
        return std_sign_bytes(
            self.codec, self.chain_id, self.account_number, self.sequence, tx.fee, tx.msgs, tx.memo
        )

    def sign(self, name: str, tx: StdTx) -> StdTx:
        """Return ``tx`` signed by key ``name``, replacing any existing signatures."""
        if not self.chain_id:
            raise SigningError("chain ID required but not specified")
        signature, pub = self.keybase.sign(name, self.sign_bytes(tx))
        return replace(tx, signatures=[StdSignature(pub_key=pub, signature=signature)])


def print_unsigned_std_tx(builder: TxBuilder, msgs: Sequence[Any], out: IO[bytes]) -> StdTx:
    """Write the unsigned transaction for ``msgs`` to ``out`` as one JSON line."""
    tx = builder.build_unsigned(msgs)
    out.write(encode_tx(builder.codec, tx) + b"\n")
    return tx


__all__ = [
    "StdFee",
    "StdSignature",
    "StdTx",
    "TxBuilder",
    "encode_tx",
    "decode_tx",
    "std_sign_bytes",
    "print_unsigned_std_tx",
]
