"""Coin amounts such as ``100stake`` and coin lists such as ``5atom,10stake``."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List

_DENOM_RE = re.compile(r"^[a-z][a-z0-9/]{2,127}$")
_COIN_RE = re.compile(r"^([0-9]+)\s*([a-z][a-z0-9/]{2,127})$")


@dataclass(frozen=True)
class Coin:
    denom: str
    amount: int

    def __post_init__(self) -> None:
        if not is_valid_denom(self.denom):
            raise ValueError(f"invalid denom: {self.denom!r}")
        if self.amount < 0:
            raise ValueError(f"negative coin amount: {self.amount}")

    def __str__(self) -> str:
        return f"{self.amount}{self.denom}"

    def to_dict(self) -> Dict[str, str]:
        # Amounts are strings on the wire to stay exact for large integers.
        return {"denom": self.denom, "amount": str(self.amount)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Coin":
        try:
            return cls(denom=data["denom"], amount=int(data["amount"]))
        except (KeyError, TypeError) as exc:
            raise ValueError(f"malformed coin {data!r}") from exc


def is_valid_denom(denom: str) -> bool:
    return isinstance(denom, str) and bool(_DENOM_RE.match(denom))


def parse_coin(text: str) -> Coin:
    match = _COIN_RE.match(text.strip())
    if not match:
        raise ValueError(f"invalid coin expression: {text!r}")
    return Coin(denom=match.group(2), amount=int(match.group(1)))


def parse_coins(text: str) -> List[Coin]:
    """Parse a comma separated coin list, sorted by denom.

    An empty string is an empty list.  Repeated denoms are rejected.
    """
    text = text.strip()
    if not text:
        return []
    coins = [parse_coin(part) for part in text.split(",")]
    coins.sort(key=lambda c: c.denom)
    for prev, cur in zip(coins, coins[1:]):
        if prev.denom == cur.denom:
            raise ValueError(f"duplicate denomination {cur.denom}")
    return coins


def coins_from_list(items: Iterable[Dict[str, Any]]) -> List[Coin]:
    return sorted((Coin.from_dict(item) for item in items), key=lambda c: c.denom)


def amount_of(coins: Iterable[Coin], denom: str) -> int:
    return sum(c.amount for c in coins if c.denom == denom)


def format_coins(coins: Iterable[Coin]) -> str:
    return ",".join(str(c) for c in coins)


__all__ = [
    "Coin",
    "is_valid_denom",
    "parse_coin",
    "parse_coins",
    "coins_from_list",
    "amount_of",
    "format_coins",
]
