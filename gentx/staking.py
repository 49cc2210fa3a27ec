"""The create-validator message and the helpers that build it from flags."""

from __future__ import annotations

import abc
import copy
import socket
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple

from . import signature_utils
from .coins import Coin, parse_coin
from .config import (
    DEFAULT_AMOUNT,
    DEFAULT_BOND_DENOM,
    DEFAULT_COMMISSION_MAX_CHANGE_RATE,
    DEFAULT_COMMISSION_MAX_RATE,
    DEFAULT_COMMISSION_RATE,
    DEFAULT_MIN_SELF_DELEGATION,
    P2P_PORT,
)
from .errors import InputError
from .node_identity import NodeIdentity

MSG_CREATE_VALIDATOR = "cosmos-sdk/MsgCreateValidator"

# Decimals are serialized with a fixed 18 digit fraction.
_DEC_PLACES = Decimal(10) ** -18


def format_dec(value: Decimal) -> str:
    return str(value.quantize(_DEC_PLACES))


def parse_dec(text: str, name: str) -> Decimal:
    try:
        value = Decimal(str(text))
    except InvalidOperation as exc:
        raise InputError(f"invalid {name}: {text!r}") from exc
    if not value.is_finite():
        raise InputError(f"invalid {name}: {text!r}")
    try:
        exact = value == value.quantize(_DEC_PLACES)
    except InvalidOperation as exc:
        raise InputError(f"invalid {name}: {text!r} is out of range") from exc
    if not exact:
        raise InputError(f"invalid {name}: {text!r} has too much precision (max 18 decimal places)")
    return value


@dataclass(frozen=True)
class Description:
    moniker: str
    identity: str = ""
    website: str = ""
    security_contact: str = ""
    details: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "moniker": self.moniker,
            "identity": self.identity,
            "website": self.website,
            "security_contact": self.security_contact,
            "details": self.details,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Description":
        return cls(
            moniker=data["moniker"],
            identity=data.get("identity", ""),
            website=data.get("website", ""),
            security_contact=data.get("security_contact", ""),
            details=data.get("details", ""),
        )


@dataclass(frozen=True)
class CommissionRates:
    rate: Decimal
    max_rate: Decimal
    max_change_rate: Decimal

    def validate(self) -> None:
        if self.max_rate < 0 or self.max_rate > 1:
            raise InputError("commission parameter MaxRate must be between 0 and 1")
        if self.rate < 0:
            raise InputError("commission rate must be positive")
        if self.rate > self.max_rate:
            raise InputError("commission rate cannot be more than the max rate")
        if self.max_change_rate < 0:
            raise InputError("commission change rate must be positive")
        if self.max_change_rate > self.max_rate:
            raise InputError("commission change rate cannot be more than the max rate")

    def to_dict(self) -> Dict[str, str]:
        return {
            "rate": format_dec(self.rate),
            "max_rate": format_dec(self.max_rate),
            "max_change_rate": format_dec(self.max_change_rate),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CommissionRates":
        return cls(
            rate=Decimal(data["rate"]),
            max_rate=Decimal(data["max_rate"]),
            max_change_rate=Decimal(data["max_change_rate"]),
        )


@dataclass(frozen=True)
class MsgCreateValidator:
    description: Description
    commission: CommissionRates
    min_self_delegation: int
    delegator_address: str
    validator_address: str
    pubkey: str
    value: Coin

    type_name = MSG_CREATE_VALIDATOR

    def to_dict(self) -> Dict[str, Any]:
        return {
            "description": self.description.to_dict(),
            "commission": self.commission.to_dict(),
            "min_self_delegation": str(self.min_self_delegation),
            "delegator_address": self.delegator_address,
            "validator_address": self.validator_address,
            "pubkey": self.pubkey,
            "value": self.value.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MsgCreateValidator":
        return cls(
            description=Description.from_dict(data["description"]),
            commission=CommissionRates.from_dict(data["commission"]),
            min_self_delegation=int(data["min_self_delegation"]),
            delegator_address=data["delegator_address"],
            validator_address=data["validator_address"],
            pubkey=data["pubkey"],
            value=Coin.from_dict(data["value"]),
        )


@dataclass(frozen=True)
class Flag:
    """A command flag contributed by a message builder."""

    name: str
    default: Any
    help: str
    type: type = str

    @property
    def dest(self) -> str:
        return self.name.replace("-", "_")


def external_ip() -> str:
    """Best-effort guess of this host's outward facing IPv4 address."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            # No packet is sent; connect only selects a route.
            sock.connect(("8.8.8.8", 80))
            return sock.getsockname()[0]
    except OSError:
        return "127.0.0.1"


class MsgBuildingHelpers(abc.ABC):
    """Builds the staking message carried by a genesis transaction."""

    @abc.abstractmethod
    def flags(self) -> List[Flag]:
        """Flags this builder reads, merged into the command's namespace."""

    @abc.abstractmethod
    def defaults_description(self) -> str:
        """Human readable summary of the default values."""

    @abc.abstractmethod
    def self_delegation(self, flags: Dict[str, Any]) -> List[Coin]:
        """Coins the validator bonds to itself."""

    @abc.abstractmethod
    def build_create_validator_msg(
        self,
        identity: NodeIdentity,
        chain_id: str,
        delegator: str,
        flags: Dict[str, Any],
    ) -> Tuple[MsgCreateValidator, str]:
        """Return ``(message, memo)`` for ``identity`` on ``chain_id``."""

    def with_bond_denom(self, denom: str) -> "MsgBuildingHelpers":
        """Return a builder whose default self delegation is paid in ``denom``."""
        return self


class StakingMsgBuilder(MsgBuildingHelpers):
    """Default builder for ``cosmos-sdk/MsgCreateValidator``."""

    def __init__(self, bond_denom: str = DEFAULT_BOND_DENOM, ip_default: Optional[str] = None) -> None:
        self.bond_denom = bond_denom
        self.ip_default = ip_default if ip_default is not None else external_ip()
        self.default_amount = f"{DEFAULT_AMOUNT}{bond_denom}"

    def flags(self) -> List[Flag]:
        return [
            Flag("amount", self.default_amount, "Amount of coins to bond"),
            Flag("commission-rate", DEFAULT_COMMISSION_RATE, "The initial commission rate percentage"),
            Flag("commission-max-rate", DEFAULT_COMMISSION_MAX_RATE, "The maximum commission rate percentage"),
            Flag(
                "commission-max-change-rate",
                DEFAULT_COMMISSION_MAX_CHANGE_RATE,
                "The maximum commission change rate percentage (per day)",
            ),
            Flag("min-self-delegation", DEFAULT_MIN_SELF_DELEGATION, "The minimum self delegation required on the validator"),
            Flag("moniker", "", "The validator's name (defaults to the node ID)"),
            Flag("identity", "", "The optional identity signature (ex. UPort or Keybase)"),
            Flag("website", "", "The validator's (optional) website"),
            Flag("security-contact", "", "The validator's (optional) security contact email"),
            Flag("details", "", "The validator's (optional) details"),
            Flag("ip", self.ip_default, "The node's public IP"),
        ]

    def defaults_description(self) -> str:
        return (
            f"delegation amount:           {self.default_amount}\n"
            f"commission rate:             {DEFAULT_COMMISSION_RATE}\n"
            f"commission max rate:         {DEFAULT_COMMISSION_MAX_RATE}\n"
            f"commission max change rate:  {DEFAULT_COMMISSION_MAX_CHANGE_RATE}\n"
            f"minimum self delegation:     {DEFAULT_MIN_SELF_DELEGATION}"
        )

    def with_bond_denom(self, denom: str) -> "StakingMsgBuilder":
        if denom == self.bond_denom:
            return self
        clone = copy.copy(self)
        clone.bond_denom = denom
        clone.default_amount = f"{DEFAULT_AMOUNT}{denom}"
        return clone

    def _flag(self, flags: Dict[str, Any], name: str) -> Any:
        for flag in self.flags():
            if flag.name == name:
                value = flags.get(flag.dest)
                return flag.default if value is None else value
        raise KeyError(name)

    def self_delegation(self, flags: Dict[str, Any]) -> List[Coin]:
        text = self._flag(flags, "amount")
        try:
            coin = parse_coin(text)
        except ValueError as exc:
            raise InputError(f"invalid amount: {exc}") from exc
        if coin.amount <= 0:
            raise InputError("delegation amount must be positive")
        return [coin]

    def build_create_validator_msg(
        self,
        identity: NodeIdentity,
        chain_id: str,
        delegator: str,
        flags: Dict[str, Any],
    ) -> Tuple[MsgCreateValidator, str]:
        if identity is None or not identity.node_id or not identity.consensus_pubkey:
            raise RuntimeError("node identity must be resolved before building the message")
        if not chain_id:
            raise RuntimeError("chain ID must be known before building the message")

        (amount,) = self.self_delegation(flags)
        commission = CommissionRates(
            rate=parse_dec(self._flag(flags, "commission-rate"), "commission rate"),
            max_rate=parse_dec(self._flag(flags, "commission-max-rate"), "commission max rate"),
            max_change_rate=parse_dec(
                self._flag(flags, "commission-max-change-rate"), "commission max change rate"
            ),
        )
        commission.validate()

        try:
            min_self = int(self._flag(flags, "min-self-delegation"))
        except ValueError as exc:
            raise InputError("minimum self delegation must be an integer") from exc
        if min_self <= 0:
            raise InputError("minimum self delegation must be a positive integer")
        if min_self > amount.amount:
            raise InputError("validator self delegation must be at least the minimum self delegation")

        try:
            valoper = signature_utils.valoper_address(delegator)
        except ValueError as exc:
            raise InputError(f"invalid delegator address: {exc}") from exc

        description = Description(
            moniker=self._flag(flags, "moniker") or identity.node_id,
            identity=self._flag(flags, "identity"),
            website=self._flag(flags, "website"),
            security_contact=self._flag(flags, "security-contact"),
            details=self._flag(flags, "details"),
        )
        msg = MsgCreateValidator(
            description=description,
            commission=commission,
            min_self_delegation=min_self,
            delegator_address=delegator,
            validator_address=valoper,
            pubkey=identity.bech32_pubkey,
            value=amount,
        )
        memo = f"{identity.node_id}@{self._flag(flags, 'ip')}:{P2P_PORT}"
        return msg, memo


__all__ = [
    "MSG_CREATE_VALIDATOR",
    "Description",
    "CommissionRates",
    "MsgCreateValidator",
    "Flag",
    "MsgBuildingHelpers",
    "StakingMsgBuilder",
    "external_ip",
]
