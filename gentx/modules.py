"""Per-module genesis validation and genesis account iteration.

Modules own the schema of their ``app_state`` section.  The workflow only
knows the small :class:`GenesisValidator` and :class:`GenesisAccountsIterator`
interfaces; the classes below are the defaults wired in by the CLI.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List

from . import signature_utils
from .coins import Coin, coins_from_list, is_valid_denom
from .config import DEFAULT_BOND_DENOM
from .errors import MalformedGenesisError, ModuleGenesisError


@dataclass(frozen=True)
class GenesisAccount:
    address: str
    coins: List[Coin]


class GenesisValidator(abc.ABC):
    """Validates one module's section of the genesis application state."""

    name: str = ""

    @abc.abstractmethod
    def validate_genesis(self, payload: Any) -> None:
        """Raise ``ValueError`` if ``payload`` is not a valid genesis section."""


class GenesisAccountsIterator(abc.ABC):
    """Yields the accounts funded at genesis."""

    #: Where the accounts live, for error messages.
    location: str = ""

    @abc.abstractmethod
    def iterate_genesis_accounts(self, state: Dict[str, Any]) -> Iterator[GenesisAccount]:
        """Yield each genesis account in ``state``."""


class ModuleManager:
    """Runs every registered module validator over the genesis state."""

    def __init__(self, validators: Iterable[GenesisValidator]) -> None:
        self.validators = list(validators)
        names = [v.name for v in self.validators]
        if len(set(names)) != len(names):
            raise ValueError(f"duplicate module names in {names}")

    def validate_genesis(self, state: Dict[str, Any]) -> None:
        for validator in self.validators:
            if validator.name not in state:
                raise ModuleGenesisError(validator.name, "missing from app_state")
            try:
                validator.validate_genesis(state[validator.name])
            except (ValueError, TypeError, KeyError) as exc:
                raise ModuleGenesisError(validator.name, str(exc)) from exc


def _require_dict(payload: Any) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise ValueError(f"expected an object, got {type(payload).__name__}")
    return payload


def _require_list(payload: Dict[str, Any], key: str) -> list:
    value = payload.get(key, [])
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{key} must be a list")
    return value


class AuthModule(GenesisValidator):
    name = "auth"

    def validate_genesis(self, payload: Any) -> None:
        seen = set()
        for entry in _require_list(_require_dict(payload), "accounts"):
            account = parse_account(entry)
            if account.address in seen:
                raise ValueError(f"duplicate account found in genesis state; address: {account.address}")
            seen.add(account.address)


class StakingModule(GenesisValidator):
    name = "staking"

    def validate_genesis(self, payload: Any) -> None:
        data = _require_dict(payload)
        denom = _require_dict(data.get("params", {})).get("bond_denom", DEFAULT_BOND_DENOM)
        if not is_valid_denom(denom):
            raise ValueError(f"invalid bond denom {denom!r}")
        _require_list(data, "validators")
        _require_list(data, "delegations")


class GenutilModule(GenesisValidator):
    name = "genutil"

    def validate_genesis(self, payload: Any) -> None:
        for tx in _require_list(_require_dict(payload), "gentxs"):
            if not isinstance(tx, dict):
                raise ValueError("gentxs entries must be transaction objects")


def parse_account(entry: Any) -> GenesisAccount:
    """Parse an ``auth`` account entry, plain or ``{"type", "value"}`` wrapped."""
    data = _require_dict(entry)
    if "value" in data and "type" in data:
        data = _require_dict(data["value"])
    address = data.get("address", "")
    if not signature_utils.is_account_address(address):
        raise ValueError(f"invalid account address {address!r}")
    return GenesisAccount(address=address, coins=coins_from_list(data.get("coins") or []))


class AuthAccountsIterator(GenesisAccountsIterator):
    location = "auth.accounts"

    def iterate_genesis_accounts(self, state: Dict[str, Any]) -> Iterator[GenesisAccount]:
        auth = state.get("auth") or {}
        try:
            entries = _require_list(_require_dict(auth), "accounts")
            for entry in entries:
                yield parse_account(entry)
        except ValueError as exc:
            raise MalformedGenesisError(f"auth accounts: {exc}") from exc


def bond_denom(state: Dict[str, Any]) -> str:
    """Return the staking bond denom of ``state``, or the default if it sets none."""
    staking = state.get("staking")
    params = staking.get("params") if isinstance(staking, dict) else None
    if not isinstance(params, dict):
        return DEFAULT_BOND_DENOM
    return params.get("bond_denom") or DEFAULT_BOND_DENOM


def default_module_manager() -> ModuleManager:
    return ModuleManager([AuthModule(), StakingModule(), GenutilModule()])


__all__ = [
    "GenesisAccount",
    "GenesisValidator",
    "GenesisAccountsIterator",
    "ModuleManager",
    "AuthModule",
    "StakingModule",
    "GenutilModule",
    "AuthAccountsIterator",
    "parse_account",
    "bond_denom",
    "default_module_manager",
]
