"""Loading of the genesis document and checks against its application state."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ValidationError, field_validator

from .coins import Coin, amount_of, format_coins
from .errors import (
    AccountNotFoundError,
    GenesisFileError,
    InsufficientFundsError,
    MalformedGenesisError,
)
from .modules import GenesisAccountsIterator

logger = logging.getLogger(__name__)

# Module name -> that module's raw genesis payload.
GenesisState = Dict[str, Any]


class GenesisDoc(BaseModel):
    """The envelope of ``genesis.json``.

    Only ``chain_id`` and ``app_state`` are interpreted here; the other
    envelope fields are type-checked and otherwise ignored.
    """

    chain_id: str
    app_state: Dict[str, Any]
    genesis_time: Optional[str] = None
    initial_height: Optional[Union[int, str]] = None
    consensus_params: Optional[Dict[str, Any]] = None
    validators: Optional[List[Dict[str, Any]]] = None
    app_hash: str = ""

    @field_validator("chain_id")
    @classmethod
    def _chain_id_present(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("genesis doc must include non-empty chain_id")
        if len(value) > 50:
            raise ValueError(f"chain_id in genesis doc is too long (max: 50 chars), got {len(value)}")
        return value


def genesis_doc_from_file(path: Path) -> GenesisDoc:
    """Read and parse the genesis document at ``path``."""
    path = Path(path)
    try:
        raw = path.read_bytes()
    except FileNotFoundError as exc:
        raise GenesisFileError(f"{path}: genesis file not found") from exc
    except OSError as exc:
        raise GenesisFileError(f"{path}: {exc}") from exc
    try:
        doc = GenesisDoc.model_validate_json(raw)
    except ValidationError as exc:
        raise MalformedGenesisError(f"{path}: {exc}") from exc
    logger.debug("loaded genesis doc %s for chain %s", path, doc.chain_id)
    return doc


def load_app_state(doc: GenesisDoc) -> GenesisState:
    """Return the per-module application state of ``doc``.

    Payloads are deep-copied through JSON so module validators cannot mutate
    the document.
    """
    try:
        state = json.loads(json.dumps(doc.app_state))
    except (TypeError, ValueError) as exc:
        raise MalformedGenesisError(f"invalid app_state: {exc}") from exc
    if not all(isinstance(k, str) for k in state):
        raise MalformedGenesisError("app_state keys must be module names")
    return state


def validate_account_in_genesis(
    state: GenesisState,
    accounts: GenesisAccountsIterator,
    address: str,
    required: List[Coin],
) -> None:
    """Check that ``address`` is a genesis account holding at least ``required``.

    Raises :class:`AccountNotFoundError` when the account is absent and
    :class:`InsufficientFundsError` when any required denomination falls
    short.
    """
    for account in accounts.iterate_genesis_accounts(state):
        if account.address != address:
            continue
        for coin in required:
            available = amount_of(account.coins, coin.denom)
            if available < coin.amount:
                raise InsufficientFundsError(
                    f"account {address} is in genesis, but it only has "
                    f"{available}{coin.denom} available to stake, not {coin}"
                )
        logger.debug("account %s holds %s", address, format_coins(account.coins))
        return
    raise AccountNotFoundError(
        f"account {address} is not in the app_state.{accounts.location} array of genesis.json"
    )


__all__ = [
    "GenesisDoc",
    "GenesisState",
    "genesis_doc_from_file",
    "load_app_state",
    "validate_account_in_genesis",
]
