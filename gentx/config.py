"""Configuration constants and the per-run configuration for ``gentx``."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

# Default home directories of the node daemon and of the client key store.
DEFAULT_NODE_HOME = Path.home() / ".gentxd"
DEFAULT_CLI_HOME = Path.home() / ".gentxcli"

# Bech32 human readable prefixes.
ACCOUNT_PREFIX = "cosmos"
VALOPER_PREFIX = ACCOUNT_PREFIX + "valoper"
CONSPUB_PREFIX = ACCOUNT_PREFIX + "valconspub"

# Files below ``<home>/config``.
CONFIG_DIR = "config"
GENESIS_FILE = "genesis.json"
NODE_KEY_FILE = "node_key.json"
PRIV_VALIDATOR_KEY_FILE = "priv_validator_key.json"
GENTX_DIR = "gentx"

# Key store directory below the client home.
KEYS_DIR = "keys"

DEFAULT_BOND_DENOM = "stake"
DEFAULT_AMOUNT = 100_000_000
DEFAULT_COMMISSION_RATE = "0.1"
DEFAULT_COMMISSION_MAX_RATE = "0.2"
DEFAULT_COMMISSION_MAX_CHANGE_RATE = "0.01"
DEFAULT_MIN_SELF_DELEGATION = "1"
DEFAULT_GAS = 200_000
P2P_PORT = 26656


@dataclass
class GentxConfig:
    """Everything a single ``gentx`` run reads, passed explicitly to each stage."""

    name: str
    home: Path = DEFAULT_NODE_HOME
    client_home: Path = DEFAULT_CLI_HOME
    node_id: str = ""
    pubkey: str = ""
    output_document: str = ""
    required_balance: str = ""
    gas: int = DEFAULT_GAS
    fees: str = ""
    memo: str = ""
    builder_flags: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.home = Path(self.home)
        self.client_home = Path(self.client_home)

    @property
    def config_dir(self) -> Path:
        return self.home / CONFIG_DIR

    @property
    def genesis_file(self) -> Path:
        return self.config_dir / GENESIS_FILE

    @property
    def node_key_file(self) -> Path:
        return self.config_dir / NODE_KEY_FILE

    @property
    def priv_validator_key_file(self) -> Path:
        return self.config_dir / PRIV_VALIDATOR_KEY_FILE


__all__ = [
    "GentxConfig",
    "DEFAULT_NODE_HOME",
    "DEFAULT_CLI_HOME",
    "ACCOUNT_PREFIX",
    "VALOPER_PREFIX",
    "CONSPUB_PREFIX",
    "DEFAULT_BOND_DENOM",
    "DEFAULT_GAS",
    "P2P_PORT",
]
