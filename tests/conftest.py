import base64
import importlib.util
import json
from pathlib import Path

import pytest

if importlib.util.find_spec("nacl") is None:
    raise pytest.UsageError(
        "PyNaCl is required for the test suite. Install dependencies with 'pip install -e .[test]'."
    )

from nacl import signing

from gentx import signature_utils
from gentx.config import GentxConfig
from gentx.staking import StakingMsgBuilder


def pytest_collection_modifyitems(config, items):
    """Automatically add a timeout to end-to-end tests."""
    keywords = {"workflow", "cli", "end_to_end"}
    for item in items:
        path = str(item.fspath)
        name = item.name
        if any(k in path for k in keywords) or any(k in name for k in keywords):
            item.add_marker(pytest.mark.timeout(10))


def generate_keypair() -> tuple:
    """Return a fresh Ed25519 ``(public, private)`` pair, both base64."""
    key = signing.SigningKey.generate()
    pub = base64.b64encode(key.verify_key.encode()).decode("ascii")
    priv = base64.b64encode(key.encode()).decode("ascii")
    return pub, priv


def write_key(client_home: Path, name: str, key_type: str = "local") -> dict:
    """Store a freshly generated key of ``key_type`` and return its file contents."""
    pub, priv = generate_keypair()
    record = {
        "name": name,
        "type": key_type,
        "address": signature_utils.account_address(base64.b64decode(pub)),
        "public": pub,
    }
    if key_type == "local":
        record["private"] = priv
    if key_type == "multi":
        record["threshold"] = 1
        record["pubkeys"] = [pub]
    keys_dir = Path(client_home) / "keys"
    keys_dir.mkdir(parents=True, exist_ok=True)
    (keys_dir / f"{name}.json").write_text(json.dumps(record), encoding="utf-8")
    return record


def write_genesis(home: Path, accounts: list, chain_id: str = "test-chain", bond_denom: str = "stake") -> Path:
    """Write a minimal genesis document funding ``accounts`` (``(address, coins)`` pairs)."""
    doc = {
        "genesis_time": "2020-01-01T00:00:00Z",
        "chain_id": chain_id,
        "app_hash": "",
        "app_state": {
            "auth": {
                "accounts": [
                    {
                        "address": address,
                        "coins": [{"denom": denom, "amount": str(amount)} for denom, amount in coins],
                    }
                    for address, coins in accounts
                ]
            },
            "staking": {"params": {"bond_denom": bond_denom}, "validators": [], "delegations": []},
            "genutil": {"gentxs": []},
        },
    }
    path = Path(home) / "config" / "genesis.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(doc, indent=2), encoding="utf-8")
    return path


@pytest.fixture
def node_home(tmp_path) -> Path:
    home = tmp_path / "node"
    (home / "config").mkdir(parents=True)
    return home


@pytest.fixture
def client_home(tmp_path) -> Path:
    home = tmp_path / "cli"
    (home / "keys").mkdir(parents=True)
    return home


@pytest.fixture
def validator_key(client_home) -> dict:
    """A local key named ``validator1``."""
    return write_key(client_home, "validator1")


@pytest.fixture
def funded_genesis(node_home, validator_key) -> Path:
    """Genesis funding ``validator1`` with more than the default self delegation."""
    return write_genesis(node_home, [(validator_key["address"], [("stake", 500_000_000)])])


@pytest.fixture
def builder() -> StakingMsgBuilder:
    return StakingMsgBuilder(ip_default="127.0.0.1")


@pytest.fixture
def make_config(node_home, client_home):
    """Return a factory for :class:`GentxConfig` rooted at the test homes."""

    def factory(**overrides) -> GentxConfig:
        values = {"name": "validator1", "home": node_home, "client_home": client_home}
        values.update(overrides)
        return GentxConfig(**values)

    return factory
