import io
import json

import pytest

pytest.importorskip("nacl")

from conftest import write_genesis, write_key

from gentx import signature_utils
from gentx.codec import default_codec
from gentx.errors import (
    AccountNotFoundError,
    GenesisValidationError,
    InputError,
    InsufficientFundsError,
    KeyNotFoundError,
    NotFoundError,
    OutputExistsError,
    SigningError,
    Stage,
)
from gentx.keys import Keybase
from gentx.modules import GenesisValidator, ModuleManager
from gentx.node_identity import initialize_node_validator_files
from gentx.staking import StakingMsgBuilder
from gentx.tx import TxBuilder, decode_tx
from gentx.workflow import OFFLINE_NOTICE, run_gentx


def _gentx_files(node_home):
    gentx_dir = node_home / "config" / "gentx"
    return sorted(gentx_dir.glob("*.json")) if gentx_dir.exists() else []


def test_end_to_end_local_key(make_config, builder, funded_genesis, node_home, validator_key):
    stderr = io.StringIO()
    result = run_gentx(make_config(), builder, stderr=stderr)

    identity = initialize_node_validator_files(make_config())
    expected = node_home / "config" / "gentx" / f"gentx-{identity.node_id}.json"
    assert result.path == expected
    assert result.signed
    assert f'Genesis transaction written to "{expected}"' in stderr.getvalue()

    doc = json.loads(expected.read_text())
    value = doc["value"]
    assert [m["type"] for m in value["msg"]] == ["cosmos-sdk/MsgCreateValidator"]
    assert len(value["signatures"]) == 1
    msg = value["msg"][0]["value"]
    assert msg["delegator_address"] == validator_key["address"]
    assert msg["pubkey"] == identity.bech32_pubkey
    assert value["memo"] == f"{identity.node_id}@127.0.0.1:26656"

    sig = value["signatures"][0]
    assert sig["pub_key"]["value"] == validator_key["public"]
    assert result.tx.signatures[0].signature == sig["signature"]


def test_signature_covers_written_transaction(make_config, builder, funded_genesis, client_home):
    result = run_gentx(make_config(), builder, stderr=io.StringIO())
    codec = default_codec()
    written = decode_tx(codec, result.path.read_bytes())
    tx_builder = TxBuilder(codec=codec, chain_id="test-chain", keybase=Keybase.from_dir(client_home))
    sig = written.signatures[0]
    assert signature_utils.verify_signature(tx_builder.sign_bytes(written), sig.signature, sig.pub_key)


@pytest.mark.parametrize("kind", ["multi", "offline"])
def test_end_to_end_unsigned_for_remote_keys(make_config, builder, node_home, client_home, monkeypatch, kind):
    key = write_key(client_home, "validator1", kind)
    write_genesis(node_home, [(key["address"], [("stake", 500_000_000)])])

    def no_signing(*args, **kwargs):
        raise AssertionError("signing must not be attempted")

    monkeypatch.setattr(Keybase, "sign", no_signing)
    stderr = io.StringIO()
    result = run_gentx(make_config(), builder, stderr=stderr)

    identity = initialize_node_validator_files(make_config())
    assert result.path == node_home / "config" / "gentx" / f"gentx-{identity.node_id}.json"
    assert not result.signed
    doc = json.loads(result.path.read_text())
    assert doc["value"]["signatures"] is None
    assert len(doc["value"]["msg"]) == 1
    assert OFFLINE_NOTICE in stderr.getvalue()
    assert "Genesis transaction written" not in stderr.getvalue()


def test_second_run_conflicts_and_keeps_first_file(make_config, builder, funded_genesis):
    first = run_gentx(make_config(), builder, stderr=io.StringIO())
    content = first.path.read_bytes()
    with pytest.raises(OutputExistsError) as info:
        run_gentx(make_config(), builder, stderr=io.StringIO())
    assert info.value.stage is Stage.WRITE
    assert "already exists" in str(info.value)
    assert first.path.read_bytes() == content


def test_unknown_key_writes_nothing(make_config, builder, funded_genesis, node_home):
    with pytest.raises(KeyNotFoundError) as info:
        run_gentx(make_config(name="ghost"), builder, stderr=io.StringIO())
    assert info.value.stage is Stage.READ_KEY
    assert isinstance(info.value, NotFoundError)
    assert str(info.value).startswith("failed to read from keybase")
    assert _gentx_files(node_home) == []


def test_account_missing_from_genesis(make_config, builder, node_home, client_home, validator_key):
    stranger = write_key(client_home, "stranger")
    write_genesis(node_home, [(stranger["address"], [("stake", 500_000_000)])])
    with pytest.raises(AccountNotFoundError) as info:
        run_gentx(make_config(), builder, stderr=io.StringIO())
    assert info.value.stage is Stage.VALIDATE_ACCOUNT
    assert str(info.value).startswith("failed to validate account in genesis")
    assert _gentx_files(node_home) == []


def test_underfunded_account(make_config, builder, node_home, validator_key):
    write_genesis(node_home, [(validator_key["address"], [("stake", 10)])])
    with pytest.raises(InsufficientFundsError) as info:
        run_gentx(make_config(), builder, stderr=io.StringIO())
    assert info.value.stage is Stage.VALIDATE_ACCOUNT
    assert isinstance(info.value, GenesisValidationError)


def test_required_balance_override(make_config, builder, node_home, validator_key):
    write_genesis(node_home, [(validator_key["address"], [("stake", 100_000_000)])])
    with pytest.raises(InsufficientFundsError):
        run_gentx(make_config(required_balance="100000001stake"), builder, stderr=io.StringIO())
    result = run_gentx(make_config(required_balance="1stake"), builder, stderr=io.StringIO())
    assert result.signed


def test_missing_genesis(make_config, builder, validator_key):
    with pytest.raises(NotFoundError) as info:
        run_gentx(make_config(), builder, stderr=io.StringIO())
    assert info.value.stage is Stage.READ_GENESIS


def test_module_validation_failure_propagates(make_config, builder, funded_genesis):
    class Reject(GenesisValidator):
        name = "auth"

        def validate_genesis(self, payload):
            raise ValueError("rejected by test")

    with pytest.raises(GenesisValidationError) as info:
        run_gentx(make_config(), builder, module_manager=ModuleManager([Reject()]), stderr=io.StringIO())
    assert info.value.stage is Stage.VALIDATE_GENESIS
    assert "rejected by test" in str(info.value)


def test_malformed_pubkey_override_is_input_error(make_config, builder, funded_genesis, node_home):
    with pytest.raises(InputError) as info:
        run_gentx(make_config(pubkey="bogus"), builder, stderr=io.StringIO())
    assert info.value.stage is Stage.PARSE_PUBKEY
    assert not (node_home / "config" / "node_key.json").exists()


def test_malformed_node_id_override_is_input_error(make_config, builder, funded_genesis, node_home):
    with pytest.raises(InputError) as info:
        run_gentx(make_config(node_id="node-1"), builder, stderr=io.StringIO())
    assert info.value.stage is Stage.PARSE_NODE_ID
    assert str(info.value).startswith("failed to parse node ID")
    assert not (node_home / "config" / "node_key.json").exists()


def test_overprecise_commission_rate_is_input_error(make_config, builder, funded_genesis, node_home):
    flags = {"commission_rate": "0.1000000000000000001"}
    with pytest.raises(InputError) as info:
        run_gentx(make_config(builder_flags=flags), builder, stderr=io.StringIO())
    assert info.value.stage is Stage.BUILD_MSG
    assert "too much precision" in str(info.value)
    assert _gentx_files(node_home) == []


def test_ledger_key_fails_to_sign_and_writes_nothing(make_config, builder, node_home, client_home):
    key = write_key(client_home, "validator1", "ledger")
    write_genesis(node_home, [(key["address"], [("stake", 500_000_000)])])
    with pytest.raises(SigningError) as info:
        run_gentx(make_config(), builder, stderr=io.StringIO())
    assert info.value.stage is Stage.SIGN
    assert "ledger" in str(info.value)
    assert _gentx_files(node_home) == []


def test_genesis_bond_denom_sets_default_amount(make_config, node_home, validator_key):
    write_genesis(node_home, [(validator_key["address"], [("uatom", 500_000_000)])], bond_denom="uatom")
    result = run_gentx(make_config(), StakingMsgBuilder(ip_default="127.0.0.1"), stderr=io.StringIO())
    msg = result.tx.msgs[0]
    assert msg.value.denom == "uatom"
    assert msg.value.amount == 100_000_000


def test_self_delegation_in_foreign_denom_is_rejected(make_config, builder, node_home, validator_key):
    write_genesis(
        node_home,
        [(validator_key["address"], [("stake", 500_000_000), ("uatom", 500_000_000)])],
        bond_denom="uatom",
    )
    with pytest.raises(InputError) as info:
        run_gentx(make_config(builder_flags={"amount": "100stake"}), builder, stderr=io.StringIO())
    assert info.value.stage is Stage.VALIDATE_ACCOUNT
    assert "bond denom uatom" in str(info.value)
    assert _gentx_files(node_home) == []


def test_node_id_override_names_output(make_config, builder, funded_genesis, node_home):
    result = run_gentx(make_config(node_id="12" * 20), builder, stderr=io.StringIO())
    assert result.path.name == f"gentx-{'12' * 20}.json"


def test_explicit_output_document(make_config, builder, funded_genesis, tmp_path, node_home):
    target = tmp_path / "elsewhere" / "my-gentx.json"
    result = run_gentx(make_config(output_document=str(target)), builder, stderr=io.StringIO())
    assert result.path == target
    assert target.exists()
    assert _gentx_files(node_home) == []


def test_signing_failure_is_stage_tagged(make_config, builder, funded_genesis, node_home, monkeypatch):
    def broken(self, name, data):
        raise SigningError("backend down")

    monkeypatch.setattr(Keybase, "sign", broken)
    with pytest.raises(SigningError) as info:
        run_gentx(make_config(), builder, stderr=io.StringIO())
    assert info.value.stage is Stage.SIGN
    assert str(info.value) == "failed to sign std tx: backend down"
    assert _gentx_files(node_home) == []


def test_signature_that_does_not_verify_is_rejected(make_config, builder, funded_genesis, node_home, monkeypatch):
    original = Keybase.sign

    def sign_other_bytes(self, name, data):
        return original(self, name, data + b"tampered")

    monkeypatch.setattr(Keybase, "sign", sign_other_bytes)
    with pytest.raises(SigningError) as info:
        run_gentx(make_config(), builder, stderr=io.StringIO())
    assert info.value.stage is Stage.SIGN
    assert "does not verify" in str(info.value)
    assert _gentx_files(node_home) == []
