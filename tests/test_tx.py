import io
import json

import pytest

pytest.importorskip("nacl")

from gentx import signature_utils
from gentx.codec import default_codec
from gentx.coins import Coin
from gentx.errors import DecodeError, SigningError
from gentx.keys import Keybase
from gentx.node_identity import NodeIdentity
from gentx.tx import TxBuilder, decode_tx, encode_tx, print_unsigned_std_tx


@pytest.fixture
def msg(builder, validator_key):
    identity = NodeIdentity(node_id="cd" * 20, consensus_pubkey=bytes(32))
    message, _ = builder.build_create_validator_msg(identity, "test-chain", validator_key["address"], {})
    return message


@pytest.fixture
def tx_builder(client_home, validator_key):
    return TxBuilder(
        codec=default_codec(),
        chain_id="test-chain",
        keybase=Keybase.from_dir(client_home),
        fees=[Coin("stake", 5)],
        memo="memo",
    )


def test_unsigned_buffer_round_trips_byte_identical(tx_builder, msg):
    buf = io.BytesIO()
    print_unsigned_std_tx(tx_builder, [msg], buf)
    data = buf.getvalue()
    assert data.endswith(b"\n")
    decoded = decode_tx(tx_builder.codec, data)
    assert encode_tx(tx_builder.codec, decoded) + b"\n" == data


def test_unsigned_document_shape(tx_builder, msg):
    tx = tx_builder.build_unsigned([msg])
    doc = json.loads(encode_tx(tx_builder.codec, tx))
    assert doc["type"] == "cosmos-sdk/StdTx"
    assert doc["value"]["signatures"] is None
    assert doc["value"]["memo"] == "memo"
    assert doc["value"]["fee"] == {"amount": [{"denom": "stake", "amount": "5"}], "gas": "200000"}
    assert [m["type"] for m in doc["value"]["msg"]] == ["cosmos-sdk/MsgCreateValidator"]


def test_sign_produces_one_verifiable_signature(tx_builder, msg, validator_key):
    unsigned = tx_builder.build_unsigned([msg])
    signed = tx_builder.sign("validator1", unsigned)
    assert signed.msgs == unsigned.msgs
    assert len(signed.signatures) == 1
    sig = signed.signatures[0]
    assert sig.pub_key == validator_key["public"]
    assert signature_utils.verify_signature(tx_builder.sign_bytes(signed), sig.signature, sig.pub_key)
    # Signing again replaces rather than appends.
    assert len(tx_builder.sign("validator1", signed).signatures) == 1


def test_sign_bytes_depend_on_chain_id(tx_builder, msg):
    tx = tx_builder.build_unsigned([msg])
    other = TxBuilder(codec=tx_builder.codec, chain_id="other-chain", keybase=tx_builder.keybase)
    assert tx_builder.sign_bytes(tx) != other.sign_bytes(tx)


def test_sign_without_chain_id(tx_builder, msg):
    tx_builder.chain_id = ""
    with pytest.raises(SigningError):
        tx_builder.sign("validator1", tx_builder.build_unsigned([msg]))


@pytest.mark.parametrize(
    "data",
    [
        b"{",
        b"{}",
        b'{"type": "cosmos-sdk/StdTx", "value": {"msg": [{"type": "unknown", "value": {}}], "fee": {"gas": "1"}}}',
        b'{"type": "cosmos-sdk/StdTx", "value": {"msg": [], "fee": {}}}',
    ],
)
def test_decode_rejects_malformed(data):
    with pytest.raises(DecodeError):
        decode_tx(default_codec(), data)


def test_build_requires_messages(tx_builder):
    with pytest.raises(ValueError):
        tx_builder.build_unsigned([])
