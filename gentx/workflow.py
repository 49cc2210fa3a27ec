"""The ``gentx`` workflow: identity, genesis checks, message, signature, output.

Stages run strictly in order and the first failure aborts the run.  Nothing
is written before the final output file, except the node identity files,
which are created once and reused afterwards.
"""

from __future__ import annotations

import io
import logging
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Dict, Iterator, List, Optional, Type

from . import signature_utils
from .codec import Codec, default_codec
from .coins import Coin, parse_coins
from .config import GentxConfig
from .errors import (
    GenesisValidationError,
    GentxError,
    InputError,
    NotFoundError,
    OutputError,
    SigningError,
    Stage,
)
from .genesis import genesis_doc_from_file, load_app_state, validate_account_in_genesis
from .keys import Keybase, KeyRecord, KeyType
from .modules import (
    AuthAccountsIterator,
    GenesisAccountsIterator,
    ModuleManager,
    bond_denom,
    default_module_manager,
)
from .node_identity import (
    apply_overrides,
    initialize_node_validator_files,
    parse_node_id_override,
    parse_pubkey_override,
)
from .output import make_output_filepath, write_gentx
from .staking import MsgBuildingHelpers
from .tx import StdTx, TxBuilder, decode_tx, print_unsigned_std_tx

logger = logging.getLogger(__name__)

# Category used when a stage fails with a plain exception.
_STAGE_CATEGORY: Dict[Stage, Type[GentxError]] = {
    Stage.PARSE_PUBKEY: InputError,
    Stage.PARSE_NODE_ID: InputError,
    Stage.INIT_NODE_FILES: OutputError,
    Stage.READ_GENESIS: NotFoundError,
    Stage.UNMARSHAL_GENESIS: GenesisValidationError,
    Stage.VALIDATE_GENESIS: GenesisValidationError,
    Stage.INIT_KEYBASE: SigningError,
    Stage.READ_KEY: SigningError,
    Stage.VALIDATE_ACCOUNT: GenesisValidationError,
    Stage.BUILD_MSG: InputError,
    Stage.PRINT_UNSIGNED: SigningError,
    Stage.READ_UNSIGNED: SigningError,
    Stage.SIGN: SigningError,
    Stage.OUTPUT_PATH: OutputError,
    Stage.WRITE: OutputError,
}

OFFLINE_NOTICE = "Offline key passed in. Use `tx sign` command to sign:"


@contextmanager
def stage_context(stage: Stage) -> Iterator[None]:
    """Tag any failure inside the block with ``stage``."""
    logger.debug("stage: %s", stage.name.lower())
    try:
        yield
    except GentxError as exc:
        if exc.stage is not None:
            raise
        raise exc.with_stage(stage) from exc
    except (OSError, ValueError, KeyError, TypeError) as exc:
        raise _STAGE_CATEGORY[stage](str(exc), stage=stage) from exc


@dataclass(frozen=True)
class SignOutcome:
    tx: StdTx
    signed: bool


@dataclass(frozen=True)
class GentxResult:
    path: Path
    tx: StdTx
    signed: bool


def sign_gentx(builder: TxBuilder, key: KeyRecord, msg: object) -> SignOutcome:
    """Wrap ``msg`` in a transaction and sign it with ``key`` if possible.

    Offline and multisig keys yield the unsigned transaction.  Otherwise the
    unsigned transaction is encoded, decoded back and the decoded copy is
    signed, so the signature covers exactly what gets written.
    """
    if key.key_type in (KeyType.OFFLINE, KeyType.MULTI):
        with stage_context(Stage.PRINT_UNSIGNED):
            tx = builder.build_unsigned([msg])
        logger.info("key %s is %s, leaving transaction unsigned", key.name, key.key_type.value)
        return SignOutcome(tx=tx, signed=False)

    buf = io.BytesIO()
    with stage_context(Stage.PRINT_UNSIGNED):
        unsigned = print_unsigned_std_tx(builder, [msg], buf)

    with stage_context(Stage.READ_UNSIGNED):
        decoded = decode_tx(builder.codec, buf.getvalue())

    with stage_context(Stage.SIGN):
        signed = builder.sign(key.name, decoded)
        if signed.msgs != unsigned.msgs:
            raise SigningError("signed transaction does not carry the generated message")
        if len(signed.signatures) != 1:
            raise SigningError(f"expected exactly one signature, got {len(signed.signatures)}")
        sig = signed.signatures[0]
        if not signature_utils.verify_signature(builder.sign_bytes(signed), sig.signature, sig.pub_key):
            raise SigningError(f"signature by key {key.name} does not verify")
    return SignOutcome(tx=signed, signed=True)


def _self_delegation(config: GentxConfig, builder: MsgBuildingHelpers, denom: str) -> List[Coin]:
    coins = builder.self_delegation(config.builder_flags)
    for coin in coins:
        if coin.denom != denom:
            raise InputError(f"self delegation {coin} is not paid in the chain's bond denom {denom}")
    return coins


def _required_coins(config: GentxConfig, self_delegation: List[Coin]) -> List[Coin]:
    if config.required_balance:
        try:
            return parse_coins(config.required_balance)
        except ValueError as exc:
            raise InputError(f"invalid required balance: {exc}") from exc
    return self_delegation


def run_gentx(
    config: GentxConfig,
    msg_builder: MsgBuildingHelpers,
    module_manager: Optional[ModuleManager] = None,
    accounts: Optional[GenesisAccountsIterator] = None,
    codec: Optional[Codec] = None,
    stderr: Optional[IO[str]] = None,
) -> GentxResult:
    """Generate, sign and write the genesis transaction described by ``config``."""
    module_manager = module_manager or default_module_manager()
    accounts = accounts or AuthAccountsIterator()
    codec = codec or default_codec()
    stderr = stderr or sys.stderr

    with stage_context(Stage.PARSE_PUBKEY):
        pubkey_override = parse_pubkey_override(config)

    with stage_context(Stage.PARSE_NODE_ID):
        node_id_override = parse_node_id_override(config)

    with stage_context(Stage.INIT_NODE_FILES):
        identity = initialize_node_validator_files(config)
    identity = apply_overrides(identity, node_id_override, pubkey_override)
    logger.info("node ID %s", identity.node_id)

    with stage_context(Stage.READ_GENESIS):
        genesis_doc = genesis_doc_from_file(config.genesis_file)

    with stage_context(Stage.UNMARSHAL_GENESIS):
        genesis_state = load_app_state(genesis_doc)

    with stage_context(Stage.VALIDATE_GENESIS):
        module_manager.validate_genesis(genesis_state)
        denom = bond_denom(genesis_state)
    msg_builder = msg_builder.with_bond_denom(denom)

    with stage_context(Stage.INIT_KEYBASE):
        keybase = Keybase.from_dir(config.client_home)

    with stage_context(Stage.READ_KEY):
        key = keybase.get(config.name)

    with stage_context(Stage.VALIDATE_ACCOUNT):
        required = _required_coins(config, _self_delegation(config, msg_builder, denom))
        validate_account_in_genesis(genesis_state, accounts, key.address, required)

    with stage_context(Stage.BUILD_MSG):
        msg, memo = msg_builder.build_create_validator_msg(
            identity, genesis_doc.chain_id, key.address, config.builder_flags
        )
        fees = parse_coins(config.fees)

    tx_builder = TxBuilder(
        codec=codec,
        chain_id=genesis_doc.chain_id,
        keybase=keybase,
        gas=config.gas,
        fees=fees,
        memo=config.memo or memo,
    )
    outcome = sign_gentx(tx_builder, key, msg)

    with stage_context(Stage.OUTPUT_PATH):
        if config.output_document:
            output = Path(config.output_document)
        else:
            output = make_output_filepath(config.home, identity.node_id)

    with stage_context(Stage.WRITE):
        write_gentx(codec, output, outcome.tx)

    if outcome.signed:
        print(f'Genesis transaction written to "{output}"', file=stderr)
    else:
        print(f'{OFFLINE_NOTICE} "{output}"', file=stderr)
    return GentxResult(path=output, tx=outcome.tx, signed=outcome.signed)


__all__ = [
    "run_gentx",
    "sign_gentx",
    "stage_context",
    "SignOutcome",
    "GentxResult",
    "OFFLINE_NOTICE",
]
