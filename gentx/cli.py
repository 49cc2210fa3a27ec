import argparse
import logging
import sys
from typing import Iterable, List, Optional

from . import keys
from .config import DEFAULT_CLI_HOME, DEFAULT_GAS, DEFAULT_NODE_HOME, GentxConfig
from .errors import FlagConflictError, GentxError
from .staking import Flag, MsgBuildingHelpers, StakingMsgBuilder
from .workflow import run_gentx

# Flags owned by the gentx command itself; builders may not reuse them.
FIXED_FLAGS = (
    "home",
    "home-client",
    "name",
    "node-id",
    "pubkey",
    "output-document",
    "required-balance",
    "gas",
    "fees",
    "memo",
)


def check_flag_conflicts(contributed: Iterable[Flag]) -> None:
    """Raise :class:`FlagConflictError` if a contributed flag shadows another flag."""
    seen = set(FIXED_FLAGS)
    dests = {name.replace("-", "_") for name in FIXED_FLAGS}
    for flag in contributed:
        if flag.name in seen or flag.dest in dests:
            raise FlagConflictError(f"flag --{flag.name} is already defined")
        seen.add(flag.name)
        dests.add(flag.dest)


def cmd_gentx(args: argparse.Namespace) -> None:
    builder: MsgBuildingHelpers = args.builder
    flags = {f.dest: getattr(args, f.dest) for f in builder.flags()}
    config = GentxConfig(
        name=args.name,
        home=args.home,
        client_home=args.home_client,
        node_id=args.node_id,
        pubkey=args.pubkey,
        output_document=args.output_document,
        required_balance=args.required_balance,
        gas=args.gas,
        fees=args.fees,
        memo=args.memo,
        builder_flags=flags,
    )
    try:
        run_gentx(config, builder)
    except GentxError as exc:
        raise SystemExit(f"Error: {exc}")


def cmd_keys_list(args: argparse.Namespace) -> None:
    try:
        keybase = keys.Keybase.from_dir(args.home_client)
        records = keybase.list()
    except GentxError as exc:
        raise SystemExit(f"Error: {exc}")
    for record in records:
        print(f"{record.name}\t{record.key_type.value}\t{record.address}")


def build_parser(builder: Optional[MsgBuildingHelpers] = None) -> argparse.ArgumentParser:
    builder = builder or StakingMsgBuilder()
    contributed = builder.flags()
    check_flag_conflicts(contributed)

    parser = argparse.ArgumentParser(prog="gentxd", description="Genesis transaction tooling")
    parser.add_argument("--log-level", default="WARNING", help="Logging level")
    sub = parser.add_subparsers(dest="command", required=True)

    p_gentx = sub.add_parser(
        "gentx",
        help="Generate a genesis tx carrying a self delegation",
        description=(
            "Create a genesis transaction that registers this node as a validator.\n\n"
            "The following default parameters are included:\n" + builder.defaults_description()
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p_gentx.add_argument("--home", default=str(DEFAULT_NODE_HOME), help="node's home directory")
    p_gentx.add_argument("--home-client", default=str(DEFAULT_CLI_HOME), help="client's home directory")
    p_gentx.add_argument("--name", required=True, help="name of private key with which to sign the gentx")
    p_gentx.add_argument("--node-id", default="", help="node ID, read from node_key.json if empty")
    p_gentx.add_argument("--pubkey", default="", help="bech32 consensus public key, read from priv_validator_key.json if empty")
    p_gentx.add_argument(
        "--output-document",
        default="",
        help="write the genesis transaction JSON document to the given file instead of the default location",
    )
    p_gentx.add_argument(
        "--required-balance",
        default="",
        help="coins the account must hold in genesis (defaults to the self delegation amount)",
    )
    p_gentx.add_argument("--gas", type=int, default=DEFAULT_GAS, help="gas limit of the transaction")
    p_gentx.add_argument("--fees", default="", help="fees to pay along with the transaction")
    p_gentx.add_argument("--memo", default="", help="memo (defaults to <node-id>@<ip>:26656)")
    # Unset builder flags stay None so the builder can pick chain-specific defaults.
    for flag in contributed:
        p_gentx.add_argument(f"--{flag.name}", dest=flag.dest, type=flag.type, default=None, help=flag.help)
    p_gentx.set_defaults(func=cmd_gentx, builder=builder)

    p_keys = sub.add_parser("keys", help="Inspect the client key store")
    keys_sub = p_keys.add_subparsers(dest="keys_cmd", required=True)
    p_list = keys_sub.add_parser("list", help="List stored keys")
    p_list.add_argument("--home-client", default=str(DEFAULT_CLI_HOME), help="client's home directory")
    p_list.set_defaults(func=cmd_keys_list)

    return parser


def main(argv: Optional[List[str]] = None, builder: Optional[MsgBuildingHelpers] = None) -> None:
    try:
        parser = build_parser(builder)
    except FlagConflictError as exc:
        raise SystemExit(f"Error: {exc}")
    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), stream=sys.stderr)
    args.func(args)


if __name__ == "__main__":  # pragma: no cover - manual execution
    main()

__all__ = ["main", "build_parser", "check_flag_conflicts", "cmd_gentx", "cmd_keys_list", "FIXED_FLAGS"]
