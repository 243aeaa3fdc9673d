"""
web3wallet - Ethereum HD wallet command line.

Entry point for the `web3wallet` console script.

    web3wallet create --words 24 --save main
    web3wallet import --private-key 0x... --save hot
    web3wallet load main --derive 3
    web3wallet list
    web3wallet derive --from-file main --start 3 --count 5
"""

import argparse
import getpass
import hmac
import logging
import os
import sys
from typing import Optional, Sequence

from . import __version__
from .config import ENV_PASSWORD, WalletConfig, load_config
from .errors import InvalidArguments, WalletError
from .models.keystore import SUPPORTED_KDFS
from .services.logging import configure_logging
from .services.output import OUTPUT_FORMATS, OUTPUT_JSON, OUTPUT_TABLE, render, render_error
from .wallet.hd import DEFAULT_BASE_PATH
from .wallet.manager import WalletManager

logger = logging.getLogger(__name__)

LIST_COLUMNS = ("alias", "address", "network", "wallet_type", "created_at")


# ============================================
# Argument Parsing
# ============================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="web3wallet",
        description="Ethereum HD wallet: BIP-39 mnemonics, BIP-44 derivation, encrypted keystores",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--output", "-o", choices=OUTPUT_FORMATS, default=OUTPUT_TABLE,
                        help="Output format (default: table)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--config", metavar="PATH", help="Settings file (JSON)")
    parser.add_argument("--wallet-dir", metavar="DIR", help="Wallet directory override")

    commands = parser.add_subparsers(dest="command", required=True)

    create = commands.add_parser("create", help="Create a new HD wallet")
    create.add_argument("--words", type=int, default=12, help="Mnemonic length: 12 or 24")
    create.add_argument("--network", help="Network name (default from config)")
    create.add_argument("--save", metavar="ALIAS", help="Save the wallet as ALIAS.json")
    create.add_argument("--force", action="store_true", help="Overwrite an existing wallet")
    create.add_argument("--kdf", choices=SUPPORTED_KDFS, help="Key derivation function")

    imp = commands.add_parser("import", help="Import a mnemonic or private key")
    source = imp.add_mutually_exclusive_group(required=True)
    source.add_argument("--mnemonic", help="BIP-39 mnemonic ('-' reads it from stdin)")
    source.add_argument("--private-key", help="Hex private key ('-' reads it from stdin)")
    imp.add_argument("--network", help="Network name (default from config)")
    imp.add_argument("--save", metavar="ALIAS", help="Save the wallet as ALIAS.json")
    imp.add_argument("--force", action="store_true", help="Overwrite an existing wallet")
    imp.add_argument("--kdf", choices=SUPPORTED_KDFS, help="Key derivation function")

    load = commands.add_parser("load", help="Load a saved wallet")
    load.add_argument("name", help="Wallet alias or file name")
    load.add_argument("--address-only", action="store_true",
                      help="Show metadata only (no password needed)")
    load.add_argument("--derive", type=int, metavar="INDEX", help="Also derive this address index")
    load.add_argument("--show-secret", action="store_true",
                      help="Print the mnemonic or private key (sensitive!)")

    commands.add_parser("list", help="List saved wallets")

    derive = commands.add_parser("derive", help="Derive addresses")
    source = derive.add_mutually_exclusive_group(required=True)
    source.add_argument("--mnemonic", help="BIP-39 mnemonic ('-' reads it from stdin)")
    source.add_argument("--from-file", metavar="NAME", help="Saved HD wallet alias")
    derive.add_argument("--start", type=int, default=0, help="First address index (default 0)")
    derive.add_argument("--count", type=int, default=1, help="Number of addresses (default 1)")
    derive.add_argument("--path", default=DEFAULT_BASE_PATH,
                        help=f"Base derivation path (default {DEFAULT_BASE_PATH})")

    return parser


# ============================================
# Secret Input
# ============================================

def _read_secret_arg(value: Optional[str]) -> Optional[str]:
    """'-' means read the value from stdin (keeps secrets out of argv)."""
    if value == "-":
        return sys.stdin.readline().strip()
    return value


def read_password(confirm: bool = False) -> str:
    """
    Password from WEB3WALLET_PASSWORD, otherwise an interactive prompt.

    Raises:
        InvalidArguments: the confirmation does not match
    """
    env_password = os.environ.get(ENV_PASSWORD)
    if env_password:
        return env_password

    password = getpass.getpass("Password: ")
    if confirm:
        again = getpass.getpass("Confirm password: ")
        if not hmac.compare_digest(password.encode("utf-8"), again.encode("utf-8")):
            raise InvalidArguments("Passwords do not match")
    return password


# ============================================
# Commands
# ============================================

def cmd_create(manager: WalletManager, args: argparse.Namespace) -> str:
    password = read_password(confirm=True) if args.save else None
    result = manager.create(
        word_count=args.words,
        network=args.network,
        save_alias=args.save,
        password=password,
        force=args.force,
        kdf=args.kdf,
    )
    output = render(result, args.output)
    if args.output == OUTPUT_TABLE:
        output += "\n\nWrite the mnemonic down and keep it offline. It will not be shown again."
    return output


def cmd_import(manager: WalletManager, args: argparse.Namespace) -> str:
    mnemonic = _read_secret_arg(args.mnemonic)
    private_key = _read_secret_arg(args.private_key)
    password = read_password(confirm=True) if args.save else None
    result = manager.import_wallet(
        mnemonic=mnemonic,
        private_key=private_key,
        network=args.network,
        save_alias=args.save,
        password=password,
        force=args.force,
        kdf=args.kdf,
    )
    return render(result, args.output)


def cmd_load(manager: WalletManager, args: argparse.Namespace) -> str:
    password = None if args.address_only else read_password()
    result = manager.load(
        args.name,
        password=password,
        address_only=args.address_only,
        derive_index=args.derive,
        reveal_secret=args.show_secret,
    )
    return render(result, args.output)


def cmd_list(manager: WalletManager, args: argparse.Namespace) -> str:
    return render(manager.list_wallets(), args.output, columns=LIST_COLUMNS,
                  shorten_addresses=True)


def cmd_derive(manager: WalletManager, args: argparse.Namespace) -> str:
    mnemonic = _read_secret_arg(args.mnemonic)
    password = read_password() if args.from_file else None
    addresses = manager.derive(
        mnemonic=mnemonic,
        name=args.from_file,
        password=password,
        start_index=args.start,
        count=args.count,
        base_path=args.path,
    )
    return render(addresses, args.output, columns=("index", "address", "path"))


COMMANDS = {
    "create": cmd_create,
    "import": cmd_import,
    "load": cmd_load,
    "list": cmd_list,
    "derive": cmd_derive,
}


def _build_config(args: argparse.Namespace) -> WalletConfig:
    config = load_config(args.config)
    if args.wallet_dir:
        config = WalletConfig(**{**config.to_dict(), "wallet_dir": args.wallet_dir})
    return config


def _print_error(error: WalletError, fmt: str) -> None:
    # JSON envelopes go to stdout so scripts can parse failures too
    if fmt == OUTPUT_JSON:
        print(render_error(error, fmt))
    else:
        print(render_error(error, fmt), file=sys.stderr)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Application entry point. Returns the process exit code."""
    args = build_parser().parse_args(argv)

    try:
        config = _build_config(args)
    except WalletError as e:
        _print_error(e, args.output)
        return 1
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    configure_logging(logging.DEBUG if args.verbose else config.log_level_value)
    manager = WalletManager(config)

    try:
        output = COMMANDS[args.command](manager, args)
    except WalletError as e:
        logger.debug("%s failed: %s (%s)", args.command, e.code, e.kind)
        _print_error(e, args.output)
        return 1
    except KeyboardInterrupt:
        print("\nAborted.", file=sys.stderr)
        return 130

    print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
