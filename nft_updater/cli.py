"""Command-line interface for the NFT updater.

Without a subcommand the interactive console is launched. ``update`` and
``batch`` run the same pipeline non-interactively, and ``normalize-key``
converts a wallet export to the canonical base64 form used for signing.
"""

from __future__ import annotations

import argparse
import getpass
import json
import logging
import sys
from typing import Any, Sequence

from .config import ConfigurationError, UpdaterConfig, load_updater_config
from .console import EXIT_FAILURE, EXIT_OK, EXIT_PARTIAL, console_main
from .errors import InvalidKeyEncoding, NFTUpdaterError
from .keys import KeyMaterial
from .pipeline import SigningCredentials, build_pipeline, describe_failure, load_batch_file

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

COMPACT_JSON_SEPARATORS = (",", ":")
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130

# (flag, field name, help)
UPDATE_FLAGS: tuple[tuple[str, str, str], ...] = (
    ("--network", "network", "Network: devnet, testnet or mainnet-beta"),
    ("--token-address", "token_address", "Mint address of the NFT"),
    ("--update-authority-address", "update_authority_address", "Update authority address"),
    ("--name", "name", "New NFT name"),
    ("--symbol", "symbol", "New NFT symbol"),
    ("--description", "description", "New NFT description"),
    ("--attributes", "attributes", "Attributes as JSON"),
    ("--royalty", "royalty", "Royalty percentage (0-100)"),
    ("--image", "imageFilePath", "Path to a new image file"),
    ("--data", "data", "Path to a digital data file"),
    ("--service-charge", "service_charge", "Service charge as JSON"),
    ("--fee-payer-address", "fee_payer_address", "Address that pays the transaction fee"),
)
REQUIRED_UPDATE_FLAGS = {"--network", "--token-address", "--update-authority-address"}


class CLIError(RuntimeError):
    """Raised when CLI arguments are invalid."""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nft-updater", description="Update NFT metadata and sign the transaction locally"
    )
    parser.add_argument("--config", default=None, help="YAML config file (default: ~/.nft-updater.yaml)")
    parser.add_argument("--env-file", default=None, help=".env file to read and update (default: ./.env)")
    parser.add_argument("--api-url", default=None, help="Override the update API URL")
    parser.add_argument("--rpc-node", default=None, help="Override the Solana RPC endpoint")
    parser.add_argument(
        "--strict-key-arrays",
        action="store_true",
        default=None,
        help="Reject bracketed keys that are not 64-byte arrays instead of passing them through",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("console", help="Interactive single or batch update (default)")

    update_parser = subparsers.add_parser("update", help="Update one NFT non-interactively")
    for flag, field_name, help_text in UPDATE_FLAGS:
        update_parser.add_argument(
            flag, dest=field_name, default="", required=flag in REQUIRED_UPDATE_FLAGS, help=help_text
        )
    update_parser.add_argument(
        "--prompt-key",
        action="store_true",
        help="Read the update authority private key from a hidden prompt instead of PRIVATE_KEY_BASE64",
    )

    batch_parser = subparsers.add_parser("batch", help="Update every record in a JSON array file")
    batch_parser.add_argument("path", help="Path to a JSON array of update records")
    batch_parser.add_argument(
        "--json", action="store_true", help="Print per-record results as JSON"
    )

    normalize_parser = subparsers.add_parser(
        "normalize-key", help="Convert a private key to canonical base64 and show its address"
    )
    normalize_parser.add_argument(
        "key", nargs="?", default=None, help="Key to convert (prompted for when omitted)"
    )
    return parser


def _config_from_args(args: argparse.Namespace) -> UpdaterConfig:
    overrides: dict[str, Any] = {}
    if args.api_url:
        overrides["api_url"] = args.api_url
    if args.rpc_node:
        overrides["rpc_node"] = args.rpc_node
    if args.strict_key_arrays is not None:
        overrides["strict_key_arrays"] = args.strict_key_arrays
    return load_updater_config(
        config_path=args.config, overrides=overrides, env_file=args.env_file
    )


def cmd_update(args: argparse.Namespace, config: UpdaterConfig) -> int:
    parameters = {field_name: getattr(args, field_name) for _flag, field_name, _help in UPDATE_FLAGS}
    credentials = SigningCredentials.from_config(config)
    if args.prompt_key:
        credentials = SigningCredentials(
            primary_key=KeyMaterial.from_input(
                getpass.getpass("Private key: ").strip(), strict_arrays=config.strict_key_arrays
            ),
            fee_payer_key=credentials.fee_payer_key,
        )
    signature = build_pipeline(config).update_nft(parameters, credentials)
    print(json.dumps({"signature": signature}, separators=COMPACT_JSON_SEPARATORS))
    return EXIT_OK


def cmd_batch(args: argparse.Namespace, config: UpdaterConfig) -> int:
    records = load_batch_file(args.path)
    credentials = SigningCredentials.from_config(config)
    results = build_pipeline(config).run_batch(records, credentials)
    if args.json:
        print(json.dumps([result.to_jsonable() for result in results], indent=2))
    else:
        for result in results:
            status = result.signature if result.ok else f"FAILED ({result.stage}): {result.error}"
            print(f"[{result.index}] {result.token_address or '-'}: {status}")
    return EXIT_PARTIAL if any(not result.ok for result in results) else EXIT_OK


def cmd_normalize_key(args: argparse.Namespace, config: UpdaterConfig) -> int:
    raw = args.key if args.key is not None else getpass.getpass("Private key: ").strip()
    if not raw:
        raise CLIError("no key provided")
    material = KeyMaterial.from_input(raw, strict_arrays=config.strict_key_arrays)
    print(json.dumps(
        {
            "encoding": material.encoding.value,
            "canonical": material.canonical,
            "address": str(material.to_keypair().pubkey()),
        },
        indent=2,
    ))
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:  # argparse exits on --help and usage errors
        return EXIT_USAGE if exc.code else EXIT_OK

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        config = _config_from_args(args)
        if args.command in (None, "console"):
            return console_main(config)
        if args.command == "update":
            return cmd_update(args, config)
        if args.command == "batch":
            return cmd_batch(args, config)
        if args.command == "normalize-key":
            return cmd_normalize_key(args, config)
        raise CLIError(f"Unknown command: {args.command}")  # pragma: no cover - argparse enforces choices
    except KeyboardInterrupt:  # pragma: no cover - interactive use
        logger.info("Interrupted by user")
        return EXIT_INTERRUPTED
    except InvalidKeyEncoding as exc:
        print(f"error: invalid private key: {exc}", file=sys.stderr)
        return EXIT_FAILURE
    except (CLIError, ConfigurationError, NFTUpdaterError) as exc:
        print(f"error: {describe_failure(exc)}", file=sys.stderr)
        return EXIT_FAILURE


def run() -> None:
    sys.exit(main(sys.argv[1:]))


if __name__ == "__main__":
    run()
