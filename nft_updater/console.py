"""Interactive console for single and batch NFT updates."""

from __future__ import annotations

import getpass
import json
from pathlib import Path
from typing import Any, Callable

from .config import PRIVATE_KEY_VAR, ConfigurationError, UpdaterConfig
from .envstore import EnvFileStore
from .errors import InvalidKeyEncoding, NFTUpdaterError
from .fields import UPDATE_FIELDS, FieldKind, UpdateField
from .keys import KeyMaterial
from .pipeline import (
    SigningCredentials,
    SubmissionResult,
    UpdatePipeline,
    build_pipeline,
    describe_failure,
    load_batch_file,
)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_PARTIAL = 3

BANNER = r"""
  _   _ _____ _____   _   _           _       _
 | \ | |  ___|_   _| | | | |_ __   __| | __ _| |_ ___ _ __
 |  \| | |_    | |   | | | | '_ \ / _` |/ _` | __/ _ \ '__|
 | |\  |  _|   | |   | |_| | |_) | (_| | (_| | ||  __/ |
 |_| \_|_|     |_|    \___/| .__/ \__,_|\__,_|\__\___|_|
                           |_|
    Welcome to the NFT Updater CLI!
"""

PipelineFactory = Callable[[UpdaterConfig], UpdatePipeline]


def prompt_str(prompt: str, default: str | None = None) -> str:
    """Prompt for a string value, honoring an optional default."""

    suffix = f" [{default}]" if default else ""
    while True:
        raw = input(f"{prompt}{suffix}: ").strip()
        if raw:
            return raw
        if default is not None:
            return default
        print("Please enter a value or provide a default.")


def prompt_optional(prompt: str, default: str = "") -> str:
    suffix = f" [{default}]" if default else ""
    raw = input(f"{prompt} (optional, leave blank if not updating){suffix}: ").strip()
    return raw or default


def prompt_json(prompt: str) -> str:
    """Prompt for optional JSON, re-asking until the input parses."""

    while True:
        raw = prompt_optional(prompt)
        if not raw:
            return ""
        try:
            json.loads(raw)
        except ValueError:
            print("Invalid JSON format!")
            continue
        return raw


def prompt_secret(prompt: str) -> str:
    return getpass.getpass(f"{prompt}: ").strip()


def _confirm(prompt: str, *, default: bool = False) -> bool:
    hint = "[Y/n]" if default else "[y/N]"
    raw = input(f"{prompt} {hint}: ").strip().lower()
    if not raw:
        return default
    return raw.startswith("y")


def _prompt_choice(prompt: str, choices: dict[str, str]) -> str:
    """Return the key of the chosen option; accepts the key or the label."""

    options = " ".join(f"[{key}] {label}" for key, label in choices.items())
    while True:
        raw = input(f"{prompt} {options}: ").strip().lower()
        for key, label in choices.items():
            if raw in {key.lower(), label.lower()}:
                return key
        print("Invalid selection, please try again.")


def prompt_for_keys(config: UpdaterConfig) -> SigningCredentials:
    """Ask for the update authority key and an optional separate fee payer.

    The normalised key is written to the ``.env`` file so later runs (and
    batch mode) can reuse it.
    """

    raw_key = prompt_secret(
        "Enter your private key (Phantom base58 export, keypair JSON array, or base64)"
    )
    primary = KeyMaterial.from_input(raw_key, strict_arrays=config.strict_key_arrays)
    EnvFileStore(config.env_file).upsert(PRIVATE_KEY_VAR, primary.canonical)
    print(f"Private key saved to {config.env_file} as {PRIVATE_KEY_VAR}.")

    if not _confirm("Use a different fee payer address and private key for the fee?"):
        return SigningCredentials(primary_key=primary)

    fee_payer_address = prompt_str("Enter the fee payer address")
    fee_payer_key = KeyMaterial.from_input(
        prompt_secret("Enter the fee payer private key"),
        strict_arrays=config.strict_key_arrays,
    )
    return SigningCredentials(
        primary_key=primary,
        fee_payer_address=fee_payer_address,
        fee_payer_key=fee_payer_key,
    )


def _prompt_field(spec: UpdateField, credentials: SigningCredentials) -> str:
    if spec.required:
        return prompt_str(spec.prompt)
    if spec.kind is FieldKind.JSON_LENIENT:
        return prompt_json(spec.prompt)
    if spec.name == "fee_payer_address":
        return prompt_optional(spec.prompt, credentials.fee_payer_address or "")
    if spec.kind is FieldKind.FILE_PATH:
        while True:
            value = prompt_optional(spec.prompt)
            if not value or Path(value).expanduser().is_file():
                return value
            print("File does not exist!")
    return prompt_optional(spec.prompt)


def prompt_update_fields(credentials: SigningCredentials) -> dict[str, Any]:
    """Collect one update request from the user."""

    return {spec.name: _prompt_field(spec, credentials) for spec in UPDATE_FIELDS}


def _print_result(result: SubmissionResult) -> None:
    label = result.token_address or f"record {result.index}"
    if result.ok:
        print(f"  [{result.index}] {label}: {result.signature}")
    else:
        print(f"  [{result.index}] {label}: FAILED at {result.stage}: {result.error}")


def run_single_update(
    config: UpdaterConfig, pipeline_factory: PipelineFactory = build_pipeline
) -> int:
    enter_keys = _confirm(
        "Do you want to enter your private keys now? They are only stored in your local "
        ".env file and are used to sign the update transaction.",
        default=True,
    )
    try:
        credentials = (
            prompt_for_keys(config) if enter_keys else SigningCredentials.from_config(config)
        )
    except InvalidKeyEncoding as exc:
        print(f"Error converting private key: {exc}")
        return EXIT_FAILURE

    parameters = prompt_update_fields(credentials)
    try:
        signature = pipeline_factory(config).update_nft(parameters, credentials)
    except (NFTUpdaterError, ConfigurationError) as exc:
        print(f"Update request failed: {describe_failure(exc)}")
        return EXIT_FAILURE
    print(f"Transaction Signature: {signature}")
    return EXIT_OK


def run_batch_update(
    config: UpdaterConfig, pipeline_factory: PipelineFactory = build_pipeline
) -> int:
    while True:
        path = prompt_str("Enter the path to your JSON file")
        if Path(path).expanduser().is_file():
            break
        print("File does not exist!")

    try:
        records = load_batch_file(path)
        credentials = SigningCredentials.from_config(config)
        pipeline = pipeline_factory(config)
    except (NFTUpdaterError, ConfigurationError) as exc:
        print(f"Error: {exc}")
        return EXIT_FAILURE

    results = pipeline.run_batch(records, credentials, progress_callback=_print_result)
    failed = [result for result in results if not result.ok]
    print(f"{len(results) - len(failed)} of {len(results)} updates submitted.")
    return EXIT_PARTIAL if failed else EXIT_OK


def console_main(
    config: UpdaterConfig, pipeline_factory: PipelineFactory = build_pipeline
) -> int:
    """Run the interactive flow and return a process exit code."""

    print(BANNER)
    mode = _prompt_choice(
        "Would you like to update a single NFT or multiple NFTs?",
        {"1": "Single", "2": "Multiple"},
    )
    if mode == "1":
        return run_single_update(config, pipeline_factory)
    return run_batch_update(config, pipeline_factory)
