"""Update pipeline: request a transaction, sign it, submit it."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping, Protocol, Sequence

from .api_client import ShyftUpdateClient
from .config import ConfigurationError, UpdaterConfig
from .errors import (
    BatchFileError,
    FieldValueError,
    InvalidKeyEncoding,
    MalformedTransaction,
    NFTUpdaterError,
    RemoteRequestFailed,
)
from .fields import is_blank
from .keys import KeyMaterial
from .rpc_client import RPCError, RPCTransportError, SolanaRPCClient, format_rpc_hint
from .signer import TransactionSigner

logger = logging.getLogger(__name__)


class UpdateRequester(Protocol):
    def request_update(self, parameters: Mapping[str, Any]) -> str: ...


@dataclass(frozen=True)
class SigningCredentials:
    """Normalised key material threaded through one pipeline run."""

    primary_key: KeyMaterial | None = None
    fee_payer_address: str | None = None
    fee_payer_key: KeyMaterial | None = None

    @classmethod
    def from_config(cls, config: UpdaterConfig) -> "SigningCredentials":
        primary = (
            KeyMaterial.from_input(config.private_key, strict_arrays=config.strict_key_arrays)
            if config.private_key
            else None
        )
        fee_payer = (
            KeyMaterial.from_input(
                config.fee_payer_private_key, strict_arrays=config.strict_key_arrays
            )
            if config.fee_payer_private_key
            else None
        )
        return cls(primary_key=primary, fee_payer_key=fee_payer)


@dataclass(frozen=True)
class SubmissionResult:
    """Outcome of a single update: a signature or a failure with its stage."""

    index: int
    signature: str | None = None
    error: str | None = None
    stage: str | None = None
    token_address: str | None = None

    @property
    def ok(self) -> bool:
        return self.signature is not None

    def to_jsonable(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "token_address": self.token_address,
            "signature": self.signature,
            "error": self.error,
            "stage": self.stage,
        }


def failure_stage(exc: BaseException) -> str:
    if isinstance(exc, ConfigurationError):
        return "config"
    if isinstance(exc, FieldValueError):
        return "input"
    if isinstance(exc, InvalidKeyEncoding):
        return "key"
    if isinstance(exc, RemoteRequestFailed):
        return "request"
    if isinstance(exc, MalformedTransaction):
        return "transaction"
    if isinstance(exc, (RPCError, RPCTransportError)):
        return "submission"
    return "signing"


def describe_failure(exc: BaseException) -> str:
    if isinstance(exc, RemoteRequestFailed):
        return exc.describe()
    hint = format_rpc_hint(exc) if isinstance(exc, RPCError) else None
    if hint:
        return f"{exc}\nHint: {hint}"
    return str(exc)


def load_batch_file(path: str | Path) -> list[dict[str, Any]]:
    """Read a JSON array of update records."""

    batch_path = Path(path).expanduser()
    try:
        records = json.loads(batch_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise BatchFileError(f"Could not read batch file {batch_path}: {exc}") from exc
    except ValueError as exc:
        raise BatchFileError(f"Batch file {batch_path} is not valid JSON: {exc}") from exc
    if not isinstance(records, list):
        raise BatchFileError(f"Batch file {batch_path} must contain a JSON array")
    for position, record in enumerate(records, start=1):
        if not isinstance(record, dict):
            raise BatchFileError(f"Record {position} in {batch_path} is not a JSON object")
    return records


class UpdatePipeline:
    """Run updates through the request → sign → submit stages."""

    def __init__(self, requester: UpdateRequester, signer: TransactionSigner) -> None:
        self.requester = requester
        self.signer = signer

    def update_nft(
        self, parameters: Mapping[str, Any], credentials: SigningCredentials
    ) -> str:
        """Run one update and return the transaction signature."""

        request = dict(parameters)
        if is_blank(request.get("fee_payer_address")) and credentials.fee_payer_address:
            request["fee_payer_address"] = credentials.fee_payer_address
        fee_payer_address = request.get("fee_payer_address")
        fee_payer_address = None if is_blank(fee_payer_address) else str(fee_payer_address).strip()

        # Fail before asking the API for a transaction nobody can sign.
        if fee_payer_address and credentials.fee_payer_key is None:
            raise ConfigurationError(
                f"Fee payer {fee_payer_address} was designated but no fee payer private key "
                "is available; set FEE_PAYER_PRIVATE_KEY or enter it interactively"
            )
        if not fee_payer_address and credentials.primary_key is None:
            raise ConfigurationError(
                "No private key available; enter one interactively or set PRIVATE_KEY_BASE64"
            )

        encoded = self.requester.request_update(request)
        signature = self.signer.sign_and_submit(
            encoded,
            credentials.primary_key,
            fee_payer_address=fee_payer_address,
            fee_payer_key=credentials.fee_payer_key,
        )
        logger.info("Transaction signature: %s", signature)
        return signature

    def run_batch(
        self,
        records: Sequence[Mapping[str, Any]],
        credentials: SigningCredentials,
        progress_callback: Callable[[SubmissionResult], None] | None = None,
    ) -> list[SubmissionResult]:
        """Process records in order; one record's failure never stops the rest."""

        results: list[SubmissionResult] = []
        total = len(records)
        for index, record in enumerate(records, start=1):
            token_address = record.get("token_address")
            logger.info("Updating record %d/%d (%s)", index, total, token_address or "unknown token")
            try:
                signature = self.update_nft(record, credentials)
            except (NFTUpdaterError, ConfigurationError) as exc:
                logger.error("Record %d failed: %s", index, describe_failure(exc))
                result = SubmissionResult(
                    index=index,
                    error=str(exc),
                    stage=failure_stage(exc),
                    token_address=token_address,
                )
            except Exception as exc:
                logger.exception("Record %d failed unexpectedly", index)
                result = SubmissionResult(
                    index=index,
                    error=f"{type(exc).__name__}: {exc}",
                    stage=failure_stage(exc),
                    token_address=token_address,
                )
            else:
                result = SubmissionResult(
                    index=index, signature=signature, token_address=token_address
                )
            results.append(result)
            if progress_callback is not None:
                progress_callback(result)

        failed = sum(1 for result in results if not result.ok)
        logger.info("Batch finished: %d succeeded, %d failed", total - failed, failed)
        return results


def build_pipeline(config: UpdaterConfig) -> UpdatePipeline:
    """Wire the API client, RPC client and signer described by ``config``."""

    requester = ShyftUpdateClient.from_config(config)
    signer = TransactionSigner(SolanaRPCClient.from_config(config))
    return UpdatePipeline(requester, signer)
