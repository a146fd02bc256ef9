"""JSON-RPC client for Solana nodes.

Only the submission surface needed by the updater is exposed: raw signed
transactions are sent with ``sendTransaction`` and the node's signature is
returned. No consensus logic lives here; the client forwards requests and
surfaces errors clearly.
"""

from __future__ import annotations

import base64
import json
import logging
import uuid
from typing import Any, Optional

import requests
from requests import RequestException, Response

from .config import UpdaterConfig
from .errors import SigningOrSubmissionFailed

logger = logging.getLogger(__name__)

DEFAULT_COMMITMENT = "confirmed"


class RPCError(SigningOrSubmissionFailed):
    """Raised when the Solana node responds with an RPC error."""

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        super().__init__(f"RPC error {code}: {message}")
        self.code = code
        self.message = message
        self.data = data


class RPCTransportError(SigningOrSubmissionFailed):
    """Raised when the RPC endpoint is unreachable or returns malformed data."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def format_rpc_hint(error_obj: dict[str, Any] | RPCError | None) -> str | None:
    """Return a human-friendly hint for common Solana JSON-RPC errors."""

    if error_obj is None:
        return None

    code = None
    message = ""
    if isinstance(error_obj, RPCError):
        code = error_obj.code
        message = error_obj.message
    elif isinstance(error_obj, dict):
        code = error_obj.get("code")
        message = str(error_obj.get("message", ""))

    lowered = message.lower()
    if "blockhash not found" in lowered:
        return (
            "The transaction's blockhash expired before it reached the node. Request a fresh "
            "transaction from the update API and sign it again."
        )
    if code == -32003 or "signature verification" in lowered:
        return (
            "The node could not verify the signatures. Check that the private key belongs to the "
            "update authority (or to the designated fee payer)."
        )
    if "insufficient funds" in lowered or "insufficientfundsforfee" in lowered:
        return "The fee payer cannot cover the transaction fee. Fund the fee payer account and retry."
    if code == -32002:
        return (
            "Transaction simulation failed. Inspect the program logs in the error data; the update "
            "authority address or token address may not match the on-chain metadata."
        )
    return None


class SolanaRPCClient:
    """Minimal JSON-RPC client for a Solana node."""

    def __init__(
        self,
        endpoint: str,
        *,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.timeout = timeout
        self._session = session or requests.Session()

    @classmethod
    def from_config(cls, config: UpdaterConfig) -> "SolanaRPCClient":
        return cls(config.require_rpc_node(), timeout=config.rpc_timeout)

    def call(self, method: str, params: Optional[list[Any]] = None) -> Any:
        """Perform a JSON-RPC request."""

        payload = {
            "jsonrpc": "2.0",
            "id": str(uuid.uuid4()),
            "method": method,
            "params": params or [],
        }
        logger.debug("RPC call %s", method)
        try:
            response = self._session.post(
                self.endpoint,
                data=json.dumps(payload),
                headers={"content-type": "application/json"},
                timeout=self.timeout,
            )
        except RequestException as exc:
            logger.error(
                "RPC connection failed: %s",
                exc,
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            raise RPCTransportError(
                "RPC connection failed. Ensure RPC_NODE points to a reachable Solana endpoint."
            ) from exc
        self._raise_for_status(response)
        try:
            result = response.json()
        except ValueError as exc:
            logger.debug("RPC JSON parse error: %s", response.text, exc_info=True)
            raise RPCTransportError("RPC server returned malformed JSON") from exc
        if result.get("error"):
            error = result["error"]
            raise RPCError(
                error.get("code", -1), error.get("message", "unknown"), error.get("data")
            )
        return result.get("result")

    def _raise_for_status(self, response: Response) -> None:
        if response.ok:
            return
        try:
            err_body = response.json()
        except ValueError:
            err_body = response.text
        logger.error("RPC HTTP error %s from %s", response.status_code, response.url)
        logger.error("RPC error body: %s", err_body)
        if isinstance(err_body, dict) and isinstance(err_body.get("error"), dict):
            error = err_body["error"]
            raise RPCError(
                error.get("code", -1), error.get("message", "unknown"), error.get("data")
            )
        raise RPCTransportError(
            f"RPC server returned HTTP {response.status_code}; check RPC_NODE and any API key in the URL.",
            status_code=response.status_code,
        )

    def send_raw_transaction(
        self, raw_tx: bytes, *, preflight_commitment: str = DEFAULT_COMMITMENT
    ) -> str:
        """Broadcast a serialized, signed transaction and return its signature."""

        encoded = base64.b64encode(raw_tx).decode("ascii")
        signature = self.call(
            "sendTransaction",
            [encoded, {"encoding": "base64", "preflightCommitment": preflight_commitment}],
        )
        if not isinstance(signature, str):
            raise RPCTransportError("RPC server returned no transaction signature")
        logger.info("Broadcasted transaction %s", signature)
        return signature
