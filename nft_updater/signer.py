"""Sign server-built transactions locally and broadcast them."""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Protocol

from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction

from .errors import InvalidKeyEncoding, MalformedTransaction, SigningOrSubmissionFailed
from .keys import KeyMaterial
from .rpc_client import DEFAULT_COMMITMENT

logger = logging.getLogger(__name__)


class RawTransactionSender(Protocol):
    def send_raw_transaction(
        self, raw_tx: bytes, *, preflight_commitment: str = DEFAULT_COMMITMENT
    ) -> str: ...


def decode_transaction(encoded: str) -> Transaction:
    """Deserialize base64 transaction text returned by the update API."""

    try:
        raw = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError, TypeError) as exc:
        raise MalformedTransaction(f"Encoded transaction is not valid base64: {exc}") from exc
    if not raw:
        raise MalformedTransaction("Encoded transaction is empty")
    try:
        return Transaction.from_bytes(raw)
    except Exception as exc:  # solders raises its own SerializationError type
        raise MalformedTransaction(f"Could not deserialize transaction: {exc}") from exc


def count_signatures(tx: Transaction) -> int:
    """Number of signature slots that hold a real signature."""

    empty = Signature.default()
    return sum(1 for signature in tx.signatures if signature != empty)


def select_signing_key(
    primary_key: KeyMaterial | None,
    fee_payer_address: str | None = None,
    fee_payer_key: KeyMaterial | None = None,
) -> Keypair:
    """Pick the keypair that signs: the fee payer when one is designated."""

    try:
        if not fee_payer_address:
            if primary_key is None:
                raise SigningOrSubmissionFailed("No update authority private key was supplied")
            return primary_key.to_keypair()

        if fee_payer_key is None:
            raise SigningOrSubmissionFailed(
                f"A fee payer ({fee_payer_address}) was designated but no fee payer private key was supplied"
            )
        keypair = fee_payer_key.to_keypair()
    except InvalidKeyEncoding as exc:
        raise SigningOrSubmissionFailed(f"Cannot load signing key: {exc}") from exc

    if str(keypair.pubkey()) != fee_payer_address:
        raise SigningOrSubmissionFailed(
            f"Fee payer private key belongs to {keypair.pubkey()}, not {fee_payer_address}"
        )
    return keypair


def partial_sign(tx: Transaction, keypair: Keypair) -> Transaction:
    """Add ``keypair``'s signature, leaving any existing signatures in place."""

    required = tx.message.account_keys[: tx.message.header.num_required_signatures]
    if keypair.pubkey() not in required:
        raise SigningOrSubmissionFailed(
            f"{keypair.pubkey()} is not a required signer of this transaction"
        )
    try:
        tx.partial_sign([keypair], tx.message.recent_blockhash)
    except Exception as exc:  # solders signer errors
        raise SigningOrSubmissionFailed(f"Signing failed: {exc}") from exc
    return tx


def unsigned_signers(tx: Transaction) -> list[Pubkey]:
    empty = Signature.default()
    required = tx.message.account_keys[: tx.message.header.num_required_signatures]
    return [key for key, signature in zip(required, tx.signatures) if signature == empty]


class TransactionSigner:
    """Sign an encoded transaction and submit it once.

    Exceptions from deserialization, signing and submission propagate to the
    caller. Nothing is retried: a failed attempt needs a fresh encoded
    transaction from the update API.
    """

    def __init__(
        self, sender: RawTransactionSender, *, commitment: str = DEFAULT_COMMITMENT
    ) -> None:
        self.sender = sender
        self.commitment = commitment

    def sign(
        self,
        encoded: str,
        primary_key: KeyMaterial | None,
        fee_payer_address: str | None = None,
        fee_payer_key: KeyMaterial | None = None,
    ) -> Transaction:
        tx = decode_transaction(encoded)
        keypair = select_signing_key(primary_key, fee_payer_address, fee_payer_key)
        logger.info("Signing transaction as %s", keypair.pubkey())
        existing = count_signatures(tx)
        partial_sign(tx, keypair)
        logger.debug("Signatures present: %d before, %d after", existing, count_signatures(tx))
        missing = unsigned_signers(tx)
        if missing:
            logger.warning(
                "Transaction still lacks signatures from: %s",
                ", ".join(str(key) for key in missing),
            )
        return tx

    def sign_and_submit(
        self,
        encoded: str,
        primary_key: KeyMaterial | None,
        fee_payer_address: str | None = None,
        fee_payer_key: KeyMaterial | None = None,
    ) -> str:
        """Return the network-assigned transaction signature."""

        tx = self.sign(encoded, primary_key, fee_payer_address, fee_payer_key)
        return self.sender.send_raw_transaction(bytes(tx), preflight_commitment=self.commitment)
