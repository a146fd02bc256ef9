import base64

import pytest
from conftest import build_update_transaction, encode_transaction
from solders.keypair import Keypair
from solders.signature import Signature
from solders.transaction import Transaction

from nft_updater.errors import MalformedTransaction, SigningOrSubmissionFailed
from nft_updater.keys import KeyMaterial
from nft_updater.rpc_client import RPCError
from nft_updater.signer import TransactionSigner, count_signatures, decode_transaction


def _material(keypair: Keypair) -> KeyMaterial:
    return KeyMaterial.from_input(base64.b64encode(bytes(keypair)).decode("ascii"))


class StubSender:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.sent: list[tuple[bytes, str]] = []

    def send_raw_transaction(self, raw_tx: bytes, *, preflight_commitment: str = "confirmed") -> str:
        self.sent.append((raw_tx, preflight_commitment))
        if self.error is not None:
            raise self.error
        return "5ignature"


def test_signing_adds_exactly_one_signature_and_preserves_existing(
    fee_payer: Keypair, authority: Keypair
) -> None:
    tx = build_update_transaction(fee_payer, authority)
    tx.partial_sign([authority], tx.message.recent_blockhash)
    before = list(tx.signatures)
    sender = StubSender()

    signature = TransactionSigner(sender).sign_and_submit(
        encode_transaction(tx),
        _material(authority),
        fee_payer_address=str(fee_payer.pubkey()),
        fee_payer_key=_material(fee_payer),
    )

    assert signature == "5ignature"
    raw, commitment = sender.sent[0]
    assert commitment == "confirmed"
    signed = Transaction.from_bytes(raw)
    assert count_signatures(signed) == count_signatures(tx) + 1
    for old, new in zip(before, signed.signatures):
        if old != Signature.default():
            assert bytes(old) == bytes(new)
    signed.verify()


def test_without_fee_payer_the_update_authority_signs(authority: Keypair) -> None:
    tx = build_update_transaction(authority, authority)
    sender = StubSender()

    TransactionSigner(sender).sign_and_submit(encode_transaction(tx), _material(authority))

    signed = Transaction.from_bytes(sender.sent[0][0])
    assert count_signatures(signed) == 1
    signed.verify()


def test_fee_payer_key_must_match_designated_address(fee_payer: Keypair, authority: Keypair) -> None:
    tx = build_update_transaction(fee_payer, authority)
    sender = StubSender()

    with pytest.raises(SigningOrSubmissionFailed):
        TransactionSigner(sender).sign_and_submit(
            encode_transaction(tx),
            _material(authority),
            fee_payer_address=str(fee_payer.pubkey()),
            fee_payer_key=_material(authority),
        )
    assert sender.sent == []


def test_designated_fee_payer_without_key_fails(fee_payer: Keypair, authority: Keypair) -> None:
    tx = build_update_transaction(fee_payer, authority)

    with pytest.raises(SigningOrSubmissionFailed):
        TransactionSigner(StubSender()).sign_and_submit(
            encode_transaction(tx), _material(authority), fee_payer_address=str(fee_payer.pubkey())
        )


def test_key_that_is_not_a_required_signer_is_rejected(fee_payer: Keypair, authority: Keypair) -> None:
    tx = build_update_transaction(fee_payer, authority)
    stranger = Keypair.from_seed(bytes([42]) * 32)

    with pytest.raises(SigningOrSubmissionFailed):
        TransactionSigner(StubSender()).sign_and_submit(encode_transaction(tx), _material(stranger))


@pytest.mark.parametrize("encoded", ["", "!!!not base64!!!", base64.b64encode(b"\x02garbage").decode()])
def test_malformed_encoded_transaction(encoded: str) -> None:
    with pytest.raises(MalformedTransaction):
        decode_transaction(encoded)


def test_rpc_rejection_propagates_unmodified(fee_payer: Keypair) -> None:
    tx = build_update_transaction(fee_payer, fee_payer)
    rejection = RPCError(-32002, "Transaction simulation failed: Blockhash not found")
    sender = StubSender(error=rejection)

    with pytest.raises(RPCError) as excinfo:
        TransactionSigner(sender).sign_and_submit(encode_transaction(tx), _material(fee_payer))

    assert excinfo.value is rejection
    assert len(sender.sent) == 1
