import base64

import pytest
from solders.hash import Hash
from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.transaction import Transaction


def build_update_transaction(fee_payer: Keypair, authority: Keypair) -> Transaction:
    """Unsigned transaction shaped like a metadata update: payer + authority signers."""

    instruction = Instruction(
        Pubkey.new_unique(),
        b"\x0fupdate-metadata",
        [
            AccountMeta(authority.pubkey(), is_signer=True, is_writable=False),
            AccountMeta(Pubkey.new_unique(), is_signer=False, is_writable=True),
        ],
    )
    message = Message.new_with_blockhash([instruction], fee_payer.pubkey(), Hash.new_unique())
    return Transaction.new_unsigned(message)


def encode_transaction(tx: Transaction) -> str:
    return base64.b64encode(bytes(tx)).decode("ascii")


@pytest.fixture
def fee_payer() -> Keypair:
    return Keypair.from_seed(bytes([7]) * 32)


@pytest.fixture
def authority() -> Keypair:
    return Keypair.from_seed(bytes([9]) * 32)
