from __future__ import annotations

from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3

from siwe_auth.core.observability import get_logger

logger = get_logger(__name__)


def recover_address(message: str, signature: str) -> str:
    # SIWE uses EIP-191 personal_sign style. In web3.py:
    # encode_defunct(text=message) matches personal_sign.
    if not signature.startswith("0x"):
        signature = "0x" + signature
    msg = encode_defunct(text=message)
    recovered = Account.recover_message(msg, signature=signature)
    return Web3.to_checksum_address(recovered)


def verify_signature(message: str, signature: str, expected_address: str) -> bool:
    """True when ``signature`` over ``message`` was made by ``expected_address``.

    Malformed signatures (bad hex, wrong length, out-of-range v/r/s) are
    reported as a failed verification, never raised.
    """
    try:
        recovered = recover_address(message, signature)
    except Exception as exc:
        logger.debug("siwe_signature_unrecoverable", error=str(exc))
        return False

    return recovered.lower() == expected_address.lower()
