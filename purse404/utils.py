import re
from decimal import Decimal

from web3 import Web3

UINT256_MAX = 2**256 - 1
UINT32_MAX = 2**32 - 1
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

_ADDRESS_RE = re.compile(r"^(0x)?[0-9a-fA-F]{40}$")
_UINT_RE = re.compile(r"^[0-9]+$")


# ----------------- Parsing -----------------

def parse_uint256(raw: str) -> int:
    """Decimal string -> int in [0, 2**256). Raises ValueError otherwise."""
    text = raw.strip()
    if not _UINT_RE.fullmatch(text):
        raise ValueError(f"not an unsigned decimal integer: '{raw}'")
    value = int(text)
    if value > UINT256_MAX:
        raise ValueError(f"value exceeds uint256: '{raw}'")
    return value


def parse_address(raw: str) -> str:
    """
    Hex string -> checksum address.

    Mixed-case input is accepted without verifying its checksum, the
    same way the contract tooling parses addresses.
    """
    text = raw.strip()
    if not _ADDRESS_RE.fullmatch(text):
        raise ValueError(f"not a 20-byte hex address: '{raw}'")
    if not text.startswith("0x"):
        text = "0x" + text
    return Web3.to_checksum_address(text.lower())


# ----------------- Units -----------------

def wei_to_eth(amount: int) -> str:
    """
    Convert a base-unit integer to a human-readable ETH string
    without floating point precision loss.
    """
    return format(Decimal(Web3.from_wei(amount, "ether")), "f")


def wei_to_gwei(amount: int) -> str:
    return format(Decimal(Web3.from_wei(amount, "gwei")), "f")
