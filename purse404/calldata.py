from .errors import MalformedArgument, UnsupportedFunction
from .utils import ZERO_ADDRESS, parse_address, parse_uint256

# ----------------- Arity table -----------------
# None: the function takes no calldata and --calldata must be absent.
FUNCTION_ARITY = {
    "address": None,
    "minted": None,
    "mintingCost": None,
    "balanceOf": 1,
    "owned": 1,
    "mintERC721": 1,
    "transfer": 2,
    "mint": 2,
}

READ_FUNCTIONS = ("address", "minted", "mintingCost", "balanceOf", "owned")
WRITE_FUNCTIONS = ("mintERC721", "transfer", "mint")


def validate_calldata(function: str, calldata: list[str] | None) -> None:
    """
    Check that the calldata shape matches the contract function.

    Presence of the list decides the zero-argument case, not its length:
    an empty list passed to `minted` is rejected.
    """
    if function not in FUNCTION_ARITY:
        raise UnsupportedFunction(function, calldata)

    arity = FUNCTION_ARITY[function]
    if arity is None:
        if calldata is not None:
            raise UnsupportedFunction(function, calldata)
        return

    if calldata is None or len(calldata) != arity:
        raise UnsupportedFunction(function, calldata)


def decode_address(calldata: list[str], position: int) -> str:
    try:
        return parse_address(calldata[position])
    except ValueError as exc:
        raise MalformedArgument(position, calldata[position], "address") from exc


def decode_uint256(calldata: list[str], position: int) -> int:
    try:
        return parse_uint256(calldata[position])
    except ValueError as exc:
        raise MalformedArgument(position, calldata[position], "uint256") from exc


def extract_recipient_and_amount(function: str, calldata: list[str]) -> tuple[str, int]:
    """
    Recipient and amount used for ledger accounting.

    mintERC721 has no on-chain recipient argument, so the recipient is the
    zero address. Functions that move nothing return (zero address, 0).
    """
    if function == "mintERC721":
        return ZERO_ADDRESS, decode_uint256(calldata, 0)
    if function in ("transfer", "mint"):
        return decode_address(calldata, 0), decode_uint256(calldata, 1)
    return ZERO_ADDRESS, 0
