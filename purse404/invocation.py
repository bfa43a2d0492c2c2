"""
Typed Purse404 contract invocations and their results.

`build_invocation` turns a function name plus string calldata into exactly
one invocation shape, and `execute` dispatches on that shape. Adding a
contract function means adding it to both.
"""

from dataclasses import dataclass, field

from web3 import Web3

from .calldata import decode_address, decode_uint256
from .contract import DEFAULT_RECEIPT_TIMEOUT, PurseContract
from .errors import UnsupportedFunction
from .utils import wei_to_eth, wei_to_gwei
from .wallet import Wallet


# ----------------- Invocations -----------------

@dataclass(frozen=True)
class NoArgRead:
    function: str  # address | minted | mintingCost


@dataclass(frozen=True)
class AddressRead:
    function: str  # balanceOf | owned
    owner: str


@dataclass(frozen=True)
class ValueWrite:
    """mintERC721: mint units paid for with msg.value."""

    wallet: Wallet
    amount: int
    msg_value: int
    function: str = field(default="mintERC721", init=False)


@dataclass(frozen=True)
class TransferWrite:
    function: str  # transfer | mint
    wallet: Wallet
    recipient: str
    amount: int


Invocation = NoArgRead | AddressRead | ValueWrite | TransferWrite


def is_write(invocation: Invocation) -> bool:
    return isinstance(invocation, (ValueWrite, TransferWrite))


def build_invocation(function: str, msg_value: int, calldata: list[str] | None, wallet: Wallet) -> Invocation:
    calldata = calldata or []
    if function in ("address", "minted", "mintingCost"):
        return NoArgRead(function)
    if function in ("balanceOf", "owned"):
        return AddressRead(function, decode_address(calldata, 0))
    if function == "mintERC721":
        return ValueWrite(wallet, decode_uint256(calldata, 0), msg_value)
    if function in ("transfer", "mint"):
        return TransferWrite(function, wallet, decode_address(calldata, 0), decode_uint256(calldata, 1))
    raise UnsupportedFunction(function, calldata)


# ----------------- Results -----------------

@dataclass(frozen=True)
class AddressResult:
    address: str


@dataclass(frozen=True)
class UintResult:
    value: int


@dataclass(frozen=True)
class UintListResult:
    values: list[int]


@dataclass(frozen=True)
class StateChangeResult:
    tx_hash: str
    gas_price: str  # gwei
    gas_used: str
    tx_fee: str  # ETH
    receipt_json: str

    @classmethod
    def from_receipt(cls, receipt) -> "StateChangeResult":
        receipt_json = Web3.to_json(receipt)
        gas_used = int(receipt["gasUsed"])
        # legacy receipts without effectiveGasPrice report a zero price
        gas_price = int(receipt.get("effectiveGasPrice") or 0)
        return cls(
            tx_hash=Web3.to_hex(receipt["transactionHash"]),
            gas_price=wei_to_gwei(gas_price),
            gas_used=str(gas_used),
            tx_fee=wei_to_eth(gas_used * gas_price),
            receipt_json=receipt_json,
        )


ExecutionResult = AddressResult | UintResult | UintListResult | StateChangeResult


def execute(contract: PurseContract, invocation: Invocation, timeout: float = DEFAULT_RECEIPT_TIMEOUT) -> ExecutionResult:
    if isinstance(invocation, NoArgRead):
        if invocation.function == "address":
            return AddressResult(contract.address)
        if invocation.function == "minted":
            return UintResult(contract.minted())
        return UintResult(contract.minting_cost())

    if isinstance(invocation, AddressRead):
        if invocation.function == "balanceOf":
            return UintResult(contract.balance_of(invocation.owner))
        return UintListResult(contract.owned(invocation.owner))

    if isinstance(invocation, ValueWrite):
        receipt = contract.mint_erc721(invocation.wallet, invocation.amount, invocation.msg_value, timeout)
    elif isinstance(invocation, TransferWrite):
        if invocation.function == "transfer":
            receipt = contract.transfer(invocation.wallet, invocation.recipient, invocation.amount, timeout)
        else:
            receipt = contract.mint(invocation.wallet, invocation.recipient, invocation.amount, timeout)
    else:
        raise TypeError(f"Unknown invocation: {invocation!r}")

    result = StateChangeResult.from_receipt(receipt)
    print(f"Transaction hash: {result.tx_hash}")
    print(f"Gas price (gwei): {result.gas_price}")
    print(f"Gas used: {result.gas_used}")
    print(f"Transaction fee (ETH): {result.tx_fee}")
    print(f"Transaction receipt: {result.receipt_json}")
    return result
