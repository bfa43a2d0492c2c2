import argparse
import os
import sys
from dataclasses import dataclass, field

from dotenv import load_dotenv

from . import ledger
from .calldata import extract_recipient_and_amount, validate_calldata
from .chain import SUPPORTED_CHAINS, get_provider, require_env, rpc_url_for
from .contract import DEFAULT_RECEIPT_TIMEOUT, PurseContract
from .errors import ConfigError, PurseError
from .invocation import (
    AddressResult,
    StateChangeResult,
    UintListResult,
    UintResult,
    build_invocation,
    execute,
    is_write,
)
from .utils import UINT32_MAX, parse_address, parse_uint256
from .wallet import Wallet


# ----------------- Setup -----------------

@dataclass(frozen=True)
class CommandConfig:
    """Everything one run needs, assembled once at process start."""

    function: str
    file_path: str
    chain_id: int
    token_address: str
    mnemonic: str = field(repr=False)
    calldata: list[str] | None = None
    msg_value: int = 0
    derivation_number: int = 0
    timeout: float = DEFAULT_RECEIPT_TIMEOUT
    rpc_endpoints: dict[str, str] = field(default_factory=dict, repr=False)

    @classmethod
    def from_args(cls, args: argparse.Namespace, environ=None) -> "CommandConfig":
        environ = os.environ if environ is None else environ
        return cls(
            function=args.function,
            file_path=args.file_path,
            chain_id=args.chain_id,
            token_address=_token_address(environ),
            mnemonic=require_env("MNEMONIC", environ),
            calldata=args.calldata,
            msg_value=args.msg_value,
            derivation_number=args.derivation_number,
            timeout=args.timeout,
            rpc_endpoints={
                name: environ[name] for name in SUPPORTED_CHAINS.values() if environ.get(name)
            },
        )


def _token_address(environ) -> str:
    raw = require_env("PURSE_TOKEN_ADDRESS", environ)
    try:
        return parse_address(raw)
    except ValueError:
        raise ConfigError(f"PURSE_TOKEN_ADDRESS is not a valid address: '{raw}'") from None


def connect_contract(rpc_url: str, token_address: str) -> PurseContract:
    return PurseContract(get_provider(rpc_url), token_address)


# ----------------- Helpers -----------------

@dataclass(frozen=True)
class BalanceSnapshot:
    sender_eth: int
    sender_erc20: int
    recipient_eth: int
    recipient_erc20: int


def snapshot_balances(contract: PurseContract, sender: str, recipient: str) -> BalanceSnapshot:
    # independent round trips; other actors may move funds in between
    return BalanceSnapshot(
        sender_eth=contract.native_balance(sender),
        sender_erc20=contract.balance_of(sender),
        recipient_eth=contract.native_balance(recipient),
        recipient_erc20=contract.balance_of(recipient),
    )


def print_result(config: CommandConfig, result) -> None:
    if isinstance(result, AddressResult):
        print(f"> Purse404 contract address: {result.address}")
        return
    print(f"> Function call: {config.function}")
    print(f"> Calldata: {', '.join(config.calldata or [])}")
    if isinstance(result, UintResult):
        print(f"> Result: {result.value}")
    elif isinstance(result, UintListResult):
        print(f"> Result: {result.values}")


# ----------------- Pipeline -----------------

def run(config: CommandConfig, connect=connect_contract):
    """
    Execute one contract function and, for writes, append the ledger row.

    Calldata is checked before any file or network access. Any failure
    aborts the run before a ledger row is written.
    """
    print("> Executing Purse command")

    validate_calldata(config.function, config.calldata)
    recipient, calldata_value = extract_recipient_and_amount(config.function, config.calldata or [])

    derivation = ledger.resolve_derivation(config.file_path, config.derivation_number)
    rpc_url = rpc_url_for(config.chain_id, config.rpc_endpoints)
    wallet = Wallet.from_phrase(config.mnemonic, derivation, config.chain_id)

    invocation = build_invocation(config.function, config.msg_value, config.calldata, wallet)
    contract = connect(rpc_url, config.token_address)

    if not is_write(invocation):
        result = execute(contract, invocation, config.timeout)
        print_result(config, result)
        return result

    before = snapshot_balances(contract, wallet.address, recipient)
    result = execute(contract, invocation, config.timeout)
    if not isinstance(result, StateChangeResult):
        return result

    owned_token_ids = contract.owned(wallet.address)
    after = snapshot_balances(contract, wallet.address, recipient)

    ledger.append(config.file_path, ledger.LedgerEntry(
        tx_hash=result.tx_hash,
        derivation=derivation,
        sender=wallet.address,
        function=config.function,
        tx_fee=result.tx_fee,
        gas_price=result.gas_price,
        gas_used=result.gas_used,
        receipt_json=result.receipt_json,
        recipient=recipient,
        sender_eth_before=before.sender_eth,
        sender_eth_after=after.sender_eth,
        sender_erc20_before=before.sender_erc20,
        sender_erc20_after=after.sender_erc20,
        recipient_eth_before=before.recipient_eth,
        recipient_eth_after=after.recipient_eth,
        recipient_erc20_before=before.recipient_erc20,
        recipient_erc20_after=after.recipient_erc20,
        msg_value=config.msg_value,
        calldata_value=calldata_value,
        owned_token_ids=owned_token_ids,
    ))
    return result


# ----------------- CLI -----------------

def _uint256_arg(raw: str) -> int:
    try:
        return parse_uint256(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _uint32_arg(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: '{raw}'") from None
    if not 0 <= value <= UINT32_MAX:
        raise argparse.ArgumentTypeError(f"must be between 0 and {UINT32_MAX}")
    return value


def _positive_float_arg(raw: str) -> float:
    try:
        value = float(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: '{raw}'") from None
    if value <= 0:
        raise argparse.ArgumentTypeError("must be > 0")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="purse404", description="Interact with the Purse404 token contract")
    commands = parser.add_subparsers(dest="command", required=True)

    purse = commands.add_parser("purse", help="Execute a Purse404 contract function")
    purse.add_argument("--function", required=True, help="Contract function to execute")
    purse.add_argument("--calldata", nargs="+", help="Executed function arguments")
    purse.add_argument("--msg-value", type=_uint256_arg, default=0, help="Msg.value for the function call (wei)")
    purse.add_argument("--file-path", required=True, help="File path to store the csv output")
    purse.add_argument("--derivation-number", type=_uint32_arg, default=0, help="Derivation number (0 = next unused)")
    purse.add_argument("--chain-id", type=int, required=True, help="Chain id (1 or 11155111)")
    purse.add_argument(
        "--timeout",
        type=_positive_float_arg,
        default=DEFAULT_RECEIPT_TIMEOUT,
        help="Seconds to wait for a transaction to be mined",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)

    try:
        run(CommandConfig.from_args(args))
    except PurseError as exc:
        sys.exit(f"❌ {exc}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
