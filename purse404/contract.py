from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception

from .chain import get_native_balance, is_account_not_found
from .errors import ChainRejected, ExecutionError, TransactionTimeout, UnknownRevert
from .wallet import Wallet

DEFAULT_RECEIPT_TIMEOUT = 120

# ---------------------------
# Purse404 ABI (functions used by this tool only)
# ---------------------------
PURSE404_ABI = [
    {
        "inputs": [{"name": "owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "minted",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "mintingCost",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "owner", "type": "address"}],
        "name": "owned",
        "outputs": [{"name": "", "type": "uint256[]"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "to", "type": "address"}, {"name": "amount", "type": "uint256"}],
        "name": "transfer",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [{"name": "mintUnit", "type": "uint256"}],
        "name": "mintERC721",
        "outputs": [],
        "stateMutability": "payable",
        "type": "function",
    },
    {
        "inputs": [{"name": "to", "type": "address"}, {"name": "amount", "type": "uint256"}],
        "name": "mint",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]

# 4-byte custom error selectors raised by the Purse404 contract
REVERT_SIGNATURES = {
    "0x65c62bb3": "InsufficientInactiveBalance()",
    "0xab0a033b": "IncorrectEthValue()",
    "0x303b682f": "MintLimitReached()",
}


def map_error_sig(error_sig: str) -> str:
    """Known error selector -> readable name; anything else is returned as is."""
    return REVERT_SIGNATURES.get(error_sig.lower(), error_sig)


def revert_error(exc: ContractLogicError) -> ExecutionError:
    data = getattr(exc, "data", None)
    if isinstance(data, str) and data.startswith("0x") and len(data) >= 10:
        selector = data[:10]
        name = map_error_sig(selector)
        if name == selector:
            return UnknownRevert(selector)
        return ChainRejected(name)
    return ChainRejected(getattr(exc, "message", None) or str(exc))


class PurseContract:
    """Handle on the single Purse404 deployment."""

    def __init__(self, w3: Web3, address: str):
        self.w3 = w3
        self.address = Web3.to_checksum_address(address)
        self.contract = w3.eth.contract(address=self.address, abi=PURSE404_ABI)

    # ----------------- Reads -----------------

    def _call(self, name: str, fn):
        try:
            return fn.call()
        except (Web3Exception, ValueError) as exc:
            raise ExecutionError(f"Failed to call {name}: {exc}") from exc

    def balance_of(self, owner: str) -> int:
        try:
            return self.contract.functions.balanceOf(owner).call()
        except (Web3Exception, ValueError) as exc:
            if is_account_not_found(exc):
                return 0
            raise ExecutionError(f"Failed to call balanceOf: {exc}") from exc

    def minted(self) -> int:
        return self._call("minted", self.contract.functions.minted())

    def minting_cost(self) -> int:
        return self._call("mintingCost", self.contract.functions.mintingCost())

    def owned(self, owner: str) -> list[int]:
        return list(self._call("owned", self.contract.functions.owned(owner)))

    def native_balance(self, address: str) -> int:
        return get_native_balance(self.w3, address)

    # ----------------- Writes -----------------

    def transfer(self, wallet: Wallet, to: str, amount: int, timeout: float = DEFAULT_RECEIPT_TIMEOUT):
        note = f"from: {wallet.address}, to: {to}, amount (wei): {amount}"
        return self._send(wallet, self.contract.functions.transfer(to, amount), 0, timeout, note)

    def mint_erc721(self, wallet: Wallet, mint_units: int, value: int, timeout: float = DEFAULT_RECEIPT_TIMEOUT):
        note = f"from: {wallet.address}, to: {self.address}, amount (nfts): {mint_units}"
        return self._send(wallet, self.contract.functions.mintERC721(mint_units), value, timeout, note)

    def mint(self, wallet: Wallet, to: str, amount: int, timeout: float = DEFAULT_RECEIPT_TIMEOUT):
        note = f"from: {wallet.address}, to: {to}, amount (wei): {amount}"
        return self._send(wallet, self.contract.functions.mint(to, amount), 0, timeout, note)

    def _send(self, wallet: Wallet, fn, value: int, timeout: float, note: str = ""):
        """Sign, submit and block until the transaction is mined. Returns the receipt."""
        try:
            tx = fn.build_transaction({
                "from": wallet.address,
                "value": value,
                "nonce": self.w3.eth.get_transaction_count(wallet.address, "pending"),
                "chainId": wallet.chain_id,
            })
            signed = wallet.signer.sign_transaction(tx)
            tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        except ContractLogicError as exc:
            raise revert_error(exc) from exc
        except (Web3Exception, ValueError) as exc:
            raise ChainRejected(f"Failed to send transaction: {exc}") from exc

        tx_hash_hex = Web3.to_hex(tx_hash)
        print(f"✅ Tx sent: {tx_hash_hex} {note}".rstrip())
        print("Waiting...")

        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        except TimeExhausted as exc:
            raise TransactionTimeout(tx_hash_hex, timeout) from exc
        except (Web3Exception, ValueError) as exc:
            raise ChainRejected(f"Unexpected error occurred: {exc}", tx_hash_hex) from exc

        if receipt["status"] != 1:
            raise ChainRejected("reverted on-chain", tx_hash_hex)
        return receipt
