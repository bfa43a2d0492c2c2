import os

from web3 import Web3
from web3.exceptions import Web3Exception

from .errors import ConfigError, ExecutionError, UnsupportedChain

# chain id -> environment variable holding its RPC URL
SUPPORTED_CHAINS = {
    1: "MAINNET_RPC",
    11155111: "SEPOLIA_RPC",
}


def require_env(name: str, environ=None) -> str:
    environ = os.environ if environ is None else environ
    value = (environ.get(name) or "").strip()
    if not value:
        raise ConfigError(f"Missing environment variable: {name}")
    return value


def rpc_url_for(chain_id: int, environ=None) -> str:
    if chain_id not in SUPPORTED_CHAINS:
        raise UnsupportedChain(chain_id)
    return require_env(SUPPORTED_CHAINS[chain_id], environ)


def get_provider(rpc_url: str, timeout: float = 30) -> Web3:
    w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))
    if not w3.is_connected():
        raise ConfigError("RPC connection failed")
    return w3


def is_account_not_found(exc: Exception) -> bool:
    # "header not found" and "method not found" are not account errors
    return "account not found" in str(exc).lower()


def get_native_balance(w3: Web3, address: str) -> int:
    """Native (ETH) balance in wei. This is NOT the token balance."""
    try:
        return w3.eth.get_balance(address)
    except (Web3Exception, ValueError) as exc:
        # absent accounts legitimately hold nothing
        if is_account_not_found(exc):
            return 0
        raise ExecutionError(f"Failed to get balance: {exc}") from exc
