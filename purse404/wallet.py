from dataclasses import dataclass, field

from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_utils import ValidationError as EthValidationError

from .errors import ConfigError

# Required to use mnemonic derivation in eth-account
Account.enable_unaudited_hdwallet_features()

DERIVATION_PATH = "m/44'/60'/0'/0/{}"


@dataclass(frozen=True)
class Wallet:
    """
    One account of the HD tree, bound to a chain id.

    The signer is only ever read, so a single Wallet can be handed to any
    number of invocations.
    """

    index: int
    chain_id: int
    signer: LocalAccount = field(repr=False, compare=False)

    @property
    def address(self) -> str:
        return self.signer.address

    @classmethod
    def from_phrase(cls, phrase: str, index: int, chain_id: int) -> "Wallet":
        try:
            account = Account.from_mnemonic(phrase, account_path=DERIVATION_PATH.format(index))
        except (EthValidationError, ValueError) as exc:
            raise ConfigError(f"Failed to derive from phrase with path: {index}") from exc
        return cls(index=index, chain_id=chain_id, signer=account)


def generate_wallets(phrase: str, number_of_wallets: int, chain_id: int) -> list[Wallet]:
    # inclusive: indices 0..number_of_wallets
    return [Wallet.from_phrase(phrase, i, chain_id) for i in range(number_of_wallets + 1)]
