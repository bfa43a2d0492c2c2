"""
Exceptions raised by the purse404 pipeline.

Every stage raises a subclass of PurseError; the CLI prints it and exits 1.
"""


class PurseError(Exception):
    """Base class for all purse404 failures."""


# ----------------- Configuration -----------------

class ConfigError(PurseError):
    """A required setting is missing or the RPC endpoint is unusable."""


class ChainSelectionError(PurseError):
    """The requested chain cannot be used."""


class UnsupportedChain(ChainSelectionError):
    def __init__(self, chain_id: int):
        super().__init__(f"Unsupported chain id: {chain_id}. Halting...")
        self.chain_id = chain_id


# ----------------- Calldata -----------------

class ValidationError(PurseError):
    """Function name / calldata combination is not well formed."""


class UnsupportedFunction(ValidationError):
    def __init__(self, function: str, calldata: list[str] | None = None):
        super().__init__(f"Unsupported function: {function}")
        self.function = function
        self.calldata = calldata


class DecodeError(PurseError):
    """Calldata could not be converted into typed values."""


class MalformedArgument(DecodeError):
    def __init__(self, position: int, raw_value: str, expected: str = "value"):
        super().__init__(f"Calldata[{position}] is not a valid {expected}: '{raw_value}'")
        self.position = position
        self.raw_value = raw_value
        self.expected = expected


# ----------------- Ledger -----------------

class LedgerError(PurseError):
    """The CSV ledger is unreadable, malformed or cannot be written."""


class EmptyLedger(LedgerError):
    def __init__(self, path: str):
        super().__init__(f"No recorded derivation numbers found in: {path}. Halting...")
        self.path = path


class SchemaMismatch(LedgerError):
    def __init__(self, path: str, found: list[str]):
        super().__init__(
            f"Headers length or content order mismatch in: {path} "
            f"(found {len(found)} columns)"
        )
        self.path = path
        self.found = found


class MalformedRow(LedgerError):
    def __init__(self, path: str, line: int, reason: str):
        super().__init__(f"Malformed ledger row at {path}:{line}: {reason}")
        self.path = path
        self.line = line


class LedgerIOFailure(LedgerError):
    """Reading or writing the ledger file failed at the OS level."""


class LedgerLocked(LedgerError):
    def __init__(self, path: str):
        super().__init__(f"Ledger is locked by another writer: {path}")
        self.path = path


# ----------------- Execution -----------------

class ExecutionError(PurseError):
    """A contract call or transaction did not complete."""


class ChainRejected(ExecutionError):
    def __init__(self, reason: str, tx_hash: str | None = None):
        message = f"Transaction failed: {reason}"
        if tx_hash:
            message += f" (tx: {tx_hash})"
        super().__init__(message)
        self.reason = reason
        self.tx_hash = tx_hash


class TransactionTimeout(ExecutionError):
    def __init__(self, tx_hash: str, timeout: float):
        super().__init__(f"Transaction {tx_hash} not mined within {timeout}s")
        self.tx_hash = tx_hash
        self.timeout = timeout


class UnknownRevert(ExecutionError):
    def __init__(self, signature: str):
        super().__init__(f"Transaction reverted: {signature}")
        self.signature = signature
