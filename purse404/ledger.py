"""
CSV audit ledger of executed Purse404 transactions.

The column layout is fixed by HEADERS. An existing file is only ever
appended to after its header row matches HEADERS exactly, and a file
with a header but no rows is treated as corrupt, never as a new ledger.

Writers take an advisory, non-blocking exclusive lock on the file where
the platform has fcntl; a second writer fails with LedgerLocked instead
of waiting. Without fcntl, one writer per ledger path is assumed.
"""

import csv
import os
from dataclasses import dataclass
from pathlib import Path
from typing import NamedTuple

try:
    import fcntl
except ImportError:  # pragma: no cover - windows
    fcntl = None

from .errors import EmptyLedger, LedgerError, LedgerIOFailure, LedgerLocked, MalformedRow, SchemaMismatch
from .utils import UINT32_MAX, ZERO_ADDRESS, wei_to_eth

# receipts of large ERC-404 transfers carry one log per token and outgrow
# the csv module default of 128 KiB per field
FIELD_SIZE_LIMIT = 2**31 - 1

HEADERS = (
    "Transaction Hash", "Derivation",
    "Sender",
    "Sender Balance Before (ETH)", "Sender Balance After (ETH)",
    "Sender Balance Before (ERC20)", "Sender Balance After (ERC20)",
    "Recipient",
    "Recipient Balance Before (ETH)", "Recipient Balance After (ETH)",
    "Recipient Balance Before (ERC20)", "Recipient Balance After (ERC20)",
    "Function", "Msg Value", "Calldata Value", "Msg.sender Owned Token IDs",
    "Tx Fee", "Gas Price", "Gas Used", "Receipt JSON",
)


class LedgerRecord(NamedTuple):
    """One ledger row exactly as stored, in column order."""

    transaction_hash: str
    derivation: str
    sender: str
    sender_balance_before_eth: str
    sender_balance_after_eth: str
    sender_balance_before_erc20: str
    sender_balance_after_erc20: str
    recipient: str
    recipient_balance_before_eth: str
    recipient_balance_after_eth: str
    recipient_balance_before_erc20: str
    recipient_balance_after_erc20: str
    function: str
    msg_value: str
    calldata_value: str
    msg_sender_owned_token_ids: str
    tx_fee: str
    gas_price: str
    gas_used: str
    receipt_json: str


@dataclass(frozen=True)
class LedgerEntry:
    """
    A row to append, with amounts still in base units (wei).

    Amounts left as None were not fetched and are written as zero so the
    column count never changes.
    """

    tx_hash: str
    derivation: int
    sender: str
    function: str
    tx_fee: str
    gas_price: str
    gas_used: str
    receipt_json: str
    recipient: str = ZERO_ADDRESS
    sender_eth_before: int | None = None
    sender_eth_after: int | None = None
    sender_erc20_before: int | None = None
    sender_erc20_after: int | None = None
    recipient_eth_before: int | None = None
    recipient_eth_after: int | None = None
    recipient_erc20_before: int | None = None
    recipient_erc20_after: int | None = None
    msg_value: int | None = None
    calldata_value: int | None = None
    owned_token_ids: list[int] | None = None

    def to_record(self) -> LedgerRecord:
        def eth(amount):
            return wei_to_eth(amount or 0)

        owned = ",".join(str(token_id) for token_id in self.owned_token_ids or [])
        return LedgerRecord(
            self.tx_hash,
            str(self.derivation),
            self.sender,
            eth(self.sender_eth_before),
            eth(self.sender_eth_after),
            eth(self.sender_erc20_before),
            eth(self.sender_erc20_after),
            self.recipient,
            eth(self.recipient_eth_before),
            eth(self.recipient_eth_after),
            eth(self.recipient_erc20_before),
            eth(self.recipient_erc20_after),
            self.function,
            eth(self.msg_value),
            eth(self.calldata_value),
            owned,
            self.tx_fee,
            self.gas_price,
            self.gas_used,
            self.receipt_json,
        )


# ----------------- Read path -----------------

def _check_header(path, header: list[str] | None) -> None:
    if header is None or tuple(header) != HEADERS:
        raise SchemaMismatch(str(path), list(header or []))


def read_records(path) -> list[LedgerRecord]:
    """All data rows of an existing ledger. Raises FileNotFoundError if absent."""
    csv.field_size_limit(FIELD_SIZE_LIMIT)
    try:
        with open(path, newline="", encoding="utf-8") as f:
            reader = csv.reader(f)
            header = next(reader, None)
            if header is None:
                return []
            _check_header(path, header)
            records = []
            for row in reader:
                if len(row) != len(HEADERS):
                    raise MalformedRow(str(path), reader.line_num, f"expected {len(HEADERS)} fields, got {len(row)}")
                records.append(LedgerRecord(*row))
            return records
    except FileNotFoundError:
        raise
    except csv.Error as exc:
        raise MalformedRow(str(path), 0, str(exc)) from exc
    except OSError as exc:
        raise LedgerIOFailure(f"Cannot read ledger {path}: {exc}") from exc


def derivation_numbers(path, records: list[LedgerRecord]) -> list[int]:
    numbers = []
    for line, record in enumerate(records, start=2):
        try:
            value = int(record.derivation)
        except ValueError:
            raise MalformedRow(str(path), line, f"derivation '{record.derivation}' is not an integer") from None
        if not 0 <= value <= UINT32_MAX:
            raise MalformedRow(str(path), line, f"derivation {value} is out of range")
        numbers.append(value)
    return numbers


def _highest_recorded(path) -> tuple[int, list[int]]:
    numbers = derivation_numbers(path, read_records(path))
    if not numbers:
        raise EmptyLedger(str(path))
    return max(numbers), sorted(numbers)


def _after(path, highest: int) -> int:
    if highest >= UINT32_MAX:
        raise LedgerError(f"Derivation numbers exhausted in: {path}")
    return highest + 1


def next_derivation(path) -> int:
    """
    Suggested derivation index for the next run: 0 for a new ledger,
    otherwise one past the highest index already recorded.
    """
    try:
        highest, _ = _highest_recorded(path)
    except FileNotFoundError:
        return 0
    return _after(path, highest)


def resolve_derivation(path, requested: int = 0) -> int:
    """
    Derivation index for this run. A nonzero `requested` always wins;
    zero means "use the next one". Nothing is reserved until a row is
    appended.
    """
    try:
        highest, recorded = _highest_recorded(path)
    except FileNotFoundError:
        print(f"> Starting new file: \"{path}\"")
        print("> File will only be created if a write transaction is executed and completed successfully")
        if requested:
            print(f"> Using provided derivation number: {requested}")
        else:
            print("> Defaulting derivation number to 0 for the current execution context")
        return requested

    print(f"> Recorded derivation numbers: {recorded}")
    print(f"> Highest derivation number last used: {highest}")
    if requested:
        print(f"> Using provided derivation number: {requested}")
        return requested

    suggested = _after(path, highest)
    print(f"> Using next derivation number: {suggested}")
    return suggested


# ----------------- Write path -----------------

def _lock(f, path) -> None:
    if fcntl is None:
        return
    try:
        fcntl.flock(f.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
    except BlockingIOError as exc:
        raise LedgerLocked(str(path)) from exc


def append(path, entry: LedgerEntry) -> LedgerRecord:
    """
    Append one row, creating the file with its header when needed.
    The row is flushed and fsynced before returning.
    """
    path = Path(path)
    record = entry.to_record()
    csv.field_size_limit(FIELD_SIZE_LIMIT)
    try:
        existed = path.exists()
        with open(path, "a+", newline="", encoding="utf-8") as f:
            _lock(f, path)
            f.seek(0, os.SEEK_END)
            empty = f.tell() == 0

            if existed or not empty:
                f.seek(0)
                _check_header(path, next(csv.reader(f), None))
                f.seek(0, os.SEEK_END)

            writer = csv.writer(f, lineterminator="\n")
            if empty and not existed:
                writer.writerow(HEADERS)
            writer.writerow(record)
            f.flush()
            os.fsync(f.fileno())
    except csv.Error as exc:
        raise SchemaMismatch(str(path), []) from exc
    except OSError as exc:
        raise LedgerIOFailure(f"Cannot write ledger {path}: {exc}") from exc

    print(f"Transaction hash: {entry.tx_hash}, from address: {entry.sender}, added to file: {path}")
    return record
