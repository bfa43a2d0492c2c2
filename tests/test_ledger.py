import csv
import io
import json
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest.mock import patch

from purse404 import ledger
from purse404.errors import EmptyLedger, LedgerLocked, MalformedRow, SchemaMismatch
from purse404.ledger import HEADERS, LedgerEntry

from ._helpers import ACCOUNT_0, RECIPIENT


def entry(derivation: int = 0, **overrides) -> LedgerEntry:
    fields = dict(
        tx_hash="0x" + "ab" * 32,
        derivation=derivation,
        sender=ACCOUNT_0,
        function="transfer",
        tx_fee="0.000042",
        gas_price="2",
        gas_used="21000",
        receipt_json='{"status": 1}',
    )
    fields.update(overrides)
    return LedgerEntry(**fields)


def write_rows(path: Path, derivations, header=HEADERS) -> None:
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f, lineterminator="\n")
        writer.writerow(header)
        for number in derivations:
            writer.writerow(entry(number).to_record())


class LedgerTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.path = Path(self._tmp.name) / "ledger.csv"

    def quiet(self, fn, *args):
        with redirect_stdout(io.StringIO()):
            return fn(*args)


class DerivationTests(LedgerTestCase):
    def test_missing_file_starts_at_zero(self) -> None:
        self.assertEqual(ledger.next_derivation(self.path), 0)
        self.assertEqual(self.quiet(ledger.resolve_derivation, self.path, 0), 0)
        self.assertFalse(self.path.exists())

    def test_missing_file_honours_explicit_number(self) -> None:
        self.assertEqual(self.quiet(ledger.resolve_derivation, self.path, 4), 4)

    def test_header_only_file_is_an_error(self) -> None:
        write_rows(self.path, [])
        with self.assertRaises(EmptyLedger):
            ledger.next_derivation(self.path)
        with self.assertRaises(EmptyLedger):
            self.quiet(ledger.resolve_derivation, self.path, 0)

    def test_next_is_one_past_the_highest(self) -> None:
        write_rows(self.path, [3, 1, 7, 2])
        self.assertEqual(ledger.next_derivation(self.path), 8)

    def test_explicit_number_wins_over_suggestion(self) -> None:
        write_rows(self.path, [0, 2])
        self.assertEqual(self.quiet(ledger.resolve_derivation, self.path, 0), 3)
        self.assertEqual(self.quiet(ledger.resolve_derivation, self.path, 5), 5)

    def test_non_numeric_derivation_is_malformed(self) -> None:
        write_rows(self.path, [1])
        with open(self.path, "a", newline="", encoding="utf-8") as f:
            row = list(entry(0).to_record())
            row[1] = "abc"
            csv.writer(f, lineterminator="\n").writerow(row)
        with self.assertRaises(MalformedRow) as ctx:
            ledger.next_derivation(self.path)
        self.assertEqual(ctx.exception.line, 3)

    def test_short_row_is_malformed(self) -> None:
        write_rows(self.path, [1])
        with open(self.path, "a", encoding="utf-8") as f:
            f.write("0xabc,2\n")
        with self.assertRaises(MalformedRow):
            ledger.read_records(self.path)

    def test_reordered_header_is_rejected(self) -> None:
        header = list(HEADERS)
        header[0], header[1] = header[1], header[0]
        write_rows(self.path, [1], header=header)
        with self.assertRaises(SchemaMismatch):
            ledger.next_derivation(self.path)


class AppendTests(LedgerTestCase):
    def test_creates_file_with_header(self) -> None:
        self.quiet(ledger.append, self.path, entry(0))

        with open(self.path, newline="", encoding="utf-8") as f:
            rows = list(csv.reader(f))
        self.assertEqual(rows[0], list(HEADERS))
        self.assertEqual(len(rows), 2)
        self.assertEqual(len(rows[1]), 20)

    def test_round_trip(self) -> None:
        self.quiet(ledger.append, self.path, entry(0))
        self.quiet(ledger.append, self.path, entry(
            1,
            recipient=RECIPIENT,
            sender_eth_before=2 * 10**18,
            calldata_value=10**18,
            owned_token_ids=[1, 2, 3],
        ))

        records = ledger.read_records(self.path)
        self.assertEqual([r.derivation for r in records], ["0", "1"])
        second = records[1]
        self.assertEqual(second.recipient, RECIPIENT)
        self.assertEqual(second.sender_balance_before_eth, "2")
        self.assertEqual(second.calldata_value, "1")
        self.assertEqual(second.msg_sender_owned_token_ids, "1,2,3")
        self.assertEqual(second.receipt_json, '{"status": 1}')
        self.assertEqual(ledger.next_derivation(self.path), 2)

    def test_missing_amounts_are_written_as_zero(self) -> None:
        record = entry(0).to_record()
        self.assertEqual(record.sender_balance_before_eth, "0")
        self.assertEqual(record.recipient_balance_after_erc20, "0")
        self.assertEqual(record.msg_value, "0")
        self.assertEqual(record.msg_sender_owned_token_ids, "")
        self.assertEqual(record.recipient, "0x0000000000000000000000000000000000000000")

    def test_smallest_amount_is_not_rounded(self) -> None:
        self.assertEqual(entry(0, msg_value=1).to_record().msg_value, "0.000000000000000001")

    def test_mismatched_header_leaves_file_untouched(self) -> None:
        for header in (list(HEADERS)[::-1], list(HEADERS) + ["Extra"]):
            write_rows(self.path, [1], header=header)
            before = self.path.read_bytes()
            with self.assertRaises(SchemaMismatch):
                self.quiet(ledger.append, self.path, entry(2))
            self.assertEqual(self.path.read_bytes(), before)

    def test_existing_empty_file_is_rejected(self) -> None:
        self.path.touch()
        with self.assertRaises(SchemaMismatch):
            self.quiet(ledger.append, self.path, entry(0))
        self.assertEqual(self.path.read_bytes(), b"")

    def test_large_receipt_reads_back(self) -> None:
        # start from the csv module default so the raised limit is exercised
        self.addCleanup(csv.field_size_limit, csv.field_size_limit(131072))
        log = {
            "address": RECIPIENT,
            "topics": ["0x" + "dd" * 32, "0x" + "00" * 32, "0x" + "11" * 32, "0x" + "22" * 32],
            "data": "0x" + "00" * 600,
        }
        receipt_json = json.dumps({"status": 1, "logs": [log] * 250})
        self.assertGreater(len(receipt_json), 200_000)

        self.quiet(ledger.append, self.path, entry(0))
        self.quiet(ledger.append, self.path, entry(1, receipt_json=receipt_json))
        self.quiet(ledger.append, self.path, entry(2))

        records = ledger.read_records(self.path)
        self.assertEqual(records[1].receipt_json, receipt_json)
        self.assertEqual(ledger.next_derivation(self.path), 3)

    def test_unparsable_header_is_a_schema_mismatch(self) -> None:
        write_rows(self.path, [0])
        before = self.path.read_bytes()
        with patch.object(ledger.csv, "reader", side_effect=csv.Error("bad quoting")):
            with self.assertRaises(SchemaMismatch):
                self.quiet(ledger.append, self.path, entry(1))
        self.assertEqual(self.path.read_bytes(), before)

    @unittest.skipIf(ledger.fcntl is None, "advisory locks need fcntl")
    def test_concurrent_writer_is_refused(self) -> None:
        write_rows(self.path, [0])
        before = self.path.read_bytes()
        with open(self.path, "a") as held:
            ledger.fcntl.flock(held.fileno(), ledger.fcntl.LOCK_EX)
            with self.assertRaises(LedgerLocked):
                self.quiet(ledger.append, self.path, entry(1))
        self.assertEqual(self.path.read_bytes(), before)


if __name__ == "__main__":
    unittest.main()
