import unittest

from web3 import Web3

from purse404.calldata import extract_recipient_and_amount, validate_calldata
from purse404.errors import MalformedArgument, UnsupportedFunction
from purse404.utils import ZERO_ADDRESS, parse_uint256, wei_to_eth, wei_to_gwei

from ._helpers import RECIPIENT


class ValidateCalldataTests(unittest.TestCase):
    def test_unknown_function_always_fails(self) -> None:
        for calldata in (None, [], ["1"], ["a", "b"], ["a", "b", "c"]):
            with self.assertRaises(UnsupportedFunction) as ctx:
                validate_calldata("burn", calldata)
            self.assertEqual(ctx.exception.function, "burn")
            self.assertIn("burn", str(ctx.exception))

    def test_zero_arity_requires_absent_calldata(self) -> None:
        for function in ("address", "minted", "mintingCost"):
            validate_calldata(function, None)
            with self.assertRaises(UnsupportedFunction):
                validate_calldata(function, [])
            with self.assertRaises(UnsupportedFunction):
                validate_calldata(function, ["1"])

    def test_single_argument_functions(self) -> None:
        for function in ("balanceOf", "owned", "mintERC721"):
            validate_calldata(function, ["1"])
            for calldata in (None, [], ["1", "2"]):
                with self.assertRaises(UnsupportedFunction):
                    validate_calldata(function, calldata)

    def test_two_argument_functions(self) -> None:
        for function in ("transfer", "mint"):
            validate_calldata(function, [RECIPIENT, "1"])
            for calldata in (None, [], [RECIPIENT], [RECIPIENT, "1", "2"]):
                with self.assertRaises(UnsupportedFunction):
                    validate_calldata(function, calldata)

    def test_blank_string_still_counts_as_an_argument(self) -> None:
        validate_calldata("owned", [""])


class ExtractRecipientAndAmountTests(unittest.TestCase):
    def test_transfer_keeps_full_uint256_precision(self) -> None:
        recipient, amount = extract_recipient_and_amount("transfer", [RECIPIENT, "1000000000000000000"])
        self.assertEqual(recipient, Web3.to_checksum_address(RECIPIENT.lower()))
        self.assertEqual(amount, 10**18)

        big = str(2**256 - 1)
        _, amount = extract_recipient_and_amount("mint", [RECIPIENT, big])
        self.assertEqual(amount, 2**256 - 1)

    def test_mint_erc721_has_zero_address_recipient(self) -> None:
        self.assertEqual(extract_recipient_and_amount("mintERC721", ["3"]), (ZERO_ADDRESS, 3))

    def test_other_functions_move_nothing(self) -> None:
        self.assertEqual(extract_recipient_and_amount("balanceOf", [RECIPIENT]), (ZERO_ADDRESS, 0))
        self.assertEqual(extract_recipient_and_amount("minted", []), (ZERO_ADDRESS, 0))

    def test_address_without_prefix_or_checksum_is_accepted(self) -> None:
        recipient, _ = extract_recipient_and_amount("transfer", [RECIPIENT[2:].upper(), "1"])
        self.assertEqual(recipient, Web3.to_checksum_address(RECIPIENT.lower()))

    def test_malformed_address_reports_position(self) -> None:
        with self.assertRaises(MalformedArgument) as ctx:
            extract_recipient_and_amount("transfer", ["0xbadc0ffee", "1"])
        self.assertEqual(ctx.exception.position, 0)
        self.assertEqual(ctx.exception.raw_value, "0xbadc0ffee")

    def test_malformed_amount_reports_position(self) -> None:
        for raw in ("aaabbbccc", "-1", "1.5", str(2**256)):
            with self.assertRaises(MalformedArgument) as ctx:
                extract_recipient_and_amount("mint", [RECIPIENT, raw])
            self.assertEqual(ctx.exception.position, 1)
            self.assertEqual(ctx.exception.raw_value, raw)


class UnitsTests(unittest.TestCase):
    def test_parse_uint256(self) -> None:
        self.assertEqual(parse_uint256("0"), 0)
        self.assertEqual(parse_uint256(" 999888777 "), 999888777)
        with self.assertRaises(ValueError):
            parse_uint256("0x10")

    def test_wei_to_eth_is_exact(self) -> None:
        self.assertEqual(wei_to_eth(0), "0")
        self.assertEqual(wei_to_eth(10**18), "1")
        self.assertEqual(wei_to_eth(1_500_000_000_000_000_000), "1.5")
        self.assertEqual(wei_to_eth(1), "0.000000000000000001")

    def test_wei_to_gwei(self) -> None:
        self.assertEqual(wei_to_gwei(2_000_000_000), "2")
        self.assertEqual(wei_to_gwei(1_500_000_000), "1.5")


if __name__ == "__main__":
    unittest.main()
