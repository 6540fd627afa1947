"""Tests for the text parsers."""
import pytest

from invoice_bot.agent.conversation_state import Command, parse_command
from invoice_bot.services.parsers import (
    DELIVERY_INSIDE,
    DELIVERY_OUTSIDE,
    normalize_phone,
    parse_customer_info,
    parse_delivery_choice,
    parse_flat_discount,
    parse_price_edit,
    parse_quantity_directives,
    tokenize_product_query,
    validate_phone,
)


class TestCustomerInfo:
    def test_comma_format_keeps_commas_inside_address(self):
        info = parse_customer_info("Rahul Ahmed, Dhanmondi Road 27, Dhaka 1209, 01712345678")

        assert info.name == "Rahul Ahmed"
        assert info.address == "Dhanmondi Road 27, Dhaka 1209"
        assert info.phone == "01712345678"

    def test_phone_after_period_with_country_prefix(self):
        info = parse_customer_info("Karim, House 5 Road 2.+8801912345678")

        assert info.name == "Karim"
        assert info.address == "House 5 Road 2"
        assert info.phone == "01912345678"

    def test_dashed_phone(self):
        info = parse_customer_info("Sumi, Uttara Sector 7, 017-1234-5678")

        assert info.address == "Uttara Sector 7"
        assert info.phone == "01712345678"

    def test_phone_glued_to_address(self):
        info = parse_customer_info("Rafi, Road 201712345678")

        assert info.address == "Road 2"
        assert info.phone == "01712345678"

    def test_line_format(self):
        info = parse_customer_info("Rahim\nMirpur 10\n01812345678")

        assert info.name == "Rahim"
        assert info.address == "Mirpur 10"
        assert info.phone == "01812345678"

    def test_line_format_multi_line_address(self):
        info = parse_customer_info("Rahim\nHouse 3\nMirpur 10\n01812345678")

        assert info.address == "House 3, Mirpur 10"

    def test_bad_phone_is_returned_for_validation(self):
        info = parse_customer_info("Rahim, Mirpur, 12345")

        assert info is not None
        assert info.address == "Mirpur"
        assert not validate_phone(info.phone)

    @pytest.mark.parametrize("text", ["", "no commas here", "Rahim, 01712345678", "Only\ntwo lines"])
    def test_unparseable(self, text):
        assert parse_customer_info(text) is None


class TestPhone:
    @pytest.mark.parametrize(
        "phone", ["01712345678", "+8801712345678", "8801712345678", "017-1234-5678", "017 1234 5678"]
    )
    def test_valid(self, phone):
        assert validate_phone(phone)

    @pytest.mark.parametrize(
        "phone", ["0171234567", "017123456789", "02712345678", "1712345678", "abc", ""]
    )
    def test_invalid(self, phone):
        assert not validate_phone(phone)

    def test_normalize_strips_country_prefix(self):
        assert normalize_phone("+88 017-1234-5678") == "01712345678"


class TestQuantityDirectives:
    def test_ok_means_one_of_each(self):
        lines = parse_quantity_directives("OK", 3)

        assert [(l.product_index, l.quantity, l.discount_percent) for l in lines] == [
            (0, 1, 0.0), (1, 1, 0.0), (2, 1, 0.0),
        ]

    def test_positions_are_one_based(self):
        lines = parse_quantity_directives("1=2, 2=1", 2)

        assert [(l.product_index, l.quantity) for l in lines] == [(0, 2), (1, 1)]

    def test_row_discount(self):
        lines = parse_quantity_directives("1=1, D5", 1)

        assert lines[0].discount_percent == 5.0

    def test_row_discount_with_percent_sign_then_more_lines(self):
        lines = parse_quantity_directives("1=2, d10.5%, 2=1", 2)

        assert [(l.product_index, l.quantity, l.discount_percent) for l in lines] == [
            (0, 2, 10.5), (1, 1, 0.0),
        ]

    def test_out_of_range_is_left_to_caller(self):
        lines = parse_quantity_directives("3=1", 2)

        assert lines[0].product_index == 2

    @pytest.mark.parametrize("text", ["", "two of the first", "1:2"])
    def test_no_match(self, text):
        assert parse_quantity_directives(text, 2) is None


class TestOtherParsers:
    def test_tokenize_products(self):
        assert tokenize_product_query("iPhone 15 Pro,\n AirPods ,, \nMacBook") == [
            "iPhone 15 Pro", "AirPods", "MacBook",
        ]

    def test_price_edit(self):
        assert parse_price_edit("1 125000") == (0, 125000.0)
        assert parse_price_edit("  2   500 ") == (1, 500.0)

    @pytest.mark.parametrize("text", ["ok", "1", "1 12.5", "one 500"])
    def test_price_edit_rejects(self, text):
        assert parse_price_edit(text) is None

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("1", DELIVERY_INSIDE),
            ("2", DELIVERY_OUTSIDE),
            ("Inside Dhaka", DELIVERY_INSIDE),
            ("outside city", DELIVERY_OUTSIDE),
            ("3", None),
            ("12", None),
        ],
    )
    def test_delivery_choice(self, text, expected):
        assert parse_delivery_choice(text) == expected

    @pytest.mark.parametrize(
        "text,expected", [("0", 0.0), ("500", 500.0), ("1,000", 1000.0), ("250.5", 250.5)]
    )
    def test_flat_discount(self, text, expected):
        assert parse_flat_discount(text) == expected

    @pytest.mark.parametrize("text", ["-5", "abc", "nan", "inf", ""])
    def test_flat_discount_rejects(self, text):
        assert parse_flat_discount(text) is None


class TestCommands:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("/start", Command.START),
            ("/NEW", Command.NEW),
            ("/cancel@invoice_bot", Command.CANCEL),
            ("/help please", Command.HELP),
            ("/unknown", None),
            ("start", None),
            ("", None),
        ],
    )
    def test_parse_command(self, text, expected):
        assert parse_command(text) == expected
