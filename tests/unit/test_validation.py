"""Tests for identifier, amount and hour validation."""

import math

import pytest
from pydantic import ValidationError

from src.domains.fraud.errors import InvalidInput
from src.domains.fraud.models import PostTransactionRequest, PreTransactionRequest
from src.domains.fraud.validation import (
    normalize_identifier,
    split_identifier,
    validate,
    validate_amount,
    validate_local_hour,
)


class TestNormalizeIdentifier:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("Rahul.Sharma@OKAXIS", "rahul.sharma@okaxis"),
            ("  ab@ybl ", "ab@ybl"),
            ("shop_24-7@paytm", "shop_24-7@paytm"),
        ],
    )
    def test_valid_identifiers_are_lowercased(self, raw, expected):
        assert normalize_identifier(raw) == expected

    @pytest.mark.parametrize(
        "raw",
        [
            "a@ybl",  # local part too short
            "rahul@o",  # handle too short
            "rahul@ok1axis",  # digits in handle
            "rahul sharma@okaxis",
            "rahulokaxis",
            "rahul@@okaxis",
            "",
            "x" * 257 + "@ybl",
        ],
    )
    def test_malformed_identifiers_rejected(self, raw):
        with pytest.raises(InvalidInput):
            normalize_identifier(raw)

    def test_non_string_rejected(self):
        with pytest.raises(InvalidInput):
            normalize_identifier(12345)


class TestValidateAmount:
    @pytest.mark.parametrize("amount", [0.01, 1, 500.5, 10_000_000])
    def test_accepts_positive_amounts_up_to_limit(self, amount):
        assert validate_amount(amount) == float(amount)

    @pytest.mark.parametrize(
        "amount", [0, -1, 10_000_000.01, math.inf, math.nan, True, "100", None]
    )
    def test_rejects_out_of_range_or_non_numeric(self, amount):
        with pytest.raises(InvalidInput):
            validate_amount(amount)


class TestValidateLocalHour:
    def test_bounds(self):
        assert validate_local_hour(0) == 0
        assert validate_local_hour(23) == 23
        for bad in (-1, 24, 2.5, None):
            with pytest.raises(InvalidInput):
                validate_local_hour(bad)


class TestValidate:
    def test_returns_normalized_pair(self):
        assert validate("Alice@YBL", 250) == ("alice@ybl", 250.0)

    def test_amount_checked_before_identifier(self):
        with pytest.raises(InvalidInput, match="amount"):
            validate("not-an-identifier", -5)


def test_split_identifier():
    assert split_identifier("rahul.sharma@okaxis") == ("rahul.sharma", "okaxis")


class TestRequestAmounts:
    @pytest.mark.parametrize("amount", [True, False, "100", None])
    def test_pre_transaction_amount_must_be_a_number(self, amount):
        with pytest.raises(ValidationError):
            PreTransactionRequest.model_validate(
                {"amount": amount, "receiverUpi": "priya@ybl", "localHour": 10}
            )

    @pytest.mark.parametrize("amount", [True, "100"])
    def test_post_transaction_amount_must_be_a_number(self, amount):
        with pytest.raises(ValidationError):
            PostTransactionRequest.model_validate(
                {
                    "transactionId": "5f0c7a52-8f1e-4f43-9c35-0e6f7b0a1d2e",
                    "amount": amount,
                    "receiverUpi": "priya@ybl",
                }
            )

    @pytest.mark.parametrize("amount", [250, 250.75])
    def test_ints_and_floats_accepted(self, amount):
        request = PreTransactionRequest.model_validate(
            {"amount": amount, "receiverUpi": "priya@ybl", "localHour": 10}
        )
        assert request.amount == amount
