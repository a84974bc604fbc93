"""Unit tests for customer value objects (DocumentId, Email, Phone, CountryCode)"""

import pytest

from domain.customers.errors import ValidationError
from domain.customers.value_objects import (
    CountryCode,
    DocumentId,
    DocumentType,
    Email,
    Phone,
    nit_check_digit,
)


class TestDocumentId:

    def test_cc_is_normalized_and_formatted(self):
        doc = DocumentId("CC", "12.345.678")

        assert doc.type is DocumentType.CC
        assert doc.number == "12.345.678"
        assert doc.normalized() == "12345678"
        assert doc.formatted() == "12.345.678"

    def test_nit_with_valid_check_digit(self):
        doc = DocumentId(DocumentType.NIT, "900123456-8")

        assert doc.normalized() == "9001234568"
        assert doc.formatted() == "900.123.456-8"

    def test_nit_check_digit_values(self):
        assert nit_check_digit("900123456") == 8
        assert nit_check_digit("800197268") == 4

    def test_nit_with_wrong_check_digit_is_rejected(self):
        with pytest.raises(ValidationError) as exc:
            DocumentId("NIT", "9001234567")
        assert exc.value.field == "document_number"

    def test_nit_weights_run_right_to_left(self):
        # Weighting left to right would give 6 for this body
        with pytest.raises(ValidationError):
            DocumentId("NIT", "9001234566")

    def test_nit_shorter_than_eight_digits_is_rejected(self):
        with pytest.raises(ValidationError):
            DocumentId("NIT", "1234567")

    @pytest.mark.parametrize("number", ["", "   ", "abc", "1234", "1234567890123456"])
    def test_invalid_numbers(self, number):
        with pytest.raises(ValidationError):
            DocumentId("CC", number)

    def test_unknown_type_is_rejected(self):
        with pytest.raises(ValidationError) as exc:
            DocumentId("XYZ", "12345678")
        assert exc.value.field == "document_type"

    def test_equality_uses_normalized_number(self):
        assert DocumentId("CC", "12.345.678") == DocumentId("CC", "12345678")
        assert DocumentId("CC", "12345678") != DocumentId("CE", "12345678")
        assert len({DocumentId("CC", "12.345.678"), DocumentId("CC", "12345678")}) == 1

    def test_passport_is_not_grouped(self):
        assert DocumentId("PA", "AB123456").formatted() == "123456"


class TestEmail:

    def test_valid_email_is_trimmed(self):
        assert Email("  juan@example.com ").value == "juan@example.com"

    def test_equality_ignores_case(self):
        assert Email("Juan.Perez@Example.com") == Email("juan.perez@example.com")
        assert Email("Juan@Example.com").normalized() == "juan@example.com"

    @pytest.mark.parametrize("value", ["", "   ", "not-an-email", "juan@", "@example.com"])
    def test_invalid_emails(self, value):
        with pytest.raises(ValidationError) as exc:
            Email(value)
        assert exc.value.field == "email"

    def test_too_long_email_is_rejected(self):
        with pytest.raises(ValidationError):
            Email("a" * 250 + "@example.com")


class TestPhone:

    @pytest.mark.parametrize("value,expected", [
        ("300 123 4567", "+573001234567"),
        ("+57 300 123 4567", "+573001234567"),
        ("6014567890", "+576014567890"),
        ("4567890", "+574567890"),
        ("+1 212 555 0100", "+12125550100"),
    ])
    def test_normalization(self, value, expected):
        assert Phone(value).normalized() == expected

    def test_equality_uses_normalized_form(self):
        assert Phone("300-123-4567") == Phone("+57 300 123 4567")

    @pytest.mark.parametrize("value", ["", "123456", "1234567890123456"])
    def test_invalid_phones(self, value):
        with pytest.raises(ValidationError):
            Phone(value)


class TestCountryCode:

    def test_code_is_upper_cased(self):
        assert CountryCode("co").value == "CO"
        assert str(CountryCode("us")) == "US"

    @pytest.mark.parametrize("value", ["", "COL", "C1", "XX"])
    def test_invalid_codes(self, value):
        with pytest.raises(ValidationError) as exc:
            CountryCode(value)
        assert exc.value.field == "country_code"
