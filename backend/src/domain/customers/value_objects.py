"""Self-validating value objects for the customer domain.

Every value object validates on construction and raises ValidationError, so an
instance that exists is always valid. All of them are immutable and compare by
their normalized form.
"""

import re
from dataclasses import dataclass
from enum import Enum

from email_validator import EmailNotValidError, validate_email

from .errors import ValidationError


_NON_DIGITS = re.compile(r"[^0-9]")

# DIAN weight cycle for NIT check digits, applied from the rightmost digit
NIT_WEIGHTS = (3, 7, 13, 17, 19, 23, 29, 37, 41, 43, 47, 53, 59, 67, 71)

SUPPORTED_COUNTRY_CODES = frozenset({
    "CO", "US", "CA", "MX", "BR", "AR", "CL", "PE", "EC", "VE",
    "ES", "FR", "DE", "IT", "GB", "PT", "NL", "BE", "CH", "AT",
})

EMAIL_MAX_LENGTH = 255


def digits_only(value: str) -> str:
    """Strip every non-digit character."""
    return _NON_DIGITS.sub("", value or "")


def nit_check_digit(body: str) -> int:
    """Compute the mod-11 check digit for a NIT body (digits without the DV).

    Example:
        >>> nit_check_digit("800197268")
        4
    """
    total = 0
    for position, digit in enumerate(reversed(body)):
        total += int(digit) * NIT_WEIGHTS[position % len(NIT_WEIGHTS)]

    remainder = total % 11
    return remainder if remainder < 2 else 11 - remainder


def _group_thousands(digits: str) -> str:
    return f"{int(digits):,}".replace(",", ".")


class DocumentType(str, Enum):
    """Identity document types accepted for customers."""
    CC = "CC"    # Cedula de ciudadania
    NIT = "NIT"  # Tax id (juridical persons), carries a check digit
    CE = "CE"    # Cedula de extranjeria
    PA = "PA"    # Passport
    TI = "TI"    # Tarjeta de identidad
    RC = "RC"    # Registro civil


@dataclass(frozen=True)
class DocumentId:
    """Identity document (type + number).

    The number is kept as entered; `normalized()` gives the digits used for
    comparison and storage lookups.
    """
    type: DocumentType
    number: str

    def __post_init__(self):
        try:
            doc_type = DocumentType(self.type)
        except ValueError:
            valid = ", ".join(t.value for t in DocumentType)
            raise ValidationError(
                f"Invalid document type '{self.type}'. Valid types: {valid}",
                field="document_type",
            )
        object.__setattr__(self, "type", doc_type)
        self._validate_number(str(self.number or "").strip())
        object.__setattr__(self, "number", str(self.number).strip())

    def _validate_number(self, number: str) -> None:
        if not number:
            raise ValidationError("Document number cannot be empty", field="document_number")

        digits = digits_only(number)
        if not digits:
            raise ValidationError(
                "Document number must contain at least one digit", field="document_number"
            )

        if not 5 <= len(digits) <= 15:
            raise ValidationError(
                "Document number must have between 5 and 15 digits", field="document_number"
            )

        if self.type == DocumentType.NIT:
            self._validate_nit(digits)

    @staticmethod
    def _validate_nit(digits: str) -> None:
        if len(digits) < 8:
            raise ValidationError("A NIT must have at least 8 digits", field="document_number")

        body, check_digit = digits[:-1], int(digits[-1])
        if nit_check_digit(body) != check_digit:
            raise ValidationError("NIT check digit is incorrect", field="document_number")

    def normalized(self) -> str:
        return digits_only(self.number)

    def formatted(self) -> str:
        """Human-readable form: 12.345.678 for CC, 900.123.456-8 for NIT."""
        digits = self.normalized()

        if self.type == DocumentType.CC:
            return _group_thousands(digits)

        if self.type == DocumentType.NIT and len(digits) >= 9:
            return f"{_group_thousands(digits[:-1])}-{digits[-1]}"

        return digits

    def __str__(self) -> str:
        return f"{self.type.value}:{self.number}"

    def __eq__(self, other) -> bool:
        if not isinstance(other, DocumentId):
            return NotImplemented
        return self.type == other.type and self.normalized() == other.normalized()

    def __hash__(self) -> int:
        return hash((self.type, self.normalized()))


@dataclass(frozen=True)
class Email:
    """E-mail address; equality is case- and whitespace-insensitive."""
    value: str

    def __post_init__(self):
        value = (self.value or "").strip()
        if not value:
            raise ValidationError("Email cannot be empty", field="email")

        if len(value) > EMAIL_MAX_LENGTH:
            raise ValidationError(
                f"Email cannot be longer than {EMAIL_MAX_LENGTH} characters", field="email"
            )

        try:
            validate_email(value, check_deliverability=False)
        except EmailNotValidError:
            raise ValidationError("Email format is invalid", field="email")

        object.__setattr__(self, "value", value)

    def normalized(self) -> str:
        return self.value.strip().lower()

    def __str__(self) -> str:
        return self.value

    def __eq__(self, other) -> bool:
        if not isinstance(other, Email):
            return NotImplemented
        return self.normalized() == other.normalized()

    def __hash__(self) -> int:
        return hash(self.normalized())


@dataclass(frozen=True)
class Phone:
    """Phone number, normalized to a +<country><number> canonical form.

    Numbers without a country prefix are assumed to be Colombian (+57).
    """
    value: str

    def __post_init__(self):
        value = (self.value or "").strip()
        if not value:
            raise ValidationError("Phone cannot be empty", field="phone")

        digits = digits_only(value)
        if not 7 <= len(digits) <= 15:
            raise ValidationError("Phone must have between 7 and 15 digits", field="phone")

        object.__setattr__(self, "value", value)

    def digits(self) -> str:
        return digits_only(self.value)

    def normalized(self) -> str:
        digits = self.digits()

        if len(digits) == 12 and digits.startswith("57"):
            return f"+{digits}"

        if len(digits) == 10 and digits.startswith("3"):
            return f"+57{digits}"

        if len(digits) <= 10:
            return f"+57{digits}"

        return f"+{digits}"

    def __str__(self) -> str:
        return self.value

    def __eq__(self, other) -> bool:
        if not isinstance(other, Phone):
            return NotImplemented
        return self.normalized() == other.normalized()

    def __hash__(self) -> int:
        return hash(self.normalized())


@dataclass(frozen=True)
class CountryCode:
    """ISO 3166-1 alpha-2 country code from the supported list."""
    value: str

    def __post_init__(self):
        code = (self.value or "").strip()
        if not code:
            raise ValidationError("Country code cannot be empty", field="country_code")

        if len(code) != 2:
            raise ValidationError(
                "Country code must have exactly 2 characters", field="country_code"
            )

        if not code.isalpha():
            raise ValidationError("Country code must contain only letters", field="country_code")

        if code.upper() not in SUPPORTED_COUNTRY_CODES:
            raise ValidationError(f"Unsupported country code: {code}", field="country_code")

        object.__setattr__(self, "value", code.upper())

    def normalized(self) -> str:
        return self.value.upper()

    def __str__(self) -> str:
        return self.normalized()
