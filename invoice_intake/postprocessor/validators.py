"""
Identifier Validators Module.

This module provides checksum validation for the identifiers found on
French invoices:
    - IBAN (ISO 7064 mod-97-10), French accounts only
    - SIRET (Luhn-style mod-10)

Validators never raise: malformed input is simply invalid.
"""

import re
from typing import Optional, Tuple

from invoice_intake.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


class IbanValidator:
    """
    Validates French IBANs.

    The number is rearranged (country code and check digits moved to the
    end), letters are expanded to two digits (A=10 ... Z=35) and the
    resulting digit string must leave a remainder of 1 modulo 97.

    Example:
        >>> validator = IbanValidator()
        >>> validator.is_valid("FR76 3000 6000 0112 3456 7890 189")
        True
        >>> validator.validate("FR7630006000011234567890188")
        (False, 'Checksum mismatch')
    """

    PATTERN = re.compile(r'^FR\d{25}$')

    def is_valid(self, iban: Optional[str]) -> bool:
        valid, _ = self.validate(iban)
        return valid

    def validate(self, iban: Optional[str]) -> Tuple[bool, str]:
        """
        Validate an IBAN with detailed feedback.

        Args:
            iban: IBAN as extracted, spaces allowed.

        Returns:
            Tuple of (is_valid, message).
        """
        if not iban:
            return False, "IBAN is empty"

        compact = re.sub(r'\s+', '', iban).upper()
        if not self.PATTERN.match(compact):
            return False, "Not a French IBAN (FR + 25 digits)"

        rearranged = compact[4:] + compact[:4]

        remainder = 0
        for char in rearranged:
            digits = str(ord(char) - 55) if char.isalpha() else char
            for digit in digits:
                remainder = (remainder * 10 + int(digit)) % 97

        if remainder != 1:
            return False, "Checksum mismatch"
        return True, "Valid IBAN"


class SiretValidator:
    """
    Validates SIRET numbers.

    Digits at even positions (0-indexed) are doubled, 9 is subtracted from
    doubled values above 9, and the digit total must be a multiple of 10.

    Example:
        >>> SiretValidator().is_valid("732 829 320 00074")
        True
        >>> SiretValidator().is_valid("12345678901234")
        False
    """

    PATTERN = re.compile(r'^\d{14}$')

    def is_valid(self, siret: Optional[str]) -> bool:
        valid, _ = self.validate(siret)
        return valid

    def validate(self, siret: Optional[str]) -> Tuple[bool, str]:
        """
        Validate a SIRET with detailed feedback.

        Args:
            siret: SIRET as extracted, spaces allowed.

        Returns:
            Tuple of (is_valid, message).
        """
        if not siret:
            return False, "SIRET is empty"

        compact = re.sub(r'\s+', '', siret)
        if not self.PATTERN.match(compact):
            return False, "SIRET must be exactly 14 digits"

        total = 0
        for index, char in enumerate(compact):
            digit = int(char)
            if index % 2 == 0:
                digit *= 2
                if digit > 9:
                    digit -= 9
            total += digit

        if total % 10 != 0:
            return False, "Checksum mismatch"
        return True, "Valid SIRET"


_iban_validator = IbanValidator()
_siret_validator = SiretValidator()


def is_valid_iban(iban: Optional[str]) -> bool:
    """True if ``iban`` is a French IBAN with a correct mod-97 checksum."""
    return _iban_validator.is_valid(iban)


def is_valid_siret(siret: Optional[str]) -> bool:
    """True if ``siret`` is 14 digits with a correct Luhn-style checksum."""
    return _siret_validator.is_valid(siret)
