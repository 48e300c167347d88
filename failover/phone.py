"""Phone number normalization.

Recipients arrive in whatever shape a person typed them: ``082 123 4567``,
``+27 82 123 4567``, ``whatsapp:+27821234567``. Every one of them has to map
to the same ``+27821234567`` so that history lookups and retries line up.
"""

from __future__ import annotations

import re

from .errors import InvalidRecipient
from .types import NormalizedRecipient

SOUTH_AFRICA_COUNTRY_CODE = "27"
SOUTH_AFRICA_TRUNK_PREFIX = "0"
SOUTH_AFRICA_SUBSCRIBER_DIGITS = 9

_NON_DIGITS = re.compile(r"\D")


class PhoneNumberNormalizer:
    """Canonicalizes raw phone numbers for one target country.

    Examples:
        >>> PhoneNumberNormalizer().normalize("082 123 4567")
        '+27821234567'
        >>> PhoneNumberNormalizer().normalize("+27 (82) 123-4567")
        '+27821234567'
    """

    def __init__(
        self,
        country_code: str = SOUTH_AFRICA_COUNTRY_CODE,
        trunk_prefix: str = SOUTH_AFRICA_TRUNK_PREFIX,
        subscriber_digits: int = SOUTH_AFRICA_SUBSCRIBER_DIGITS,
    ) -> None:
        if not country_code.isdigit():
            raise ValueError(f"country_code must be digits, got {country_code!r}")
        if subscriber_digits <= 0:
            raise ValueError("subscriber_digits must be positive")
        self.country_code = country_code
        self.trunk_prefix = trunk_prefix
        self.subscriber_digits = subscriber_digits

    @property
    def total_digits(self) -> int:
        return len(self.country_code) + self.subscriber_digits

    def normalize(self, raw: str | None) -> NormalizedRecipient:
        """Return the canonical form of *raw* or raise :class:`InvalidRecipient`."""
        if not raw or not raw.strip():
            raise InvalidRecipient(raw, "Recipient is empty")

        digits = _NON_DIGITS.sub("", raw)
        if not digits:
            raise InvalidRecipient(raw, "Recipient contains no digits")

        if self.trunk_prefix and digits.startswith(self.trunk_prefix):
            digits = self.country_code + digits[len(self.trunk_prefix):]
        elif not (digits.startswith(self.country_code) and len(digits) == self.total_digits):
            digits = self.country_code + digits

        if len(digits) != self.total_digits:
            raise InvalidRecipient(
                raw,
                f"Expected {self.total_digits} digits including country code {self.country_code}, "
                f"got {len(digits)}",
            )
        return NormalizedRecipient(f"+{digits}")

    def try_normalize(self, raw: str | None) -> NormalizedRecipient | None:
        try:
            return self.normalize(raw)
        except InvalidRecipient:
            return None

    def phones_match(self, phone1: str | None, phone2: str | None) -> bool:
        """Check if two raw numbers reach the same destination."""
        norm1 = self.try_normalize(phone1)
        norm2 = self.try_normalize(phone2)
        return norm1 == norm2 if norm1 and norm2 else False


_default_normalizer = PhoneNumberNormalizer()


def normalize_phone(raw: str | None) -> NormalizedRecipient:
    """Normalize *raw* with the default (South African) rules."""
    return _default_normalizer.normalize(raw)


def phones_match(phone1: str | None, phone2: str | None) -> bool:
    return _default_normalizer.phones_match(phone1, phone2)


def mask_phone(phone: str | None) -> str:
    """Hide the middle of a phone number for logs: ``+27821234567`` -> ``+278*****567``."""
    if not phone:
        return ""
    if len(phone) <= 6:
        return phone
    return f"{phone[:4]}{'*' * (len(phone) - 7)}{phone[-3:]}"
