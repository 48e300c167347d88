"""Lexical validation of provider message identifiers.

Twilio message SIDs look like ``SM`` followed by 32 hexadecimal digits.
A failed check reports *which* rule broke so operators can tell a provider
bug (bad hex) from a transport mismatch (an ``AC`` account SID, say).
"""

from __future__ import annotations

import string

from .types import IdentifierIssue, ValidationResult

TWILIO_MESSAGE_SID_PREFIX = "SM"
TWILIO_MESSAGE_SID_LENGTH = 34

_HEX_DIGITS = frozenset(string.hexdigits)


class IdentifierValidator:
    """Checks identifiers against ``<prefix><hex digits>`` of a fixed length."""

    def __init__(
        self,
        prefix: str = TWILIO_MESSAGE_SID_PREFIX,
        length: int = TWILIO_MESSAGE_SID_LENGTH,
    ) -> None:
        if length <= len(prefix):
            raise ValueError("length must leave room for hexadecimal digits after the prefix")
        self.prefix = prefix
        self.length = length

    def validate(self, sid: str | None) -> ValidationResult:
        if sid is None or not sid.strip():
            return ValidationResult.invalid(IdentifierIssue.EMPTY_IDENTIFIER, "Identifier cannot be empty")

        sid = sid.strip()

        if len(sid) != self.length:
            return ValidationResult.invalid(
                IdentifierIssue.WRONG_LENGTH,
                f"Invalid length: {len(sid)} characters (expected {self.length})",
            )

        if not sid.startswith(self.prefix):
            return ValidationResult.invalid(
                IdentifierIssue.WRONG_PREFIX,
                f'Identifier must start with "{self.prefix}", got "{sid[:len(self.prefix)]}"',
            )

        for position, char in enumerate(sid[len(self.prefix):], start=len(self.prefix)):
            if char not in _HEX_DIGITS:
                return ValidationResult.invalid(
                    IdentifierIssue.NON_HEX_CHARACTER,
                    f"Non-hexadecimal character {char!r} at position {position}",
                )

        return ValidationResult.ok(f"Valid {self.prefix} identifier")


_default_validator = IdentifierValidator()


def validate_identifier(sid: str | None) -> ValidationResult:
    """Validate *sid* as a Twilio message SID."""
    return _default_validator.validate(sid)
