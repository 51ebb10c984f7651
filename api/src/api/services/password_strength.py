"""Password strength policy for admin credentials."""

from __future__ import annotations

import re

from api.services.account_lifecycle import StrengthResult, Violation

SPECIAL_CHARACTERS = r"!@#$%^&*()_+\-=\[\]{}|;:,.<>?"
MIN_SCORE = 4

COMMON_PASSWORDS = frozenset(
    {
        "password",
        "admin123",
        "12345678",
        "qwerty",
        "abc123",
        "password123",
        "admin",
        "letmein",
        "welcome",
        "monkey",
        "welcome123",
        "test123",
        "password1",
        "dragon",
        "baseball",
    }
)

_LOWER = re.compile(r"[a-z]")
_UPPER = re.compile(r"[A-Z]")
_DIGIT = re.compile(r"[0-9]")
_SPECIAL = re.compile(f"[{SPECIAL_CHARACTERS}]")


class PasswordStrengthPolicy:
    """Character-class and denylist checks, scored 0-6.

    Length contributes to the score (two points at ``long_length`` and above, one point
    from ``short_length``) but never produces a violation on its own; minimum length is
    an input rule of the caller.
    """

    def __init__(self, *, short_length: int = 8, long_length: int = 12) -> None:
        self.short_length = short_length
        self.long_length = long_length

    def evaluate(self, candidate: str, *, username: str | None = None) -> StrengthResult:
        violations: list[Violation] = []
        score = 0

        if len(candidate) >= self.long_length:
            score += 2
        elif len(candidate) >= self.short_length:
            score += 1

        for pattern, code, message in (
            (_LOWER, "missing_lowercase", "Password must contain lowercase letters"),
            (_UPPER, "missing_uppercase", "Password must contain uppercase letters"),
            (_DIGIT, "missing_digit", "Password must contain numbers"),
            (_SPECIAL, "missing_special", "Password must contain special characters"),
        ):
            if pattern.search(candidate):
                score += 1
            else:
                violations.append(Violation(code, message, "newPassword"))

        if candidate.lower() in COMMON_PASSWORDS:
            score = 0
            violations.append(
                Violation("common_password", "Password is too common", "newPassword")
            )

        if username and len(username) >= 3 and username.lower() in candidate.lower():
            violations.append(
                Violation(
                    "contains_username",
                    "Password must not contain your username",
                    "newPassword",
                )
            )

        return StrengthResult(
            valid=score >= MIN_SCORE and not violations,
            score=score,
            violations=tuple(violations),
        )
