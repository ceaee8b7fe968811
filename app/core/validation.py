"""Input validation utilities for registration and voter data entry."""

import re


class PasswordValidator:
    """Validate password strength and complexity."""

    MIN_LENGTH = 8
    MAX_LENGTH = 128

    SPECIAL_CHARS = "!@#$%^&*(),.?\":{}|<>"

    COMMON_PASSWORDS = {
        "password",
        "12345678",
        "qwerty123",
        "password1",
        "admin123",
        "bangladesh",
        "letmein1",
    }

    @classmethod
    def validate(cls, password: str) -> tuple[bool, str | None]:
        """
        Validate password strength.

        Returns:
            Tuple of (is_valid, error_message)
        """
        if len(password) < cls.MIN_LENGTH:
            return False, f"Password must be at least {cls.MIN_LENGTH} characters long"

        if len(password) > cls.MAX_LENGTH:
            return False, f"Password must not exceed {cls.MAX_LENGTH} characters"

        if password.lower() in cls.COMMON_PASSWORDS:
            return (
                False,
                "This password is too common. Please choose a stronger password",
            )

        if not re.search(r"[A-Z]", password):
            return False, "Password must contain at least one uppercase letter"

        if not re.search(r"[a-z]", password):
            return False, "Password must contain at least one lowercase letter"

        if not re.search(r"\d", password):
            return False, "Password must contain at least one digit"

        if not any(c in cls.SPECIAL_CHARS for c in password):
            return False, "Password must contain at least one special character"

        return True, None


class UsernameValidator:
    """Validate username format and constraints."""

    MIN_LENGTH = 3
    MAX_LENGTH = 50

    VALID_PATTERN = re.compile(r"^[a-zA-Z0-9._-]+$")

    @classmethod
    def validate(cls, username: str) -> tuple[bool, str | None]:
        """
        Validate username format.

        Returns:
            Tuple of (is_valid, error_message)
        """
        if len(username) < cls.MIN_LENGTH:
            return False, f"Username must be at least {cls.MIN_LENGTH} characters long"

        if len(username) > cls.MAX_LENGTH:
            return False, f"Username must not exceed {cls.MAX_LENGTH} characters"

        if not cls.VALID_PATTERN.match(username):
            return (
                False,
                "Username can only contain letters, numbers, dots, hyphens, and underscores",
            )

        if username[0] in "._-" or username[-1] in "._-":
            return False, "Username cannot start or end with a special character"

        return True, None


class PhoneValidator:
    """Validate and normalize Bangladeshi mobile numbers."""

    PATTERN = re.compile(r"^(?:\+?880|0)?(1[3-9][0-9]{8})$")

    @classmethod
    def normalize(cls, phone: str) -> str | None:
        """
        Return the number in local ``01XXXXXXXXX`` form, or None if invalid.

        Spaces and hyphens are ignored.
        """
        cleaned = re.sub(r"[\s-]", "", phone or "")
        match = cls.PATTERN.match(cleaned)
        if not match:
            return None
        return "0" + match.group(1)


class NIDValidator:
    """Bangladeshi national ID numbers: 10-digit smart card, 13- or 17-digit legacy."""

    VALID_LENGTHS = (10, 13, 17)

    @classmethod
    def normalize(cls, nid: str) -> str | None:
        """Digits only, or None if the number has an impossible length."""
        cleaned = re.sub(r"[\s-]", "", nid or "")
        if not cleaned.isascii() or not cleaned.isdigit() or len(cleaned) not in cls.VALID_LENGTHS:
            return None
        return cleaned


def sanitize_string(value: str, max_length: int = 1000) -> str:
    """
    Sanitize string input: truncate, drop null bytes, strip whitespace.
    """
    if not value:
        return ""

    value = value[:max_length]
    value = value.replace("\x00", "")
    return value.strip()
