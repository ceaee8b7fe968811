"""Unit tests for input validation helpers."""

import pytest

from app.core.validation import (
    NIDValidator,
    PasswordValidator,
    PhoneValidator,
    UsernameValidator,
    sanitize_string,
)


class TestPasswordValidator:
    def test_strong_password(self):
        assert PasswordValidator.validate("Dhaka#2026x") == (True, None)

    @pytest.mark.parametrize(
        "password, fragment",
        [
            ("Sh0rt!", "at least"),
            ("Password1", "too common"),
            ("nouppercase1!", "uppercase"),
            ("NOLOWERCASE1!", "lowercase"),
            ("NoDigitsHere!", "digit"),
            ("NoSpecial123", "special"),
        ],
    )
    def test_weak_passwords(self, password, fragment):
        is_valid, error = PasswordValidator.validate(password)

        assert is_valid is False
        assert fragment in error


class TestUsernameValidator:
    @pytest.mark.parametrize("username", ["rahim", "karim.uddin", "admin_01"])
    def test_valid(self, username):
        assert UsernameValidator.validate(username) == (True, None)

    @pytest.mark.parametrize("username", ["ab", "has space", "_leading", "trailing-", "x" * 51])
    def test_invalid(self, username):
        is_valid, _ = UsernameValidator.validate(username)
        assert is_valid is False


class TestPhoneValidator:
    """Test Bangladeshi mobile number normalization."""

    @pytest.mark.parametrize(
        "raw",
        ["01712345678", "+8801712345678", "8801712345678", "017-1234 5678"],
    )
    def test_normalizes_to_local_form(self, raw):
        assert PhoneValidator.normalize(raw) == "01712345678"

    @pytest.mark.parametrize("raw", ["", "0171234567", "01212345678", "+441712345678", "phone"])
    def test_invalid(self, raw):
        assert PhoneValidator.normalize(raw) is None


class TestNIDValidator:
    @pytest.mark.parametrize("raw", ["1234567890", "1990123456789", "19901234567890123", "123 456 7890"])
    def test_valid_lengths(self, raw):
        assert NIDValidator.normalize(raw) == raw.replace(" ", "")

    @pytest.mark.parametrize("raw", ["", "12345", "12345678901", "12345abcde", "১২৩৪৫৬৭৮৯০"])
    def test_invalid(self, raw):
        assert NIDValidator.normalize(raw) is None


def test_sanitize_string():
    assert sanitize_string("  hello\x00 world  ") == "hello world"
    assert sanitize_string("abcdef", max_length=3) == "abc"
    assert sanitize_string("") == ""
