"""
Tests for the password primitive, profile security and money formatting.
"""

import hashlib

import pytest

from monthwise.services.auth import hash_password, verify_password
from monthwise.services.money import format_cents, format_with_sign, parse_to_cents
from monthwise.storage import ConstraintError, NotFoundError


class TestPasswordPrimitive:
    """Tests for hashing and verification."""

    def test_hash_is_deterministic_sha256(self):
        digest = hash_password("correct horse")
        assert digest == hash_password("correct horse")
        assert digest == hashlib.sha256(b"correct horse").hexdigest()
        assert "correct horse" not in digest

    def test_verify(self):
        digest = hash_password("s3cret")
        assert verify_password("s3cret", digest)
        assert not verify_password("S3cret", digest)


class TestProfileSecurity:
    """Tests for enabling, disabling and checking profile passwords."""

    def test_enable_verify_disable(self, app, run):
        run(app.security.enable(1, "pin1234"))

        assert run(app.security.is_secured(1)) is True
        assert run(app.security.verify(1, "pin1234")) is True
        assert run(app.security.verify(1, "nope")) is False
        status = run(app.profiles.get_security_settings(1))
        assert status.has_password is True

        run(app.security.disable(1))
        assert run(app.security.is_secured(1)) is False
        assert run(app.security.verify(1, "pin1234")) is False

    def test_digest_stored_not_password(self, app, run):
        run(app.security.enable(1, "pin1234"))
        profile = run(app.profiles.get(1))
        assert profile.password_hash == hash_password("pin1234")

    def test_empty_password_rejected(self, app, run):
        with pytest.raises(ConstraintError):
            run(app.security.enable(1, ""))

    def test_unknown_profile(self, app, run):
        with pytest.raises(NotFoundError):
            run(app.security.enable(42, "pw"))


class TestParseToCents:
    """Tests for float-free parsing of user input."""

    @pytest.mark.parametrize("text, expected", [
        ("10.50", 1050),
        ("10,50", 1050),
        ("1,234", 123),
        ("$1,234.56", 123456),
        ("10", 1000),
        ("-3", -300),
        ("0.29", 29),
        ("1.005", 101),
        (" € 7.1 ", 710),
    ])
    def test_valid_input(self, text, expected):
        assert parse_to_cents(text) == expected

    @pytest.mark.parametrize("text", ["", None, "abc", "-", "1.2.3", "--5"])
    def test_invalid_input(self, text):
        assert parse_to_cents(text) is None


class TestFormatCents:
    """Tests for display formatting."""

    def test_format(self):
        assert format_cents(123456) == "$1,234.56"
        assert format_cents(-500, "EUR") == "-€5.00"
        assert format_cents(7) == "$0.07"
        assert format_cents(100, "CHF") == "CHF 1.00"

    def test_hide_cents_rounds_half_up(self):
        assert format_cents(123450, hide_cents=True) == "$1,235"
        assert format_cents(-49, hide_cents=True) == "$0"

    def test_with_sign(self):
        assert format_with_sign(2500) == "+$25.00"
        assert format_with_sign(-2500) == "-$25.00"
        assert format_with_sign(0) == "$0.00"
