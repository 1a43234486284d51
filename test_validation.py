"""
Unit tests for creation request validation.
"""
import pytest

from schemas import UserCreate
from validation import is_valid_email, validate_user


def make_request(**overrides):
    fields = {"first_name": "Carol", "last_name": "Lee", "email": "carol@x.com"}
    fields.update(overrides)
    return UserCreate(**fields)


class TestValidateUser:

    def test_valid_request_has_no_errors(self):
        assert validate_user(make_request()) == []

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_first_name_required(self, value):
        assert validate_user(make_request(first_name=value)) == ["First name is required."]

    @pytest.mark.parametrize("value", [None, ""])
    def test_last_name_required(self, value):
        assert validate_user(make_request(last_name=value)) == ["Last name is required."]

    def test_missing_email(self):
        assert validate_user(make_request(email=None)) == ["Email is required."]

    def test_malformed_email(self):
        assert validate_user(make_request(email="not-an-email")) == ["Invalid email address."]

    def test_one_message_per_rule_in_field_order(self):
        errors = validate_user(UserCreate())
        assert errors == ["First name is required.", "Last name is required.", "Email is required."]

    def test_mixed_violations(self):
        errors = validate_user(make_request(last_name="", email="carol@"))
        assert errors == ["Last name is required.", "Invalid email address."]


class TestEmailFormat:

    @pytest.mark.parametrize("address", ["alice@techhive.com", "carol@x.com", "first.last+tag@mail.techhive.com"])
    def test_accepts_standard_addresses(self, address):
        assert is_valid_email(address)

    @pytest.mark.parametrize("address", ["plain", "@techhive.com", "alice@", "a@b@c.com", "alice smith@techhive.com"])
    def test_rejects_malformed_addresses(self, address):
        assert not is_valid_email(address)

    @pytest.mark.parametrize("address", ["admin@localhost", "alice smith@techhive.com", "bob@techhive"])
    def test_stricter_than_single_at_sign_rule(self, address):
        """One '@' away from the edges is not enough: the domain needs a dot and
        the local part must be a valid dot-atom."""
        assert not is_valid_email(address)
