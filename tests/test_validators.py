import uuid

import pytest

from portal.validators import is_cost, is_email, is_identifier, is_payment_method, is_phone, sanitize


def test_identifier_accepts_canonical_uuid_any_case():
    value = str(uuid.uuid4())
    assert is_identifier(value)
    assert is_identifier(value.upper())


@pytest.mark.parametrize("value", [
    "", "E1", "123e4567e89b12d3a456426614174000", "123e4567-e89b-12d3-a456-42661417400",
    "123e4567-e89b-12d3-a456-4266141740000", "g23e4567-e89b-12d3-a456-426614174000",
    " 123e4567-e89b-12d3-a456-426614174000", None, 42,
])
def test_identifier_rejects_malformed(value):
    assert not is_identifier(value)


def test_phone_requires_exactly_ten_digits():
    assert is_phone("9876543210")
    assert not is_phone("987654321")
    assert not is_phone("98765432101")
    assert not is_phone("98765-4321")
    assert not is_phone("98765432a0")
    assert not is_phone("９８７６５４３２１０")
    assert not is_phone(9876543210)


def test_email_is_permissive():
    assert is_email("a@b")
    assert is_email("@")
    assert not is_email("ab.com")
    assert not is_email(None)
    assert not is_email("a@" + "b" * 253)
    assert is_email("a@" + "b" * 252)


def test_payment_method_whitelist():
    assert is_payment_method("cash")
    assert is_payment_method("upi")
    assert not is_payment_method("card")
    assert not is_payment_method("UPI")
    assert not is_payment_method(None)


def test_cost():
    assert is_cost(0)
    assert is_cost(12.5)
    assert not is_cost(-1)
    assert not is_cost(True)
    assert not is_cost("10")
    assert not is_cost(float("nan"))
    assert not is_cost(float("inf"))


def test_sanitize_strips_markup_characters():
    assert sanitize('  <script>alert("x")</script> ') == "scriptalert(x)/script"
    assert sanitize("O'Brien `rm`") == "OBrien rm"
    assert sanitize(12345) == "12345"


def test_sanitize_truncates_to_500():
    assert len(sanitize("a" * 1000)) == 500


@pytest.mark.parametrize("value", [
    "", "   ", "plain", " padded ", "<b>bold</b>", "< leading", "trailing >",
    "x" * 499 + " y", "a" * 600, " ' \" ` ", "tab\tinside\n", "é<ü>ß",
])
def test_sanitize_is_idempotent_and_never_grows(value):
    once = sanitize(value)
    assert sanitize(once) == once
    assert len(once) <= len(value)
