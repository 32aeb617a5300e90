"""
Field validators and free-text sanitizing.

All functions are total: they never raise, they only answer or clean.
"""
import math
import re

PAYMENT_METHODS = ("cash", "upi")

_IDENTIFIER_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)
_PHONE_RE = re.compile(r"^[0-9]{10}$")
_UNSAFE_CHARS = re.compile(r"[<>\"'`]")

MAX_EMAIL_LENGTH = 254
MAX_TEXT_LENGTH = 500


def is_identifier(value) -> bool:
    return isinstance(value, str) and bool(_IDENTIFIER_RE.fullmatch(value))


def is_phone(value) -> bool:
    return isinstance(value, str) and bool(_PHONE_RE.fullmatch(value))


def is_email(value) -> bool:
    # Deliberately loose: presence of "@" and a length cap, nothing RFC-shaped.
    return isinstance(value, str) and "@" in value and len(value) <= MAX_EMAIL_LENGTH


def is_payment_method(value) -> bool:
    return value in PAYMENT_METHODS


def is_cost(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value >= 0


def sanitize(value) -> str:
    """
    Coerce to text, trim, drop markup-significant characters and cap the length.

    Not a replacement for escaping on output.
    """
    cleaned = _UNSAFE_CHARS.sub("", str(value).strip())
    return cleaned[:MAX_TEXT_LENGTH].strip()
