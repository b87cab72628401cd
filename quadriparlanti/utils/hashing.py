"""Hashing and random code utilities."""

import hashlib
import secrets
import string

SHORT_CODE_ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits
SHORT_CODE_LENGTH = 6


def hash_ip(ip_address: str, salt: str) -> str:
    """
    Hash a client IP for analytics.

    sha256(ip + salt) as hex; the raw address is never stored.
    """
    return hashlib.sha256(f"{ip_address}{salt}".encode("utf-8")).hexdigest()


def generate_short_code(length: int = SHORT_CODE_LENGTH) -> str:
    """Random alphanumeric code, each character drawn uniformly from A-Z a-z 0-9."""
    return "".join(secrets.choice(SHORT_CODE_ALPHABET) for _ in range(length))


def is_valid_short_code(code: str) -> bool:
    return len(code) == SHORT_CODE_LENGTH and all(c in SHORT_CODE_ALPHABET for c in code)


def generate_salt() -> str:
    """New random salt for IP hashing."""
    return secrets.token_hex(32)
