import hashlib
import hmac
import re
import secrets
from typing import Callable
from sellerdesk.otp.constants import HANDLE_BYTES, SALT_BYTES

_HANDLE_RE = re.compile(rf"^[0-9a-f]{{{HANDLE_BYTES * 2}}}$")


def generate_code(length: int = 6) -> str:
    # uniform over the whole range , leading zeros included
    return str(secrets.randbelow(10 ** length)).zfill(length)

def make_handle() -> str:
    return secrets.token_hex(HANDLE_BYTES)

def make_salt() -> str:
    return secrets.token_hex(SALT_BYTES)

def is_handle_shaped(value: str | None) -> bool:
    return bool(value) and bool(_HANDLE_RE.match(value))


def make_hasher(algo: str = "sha256") -> Callable[[str], str]:
    hash_func = getattr(hashlib, algo)

    def _hash(value: str) -> str:
        return hash_func(value.encode()).hexdigest()
    return _hash

def hash_code(hasher: Callable[[str], str], salt: str, code: str) -> str:
    return hasher(salt + code)

def codes_match(hasher: Callable[[str], str], salt: str, code: str, expected_hash: str) -> bool:
    return hmac.compare_digest(hash_code(hasher, salt, code), expected_hash)
