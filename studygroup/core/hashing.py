"""
Utilities for hashing and comparing passwords.

Hashes are stored as `scrypt$<n>$<r>$<p>$<salt hex>$<digest hex>` so that the
cost parameters can be raised later without invalidating existing hashes.
"""

import secrets

from cryptography.exceptions import InvalidKey
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt


class UnsupportedHashAlgorithm(Exception):
    pass


SCRYPT_N = 2**14
SCRYPT_R = 8
SCRYPT_P = 1
SALT_BYTES = 16
DIGEST_BYTES = 32


def _kdf(salt: bytes, n: int, r: int, p: int) -> Scrypt:
    return Scrypt(salt=salt, length=DIGEST_BYTES, n=n, r=r, p=p)


def hash_password(password: str) -> str:
    salt = secrets.token_bytes(SALT_BYTES)
    digest = _kdf(salt, SCRYPT_N, SCRYPT_R, SCRYPT_P).derive(password.encode("utf-8"))
    return f"scrypt${SCRYPT_N}${SCRYPT_R}${SCRYPT_P}${salt.hex()}${digest.hex()}"


def verify_password(password: str, password_hash: str) -> bool:
    """
    Compare a password against a stored hash. Returns False rather than
    raising for a mismatch.
    """
    try:
        algorithm, n, r, p, salt, digest = password_hash.split("$")
    except ValueError:
        return False

    if algorithm != "scrypt":
        raise UnsupportedHashAlgorithm(f"Algorithm {algorithm} not supported")

    try:
        _kdf(bytes.fromhex(salt), int(n), int(r), int(p)).verify(
            password.encode("utf-8"), bytes.fromhex(digest)
        )
    except InvalidKey:
        return False

    return True
