"""
Signing keys, and the encoding and decoding of access tokens (JWTs).
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

import jwt
from cachetools import TTLCache, cached
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import (
    BestAvailableEncryption,
    Encoding,
    PrivateFormat,
    PublicFormat,
    load_pem_private_key,
    load_pem_public_key,
)
from pydantic import ValidationError

from studygroup.core.user import UserData, UserStatus

# Key pair type -> PyJWT algorithm.
ALGORITHMS = {"Ed25519": "EdDSA"}


class UnsupportedKeyPairType(Exception):
    pass


class KeyDecodeError(Exception):
    pass


class KeyExpiredError(Exception):
    pass


class KeyInactiveError(KeyDecodeError):
    pass


def algorithm_for(key_pair_type: str) -> str:
    try:
        return ALGORITHMS[key_pair_type]
    except KeyError:
        raise UnsupportedKeyPairType(f"Key pair type {key_pair_type} is not supported")


@dataclass(frozen=True)
class SigningKeys:
    """
    The key material used to sign and verify access tokens, as PEM bytes. The
    private key is stored encrypted with `key_password`.
    """

    key_pair_type: str
    key_password: str
    public_key: bytes
    private_key: bytes

    @classmethod
    def generate(cls, key_pair_type: str, key_password: str) -> "SigningKeys":
        if key_pair_type != "Ed25519":
            raise UnsupportedKeyPairType(
                f"Key pair type {key_pair_type} is not supported"
            )

        private = Ed25519PrivateKey.generate()

        return cls(
            key_pair_type=key_pair_type,
            key_password=key_password,
            public_key=private.public_key().public_bytes(
                encoding=Encoding.PEM, format=PublicFormat.SubjectPublicKeyInfo
            ),
            private_key=private.private_bytes(
                encoding=Encoding.PEM,
                format=PrivateFormat.PKCS8,
                encryption_algorithm=BestAvailableEncryption(
                    password=key_password.encode("utf-8")
                ),
            ),
        )

    def signing_key(self):
        return load_pem_private_key(
            data=self.private_key, password=self.key_password.encode("utf-8")
        )


def serializable(value: Any) -> Any:
    # Grants are held as a set.
    if isinstance(value, set):
        return sorted(value)

    if isinstance(value, Enum):
        return value.value

    return value


def sign_payload(keys: SigningKeys, payload: dict[str, Any]) -> str:
    """
    Sign a JWT payload with the (decrypted) private key.
    """
    return jwt.encode(
        payload={key: serializable(value) for key, value in payload.items()},
        key=keys.signing_key(),
        algorithm=algorithm_for(keys.key_pair_type),
    )


def reconstruct_payload(
    webtoken: str | bytes, public_key: bytes, key_pair_type: str
) -> dict[str, Any]:
    """
    Verify a JWT against the public key and return its payload.

    Raises
    ------
    KeyExpiredError
        If the token is past its expiry.
    KeyDecodeError
        If the token is malformed or was not signed by the matching private
        key.
    """

    try:
        payload = jwt.decode(
            jwt=webtoken,
            key=load_pem_public_key(data=public_key),
            algorithms=[algorithm_for(key_pair_type)],
        )
    except jwt.ExpiredSignatureError:
        raise KeyExpiredError("Content of the payload has expired")
    except (jwt.PyJWTError, ValueError, UnsupportedAlgorithm):
        raise KeyDecodeError("Unable to deserialize content")

    return payload


def build_access_token_payload(
    user_data: dict[str, Any], validity: timedelta
) -> tuple[dict[str, Any], datetime]:
    """
    The claims of an access token for `user_data`, alongside its expiry time.
    """
    for claim in ("exp", "nbf", "iat", "jti"):
        if claim in user_data:
            raise ValueError(f"User data cannot contain the claim {claim}")

    now = datetime.now(timezone.utc)
    expiration_time = now + validity

    payload = {
        "exp": expiration_time,
        "nbf": now,
        "iat": now,
        "jti": uuid4().hex,
        **user_data,
    }

    return payload, expiration_time


@cached(cache=TTLCache(maxsize=256, ttl=60))
def decode_access_token(
    access_token: str | bytes, public_key: bytes, key_pair_type: str
) -> UserData:
    """
    The user an access token was issued to.

    Raises
    ------
    KeyExpiredError
        If the token is past its expiry.
    KeyInactiveError
        If the token was issued to an account that is not active.
    KeyDecodeError
        If the token is malformed or forged, or its claims do not describe a
        user.
    """

    payload = reconstruct_payload(
        webtoken=access_token, public_key=public_key, key_pair_type=key_pair_type
    )

    try:
        user = UserData.model_validate(payload)
    except ValidationError:
        raise KeyDecodeError("Token claims do not describe a user")

    if user.status != UserStatus.ACTIVE:
        raise KeyInactiveError(f"Token was issued to a {user.status.value} account")

    return user
