"""
Tests signing and decoding of access tokens.
"""

from datetime import timedelta

import pytest

from studygroup.core.tokens import (
    KeyDecodeError,
    KeyExpiredError,
    KeyInactiveError,
    SigningKeys,
    build_access_token_payload,
    decode_access_token,
    sign_payload,
)
from studygroup.core.user import UserStatus

USER = {
    "user_id": 7,
    "user_name": "token_holder",
    "email": "token_holder@example.com",
    "grants": {"admin"},
}


def token(keys: SigningKeys, validity=timedelta(minutes=5), **claims) -> str:
    payload, _ = build_access_token_payload(
        user_data={**USER, **claims}, validity=validity
    )
    return sign_payload(keys=keys, payload=payload)


def decode(keys: SigningKeys, access_token: str):
    return decode_access_token(
        access_token=access_token,
        public_key=keys.public_key,
        key_pair_type=keys.key_pair_type,
    )


def test_decode(keys):
    user = decode(keys, token(keys, status=UserStatus.ACTIVE))

    assert user.user_id == 7
    assert user.is_admin
    assert user.status == UserStatus.ACTIVE

    # A token without a status claim is read as active.
    assert decode(keys, token(keys)).status == UserStatus.ACTIVE


def test_decode_rejects_inactive_account(keys):
    access_token = token(keys, status=UserStatus.SUSPENDED)

    with pytest.raises(KeyInactiveError):
        decode(keys, access_token)

    # KeyInactiveError is also a KeyDecodeError.
    with pytest.raises(KeyDecodeError):
        decode(keys, access_token)


def test_decode_failures(keys):
    with pytest.raises(KeyExpiredError):
        decode(keys, token(keys, validity=timedelta(seconds=-30)))

    other = SigningKeys.generate(key_pair_type="Ed25519", key_password="other")

    with pytest.raises(KeyDecodeError):
        decode(keys, token(other))

    with pytest.raises(KeyDecodeError):
        decode(keys, token(keys, user_id="not a number"))

    with pytest.raises(KeyDecodeError):
        decode(keys, token(keys, status="archived"))

    with pytest.raises(KeyDecodeError):
        decode(keys, "not.a.token")
