"""
Creation of access tokens.
"""

from structlog.typing import FilteringBoundLogger

from studygroup.config.settings import Settings
from studygroup.core.models import TokenResponse
from studygroup.core.tokens import SigningKeys, build_access_token_payload, sign_payload
from studygroup.database.user import User


async def create_access_token(
    user: User,
    keys: SigningKeys,
    settings: Settings,
    log: FilteringBoundLogger,
) -> TokenResponse:
    """
    Sign an access token carrying the user's core data. The token is all a
    request needs to be authenticated; nothing is stored.
    """
    user_data = user.to_core()

    payload, expiration_time = build_access_token_payload(
        user_data=user_data.model_dump(), validity=settings.access_key_expiry
    )

    access_token = sign_payload(keys=keys, payload=payload)

    await log.ainfo(
        "auth.token.created",
        user_id=user.user_id,
        jti=payload["jti"],
        expires=expiration_time,
    )

    return TokenResponse(
        access_token=access_token,
        access_token_expires=expiration_time,
        user=user_data,
    )
