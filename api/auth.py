"""
DeFiSeek - API Authentication

Bearer-key authentication. A request is authenticated when its
``Authorization: Bearer <key>`` header carries one of the configured
``API_API_KEYS`` and ``X-User-Id`` names the acting user.
"""

import secrets

from fastapi import Header, Request

from defiseek.errors import AuthRequired
from defiseek.logging import get_api_logger

from api.context import AppContext

logger = get_api_logger()


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def _key_is_valid(key: str, valid_keys: list[str]) -> bool:
    return any(secrets.compare_digest(key, valid) for valid in valid_keys)


async def get_current_user(
    request: Request,
    authorization: str | None = Header(default=None),
    x_user_id: str | None = Header(default=None),
) -> str:
    """
    Resolve the authenticated user id.

    Raises:
        AuthRequired: Missing or unknown key, or no user id
    """
    context = get_context(request)
    scheme, _, key = (authorization or "").partition(" ")

    if scheme.lower() != "bearer" or not key:
        raise AuthRequired()
    if not _key_is_valid(key.strip(), context.settings.api.api_keys):
        logger.warning("auth_rejected", path=request.url.path, api_key=key.strip())
        raise AuthRequired()
    if not x_user_id or not x_user_id.strip():
        raise AuthRequired()

    return x_user_id.strip()
