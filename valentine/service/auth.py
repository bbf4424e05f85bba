"""Bearer-token authentication for the snapshot service.

Identity is owned by an external provider. When ``auth_url`` is configured
the token is forwarded there for verification; otherwise it must be one of
the statically configured ``api_tokens``.
"""

import hmac
import logging
from typing import Dict, Optional

import httpx
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import Settings

logger = logging.getLogger(__name__)

AUTH_REQUIRED = "Authentication required"

bearer_scheme = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=AUTH_REQUIRED,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def _verify_with_provider(auth_url: str, token: str) -> Optional[Dict]:
    try:
        async with httpx.AsyncClient(timeout=10) as client:
            response = await client.post(
                auth_url, headers={"Authorization": f"Bearer {token}"}
            )
    except httpx.HTTPError as e:
        logger.error(f"Identity provider unreachable: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Identity provider unavailable",
        )

    if response.status_code != 200:
        logger.warning(f"Token rejected by identity provider ({response.status_code})")
        return None
    return response.json()


async def verify_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> Dict:
    """
    Resolve the caller's identity from the Authorization header.

    Returns:
        User info dict from the identity provider, or {"user_id": "static"}

    Raises:
        HTTPException: 401 when the token is missing or rejected
    """
    if credentials is None or not credentials.credentials:
        raise _unauthorized()

    token = credentials.credentials

    if settings.auth_url:
        user_info = await _verify_with_provider(settings.auth_url, token)
        if user_info is None:
            raise _unauthorized()
        return user_info

    if any(
        hmac.compare_digest(token.encode("utf-8"), allowed.encode("utf-8"))
        for allowed in settings.token_list
    ):
        return {"user_id": "static"}

    raise _unauthorized()
