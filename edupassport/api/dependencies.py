from __future__ import annotations

import logging
from typing import Annotated

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from edupassport.core.errors import (
    BackendFailure,
    IllegalTransition,
    MalformedRecord,
    MalformedToken,
    NotFound,
    RegistryError,
    Unauthenticated,
    Unauthorized,
    Unavailable,
    UserRejected,
)
from edupassport.models.principal import WalletPrincipal
from edupassport.services import token_service

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def require_wallet(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ],
) -> WalletPrincipal:
    """Validate the wallet session token.  Returns a WalletPrincipal.

    Used as a FastAPI dependency on every endpoint that acts on behalf
    of a wallet (create, transition, reveal).
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=Unauthenticated.user_message,
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        claims = token_service.decode_access_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired wallet token rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid wallet token rejected: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None

    principal = WalletPrincipal(address=claims["sub"])
    logger.debug("Token validated for wallet=%s", principal.address)
    return principal


# ---------------------------------------------------------------------------
# Registry error -> HTTP status
# ---------------------------------------------------------------------------

_STATUS_BY_ERROR: dict[type[RegistryError], int] = {
    NotFound: status.HTTP_404_NOT_FOUND,
    Unauthorized: status.HTTP_403_FORBIDDEN,
    IllegalTransition: status.HTTP_409_CONFLICT,
    MalformedRecord: status.HTTP_422_UNPROCESSABLE_ENTITY,
    MalformedToken: status.HTTP_422_UNPROCESSABLE_ENTITY,
    Unauthenticated: status.HTTP_401_UNAUTHORIZED,
    UserRejected: status.HTTP_403_FORBIDDEN,
    Unavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
    BackendFailure: status.HTTP_502_BAD_GATEWAY,
}


def to_http_error(exc: Exception) -> HTTPException:
    """Translate a registry failure into the HTTPException the route raises."""
    if isinstance(exc, RegistryError):
        code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
        return HTTPException(status_code=code, detail=exc.user_message)
    if isinstance(exc, ValueError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
        )
    raise TypeError(f"no HTTP mapping for {type(exc).__name__}") from exc
