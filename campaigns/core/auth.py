from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from .settings import config_settings

# Tells FastAPI where to look for the token. Clients obtain tokens out of band;
# the tokenUrl only feeds the OpenAPI docs.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")


def require_auth_token(token: Annotated[str, Depends(oauth2_scheme)]) -> str:
    """
    Dependency for the admin routes. Requires a Bearer token that is one of
    the configured ``AUTH_TOKENS``.

    A missing Authorization header is rejected with 401 by OAuth2PasswordBearer
    before this function runs.
    """
    if not token or token not in config_settings.AUTH_TOKENS:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return token
