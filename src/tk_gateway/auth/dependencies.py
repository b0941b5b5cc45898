"""FastAPI dependencies resolving the calling principal.

Usage in any protected router:
    from src.tk_gateway.auth.dependencies import get_current_agent_id

    @router.get("/protected")
    async def protected(agent_id: str = Depends(get_current_agent_id)):
        ...
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from config.settings import settings
from src.tk_common.errors import (
    AgentAccountRequiredError,
    InvalidCredentialsError,
    ServiceAccountRequiredError,
)
from src.tk_gateway.auth.jwt_handler import decode_access_token

# Tokens come from the marketplace auth service; tokenUrl only feeds Swagger UI
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")

# Reusable 401 exception with WWW-Authenticate header (OAuth2 standard)
_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid or expired token",
    headers={"WWW-Authenticate": "Bearer"},
)


async def get_current_principal_id(token: str = Depends(oauth2_scheme)) -> str:
    """Validate the Bearer token and return its subject.

    Raises HTTP 401 if the token is missing, invalid, or expired.
    """
    try:
        payload = decode_access_token(token)
    except InvalidCredentialsError:
        raise _CREDENTIALS_EXCEPTION from None

    principal_id: str | None = payload.get("sub")
    if not principal_id:
        raise _CREDENTIALS_EXCEPTION
    return principal_id


async def get_current_agent_id(
    principal_id: str = Depends(get_current_principal_id),
) -> str:
    """The agent on whose behalf balances are read and bids are placed.

    The payment collaborator only credits accounts; it never holds one.
    """
    if principal_id == settings.PAYMENT_SERVICE_ID:
        raise AgentAccountRequiredError()
    return principal_id


async def require_payment_service(
    principal_id: str = Depends(get_current_principal_id),
) -> str:
    """Verify the caller is the payment collaborator.

    Used to protect POST /tokens/credit; agents can never mint their own tokens.
    """
    if principal_id != settings.PAYMENT_SERVICE_ID:
        raise ServiceAccountRequiredError()
    return principal_id
