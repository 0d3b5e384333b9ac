"""Common API dependencies: shared context lookup, admin token check."""
import logging

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from portfolio.services.context import PortfolioContext
from portfolio.services.errors import InputValidationError, RemoteStoreError

logger = logging.getLogger(__name__)

security = HTTPBearer()


def get_context(request: Request) -> PortfolioContext:
    """Return the context built at startup, or 503 when Firestore never came up."""
    context = getattr(request.app.state, "context", None)
    if context is None:
        error = getattr(request.app.state, "startup_error", None) or "not initialized"
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Document store unavailable: {error}",
        )
    return context


def require_admin(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    context: PortfolioContext = Depends(get_context),
) -> dict:
    try:
        return context.admin.authenticate(credentials.credentials)
    except ValueError as e:
        error_msg = str(e)
        if "permissions" in error_msg.lower():
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=error_msg)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error_msg,
            headers={"WWW-Authenticate": "Bearer"},
        )


def command_failed(context: PortfolioContext, action: str, error: Exception) -> HTTPException:
    """Turn a failed command into a transient notice and the matching HTTP error."""
    if isinstance(error, InputValidationError):
        context.notifications.error(str(error))
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))

    message = f"Error {action}: {error}"
    context.notifications.error(message)
    if isinstance(error, RemoteStoreError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=message)
    logger.error(f"[API] Unexpected error {action}: {error}", exc_info=True)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=message)
