from fastapi import APIRouter, Depends
from portfolio.api.deps import get_context
from portfolio.models.auth import LoginRequest, LoginResponse, SessionResponse
from portfolio.services.context import PortfolioContext
import logging

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("/admin/login", response_model=LoginResponse)
async def login(credentials: LoginRequest, context: PortfolioContext = Depends(get_context)):
    """Admin gate: exchanges the configured password for a bearer token."""
    identity = context.identity.identity
    uid = identity.uid if identity else None
    try:
        result = context.admin.login(credentials.password, uid)
    except ValueError as e:
        error_msg = str(e)
        logger.warning(f"[LOGIN] Admin login failed: {error_msg}")
        context.notifications.error(error_msg)
        return LoginResponse(success=False, message=error_msg, data=None)

    context.notifications.success("Admin login successful!")
    return LoginResponse(success=True, message="Admin login successful!", data=result)

@router.post("/admin/logout", response_model=LoginResponse)
async def logout(context: PortfolioContext = Depends(get_context)):
    """Admin tokens are stateless; the client drops its token and gets the notice."""
    context.notifications.success("Logged out.")
    return LoginResponse(success=True, message="Logged out.", data=None)

@router.get("/session", response_model=SessionResponse)
async def session(context: PortfolioContext = Depends(get_context)):
    identity = context.identity.identity
    if identity is None:
        return SessionResponse(ready=context.identity.is_ready)
    return SessionResponse(
        ready=context.identity.is_ready,
        uid=identity.uid,
        provider=identity.provider,
        degraded=identity.is_degraded,
    )

@router.get("/notifications")
async def notifications(context: PortfolioContext = Depends(get_context)):
    """The transient notice currently shown, if it has not expired."""
    notice = context.notifications.current()
    return {"notice": notice.to_dict() if notice else None}
