import hmac
import jwt
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

logger = logging.getLogger(__name__)


class AdminAuthService:
    """Password gate for the admin routes.

    The password is a plain configured value compared in-process; this only
    hides the admin controls and is not an access-control mechanism.
    """

    # Constants
    TOKEN_ALGORITHM = "HS256"
    ADMIN_ROLE = "admin"

    def __init__(self, password: Optional[str], jwt_secret: Optional[str], expire_minutes: int = 720):
        self.password = password
        self.jwt_secret = jwt_secret or secrets.token_urlsafe(32)
        self.expire_minutes = expire_minutes
        if not password:
            logger.warning("[Admin] ADMIN_PASSWORD not set - admin login disabled")
        if not jwt_secret:
            logger.info("[Admin] JWT_SECRET not set - using a per-process secret")

    @property
    def enabled(self) -> bool:
        return bool(self.password)

    def login(self, password: str, uid: Optional[str]) -> Dict[str, Any]:
        """Check the password and issue an admin token bound to the session uid."""
        if not self.enabled:
            raise ValueError("Admin login is not configured")
        if not hmac.compare_digest(password.encode("utf-8"), self.password.encode("utf-8")):
            logger.warning("[Admin] Login failed: incorrect password")
            raise ValueError("Incorrect password")

        expires_at = datetime.now(timezone.utc) + timedelta(minutes=self.expire_minutes)
        payload = {"sub": uid or "admin", "role": self.ADMIN_ROLE, "exp": expires_at}
        token = jwt.encode(payload, self.jwt_secret, algorithm=self.TOKEN_ALGORITHM)
        logger.info(f"[Admin] Login successful for uid: {uid}")
        return {"access_token": token, "token_type": "bearer", "expires_at": expires_at.isoformat()}

    def authenticate(self, token: str) -> Dict[str, Any]:
        """Validate an admin token and return its payload."""
        try:
            payload = jwt.decode(token, self.jwt_secret, algorithms=[self.TOKEN_ALGORITHM])
        except jwt.ExpiredSignatureError:
            logger.warning("[Admin] Token expired")
            raise ValueError("Token has expired")
        except jwt.PyJWTError as e:
            logger.warning(f"[Admin] Invalid token: {e}")
            raise ValueError("Invalid token")

        if payload.get("role") != self.ADMIN_ROLE:
            raise ValueError("Insufficient permissions")
        return payload
