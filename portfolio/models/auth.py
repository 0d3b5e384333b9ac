from pydantic import BaseModel
from typing import Optional

class LoginRequest(BaseModel):
    password: str

class LoginResponse(BaseModel):
    success: bool
    message: str
    data: Optional[dict] = None

class SessionResponse(BaseModel):
    ready: bool
    uid: Optional[str] = None
    provider: Optional[str] = None
    degraded: bool = False
