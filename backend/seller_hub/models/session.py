from pydantic import BaseModel, EmailStr
from datetime import datetime
from typing import Optional


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class SessionUser(BaseModel):
    id: str
    email: str
    display_name: Optional[str] = None


class SessionToken(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: SessionUser


class SessionInfo(BaseModel):
    session_id: str
    user: SessionUser
    created_at: datetime
    last_seen_at: Optional[datetime]
    expires_at: datetime
