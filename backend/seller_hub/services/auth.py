from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from seller_hub.config import settings
from seller_hub.database import get_db
from seller_hub.models_sqlalchemy.models import DashboardSession
from seller_hub.services.session_service import session_service
from seller_hub.utils.logger import logger

security = HTTPBearer(auto_error=False)


def create_access_token(session: DashboardSession, expires_at: Optional[datetime] = None) -> str:
    """Issue the service JWT for a dashboard session (``sub`` = session id)."""
    expire = expires_at or datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode = {
        "sub": session.id,
        "uid": session.user_id,
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.ALGORITHM)


def decode_session_id(token: str) -> Optional[str]:
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.error(f"JWT validation error: {str(e)}")
        return None
    return payload.get("sub")


async def get_current_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> DashboardSession:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise credentials_exception

    session_id = decode_session_id(credentials.credentials)
    if session_id is None:
        raise credentials_exception

    session = session_service.load_session(db, session_id)
    if session is None:
        logger.warning(f"Dashboard session not found or inactive: {session_id}")
        raise credentials_exception
    return session


async def get_seller_client(
    session: DashboardSession = Depends(get_current_session),
):
    """Per-request seller API client carrying the session's upstream token."""
    client = session_service.client_for_session(session)
    try:
        yield client
    finally:
        await client.aclose()
