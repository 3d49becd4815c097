from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from seller_hub.database import get_db
from seller_hub.models.session import LoginRequest, SessionInfo, SessionToken, SessionUser
from seller_hub.models_sqlalchemy.models import DashboardSession
from seller_hub.services.auth import create_access_token, get_current_session
from seller_hub.services.session_service import SessionLoginError, session_service
from seller_hub.utils.logger import logger

router = APIRouter(prefix="/session", tags=["Session"])


def _session_user(session: DashboardSession) -> SessionUser:
    return SessionUser(id=session.user_id, email=session.email, display_name=session.display_name)


@router.post("/login", response_model=SessionToken)
async def login(payload: LoginRequest, db: Session = Depends(get_db)):
    """Sign in with seller API credentials and open a dashboard session"""
    try:
        session = await session_service.login(db, payload.email, payload.password)
    except SessionLoginError as e:
        # Upstream outages surface as 502, everything else as bad credentials.
        status_code = 502 if (e.status_code or 0) >= 500 else 401
        raise HTTPException(status_code=status_code, detail=e.message)

    expires_at = session_service.to_utc(session.expires_at)
    token = create_access_token(session, expires_at=expires_at)
    logger.info(f"User logged in: {session.email} (session {session.id})")
    return SessionToken(
        access_token=token,
        expires_at=expires_at,
        user=_session_user(session),
    )


@router.post("/logout")
async def logout(
    session: DashboardSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    session_service.revoke_session(db, session.id)
    return {"status": "success"}


@router.get("/me", response_model=SessionInfo)
async def me(session: DashboardSession = Depends(get_current_session)):
    return SessionInfo(
        session_id=session.id,
        user=_session_user(session),
        created_at=session_service.to_utc(session.created_at),
        last_seen_at=session_service.to_utc(session.last_seen_at),
        expires_at=session_service.to_utc(session.expires_at),
    )
