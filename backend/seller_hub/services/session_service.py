import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from seller_hub.config import settings
from seller_hub.models_sqlalchemy.models import DashboardSession
from seller_hub.services.errors import EnvelopeError, SellerApiError
from seller_hub.services.seller_api_client import SellerApiClient
from seller_hub.utils.envelope import unwrap_envelope
from seller_hub.utils.logger import logger
from seller_hub.utils.records import as_dict, pick


class SessionLoginError(Exception):
    """Upstream rejected the credentials or answered without a token."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class DashboardSessionService:
    """Lifecycle of :class:`DashboardSession` rows.

    A session is created on login, loaded (and touched) on every
    authenticated request, revoked on logout and purged once expired.
    """

    @staticmethod
    def to_utc(dt: Optional[datetime]) -> Optional[datetime]:
        # SQLite hands back naive datetimes even for timezone-aware columns.
        if dt is None:
            return None
        if dt.tzinfo is None:
            return dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)

    @staticmethod
    def _parse_login_response(body: Any) -> Tuple[str, Dict[str, Any]]:
        data = as_dict(unwrap_envelope(body))
        token = pick(data, "token", "accessToken", "access_token") or pick(
            body, "token", "accessToken", "access_token"
        )
        if not token:
            raise SessionLoginError("Seller API login response did not include a token")
        user = as_dict(pick(data, "user") or pick(body, "user"))
        return str(token), user

    def is_active(self, session: DashboardSession, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        if session.revoked_at is not None:
            return False
        expires_at = self.to_utc(session.expires_at)
        return expires_at is not None and expires_at > now

    def create_session(
        self,
        db: Session,
        *,
        user_id: str,
        email: str,
        upstream_token: str,
        display_name: Optional[str] = None,
        expires_delta: Optional[timedelta] = None,
    ) -> DashboardSession:
        now = datetime.now(timezone.utc)
        session = DashboardSession(
            id=str(uuid.uuid4()),
            user_id=user_id,
            email=email,
            display_name=display_name,
            created_at=now,
            last_seen_at=now,
            expires_at=now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)),
        )
        session.upstream_token = upstream_token
        db.add(session)
        db.commit()
        db.refresh(session)
        logger.info(f"Created dashboard session {session.id} for user {user_id}")
        return session

    async def login(
        self,
        db: Session,
        email: str,
        password: str,
        client: Optional[SellerApiClient] = None,
    ) -> DashboardSession:
        """Sign in against the seller API and persist the resulting session."""
        owns_client = client is None
        client = client or SellerApiClient()
        try:
            body = await client.login(email, password)
        except SellerApiError as e:
            logger.warning(f"Seller API login failed for {email}: {e}")
            raise SessionLoginError(e.message, status_code=e.status_code or 502) from e
        finally:
            if owns_client:
                await client.aclose()

        try:
            token, user = self._parse_login_response(body)
        except EnvelopeError as e:
            logger.warning(f"Seller API login was not successful for {email}: {e.message}")
            raise SessionLoginError(e.message) from e

        user_id = pick(user, "id", "_id", "userId")
        return self.create_session(
            db,
            user_id=str(user_id) if user_id is not None else email,
            email=str(pick(user, "email", default=email)),
            display_name=pick(user, "name", "displayName", "display_name", "nickname"),
            upstream_token=token,
        )

    def load_session(self, db: Session, session_id: str, touch: bool = True) -> Optional[DashboardSession]:
        """Return the session if it exists, is not revoked and has not expired."""
        session = db.query(DashboardSession).filter(DashboardSession.id == session_id).first()
        if session is None:
            return None
        now = datetime.now(timezone.utc)
        if not self.is_active(session, now):
            logger.info(f"Rejected inactive dashboard session {session_id}")
            return None
        if touch:
            session.last_seen_at = now
            db.commit()
            db.refresh(session)
        return session

    def revoke_session(self, db: Session, session_id: str) -> bool:
        session = db.query(DashboardSession).filter(DashboardSession.id == session_id).first()
        if session is None or session.revoked_at is not None:
            return False
        session.revoked_at = datetime.now(timezone.utc)
        # The upstream token is useless after logout.
        session.upstream_token = None
        db.commit()
        logger.info(f"Revoked dashboard session {session_id}")
        return True

    def purge_expired(self, db: Session, now: Optional[datetime] = None) -> int:
        """Delete expired and revoked sessions; returns how many were removed."""
        now = now or datetime.now(timezone.utc)
        stale = (
            db.query(DashboardSession)
            .filter(or_(DashboardSession.expires_at <= now, DashboardSession.revoked_at.isnot(None)))
            .all()
        )
        for session in stale:
            db.delete(session)
        db.commit()
        if stale:
            logger.info(f"Purged {len(stale)} expired dashboard session(s)")
        return len(stale)

    def client_for_session(self, session: DashboardSession, **kwargs: Any) -> SellerApiClient:
        kwargs.setdefault("user_id", session.user_id)
        return SellerApiClient(session.upstream_token, **kwargs)


session_service = DashboardSessionService()
