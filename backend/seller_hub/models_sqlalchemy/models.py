from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey, Index, JSON
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import enum

from . import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncRunStatus(str, enum.Enum):
    running = "running"
    completed = "completed"
    failed = "failed"


class DashboardSession(Base):
    """Signed-in user's upstream session.

    Loaded on every authenticated request and revoked on logout; the upstream
    bearer token is stored encrypted.
    """
    __tablename__ = "dashboard_sessions"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(64), nullable=False)
    email = Column(String(255), nullable=False)
    display_name = Column(String(255), nullable=True)
    _upstream_token = Column("upstream_token", Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    last_seen_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    revoked_at = Column(DateTime(timezone=True), nullable=True)

    # Sync history outlives the session; purging a session detaches its runs.
    sync_runs = relationship("SyncRun", back_populates="session")

    __table_args__ = (
        Index('idx_dashboard_sessions_user_id', 'user_id'),
        Index('idx_dashboard_sessions_expires_at', 'expires_at'),
    )

    @property
    def upstream_token(self) -> str | None:
        from seller_hub.utils import crypto

        raw = self._upstream_token
        if raw is None:
            return None
        return crypto.decrypt(raw)

    @upstream_token.setter
    def upstream_token(self, value: str | None) -> None:
        from seller_hub.utils import crypto

        if value is None or value == "":
            self._upstream_token = None
        else:
            self._upstream_token = crypto.encrypt(value)


class SyncRun(Base):
    __tablename__ = "sync_runs"

    id = Column(String(36), primary_key=True)
    session_id = Column(String(36), ForeignKey('dashboard_sessions.id', ondelete='SET NULL'), nullable=True)
    user_id = Column(String(64), nullable=False)
    status = Column(String(20), nullable=False, default=SyncRunStatus.running.value)
    started_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    finished_at = Column(DateTime(timezone=True), nullable=True)
    total_accounts = Column(Integer, nullable=False, default=0)
    successful = Column(Integer, nullable=False, default=0)
    failed = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)
    details = Column(JSON, nullable=True)

    session = relationship("DashboardSession", back_populates="sync_runs")

    __table_args__ = (
        Index('idx_sync_runs_user_id', 'user_id'),
        Index('idx_sync_runs_started_at', 'started_at'),
    )
