from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from enum import Enum


class ConnectionStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    EXPIRED = "expired"


class SellerAccount(BaseModel):
    """Connected Mercado Livre account as reported by the seller API."""
    id: str
    nickname: Optional[str] = None
    ml_user_id: Optional[str] = None
    status: ConnectionStatus = ConnectionStatus.ACTIVE
    token_expires_at: Optional[datetime] = None
    is_primary: bool = False


class SellerAccountList(BaseModel):
    accounts: list[SellerAccount]
    total: int
