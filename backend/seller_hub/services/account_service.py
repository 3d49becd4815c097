from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from seller_hub.models.seller import ConnectionStatus, SellerAccount
from seller_hub.services.errors import DashboardUnavailableError, EnvelopeError, SellerApiError
from seller_hub.services.seller_api_client import SellerApiClient
from seller_hub.utils.envelope import unwrap_list
from seller_hub.utils.logger import logger
from seller_hub.utils.records import as_text, parse_datetime, pick


def _derive_status(raw_status: Any, expires_at: Optional[datetime], now: datetime) -> ConnectionStatus:
    status = str(raw_status).lower() if raw_status else ""
    if status == ConnectionStatus.PAUSED.value:
        return ConnectionStatus.PAUSED
    if status in (ConnectionStatus.EXPIRED.value, "error", "invalid"):
        return ConnectionStatus.EXPIRED
    if expires_at is not None and expires_at <= now:
        return ConnectionStatus.EXPIRED
    return ConnectionStatus.ACTIVE


def normalize_account(raw: Dict[str, Any], now: Optional[datetime] = None) -> Optional[SellerAccount]:
    """Map one seller API account record onto :class:`SellerAccount`.

    Returns ``None`` for records without an id.
    """
    if not isinstance(raw, dict):
        return None
    account_id = as_text(pick(raw, "id", "_id", "accountId", "account_id"))
    if account_id is None:
        return None

    now = now or datetime.now(timezone.utc)
    expires_at = parse_datetime(pick(raw, "tokenExpiresAt", "token_expires_at", "expiresAt", "expires_at"))

    return SellerAccount(
        id=account_id,
        nickname=as_text(pick(raw, "nickname", "accountName", "account_name", "mlNickname")),
        ml_user_id=as_text(pick(raw, "mlUserId", "ml_user_id", "userId")),
        status=_derive_status(pick(raw, "status", "connectionStatus"), expires_at, now),
        token_expires_at=expires_at,
        is_primary=bool(pick(raw, "isPrimary", "is_primary") or False),
    )


def normalize_accounts(body: Any) -> List[SellerAccount]:
    accounts = []
    for raw in unwrap_list(body, "accounts"):
        account = normalize_account(raw)
        if account is None:
            logger.warning("Skipping seller account record without id: %r", raw)
            continue
        accounts.append(account)
    return accounts


async def fetch_accounts(client: SellerApiClient) -> List[SellerAccount]:
    """Load the signed-in user's connected accounts.

    This is the one call the dashboard cannot do without, so every failure
    is raised as :class:`DashboardUnavailableError`.
    """
    try:
        body = await client.list_accounts()
        return normalize_accounts(body)
    except SellerApiError as e:
        logger.error(f"Failed to load seller accounts: {e}")
        raise DashboardUnavailableError(e.message, status_code=e.status_code) from e
    except EnvelopeError as e:
        logger.error(f"Seller accounts response was not successful: {e.message}")
        raise DashboardUnavailableError(e.message) from e
