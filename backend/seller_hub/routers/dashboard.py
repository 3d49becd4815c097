from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from seller_hub.database import get_db
from seller_hub.models.dashboard import (
    DashboardOverview,
    ReportingPeriod,
    SyncAndOverviewResponse,
    SyncRunResponse,
)
from seller_hub.models.seller import SellerAccountList
from seller_hub.models_sqlalchemy.models import DashboardSession
from seller_hub.services.account_service import fetch_accounts
from seller_hub.services.auth import get_current_session, get_seller_client
from seller_hub.services.dashboard_aggregator import build_dashboard
from seller_hub.services.errors import (
    AccountNotConnectedError,
    DashboardUnavailableError,
    EnvelopeError,
    SellerApiError,
)
from seller_hub.services.seller_api_client import SellerApiClient
from seller_hub.services.sync_service import list_sync_runs, run_sync_all
from seller_hub.utils.logger import logger, upstream_call_log

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


def _upstream_http_error(status_code: Optional[int], message: str) -> HTTPException:
    # Upstream 401 means the stored upstream token is no longer valid.
    if status_code == 401:
        return HTTPException(status_code=401, detail=message)
    return HTTPException(status_code=502, detail=message)


@router.get("/overview", response_model=DashboardOverview)
async def get_overview(
    period_days: int = Query(30, description="Reporting window in days (7, 15, 30, 60 or 90)"),
    account_id: Optional[str] = Query(None, description="Restrict the dashboard to one account"),
    client: SellerApiClient = Depends(get_seller_client),
):
    """Aggregated dashboard for every connected account"""
    try:
        ReportingPeriod.validate(period_days)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    try:
        return await build_dashboard(client, period_days, account_id=account_id)
    except AccountNotConnectedError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except DashboardUnavailableError as e:
        raise _upstream_http_error(e.status_code, e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error building dashboard: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/accounts", response_model=SellerAccountList)
async def get_accounts(client: SellerApiClient = Depends(get_seller_client)):
    try:
        accounts = await fetch_accounts(client)
    except DashboardUnavailableError as e:
        raise _upstream_http_error(e.status_code, e.message)
    return SellerAccountList(accounts=accounts, total=len(accounts))


@router.post("/sync", response_model=SyncAndOverviewResponse)
async def sync_all(
    period_days: int = Query(30, description="Reporting window for the refreshed dashboard"),
    session: DashboardSession = Depends(get_current_session),
    client: SellerApiClient = Depends(get_seller_client),
    db: Session = Depends(get_db),
):
    """Sync every account upstream, then rebuild the dashboard"""
    try:
        ReportingPeriod.validate(period_days)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    try:
        summary = await run_sync_all(db, session, client)
    except SellerApiError as e:
        raise _upstream_http_error(e.status_code, e.message)
    except EnvelopeError as e:
        raise HTTPException(status_code=502, detail=e.message)

    try:
        overview = await build_dashboard(client, period_days)
    except DashboardUnavailableError as e:
        raise _upstream_http_error(e.status_code, e.message)

    return SyncAndOverviewResponse(sync=summary, overview=overview)


@router.get("/sync-runs", response_model=List[SyncRunResponse])
async def get_sync_runs(
    limit: int = Query(10, ge=1, le=100),
    session: DashboardSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return list_sync_runs(db, session.user_id, limit=limit)


@router.get("/upstream-logs")
async def get_upstream_logs(
    limit: int = Query(100, ge=1, le=1000),
    session: DashboardSession = Depends(get_current_session),
):
    """Recent seller API calls made for the signed-in user, credentials redacted"""
    calls = upstream_call_log.get_calls(session.user_id, limit)
    return {"logs": calls, "total": len(calls)}
