import asyncio
import uuid
from datetime import datetime, timezone
from typing import Any, List, Optional

from sqlalchemy.orm import Session

from seller_hub.models.dashboard import SyncSummary
from seller_hub.models_sqlalchemy.models import DashboardSession, SyncRun, SyncRunStatus
from seller_hub.services.errors import EnvelopeError, SellerApiError
from seller_hub.services.seller_api_client import SellerApiClient
from seller_hub.utils.envelope import unwrap_envelope
from seller_hub.utils.logger import logger
from seller_hub.utils.records import as_dict, as_int, pick


def _summary_from_body(body: Any) -> dict:
    data = as_dict(unwrap_envelope(body))
    results = pick(data, "results") or []
    if not isinstance(results, list):
        results = []
    summary = as_dict(pick(data, "summary"))
    total = as_int(pick(summary, "total"), default=len(results))
    successful = as_int(
        pick(summary, "successful", "success"),
        default=sum(1 for r in results if isinstance(r, dict) and r.get("success")),
    )
    failed = as_int(pick(summary, "failed", "failures"), default=max(total - successful, 0))
    return {
        "total": total,
        "successful": successful,
        "failed": failed,
        "results": results,
        "message": pick(body, "message") if isinstance(body, dict) else None,
    }


def _to_summary(run: SyncRun, message: Optional[str] = None) -> SyncSummary:
    return SyncSummary(
        run_id=run.id,
        status=run.status,
        total=run.total_accounts or 0,
        successful=run.successful or 0,
        failed=run.failed or 0,
        message=message or run.error_message,
    )


def _mark_failed(db: Session, run: SyncRun, message: str) -> None:
    run.status = SyncRunStatus.failed.value
    run.error_message = message
    run.finished_at = datetime.now(timezone.utc)
    db.commit()


async def run_sync_all(db: Session, session: DashboardSession, client: SellerApiClient) -> SyncSummary:
    """Ask the seller API to sync every account and record the run.

    Any failure, cancellation included, marks the run ``failed`` and is
    re-raised; a run never stays ``running`` after this returns.
    """
    run = SyncRun(
        id=str(uuid.uuid4()),
        session_id=session.id,
        user_id=session.user_id,
        status=SyncRunStatus.running.value,
        started_at=datetime.now(timezone.utc),
    )
    db.add(run)
    db.commit()
    logger.info(f"Sync run {run.id} started for user {session.user_id}")

    try:
        body = await client.sync_all_accounts()
        summary = _summary_from_body(body)
    except (SellerApiError, EnvelopeError) as e:
        _mark_failed(db, run, str(e))
        logger.error(f"Sync run {run.id} failed: {e}")
        raise
    except asyncio.CancelledError:
        _mark_failed(db, run, "Sync cancelled before the seller API answered")
        logger.warning(f"Sync run {run.id} cancelled")
        raise
    except Exception as e:
        _mark_failed(db, run, f"{type(e).__name__}: {e}")
        logger.error(f"Sync run {run.id} failed unexpectedly: {e}", exc_info=True)
        raise

    run.status = SyncRunStatus.completed.value
    run.total_accounts = summary["total"]
    run.successful = summary["successful"]
    run.failed = summary["failed"]
    run.details = {"results": summary["results"]}
    run.finished_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(run)

    logger.info(
        f"Sync run {run.id} completed: total={run.total_accounts} "
        f"successful={run.successful} failed={run.failed}"
    )
    return _to_summary(run, summary["message"])


def list_sync_runs(db: Session, user_id: str, limit: int = 10) -> List[SyncRun]:
    return (
        db.query(SyncRun)
        .filter(SyncRun.user_id == user_id)
        .order_by(SyncRun.started_at.desc())
        .limit(limit)
        .all()
    )
